"""Structured run-metrics emission for scheduled jobs."""

from __future__ import annotations

import logging

from catering_kernel.logging_config import get_logger

from catering_batch.domain.types import JobRunMetrics

logger = get_logger("batch.metrics")


def emit_job_metrics(
    metrics: JobRunMetrics,
    log: logging.Logger | None = None,
) -> JobRunMetrics:
    """Emit one ``job_run_metrics`` record for a run and return the metrics."""
    (log or logger).info("job_run_metrics", extra=metrics.as_log_fields())
    return metrics
