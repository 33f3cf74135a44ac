"""
Command-line entry point for the catering scheduler.

Usage:
    catering-scheduler [--config PATH] init-db
    catering-scheduler [--config PATH] run-job {generate_work_items,apply_fallback,relay_outbox}
    catering-scheduler [--config PATH] serve

Examples:
    # Create tables in the configured database
    catering-scheduler init-db

    # Run the fallback batch once, honouring the cross-instance lock
    catering-scheduler run-job apply_fallback

    # Run the polling scheduler until SIGINT / SIGTERM
    CATERING_LOCK_BACKEND=lease catering-scheduler serve
"""

from __future__ import annotations

import argparse
import json
import signal
import sys
from collections.abc import Sequence

from catering_config import Settings, load_settings
from catering_kernel.db.engine import create_tables, init_engine_from_url
from catering_kernel.logging_config import configure_logging, get_logger

from catering_batch.domain.types import APPLY_FALLBACK, GENERATE_WORK_ITEMS, RELAY_OUTBOX
from catering_batch.orchestrator import SchedulerOrchestrator

logger = get_logger("batch.cli")

JOB_CHOICES = (GENERATE_WORK_ITEMS, APPLY_FALLBACK, RELAY_OUTBOX)


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="catering-scheduler",
        description="Recurring work scheduler for catering agreements.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        default=None,
        help="YAML settings file (default: $CATERING_CONFIG, then built-in defaults).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create all tables.")

    run_job = sub.add_parser("run-job", help="Run one job immediately and print its metrics.")
    run_job.add_argument("job", choices=JOB_CHOICES)

    sub.add_parser("serve", help="Run the polling scheduler in the foreground.")
    return parser.parse_args(argv)


def _init_db(settings: Settings) -> int:
    engine = init_engine_from_url(settings.database_url, echo=settings.echo_sql)
    create_tables(engine)
    logger.info("tables_created")
    print("Tables created.")
    return 0


def _run_job(settings: Settings, job: str) -> int:
    orchestrator = SchedulerOrchestrator.from_settings(settings)
    metrics = orchestrator.run_job(job)
    print(json.dumps(metrics.as_log_fields(), indent=2))
    return 0


def _serve(settings: Settings) -> int:
    orchestrator = SchedulerOrchestrator.from_settings(settings)
    scheduler = orchestrator.create_scheduler()

    def _shutdown(signum, frame):
        logger.info("shutdown_signal_received", extra={"signal": signum})
        scheduler.stop()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    scheduler.run_startup_jobs()
    scheduler.start()
    while scheduler.is_running:
        scheduler.wait(timeout=1.0)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    try:
        settings = load_settings(args.config)
    except (OSError, ValueError) as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 2

    configure_logging(level=settings.log_level)

    if args.command == "init-db":
        return _init_db(settings)
    if args.command == "run-job":
        return _run_job(settings, args.job)
    return _serve(settings)


if __name__ == "__main__":
    sys.exit(main())
