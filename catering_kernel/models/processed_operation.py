"""
ORM model for the idempotency ledger.

One row per (subject, operation) that completed.  The UNIQUE constraint is
what makes concurrent ``mark_processed`` calls converge to a single row.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from catering_kernel.db.base import Base


class ProcessedOperationModel(Base):
    __tablename__ = "processed_operations"

    __table_args__ = (
        UniqueConstraint(
            "subject_id", "operation_name", name="uq_processed_operations_subject_op"
        ),
    )

    subject_id: Mapped[str] = mapped_column(String(200), nullable=False)
    operation_name: Mapped[str] = mapped_column(String(200), nullable=False)
    processed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    details: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
