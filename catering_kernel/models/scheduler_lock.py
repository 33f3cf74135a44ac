"""
ORM model for lease-based named locks.

A row means "``holder`` owns ``lock_name`` until ``expires_at``".  An expired
row may be taken over by any holder.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from catering_kernel.db.base import Base


class SchedulerLockModel(Base):
    __tablename__ = "scheduler_locks"

    lock_name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    holder: Mapped[str] = mapped_column(String(200), nullable=False)
    acquired_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
