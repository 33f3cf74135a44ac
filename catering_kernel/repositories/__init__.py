"""Repositories: SQLAlchemy adapters returning frozen domain values."""

from catering_kernel.repositories.agreement_repository import AgreementRepository
from catering_kernel.repositories.work_item_repository import (
    SqlAlchemyWorkItemRepository,
    WorkItemRepository,
)

__all__ = [
    "AgreementRepository",
    "SqlAlchemyWorkItemRepository",
    "WorkItemRepository",
]
