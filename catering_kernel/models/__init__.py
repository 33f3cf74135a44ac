"""ORM models for the catering kernel."""

from catering_kernel.models.agreement import AgreementModel
from catering_kernel.models.outbox import OutboxEventModel, OutboxStatus
from catering_kernel.models.processed_operation import ProcessedOperationModel
from catering_kernel.models.scheduler_lock import SchedulerLockModel
from catering_kernel.models.work_item import WorkItemModel

__all__ = [
    "AgreementModel",
    "OutboxEventModel",
    "OutboxStatus",
    "ProcessedOperationModel",
    "SchedulerLockModel",
    "WorkItemModel",
]
