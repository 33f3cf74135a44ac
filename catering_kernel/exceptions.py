"""
Typed exception hierarchy for the catering kernel.

Every error carries a machine-readable ``code`` class attribute and the
structured data needed to render an actionable message, so callers catch by
type instead of parsing message strings.

    CateringKernelError (base)
    |
    +-- AgreementError
    |   +-- AgreementNotFoundError
    |   +-- AgreementNotActiveError
    |   +-- InvalidTransitionError
    |   +-- InvalidAgreementError
    |   +-- DuplicateAgreementError
    |
    +-- WorkItemError
    |   +-- WorkItemNotFoundError
    |   +-- AlreadyConfirmedError
    |   +-- ExpectedAlreadySetError
    |   +-- NoticePeriodExceededError
    |   +-- QuantityOutOfRangeError
    |   +-- InvalidQuantityError
    |
    +-- NotAuthorizedError
    |
    +-- SchedulerError
        +-- JobNotRegisteredError
        +-- RegistryFrozenError
        +-- InvalidCronExpressionError

Validation errors and invariant violations are deterministic and never
retried.  Infrastructure errors (SQLAlchemy, driver) are NOT wrapped here;
they propagate as-is and the batch layer decides whether to isolate them.
"""

from datetime import datetime


class CateringKernelError(Exception):
    """Base exception for all catering kernel errors."""

    code: str = "CATERING_KERNEL_ERROR"


# =============================================================================
# Agreement
# =============================================================================


class AgreementError(CateringKernelError):
    """Base exception for agreement errors."""

    code: str = "AGREEMENT_ERROR"


class AgreementNotFoundError(AgreementError):
    code: str = "AGREEMENT_NOT_FOUND"

    def __init__(self, agreement_id: str):
        self.agreement_id = agreement_id
        super().__init__(f"Agreement not found: {agreement_id}")


class AgreementNotActiveError(AgreementError):
    """Operation requires an ACTIVE agreement."""

    code: str = "AGREEMENT_NOT_ACTIVE"

    def __init__(self, agreement_id: str, status: str):
        self.agreement_id = agreement_id
        self.status = status
        super().__init__(
            f"Agreement {agreement_id} is {status}, "
            f"only ACTIVE agreements allow this operation"
        )


class InvalidTransitionError(AgreementError):
    """Lifecycle action is not allowed from the current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, status: str, action: str, reason: str):
        self.status = status
        self.action = action
        self.reason = reason
        super().__init__(reason)


class InvalidAgreementError(AgreementError):
    """Agreement terms failed validation at creation."""

    code: str = "INVALID_AGREEMENT"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class DuplicateAgreementError(AgreementError):
    code: str = "DUPLICATE_AGREEMENT"

    def __init__(self, provider_id: str, consumer_id: str, existing_id: str):
        self.provider_id = provider_id
        self.consumer_id = consumer_id
        self.existing_id = existing_id
        super().__init__(
            f"An active agreement already exists between provider "
            f"{provider_id} and consumer {consumer_id}: {existing_id}"
        )


# =============================================================================
# Work item
# =============================================================================


class WorkItemError(CateringKernelError):
    """Base exception for work item errors."""

    code: str = "WORK_ITEM_ERROR"


class WorkItemNotFoundError(WorkItemError):
    code: str = "WORK_ITEM_NOT_FOUND"

    def __init__(self, work_item_id: str):
        self.work_item_id = work_item_id
        super().__init__(f"Work item not found: {work_item_id}")


class AlreadyConfirmedError(WorkItemError):
    """Work item status is already CONFIRMED."""

    code: str = "ALREADY_CONFIRMED"

    def __init__(self, work_item_id: str):
        self.work_item_id = work_item_id
        super().__init__(f"Work item {work_item_id} is already confirmed")


class ExpectedAlreadySetError(WorkItemError):
    """Expected quantity was already confirmed and is immutable."""

    code: str = "EXPECTED_ALREADY_SET"

    def __init__(self, work_item_id: str, confirmed_at: datetime):
        self.work_item_id = work_item_id
        self.confirmed_at = confirmed_at
        super().__init__(
            f"Expected quantity of work item {work_item_id} has already been "
            f"confirmed and cannot be changed"
        )


class NoticePeriodExceededError(WorkItemError):
    code: str = "NOTICE_PERIOD_EXCEEDED"

    def __init__(self, deadline: datetime, notice_period_hours: int):
        self.deadline = deadline
        self.notice_period_hours = notice_period_hours
        super().__init__(
            f"Notice period of {notice_period_hours} hours has passed. "
            f"Deadline was {deadline.isoformat()}"
        )


class QuantityOutOfRangeError(WorkItemError):
    code: str = "QUANTITY_OUT_OF_RANGE"

    def __init__(self, quantity: int, minimum: int, maximum: int):
        self.quantity = quantity
        self.minimum = minimum
        self.maximum = maximum
        super().__init__(
            f"Quantity {quantity} must be between {minimum} and {maximum}"
        )


class InvalidQuantityError(WorkItemError):
    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: int):
        self.quantity = quantity
        super().__init__(f"Served quantity cannot be negative: {quantity}")


# =============================================================================
# Authorization
# =============================================================================


class NotAuthorizedError(CateringKernelError):
    """Party is not allowed to perform the operation on this agreement."""

    code: str = "NOT_AUTHORIZED"

    def __init__(self, party_id: str, operation: str):
        self.party_id = party_id
        self.operation = operation
        super().__init__(f"Party {party_id} is not authorized to {operation}")


# =============================================================================
# Scheduler
# =============================================================================


class SchedulerError(CateringKernelError):
    """Base exception for job scheduling errors."""

    code: str = "SCHEDULER_ERROR"


class JobNotRegisteredError(SchedulerError):
    code: str = "JOB_NOT_REGISTERED"

    def __init__(self, job_name: str, available: tuple[str, ...]):
        self.job_name = job_name
        self.available = available
        super().__init__(
            f"No job registered as '{job_name}'. Available: {list(available)}"
        )


class RegistryFrozenError(SchedulerError):
    code: str = "REGISTRY_FROZEN"

    def __init__(self, job_name: str):
        self.job_name = job_name
        super().__init__(
            f"Cannot register '{job_name}': job registry is frozen"
        )


class InvalidCronExpressionError(SchedulerError):
    code: str = "INVALID_CRON_EXPRESSION"

    def __init__(self, expression: str, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(f"Invalid cron expression '{expression}': {reason}")
