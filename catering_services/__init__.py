"""Application services over the catering kernel."""

from catering_services.agreement_service import AgreementService
from catering_services.work_item_service import WorkItemService

__all__ = ["AgreementService", "WorkItemService"]
