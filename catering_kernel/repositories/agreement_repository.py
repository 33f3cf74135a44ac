"""Agreement persistence: load, list active, insert and update."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from catering_kernel.domain.agreement import Agreement
from catering_kernel.domain.types import AgreementStatus
from catering_kernel.exceptions import AgreementNotFoundError
from catering_kernel.logging_config import get_logger
from catering_kernel.models.agreement import AgreementModel
from catering_kernel.repositories.base import BaseRepository

logger = get_logger("repositories.agreement")


class AgreementRepository(BaseRepository):

    def get(self, agreement_id: UUID) -> Agreement | None:
        model = self.session.get(AgreementModel, agreement_id)
        return model.to_dto() if model is not None else None

    def find_active(self) -> list[Agreement]:
        """All ACTIVE agreements, oldest first."""
        rows = self.session.execute(
            select(AgreementModel)
            .where(AgreementModel.status == AgreementStatus.ACTIVE.value)
            .order_by(AgreementModel.created_at, AgreementModel.id)
        ).scalars()
        return [row.to_dto() for row in rows]

    def find_active_between(
        self,
        provider_id: UUID,
        consumer_id: UUID,
    ) -> Agreement | None:
        model = self.session.execute(
            select(AgreementModel)
            .where(
                AgreementModel.provider_id == provider_id,
                AgreementModel.consumer_id == consumer_id,
                AgreementModel.status == AgreementStatus.ACTIVE.value,
            )
            .limit(1)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def add(self, agreement: Agreement) -> Agreement:
        self.session.add(AgreementModel.from_dto(agreement))
        self.session.flush()
        logger.debug(
            "agreement_inserted",
            extra={"agreement_id": str(agreement.agreement_id)},
        )
        return agreement

    def update(self, agreement: Agreement) -> Agreement:
        """
        Write the new state of an existing agreement.

        Raises:
            AgreementNotFoundError: If no row exists for the id.
        """
        model = self.session.execute(
            select(AgreementModel)
            .where(AgreementModel.id == agreement.agreement_id)
            .with_for_update()
        ).scalar_one_or_none()
        if model is None:
            raise AgreementNotFoundError(str(agreement.agreement_id))
        model.apply(agreement)
        self.session.flush()
        return model.to_dto()
