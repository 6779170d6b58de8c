import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, List
from pydantic import BaseModel

from petkoi.domain.models import Donation, DonationStatus, PaymentMethod, Notification
from petkoi.domain.exceptions import DonationNotFoundError, DonationAlreadyReviewedError, ValidationError

logger = logging.getLogger(__name__)


class CreateDonationDTO(BaseModel):
    user_id: str
    method: PaymentMethod
    amount_bdt: int
    trx_id: str
    agent_account: str
    contact_number: Optional[str] = None
    note: Optional[str] = None


class DonationStats(BaseModel):
    total_donations: int
    total_amount: int
    verified_amount: int
    pending_amount: int
    verified_count: int
    pending_count: int


class CreateDonationUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, dto: CreateDonationDTO) -> Donation:
        if dto.amount_bdt < 1:
            raise ValidationError("Donation amount must be at least 1 BDT")

        now = datetime.now(timezone.utc)
        donation = Donation(
            id=str(uuid.uuid4()),
            user_id=dto.user_id,
            method=dto.method,
            amount_bdt=dto.amount_bdt,
            trx_id=dto.trx_id,
            agent_account=dto.agent_account,
            contact_number=dto.contact_number,
            note=dto.note,
            status=DonationStatus.PENDING,
            created_at=now,
            updated_at=now
        )
        async with self._uow() as uow:
            await uow.donations.create(donation)
            await uow.commit()

        logger.info(f"Пожертвование {donation.id} на {donation.amount_bdt} BDT от {dto.user_id}")
        return donation


class GetDonationUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, donation_id: str, user_id: Optional[str] = None) -> Donation:
        async with self._uow() as uow:
            donation = await uow.donations.get_by_id(donation_id)
        if not donation or (user_id is not None and donation.user_id != user_id):
            raise DonationNotFoundError("Donation not found")
        return donation


class ListDonationsUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, status: Optional[DonationStatus] = None, user_id: Optional[str] = None) -> List[Donation]:
        async with self._uow() as uow:
            return await uow.donations.list(status=status, user_id=user_id)


class DonationStatsUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self) -> DonationStats:
        async with self._uow() as uow:
            donations = await uow.donations.list()

        verified = [d.amount_bdt for d in donations if d.status == DonationStatus.VERIFIED]
        pending = [d.amount_bdt for d in donations if d.status == DonationStatus.PENDING]
        return DonationStats(
            total_donations=len(donations),
            total_amount=sum(verified) + sum(pending),
            verified_amount=sum(verified),
            pending_amount=sum(pending),
            verified_count=len(verified),
            pending_count=len(pending)
        )


class VerifyDonationUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(
        self,
        donation_id: str,
        status: DonationStatus,
        admin_id: str,
        note: Optional[str] = None
    ) -> Donation:
        if status == DonationStatus.PENDING:
            raise ValidationError("Review status must be VERIFIED or REJECTED")

        now = datetime.now(timezone.utc)
        async with self._uow() as uow:
            donation = await uow.donations.get_by_id(donation_id)
            if not donation:
                raise DonationNotFoundError("Donation not found")
            if donation.status != DonationStatus.PENDING:
                raise DonationAlreadyReviewedError(donation.status.value)

            merged_note = donation.note
            if note:
                merged_note = f"{donation.note}\n[Admin]: {note}" if donation.note else f"[Admin]: {note}"

            await uow.donations.update_review(donation.id, status, merged_note, admin_id, now)

            if status == DonationStatus.VERIFIED:
                notification_type = "DONATION_VERIFIED"
                message = (
                    f"Thank you for your generous donation of {donation.amount_bdt} BDT! "
                    "Your contribution helps us continue our mission."
                )
            else:
                notification_type = "DONATION_REJECTED"
                message = (
                    f"Your donation of {donation.amount_bdt} BDT could not be verified. "
                    f"Reason: {note or 'Payment verification failed'}"
                )
            await uow.notifications.create(Notification(
                id=str(uuid.uuid4()),
                user_id=donation.user_id,
                type=notification_type,
                message=message,
                reference_id=donation.id,
                created_at=now
            ))
            await uow.commit()

            updated = await uow.donations.get_by_id(donation_id)

        logger.info(f"Пожертвование {donation_id} отмечено {status.value} админом {admin_id}")
        return updated
