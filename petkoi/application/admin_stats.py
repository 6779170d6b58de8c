from pydantic import BaseModel

from petkoi.domain.models import DonationStatus, TicketStatus


class AdminStats(BaseModel):
    orders_by_status: dict
    pending_donations: int
    open_tickets: int


class AdminStatsUseCase:
    """Сводка для главной страницы админки"""

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self) -> AdminStats:
        async with self._uow() as uow:
            return AdminStats(
                orders_by_status=await uow.orders.count_by_status(),
                pending_donations=await uow.donations.count(status=DonationStatus.PENDING),
                open_tickets=await uow.tickets.count(status=TicketStatus.OPEN)
            )
