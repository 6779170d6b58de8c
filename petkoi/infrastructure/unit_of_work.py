from contextlib import asynccontextmanager
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from petkoi.infrastructure.repositories import (
    SQLAlchemyOrderRepository,
    SQLAlchemyProductRepository,
    SQLAlchemyManualPaymentRepository,
    SQLAlchemyDonationRepository,
    SQLAlchemySupportTicketRepository,
    SQLAlchemyNotificationRepository
)
from petkoi.infrastructure.admin_repositories import (
    SQLAlchemyAdminUserRepository,
    SQLAlchemyAdminOtpRepository,
    SQLAlchemyAdminSessionRepository
)


class UnitOfWork:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def __call__(self):
        async with self._session_factory() as session:
            try:
                yield _UnitOfWorkImpl(session)
                # Без commit откатываем
                await session.rollback()
            except Exception:
                await session.rollback()
                raise


class _UnitOfWorkImpl:
    def __init__(self, session: AsyncSession):
        self._session = session
        self.orders = SQLAlchemyOrderRepository(session)
        self.products = SQLAlchemyProductRepository(session)
        self.manual_payments = SQLAlchemyManualPaymentRepository(session)
        self.admins = SQLAlchemyAdminUserRepository(session)
        self.otps = SQLAlchemyAdminOtpRepository(session)
        self.sessions = SQLAlchemyAdminSessionRepository(session)
        self.donations = SQLAlchemyDonationRepository(session)
        self.tickets = SQLAlchemySupportTicketRepository(session)
        self.notifications = SQLAlchemyNotificationRepository(session)

    async def commit(self):
        await self._session.commit()

    async def rollback(self):
        await self._session.rollback()
