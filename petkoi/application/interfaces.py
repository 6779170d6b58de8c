from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List

from petkoi.domain.models import (
    Order, OrderStatus, Product, ManualPayment, Donation, DonationStatus,
    SupportTicket, SupportMessage, TicketStatus, SenderType, Notification,
)
from petkoi.domain.admin import AdminUser, AdminOtp, AdminSession


class OrderRepository(ABC):
    @abstractmethod
    async def get_by_order_no(self, order_no: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def list(
        self,
        status: Optional[OrderStatus] = None,
        order_no: Optional[str] = None,
        user_id: Optional[str] = None,
        take: Optional[int] = None,
    ) -> List[Order]:
        pass

    @abstractmethod
    async def count_by_status(self) -> dict:
        pass

    @abstractmethod
    async def create(self, order: Order) -> None:
        pass

    @abstractmethod
    async def update_status(self, order_id: str, status: OrderStatus) -> None:
        pass

    @abstractmethod
    async def expire_pending(self, now: datetime) -> int:
        pass


class ProductRepository(ABC):
    @abstractmethod
    async def find_by_keys(self, keys: List[str]) -> List[Product]:
        pass

    @abstractmethod
    async def get_by_sku(self, sku: str) -> Optional[Product]:
        pass

    @abstractmethod
    async def list_active(self) -> List[Product]:
        pass

    @abstractmethod
    async def create(self, product: Product) -> None:
        pass


class ManualPaymentRepository(ABC):
    @abstractmethod
    async def create(self, payment: ManualPayment) -> None:
        pass

    @abstractmethod
    async def list_for_order(self, order_id: str) -> List[ManualPayment]:
        pass


class AdminUserRepository(ABC):
    @abstractmethod
    async def get_by_id(self, admin_id: str) -> Optional[AdminUser]:
        pass

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[AdminUser]:
        pass

    @abstractmethod
    async def create(self, admin: AdminUser) -> None:
        pass

    @abstractmethod
    async def record_failed_otp(self, admin_id: str, locked_until: Optional[datetime]) -> None:
        pass

    @abstractmethod
    async def reset_otp_counters(self, admin_id: str) -> None:
        pass


class AdminOtpRepository(ABC):
    @abstractmethod
    async def get_by_id(self, otp_id: str) -> Optional[AdminOtp]:
        pass

    @abstractmethod
    async def create(self, otp: AdminOtp) -> None:
        pass

    @abstractmethod
    async def replace_code(self, otp_id: str, code_hash: str, expires_at: datetime) -> None:
        pass

    @abstractmethod
    async def increment_attempts(self, otp_id: str) -> int:
        pass

    @abstractmethod
    async def mark_consumed(self, otp_id: str, consumed_at: datetime) -> bool:
        pass

    @abstractmethod
    async def count_created_since(self, admin_id: str, since: datetime) -> int:
        pass

    @abstractmethod
    async def last_created_at(self, admin_id: str) -> Optional[datetime]:
        pass


class AdminSessionRepository(ABC):
    @abstractmethod
    async def get_by_id(self, session_id: str) -> Optional[AdminSession]:
        pass

    @abstractmethod
    async def create(self, session: AdminSession) -> None:
        pass

    @abstractmethod
    async def rotate(self, session_id: str, token_hash: str, expires_at: datetime) -> None:
        pass

    @abstractmethod
    async def revoke(self, session_id: str, revoked_at: datetime) -> None:
        pass


class DonationRepository(ABC):
    @abstractmethod
    async def get_by_id(self, donation_id: str) -> Optional[Donation]:
        pass

    @abstractmethod
    async def list(self, status: Optional[DonationStatus] = None, user_id: Optional[str] = None) -> List[Donation]:
        pass

    @abstractmethod
    async def count(self, status: Optional[DonationStatus] = None) -> int:
        pass

    @abstractmethod
    async def create(self, donation: Donation) -> None:
        pass

    @abstractmethod
    async def update_review(
        self, donation_id: str, status: DonationStatus, note: Optional[str], verified_by: str, verified_at: datetime
    ) -> None:
        pass


class SupportTicketRepository(ABC):
    @abstractmethod
    async def get_by_id(self, ticket_id: str, with_messages: bool = True) -> Optional[SupportTicket]:
        pass

    @abstractmethod
    async def list(
        self,
        user_id: Optional[str] = None,
        status: Optional[TicketStatus] = None,
        assigned_to: Optional[str] = None,
    ) -> List[SupportTicket]:
        pass

    @abstractmethod
    async def count(self, status: Optional[TicketStatus] = None) -> int:
        pass

    @abstractmethod
    async def create(self, ticket: SupportTicket) -> None:
        pass

    @abstractmethod
    async def update(self, ticket_id: str, **values) -> None:
        pass

    @abstractmethod
    async def add_message(self, message: SupportMessage) -> None:
        pass

    @abstractmethod
    async def mark_read(self, ticket_id: str, sender_type: SenderType, sender_id: Optional[str] = None) -> int:
        pass


class NotificationRepository(ABC):
    @abstractmethod
    async def create(self, notification: Notification) -> None:
        pass

    @abstractmethod
    async def list_for_user(self, user_id: str) -> List[Notification]:
        pass


class UnitOfWork(ABC):
    orders: OrderRepository
    products: ProductRepository
    manual_payments: ManualPaymentRepository
    admins: AdminUserRepository
    otps: AdminOtpRepository
    sessions: AdminSessionRepository
    donations: DonationRepository
    tickets: SupportTicketRepository
    notifications: NotificationRepository

    @abstractmethod
    async def commit(self):
        pass

    @abstractmethod
    async def rollback(self):
        pass


class EmailSender(ABC):
    @abstractmethod
    async def send(self, to: str, subject: str, text: str, html: Optional[str] = None) -> None:
        pass
