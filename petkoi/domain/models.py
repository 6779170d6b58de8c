from datetime import datetime
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    UNDER_REVIEW = "UNDER_REVIEW"
    PAID = "PAID"
    ORDER_PLACED = "ORDER_PLACED"
    PAYMENT_UNDER_REVIEW = "PAYMENT_UNDER_REVIEW"
    PAYMENT_VERIFIED = "PAYMENT_VERIFIED"
    ORDER_PACKED = "ORDER_PACKED"
    SHIPPED = "SHIPPED"
    IN_TRANSIT = "IN_TRANSIT"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


TERMINAL_STATUSES = frozenset({
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
    OrderStatus.EXPIRED,
    OrderStatus.FAILED,
})

# Рекомендуемые переходы для админки. Обновление статуса их не проверяет.
FULFILLMENT_GRAPH = {
    OrderStatus.PENDING: [
        OrderStatus.PAYMENT_UNDER_REVIEW, OrderStatus.EXPIRED, OrderStatus.FAILED, OrderStatus.CANCELLED,
    ],
    OrderStatus.ORDER_PLACED: [
        OrderStatus.PAYMENT_UNDER_REVIEW, OrderStatus.EXPIRED, OrderStatus.FAILED, OrderStatus.CANCELLED,
    ],
    OrderStatus.UNDER_REVIEW: [
        OrderStatus.PAYMENT_VERIFIED, OrderStatus.FAILED, OrderStatus.CANCELLED, OrderStatus.PENDING,
    ],
    OrderStatus.PAYMENT_UNDER_REVIEW: [
        OrderStatus.PAYMENT_VERIFIED, OrderStatus.FAILED, OrderStatus.CANCELLED, OrderStatus.PENDING,
    ],
    OrderStatus.PAID: [OrderStatus.ORDER_PACKED, OrderStatus.CANCELLED],
    OrderStatus.PAYMENT_VERIFIED: [OrderStatus.ORDER_PACKED, OrderStatus.CANCELLED],
    OrderStatus.ORDER_PACKED: [OrderStatus.SHIPPED, OrderStatus.CANCELLED],
    OrderStatus.SHIPPED: [OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED, OrderStatus.CANCELLED],
    OrderStatus.IN_TRANSIT: [OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED],
    OrderStatus.OUT_FOR_DELIVERY: [OrderStatus.DELIVERED],
    OrderStatus.FAILED: [OrderStatus.PENDING, OrderStatus.CANCELLED],
    OrderStatus.DELIVERED: [],
    OrderStatus.CANCELLED: [],
    OrderStatus.EXPIRED: [],
}

PROGRESS_STEPS = (
    OrderStatus.ORDER_PLACED,
    OrderStatus.PAYMENT_UNDER_REVIEW,
    OrderStatus.PAYMENT_VERIFIED,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)


def valid_next_statuses(status: OrderStatus) -> List[OrderStatus]:
    return list(FULFILLMENT_GRAPH.get(status, []))


def progress_step(status: OrderStatus) -> int:
    """Индекс статуса в степпере; вне основной цепочки шаг 0"""
    try:
        return PROGRESS_STEPS.index(status)
    except ValueError:
        return 0


class OrderItem(BaseModel):
    product_id: str
    name: str
    sku: str
    quantity: int
    unit_price_bdt: int
    total_bdt: int


class Order(BaseModel):
    """Domain Entity: заказ"""
    id: str
    order_no: str
    user_id: str
    status: OrderStatus
    currency: str = "BDT"
    subtotal_bdt: int
    shipping_fee_bdt: int
    total_bdt: int
    shipping_address: str = ""
    shipping_district: Optional[str] = None
    shipping_postal_code: Optional[str] = None
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    pet_id: Optional[str] = None
    pet_qr_url: Optional[str] = None
    idempotency_key: Optional[str] = None
    items: List[OrderItem] = []
    created_at: datetime
    updated_at: datetime
    expires_at: Optional[datetime] = None

    def can_accept_payment(self) -> bool:
        """Бизнес-правило: оплату принимаем только у PENDING или FAILED"""
        return self.status in (OrderStatus.PENDING, OrderStatus.FAILED)

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at < now


class Product(BaseModel):
    """Value Object: товар (бирка, аксессуар)"""
    id: str
    sku: str
    name: str
    price_bdt: int
    active: bool = True


class PaymentMethod(str, Enum):
    BKASH = "BKASH"
    NAGAD = "NAGAD"
    ROCKET = "ROCKET"
    BANK = "BANK"
    PAYPAL = "PAYPAL"
    OTHER = "OTHER"


class ManualPaymentStatus(str, Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class ManualPayment(BaseModel):
    id: str
    order_id: str
    user_id: str
    method: PaymentMethod
    amount_bdt: int
    currency: str = "BDT"
    trx_id: str
    agent_account: Optional[str] = None
    contact_number: Optional[str] = None
    note: Optional[str] = None
    status: ManualPaymentStatus = ManualPaymentStatus.PENDING
    created_at: datetime


class DonationStatus(str, Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class Donation(BaseModel):
    id: str
    user_id: str
    method: PaymentMethod
    amount_bdt: int
    currency: str = "BDT"
    trx_id: str
    agent_account: str
    contact_number: Optional[str] = None
    note: Optional[str] = None
    status: DonationStatus = DonationStatus.PENDING
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class TicketStatus(str, Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


class TicketPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class SenderType(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class SupportMessage(BaseModel):
    id: str
    ticket_id: str
    sender_id: str
    sender_type: SenderType
    content: str
    is_read: bool = False
    created_at: datetime


class SupportTicket(BaseModel):
    id: str
    ticket_no: str
    user_id: str
    subject: str
    status: TicketStatus = TicketStatus.OPEN
    priority: TicketPriority = TicketPriority.MEDIUM
    assigned_to: Optional[str] = None
    resolved_at: Optional[datetime] = None
    messages: List[SupportMessage] = []
    created_at: datetime
    updated_at: datetime


class Notification(BaseModel):
    id: str
    user_id: str
    type: str
    message: str
    reference_id: str
    created_at: datetime
