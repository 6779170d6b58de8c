from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List

from petkoi.domain.models import (
    OrderStatus, PaymentMethod, ManualPaymentStatus, DonationStatus,
    TicketStatus, TicketPriority, SenderType, progress_step, valid_next_statuses
)
from petkoi.domain.admin import AdminRole, AdminSection


class ErrorResponse(BaseModel):
    detail: str


# --- Orders ---

class OrderItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(default=1, ge=1)


class CreateOrderRequest(BaseModel):
    user_id: str
    items: List[OrderItemRequest]
    shipping_address: Optional[str] = None
    shipping_district: Optional[str] = None
    shipping_postal_code: Optional[str] = None
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    pet_id: Optional[str] = None
    pet_qr_url: Optional[str] = None
    idempotency_key: Optional[str] = None


class OrderItemResponse(BaseModel):
    product_id: str
    name: str
    sku: str
    quantity: int
    unit_price_bdt: int
    total_bdt: int


class OrderResponse(BaseModel):
    id: str
    order_no: str
    user_id: str
    status: OrderStatus
    progress_step: int
    currency: str
    subtotal_bdt: int
    shipping_fee_bdt: int
    total_bdt: int
    shipping_address: str
    shipping_district: Optional[str] = None
    shipping_postal_code: Optional[str] = None
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    pet_id: Optional[str] = None
    pet_qr_url: Optional[str] = None
    items: List[OrderItemResponse] = []
    created_at: datetime
    updated_at: datetime
    expires_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, order):
        return cls(
            id=order.id,
            order_no=order.order_no,
            user_id=order.user_id,
            status=order.status,
            progress_step=progress_step(order.status),
            currency=order.currency,
            subtotal_bdt=order.subtotal_bdt,
            shipping_fee_bdt=order.shipping_fee_bdt,
            total_bdt=order.total_bdt,
            shipping_address=order.shipping_address,
            shipping_district=order.shipping_district,
            shipping_postal_code=order.shipping_postal_code,
            contact_name=order.contact_name,
            contact_phone=order.contact_phone,
            pet_id=order.pet_id,
            pet_qr_url=order.pet_qr_url,
            items=[OrderItemResponse(**item.model_dump()) for item in order.items],
            created_at=order.created_at,
            updated_at=order.updated_at,
            expires_at=order.expires_at
        )


class ManualPaymentRequest(BaseModel):
    user_id: str
    order_no: str
    method: PaymentMethod
    amount_bdt: int = Field(ge=1)
    trx_id: str = Field(min_length=1)
    agent_account: Optional[str] = None
    contact_number: Optional[str] = None
    note: Optional[str] = None


class ManualPaymentResponse(BaseModel):
    id: str
    order_id: str
    method: PaymentMethod
    amount_bdt: int
    currency: str
    trx_id: str
    agent_account: Optional[str] = None
    contact_number: Optional[str] = None
    note: Optional[str] = None
    status: ManualPaymentStatus
    created_at: datetime

    @classmethod
    def from_domain(cls, payment):
        return cls(**payment.model_dump(exclude={"user_id"}))


class AdminOrderResponse(OrderResponse):
    is_terminal: bool = False
    valid_next_statuses: List[OrderStatus] = []
    manual_payments: List[ManualPaymentResponse] = []

    @classmethod
    def from_domain_with_payments(cls, order, payments):
        base = OrderResponse.from_domain(order).model_dump()
        return cls(
            **base,
            is_terminal=order.is_terminal(),
            valid_next_statuses=valid_next_statuses(order.status),
            manual_payments=[ManualPaymentResponse.from_domain(p) for p in payments]
        )


class UpdateOrderStatusRequest(BaseModel):
    status: OrderStatus


class ProductResponse(BaseModel):
    id: str
    sku: str
    name: str
    price_bdt: int


# --- Admin auth ---

class AdminLoginRequest(BaseModel):
    email: str
    password: str


class OtpTokenResponse(BaseModel):
    otp_token: str


class VerifyOtpRequest(BaseModel):
    otp_token: str
    code: str


class ResendOtpRequest(BaseModel):
    otp_token: str


class AccessTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: AdminRole
    expires_in: int


class AdminMeResponse(BaseModel):
    admin_id: str
    email: str
    role: AdminRole
    sections: List[AdminSection]


class AdminStatsResponse(BaseModel):
    orders_by_status: dict
    pending_donations: int
    open_tickets: int


# --- Donations ---

class CreateDonationRequest(BaseModel):
    user_id: str
    method: PaymentMethod
    amount_bdt: int = Field(ge=1)
    trx_id: str = Field(min_length=1)
    agent_account: str = Field(min_length=1)
    contact_number: Optional[str] = None
    note: Optional[str] = None


class DonationResponse(BaseModel):
    id: str
    user_id: str
    method: PaymentMethod
    amount_bdt: int
    currency: str
    trx_id: str
    agent_account: str
    contact_number: Optional[str] = None
    note: Optional[str] = None
    status: DonationStatus
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, donation):
        return cls(**donation.model_dump())


class VerifyDonationRequest(BaseModel):
    status: DonationStatus
    note: Optional[str] = None


class DonationStatsResponse(BaseModel):
    total_donations: int
    total_amount: int
    verified_amount: int
    pending_amount: int
    verified_count: int
    pending_count: int


class NotificationResponse(BaseModel):
    id: str
    type: str
    message: str
    reference_id: str
    created_at: datetime


# --- Support ---

class CreateTicketRequest(BaseModel):
    user_id: str
    subject: str = Field(min_length=1)
    message: str = Field(min_length=1)
    priority: Optional[TicketPriority] = None


class AddMessageRequest(BaseModel):
    content: str = Field(min_length=1)


class UserMessageRequest(AddMessageRequest):
    user_id: str


class TicketStatusRequest(BaseModel):
    status: TicketStatus


class TicketAssignRequest(BaseModel):
    admin_id: str


class TicketPriorityRequest(BaseModel):
    priority: TicketPriority


class SupportMessageResponse(BaseModel):
    id: str
    ticket_id: str
    sender_id: str
    sender_type: SenderType
    content: str
    is_read: bool
    created_at: datetime


class SupportTicketResponse(BaseModel):
    id: str
    ticket_no: str
    user_id: str
    subject: str
    status: TicketStatus
    priority: TicketPriority
    assigned_to: Optional[str] = None
    resolved_at: Optional[datetime] = None
    messages: List[SupportMessageResponse] = []
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, ticket):
        return cls(**ticket.model_dump())


class MarkReadResponse(BaseModel):
    updated: int
