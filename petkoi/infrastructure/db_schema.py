from datetime import timezone
from sqlalchemy import (
    Table, Column, String, Integer, Boolean, Enum, DateTime, Text, ForeignKey, MetaData, TypeDecorator,
)
from sqlalchemy.sql import func

from petkoi.domain.models import (
    OrderStatus, PaymentMethod, ManualPaymentStatus, DonationStatus, TicketStatus, TicketPriority, SenderType,
)
from petkoi.domain.admin import AdminRole

metadata = MetaData()


class UTCDateTime(TypeDecorator):
    """SQLite отдает naive datetime, приводим всё к UTC"""
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


products_tbl = Table(
    "products",
    metadata,
    Column("id", String, primary_key=True),
    Column("sku", String, unique=True, nullable=False, index=True),
    Column("name", String, nullable=False),
    Column("price_bdt", Integer, nullable=False),
    Column("active", Boolean, nullable=False, default=True),
    Column("created_at", UTCDateTime, server_default=func.now())
)


orders_tbl = Table(
    "orders",
    metadata,
    Column("id", String, primary_key=True),
    Column("order_no", String, unique=True, nullable=False, index=True),
    Column("user_id", String, nullable=False, index=True),
    Column("status", Enum(OrderStatus), nullable=False, default=OrderStatus.PENDING),
    Column("currency", String, nullable=False, default="BDT"),
    Column("subtotal_bdt", Integer, nullable=False),
    Column("shipping_fee_bdt", Integer, nullable=False),
    Column("total_bdt", Integer, nullable=False),
    Column("shipping_address", String, nullable=False, default=""),
    Column("shipping_district", String, nullable=True),
    Column("shipping_postal_code", String, nullable=True),
    Column("contact_name", String, nullable=True),
    Column("contact_phone", String, nullable=True),
    Column("pet_id", String, nullable=True),
    Column("pet_qr_url", String, nullable=True),
    Column("idempotency_key", String, unique=True, nullable=True, index=True),
    Column("created_at", UTCDateTime, server_default=func.now()),
    Column("updated_at", UTCDateTime, server_default=func.now(), onupdate=func.now()),
    Column("expires_at", UTCDateTime, nullable=True)
)


order_items_tbl = Table(
    "order_items",
    metadata,
    Column("id", String, primary_key=True),
    Column("order_id", String, ForeignKey("orders.id"), nullable=False, index=True),
    Column("product_id", String, nullable=False),
    Column("name", String, nullable=False),
    Column("sku", String, nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("unit_price_bdt", Integer, nullable=False),
    Column("total_bdt", Integer, nullable=False)
)


manual_payments_tbl = Table(
    "manual_payments",
    metadata,
    Column("id", String, primary_key=True),
    Column("order_id", String, ForeignKey("orders.id"), nullable=False, index=True),
    Column("user_id", String, nullable=False),
    Column("method", Enum(PaymentMethod), nullable=False),
    Column("amount_bdt", Integer, nullable=False),
    Column("currency", String, nullable=False, default="BDT"),
    Column("trx_id", String, nullable=False),
    Column("agent_account", String, nullable=True),
    Column("contact_number", String, nullable=True),
    Column("note", Text, nullable=True),
    Column("status", Enum(ManualPaymentStatus), nullable=False, default=ManualPaymentStatus.PENDING),
    Column("created_at", UTCDateTime, server_default=func.now())
)


admin_users_tbl = Table(
    "admin_users",
    metadata,
    Column("id", String, primary_key=True),
    Column("email", String, unique=True, nullable=False, index=True),
    Column("password_hash", String, nullable=False),
    Column("role", Enum(AdminRole), nullable=False),
    Column("otp_failed_count", Integer, nullable=False, default=0),
    Column("otp_locked_until", UTCDateTime, nullable=True),
    Column("created_at", UTCDateTime, server_default=func.now())
)


admin_otps_tbl = Table(
    "admin_otps",
    metadata,
    Column("id", String, primary_key=True),
    Column("admin_id", String, ForeignKey("admin_users.id"), nullable=False, index=True),
    Column("code_hash", String, nullable=False),
    Column("secret_hash", String, nullable=False),
    Column("attempts", Integer, nullable=False, default=0),
    Column("expires_at", UTCDateTime, nullable=False),
    Column("consumed_at", UTCDateTime, nullable=True),
    Column("created_at", UTCDateTime, server_default=func.now())
)


admin_sessions_tbl = Table(
    "admin_sessions",
    metadata,
    Column("id", String, primary_key=True),
    Column("admin_id", String, ForeignKey("admin_users.id"), nullable=False, index=True),
    Column("token_hash", String, nullable=False),
    Column("expires_at", UTCDateTime, nullable=False),
    Column("revoked_at", UTCDateTime, nullable=True),
    Column("ip_address", String, nullable=True),
    Column("user_agent", String, nullable=True),
    Column("created_at", UTCDateTime, server_default=func.now())
)


donations_tbl = Table(
    "donations",
    metadata,
    Column("id", String, primary_key=True),
    Column("user_id", String, nullable=False, index=True),
    Column("method", Enum(PaymentMethod), nullable=False),
    Column("amount_bdt", Integer, nullable=False),
    Column("currency", String, nullable=False, default="BDT"),
    Column("trx_id", String, nullable=False),
    Column("agent_account", String, nullable=False),
    Column("contact_number", String, nullable=True),
    Column("note", Text, nullable=True),
    Column("status", Enum(DonationStatus), nullable=False, default=DonationStatus.PENDING),
    Column("verified_by", String, nullable=True),
    Column("verified_at", UTCDateTime, nullable=True),
    Column("created_at", UTCDateTime, server_default=func.now()),
    Column("updated_at", UTCDateTime, server_default=func.now(), onupdate=func.now())
)


support_tickets_tbl = Table(
    "support_tickets",
    metadata,
    Column("id", String, primary_key=True),
    Column("ticket_no", String, unique=True, nullable=False),
    Column("user_id", String, nullable=False, index=True),
    Column("subject", String, nullable=False),
    Column("status", Enum(TicketStatus), nullable=False, default=TicketStatus.OPEN),
    Column("priority", Enum(TicketPriority), nullable=False, default=TicketPriority.MEDIUM),
    Column("assigned_to", String, ForeignKey("admin_users.id"), nullable=True),
    Column("resolved_at", UTCDateTime, nullable=True),
    Column("created_at", UTCDateTime, server_default=func.now()),
    Column("updated_at", UTCDateTime, server_default=func.now(), onupdate=func.now())
)


support_messages_tbl = Table(
    "support_messages",
    metadata,
    Column("id", String, primary_key=True),
    Column("ticket_id", String, ForeignKey("support_tickets.id"), nullable=False, index=True),
    Column("sender_id", String, nullable=False),
    Column("sender_type", Enum(SenderType), nullable=False),
    Column("content", Text, nullable=False),
    Column("is_read", Boolean, nullable=False, default=False),
    Column("created_at", UTCDateTime, server_default=func.now())
)


notifications_tbl = Table(
    "notifications",
    metadata,
    Column("id", String, primary_key=True),
    Column("user_id", String, nullable=False, index=True),
    Column("type", String, nullable=False),
    Column("message", String, nullable=False),
    Column("reference_id", String, nullable=False),
    Column("created_at", UTCDateTime, server_default=func.now())
)
