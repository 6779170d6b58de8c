"""Начальная схема: заказы, админка, пожертвования, поддержка

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""
import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

ORDER_STATUSES = (
    "PENDING", "UNDER_REVIEW", "PAID", "ORDER_PLACED", "PAYMENT_UNDER_REVIEW", "PAYMENT_VERIFIED",
    "ORDER_PACKED", "SHIPPED", "IN_TRANSIT", "OUT_FOR_DELIVERY", "DELIVERED", "FAILED", "CANCELLED", "EXPIRED",
)
PAYMENT_METHODS = ("BKASH", "NAGAD", "ROCKET", "BANK", "PAYPAL", "OTHER")
REVIEW_STATUSES = ("PENDING", "VERIFIED", "REJECTED")
ADMIN_ROLES = ("SUPER_ADMIN", "ORDER_TRACKER", "LOST_PET", "ADOPTION", "HEALTH")
TICKET_STATUSES = ("OPEN", "IN_PROGRESS", "RESOLVED", "CLOSED")
TICKET_PRIORITIES = ("LOW", "MEDIUM", "HIGH", "URGENT")
SENDER_TYPES = ("USER", "ADMIN")

ENUM_NAMES = (
    "orderstatus", "paymentmethod", "manualpaymentstatus", "adminrole",
    "donationstatus", "ticketstatus", "ticketpriority", "sendertype",
)


def _payment_method_again():
    # Тип paymentmethod уже создан вместе с manual_payments
    return sa.Enum(*PAYMENT_METHODS, name="paymentmethod").with_variant(
        postgresql.ENUM(*PAYMENT_METHODS, name="paymentmethod", create_type=False), "postgresql"
    )


def _timestamp(name, nullable=True, **kwargs):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable, **kwargs)


def upgrade() -> None:
    op.create_table(
        "products",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("sku", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("price_bdt", sa.Integer(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        _timestamp("created_at", server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_products_sku"), "products", ["sku"], unique=True)

    op.create_table(
        "orders",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("order_no", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("status", sa.Enum(*ORDER_STATUSES, name="orderstatus"), nullable=False),
        sa.Column("currency", sa.String(), nullable=False),
        sa.Column("subtotal_bdt", sa.Integer(), nullable=False),
        sa.Column("shipping_fee_bdt", sa.Integer(), nullable=False),
        sa.Column("total_bdt", sa.Integer(), nullable=False),
        sa.Column("shipping_address", sa.String(), nullable=False),
        sa.Column("shipping_district", sa.String(), nullable=True),
        sa.Column("shipping_postal_code", sa.String(), nullable=True),
        sa.Column("contact_name", sa.String(), nullable=True),
        sa.Column("contact_phone", sa.String(), nullable=True),
        sa.Column("pet_id", sa.String(), nullable=True),
        sa.Column("pet_qr_url", sa.String(), nullable=True),
        sa.Column("idempotency_key", sa.String(), nullable=True),
        _timestamp("created_at", server_default=sa.func.now()),
        _timestamp("updated_at", server_default=sa.func.now()),
        _timestamp("expires_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_orders_order_no"), "orders", ["order_no"], unique=True)
    op.create_index(op.f("ix_orders_user_id"), "orders", ["user_id"], unique=False)
    op.create_index(op.f("ix_orders_idempotency_key"), "orders", ["idempotency_key"], unique=True)

    op.create_table(
        "order_items",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("order_id", sa.String(), nullable=False),
        sa.Column("product_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("sku", sa.String(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_bdt", sa.Integer(), nullable=False),
        sa.Column("total_bdt", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_order_items_order_id"), "order_items", ["order_id"], unique=False)

    op.create_table(
        "manual_payments",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("order_id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("method", sa.Enum(*PAYMENT_METHODS, name="paymentmethod"), nullable=False),
        sa.Column("amount_bdt", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(), nullable=False),
        sa.Column("trx_id", sa.String(), nullable=False),
        sa.Column("agent_account", sa.String(), nullable=True),
        sa.Column("contact_number", sa.String(), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("status", sa.Enum(*REVIEW_STATUSES, name="manualpaymentstatus"), nullable=False),
        _timestamp("created_at", server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_manual_payments_order_id"), "manual_payments", ["order_id"], unique=False)

    op.create_table(
        "admin_users",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("role", sa.Enum(*ADMIN_ROLES, name="adminrole"), nullable=False),
        sa.Column("otp_failed_count", sa.Integer(), nullable=False),
        _timestamp("otp_locked_until"),
        _timestamp("created_at", server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_admin_users_email"), "admin_users", ["email"], unique=True)

    op.create_table(
        "admin_otps",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("admin_id", sa.String(), nullable=False),
        sa.Column("code_hash", sa.String(), nullable=False),
        sa.Column("secret_hash", sa.String(), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        _timestamp("expires_at", nullable=False),
        _timestamp("consumed_at"),
        _timestamp("created_at", server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["admin_id"], ["admin_users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_admin_otps_admin_id"), "admin_otps", ["admin_id"], unique=False)

    op.create_table(
        "admin_sessions",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("admin_id", sa.String(), nullable=False),
        sa.Column("token_hash", sa.String(), nullable=False),
        _timestamp("expires_at", nullable=False),
        _timestamp("revoked_at"),
        sa.Column("ip_address", sa.String(), nullable=True),
        sa.Column("user_agent", sa.String(), nullable=True),
        _timestamp("created_at", server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["admin_id"], ["admin_users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_admin_sessions_admin_id"), "admin_sessions", ["admin_id"], unique=False)

    op.create_table(
        "donations",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("method", _payment_method_again(), nullable=False),
        sa.Column("amount_bdt", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(), nullable=False),
        sa.Column("trx_id", sa.String(), nullable=False),
        sa.Column("agent_account", sa.String(), nullable=False),
        sa.Column("contact_number", sa.String(), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("status", sa.Enum(*REVIEW_STATUSES, name="donationstatus"), nullable=False),
        sa.Column("verified_by", sa.String(), nullable=True),
        _timestamp("verified_at"),
        _timestamp("created_at", server_default=sa.func.now()),
        _timestamp("updated_at", server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_donations_user_id"), "donations", ["user_id"], unique=False)

    op.create_table(
        "support_tickets",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("ticket_no", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("subject", sa.String(), nullable=False),
        sa.Column("status", sa.Enum(*TICKET_STATUSES, name="ticketstatus"), nullable=False),
        sa.Column("priority", sa.Enum(*TICKET_PRIORITIES, name="ticketpriority"), nullable=False),
        sa.Column("assigned_to", sa.String(), nullable=True),
        _timestamp("resolved_at"),
        _timestamp("created_at", server_default=sa.func.now()),
        _timestamp("updated_at", server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["assigned_to"], ["admin_users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("ticket_no"),
    )
    op.create_index(op.f("ix_support_tickets_user_id"), "support_tickets", ["user_id"], unique=False)

    op.create_table(
        "support_messages",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("ticket_id", sa.String(), nullable=False),
        sa.Column("sender_id", sa.String(), nullable=False),
        sa.Column("sender_type", sa.Enum(*SENDER_TYPES, name="sendertype"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        _timestamp("created_at", server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["ticket_id"], ["support_tickets.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_support_messages_ticket_id"), "support_messages", ["ticket_id"], unique=False)

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("message", sa.String(), nullable=False),
        sa.Column("reference_id", sa.String(), nullable=False),
        _timestamp("created_at", server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_notifications_user_id"), "notifications", ["user_id"], unique=False)


def downgrade() -> None:
    for table in (
        "notifications", "support_messages", "support_tickets", "donations", "admin_sessions",
        "admin_otps", "admin_users", "manual_payments", "order_items", "orders", "products",
    ):
        op.drop_table(table)

    # enum-типы есть только в PostgreSQL
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        for name in ENUM_NAMES:
            postgresql.ENUM(name=name).drop(bind, checkfirst=True)
