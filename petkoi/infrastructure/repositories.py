import uuid
from typing import Optional, List
from datetime import datetime, timezone
from sqlalchemy import select, insert, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from petkoi.domain.models import (
    Order, OrderItem, OrderStatus, Product, ManualPayment, PaymentMethod, ManualPaymentStatus,
    Donation, DonationStatus, SupportTicket, SupportMessage, TicketStatus, TicketPriority, SenderType,
    Notification,
)
from petkoi.infrastructure.db_schema import (
    orders_tbl, order_items_tbl, products_tbl, manual_payments_tbl, donations_tbl,
    support_tickets_tbl, support_messages_tbl, notifications_tbl,
)
from petkoi.application.interfaces import (
    OrderRepository, ProductRepository, ManualPaymentRepository, DonationRepository,
    SupportTicketRepository, NotificationRepository,
)


class SQLAlchemyOrderRepository(OrderRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_order_no(self, order_no: str) -> Optional[Order]:
        result = await self._session.execute(
            select(orders_tbl).where(orders_tbl.c.order_no == order_no)
        )
        row = result.fetchone()
        if not row:
            return None
        items = await self._load_items([row.id])
        return self._to_domain(row, items.get(row.id, []))

    async def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        result = await self._session.execute(
            select(orders_tbl).where(orders_tbl.c.idempotency_key == key)
        )
        row = result.fetchone()
        if not row:
            return None
        items = await self._load_items([row.id])
        return self._to_domain(row, items.get(row.id, []))

    async def list(
        self,
        status: Optional[OrderStatus] = None,
        order_no: Optional[str] = None,
        user_id: Optional[str] = None,
        take: Optional[int] = None,
    ) -> List[Order]:
        stmt = select(orders_tbl).order_by(orders_tbl.c.created_at.desc())
        if status is not None:
            stmt = stmt.where(orders_tbl.c.status == status)
        if order_no:
            stmt = stmt.where(orders_tbl.c.order_no == order_no)
        if user_id:
            stmt = stmt.where(orders_tbl.c.user_id == user_id)
        if take:
            stmt = stmt.limit(take)
        rows = (await self._session.execute(stmt)).fetchall()
        items = await self._load_items([row.id for row in rows])
        return [self._to_domain(row, items.get(row.id, [])) for row in rows]

    async def count_by_status(self) -> dict:
        result = await self._session.execute(
            select(orders_tbl.c.status, func.count()).group_by(orders_tbl.c.status)
        )
        return {OrderStatus(status).value: count for status, count in result.fetchall()}

    async def create(self, order: Order) -> None:
        stmt = insert(orders_tbl).values(
            id=order.id,
            order_no=order.order_no,
            user_id=order.user_id,
            status=order.status,
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
            idempotency_key=order.idempotency_key,
            created_at=order.created_at,
            updated_at=order.updated_at,
            expires_at=order.expires_at
        )
        await self._session.execute(stmt)
        if order.items:
            await self._session.execute(
                insert(order_items_tbl),
                [
                    {
                        "id": str(uuid.uuid4()),
                        "order_id": order.id,
                        "product_id": item.product_id,
                        "name": item.name,
                        "sku": item.sku,
                        "quantity": item.quantity,
                        "unit_price_bdt": item.unit_price_bdt,
                        "total_bdt": item.total_bdt,
                    }
                    for item in order.items
                ]
            )

    async def update_status(self, order_id: str, status: OrderStatus) -> None:
        stmt = (
            update(orders_tbl)
            .where(orders_tbl.c.id == order_id)
            .values(
                status=status,
                updated_at=datetime.now(timezone.utc)
            )
        )
        await self._session.execute(stmt)

    async def expire_pending(self, now: datetime) -> int:
        stmt = (
            update(orders_tbl)
            .where(
                orders_tbl.c.status == OrderStatus.PENDING,
                orders_tbl.c.expires_at.is_not(None),
                orders_tbl.c.expires_at < now
            )
            .values(status=OrderStatus.EXPIRED, updated_at=now)
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0

    async def _load_items(self, order_ids: List[str]) -> dict:
        if not order_ids:
            return {}
        result = await self._session.execute(
            select(order_items_tbl).where(order_items_tbl.c.order_id.in_(order_ids))
        )
        grouped = {}
        for row in result.fetchall():
            grouped.setdefault(row.order_id, []).append(
                OrderItem(
                    product_id=row.product_id,
                    name=row.name,
                    sku=row.sku,
                    quantity=row.quantity,
                    unit_price_bdt=row.unit_price_bdt,
                    total_bdt=row.total_bdt
                )
            )
        return grouped

    def _to_domain(self, row, items: List[OrderItem]) -> Order:
        """Трансформация DB → Domain"""
        return Order(
            id=row.id,
            order_no=row.order_no,
            user_id=row.user_id,
            status=OrderStatus(row.status),
            currency=row.currency,
            subtotal_bdt=row.subtotal_bdt,
            shipping_fee_bdt=row.shipping_fee_bdt,
            total_bdt=row.total_bdt,
            shipping_address=row.shipping_address or "",
            shipping_district=row.shipping_district,
            shipping_postal_code=row.shipping_postal_code,
            contact_name=row.contact_name,
            contact_phone=row.contact_phone,
            pet_id=row.pet_id,
            pet_qr_url=row.pet_qr_url,
            idempotency_key=row.idempotency_key,
            items=items,
            created_at=row.created_at,
            updated_at=row.updated_at,
            expires_at=row.expires_at
        )


class SQLAlchemyProductRepository(ProductRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def find_by_keys(self, keys: List[str]) -> List[Product]:
        """Ключом может быть как id, так и SKU"""
        if not keys:
            return []
        result = await self._session.execute(
            select(products_tbl).where(
                products_tbl.c.active.is_(True),
                or_(products_tbl.c.id.in_(keys), products_tbl.c.sku.in_(keys))
            )
        )
        return [self._to_domain(row) for row in result.fetchall()]

    async def get_by_sku(self, sku: str) -> Optional[Product]:
        """Поиск по SKU, в том числе среди снятых с продажи"""
        result = await self._session.execute(select(products_tbl).where(products_tbl.c.sku == sku))
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def list_active(self) -> List[Product]:
        result = await self._session.execute(
            select(products_tbl)
            .where(products_tbl.c.active.is_(True))
            .order_by(products_tbl.c.sku.asc())
        )
        return [self._to_domain(row) for row in result.fetchall()]

    async def create(self, product: Product) -> None:
        await self._session.execute(
            insert(products_tbl).values(
                id=product.id,
                sku=product.sku,
                name=product.name,
                price_bdt=product.price_bdt,
                active=product.active,
                created_at=datetime.now(timezone.utc)
            )
        )

    def _to_domain(self, row) -> Product:
        return Product(id=row.id, sku=row.sku, name=row.name, price_bdt=row.price_bdt, active=row.active)


class SQLAlchemyManualPaymentRepository(ManualPaymentRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, payment: ManualPayment) -> None:
        await self._session.execute(
            insert(manual_payments_tbl).values(
                id=payment.id,
                order_id=payment.order_id,
                user_id=payment.user_id,
                method=payment.method,
                amount_bdt=payment.amount_bdt,
                currency=payment.currency,
                trx_id=payment.trx_id,
                agent_account=payment.agent_account,
                contact_number=payment.contact_number,
                note=payment.note,
                status=payment.status,
                created_at=payment.created_at
            )
        )

    async def list_for_order(self, order_id: str) -> List[ManualPayment]:
        result = await self._session.execute(
            select(manual_payments_tbl)
            .where(manual_payments_tbl.c.order_id == order_id)
            .order_by(manual_payments_tbl.c.created_at.desc())
        )
        return [
            ManualPayment(
                id=row.id,
                order_id=row.order_id,
                user_id=row.user_id,
                method=PaymentMethod(row.method),
                amount_bdt=row.amount_bdt,
                currency=row.currency,
                trx_id=row.trx_id,
                agent_account=row.agent_account,
                contact_number=row.contact_number,
                note=row.note,
                status=ManualPaymentStatus(row.status),
                created_at=row.created_at
            )
            for row in result.fetchall()
        ]


class SQLAlchemyDonationRepository(DonationRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, donation_id: str) -> Optional[Donation]:
        result = await self._session.execute(
            select(donations_tbl).where(donations_tbl.c.id == donation_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def list(self, status: Optional[DonationStatus] = None, user_id: Optional[str] = None) -> List[Donation]:
        stmt = select(donations_tbl).order_by(donations_tbl.c.created_at.desc())
        if status is not None:
            stmt = stmt.where(donations_tbl.c.status == status)
        if user_id:
            stmt = stmt.where(donations_tbl.c.user_id == user_id)
        result = await self._session.execute(stmt)
        return [self._to_domain(row) for row in result.fetchall()]

    async def count(self, status: Optional[DonationStatus] = None) -> int:
        stmt = select(func.count()).select_from(donations_tbl)
        if status is not None:
            stmt = stmt.where(donations_tbl.c.status == status)
        return (await self._session.execute(stmt)).scalar_one()

    async def create(self, donation: Donation) -> None:
        await self._session.execute(
            insert(donations_tbl).values(
                id=donation.id,
                user_id=donation.user_id,
                method=donation.method,
                amount_bdt=donation.amount_bdt,
                currency=donation.currency,
                trx_id=donation.trx_id,
                agent_account=donation.agent_account,
                contact_number=donation.contact_number,
                note=donation.note,
                status=donation.status,
                created_at=donation.created_at,
                updated_at=donation.updated_at
            )
        )

    async def update_review(
        self, donation_id: str, status: DonationStatus, note: Optional[str], verified_by: str, verified_at: datetime
    ) -> None:
        await self._session.execute(
            update(donations_tbl)
            .where(donations_tbl.c.id == donation_id)
            .values(
                status=status,
                note=note,
                verified_by=verified_by,
                verified_at=verified_at,
                updated_at=verified_at
            )
        )

    def _to_domain(self, row) -> Donation:
        return Donation(
            id=row.id,
            user_id=row.user_id,
            method=PaymentMethod(row.method),
            amount_bdt=row.amount_bdt,
            currency=row.currency,
            trx_id=row.trx_id,
            agent_account=row.agent_account,
            contact_number=row.contact_number,
            note=row.note,
            status=DonationStatus(row.status),
            verified_by=row.verified_by,
            verified_at=row.verified_at,
            created_at=row.created_at,
            updated_at=row.updated_at
        )


class SQLAlchemySupportTicketRepository(SupportTicketRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, ticket_id: str, with_messages: bool = True) -> Optional[SupportTicket]:
        result = await self._session.execute(
            select(support_tickets_tbl).where(support_tickets_tbl.c.id == ticket_id)
        )
        row = result.fetchone()
        if not row:
            return None
        messages = await self._load_messages(ticket_id) if with_messages else []
        return self._to_domain(row, messages)

    async def list(
        self,
        user_id: Optional[str] = None,
        status: Optional[TicketStatus] = None,
        assigned_to: Optional[str] = None,
    ) -> List[SupportTicket]:
        stmt = select(support_tickets_tbl).order_by(support_tickets_tbl.c.created_at.desc())
        if user_id:
            stmt = stmt.where(support_tickets_tbl.c.user_id == user_id)
        if status is not None:
            stmt = stmt.where(support_tickets_tbl.c.status == status)
        if assigned_to:
            stmt = stmt.where(support_tickets_tbl.c.assigned_to == assigned_to)
        result = await self._session.execute(stmt)
        tickets = []
        for row in result.fetchall():
            tickets.append(self._to_domain(row, await self._load_messages(row.id)))
        return tickets

    async def count(self, status: Optional[TicketStatus] = None) -> int:
        stmt = select(func.count()).select_from(support_tickets_tbl)
        if status is not None:
            stmt = stmt.where(support_tickets_tbl.c.status == status)
        return (await self._session.execute(stmt)).scalar_one()

    async def create(self, ticket: SupportTicket) -> None:
        await self._session.execute(
            insert(support_tickets_tbl).values(
                id=ticket.id,
                ticket_no=ticket.ticket_no,
                user_id=ticket.user_id,
                subject=ticket.subject,
                status=ticket.status,
                priority=ticket.priority,
                assigned_to=ticket.assigned_to,
                created_at=ticket.created_at,
                updated_at=ticket.updated_at
            )
        )
        for message in ticket.messages:
            await self.add_message(message)

    async def update(self, ticket_id: str, **values) -> None:
        values.setdefault("updated_at", datetime.now(timezone.utc))
        await self._session.execute(
            update(support_tickets_tbl)
            .where(support_tickets_tbl.c.id == ticket_id)
            .values(**values)
        )

    async def add_message(self, message: SupportMessage) -> None:
        await self._session.execute(
            insert(support_messages_tbl).values(
                id=message.id,
                ticket_id=message.ticket_id,
                sender_id=message.sender_id,
                sender_type=message.sender_type,
                content=message.content,
                is_read=message.is_read,
                created_at=message.created_at
            )
        )

    async def mark_read(self, ticket_id: str, sender_type: SenderType, sender_id: Optional[str] = None) -> int:
        stmt = (
            update(support_messages_tbl)
            .where(
                support_messages_tbl.c.ticket_id == ticket_id,
                support_messages_tbl.c.sender_type == sender_type,
                support_messages_tbl.c.is_read.is_(False)
            )
            .values(is_read=True)
        )
        if sender_id:
            stmt = stmt.where(support_messages_tbl.c.sender_id == sender_id)
        result = await self._session.execute(stmt)
        return result.rowcount or 0

    async def _load_messages(self, ticket_id: str) -> List[SupportMessage]:
        result = await self._session.execute(
            select(support_messages_tbl)
            .where(support_messages_tbl.c.ticket_id == ticket_id)
            .order_by(support_messages_tbl.c.created_at.asc())
        )
        return [
            SupportMessage(
                id=row.id,
                ticket_id=row.ticket_id,
                sender_id=row.sender_id,
                sender_type=SenderType(row.sender_type),
                content=row.content,
                is_read=row.is_read,
                created_at=row.created_at
            )
            for row in result.fetchall()
        ]

    def _to_domain(self, row, messages: List[SupportMessage]) -> SupportTicket:
        return SupportTicket(
            id=row.id,
            ticket_no=row.ticket_no,
            user_id=row.user_id,
            subject=row.subject,
            status=TicketStatus(row.status),
            priority=TicketPriority(row.priority),
            assigned_to=row.assigned_to,
            resolved_at=row.resolved_at,
            messages=messages,
            created_at=row.created_at,
            updated_at=row.updated_at
        )


class SQLAlchemyNotificationRepository(NotificationRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, notification: Notification) -> None:
        await self._session.execute(
            insert(notifications_tbl).values(
                id=notification.id,
                user_id=notification.user_id,
                type=notification.type,
                message=notification.message,
                reference_id=notification.reference_id,
                created_at=notification.created_at
            )
        )

    async def list_for_user(self, user_id: str) -> List[Notification]:
        result = await self._session.execute(
            select(notifications_tbl)
            .where(notifications_tbl.c.user_id == user_id)
            .order_by(notifications_tbl.c.created_at.desc())
        )
        return [
            Notification(
                id=row.id,
                user_id=row.user_id,
                type=row.type,
                message=row.message,
                reference_id=row.reference_id,
                created_at=row.created_at
            )
            for row in result.fetchall()
        ]
