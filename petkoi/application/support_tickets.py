import logging
import random
import time
import uuid
from datetime import datetime, timezone
from typing import Optional, List

from petkoi.domain.models import SupportTicket, SupportMessage, TicketStatus, TicketPriority, SenderType
from petkoi.domain.exceptions import TicketNotFoundError, TicketClosedError, AdminNotFoundError, ValidationError

logger = logging.getLogger(__name__)


def generate_ticket_no() -> str:
    return f"TICKET-{int(time.time() * 1000)}-{random.randint(0, 9999)}"


class SupportTicketService:
    """Тикеты поддержки: пользователь пишет, админ отвечает и ведет статус"""

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def create_ticket(
        self,
        user_id: str,
        subject: str,
        message: str,
        priority: Optional[TicketPriority] = None
    ) -> SupportTicket:
        if not subject.strip() or not message.strip():
            raise ValidationError("Subject and message are required")

        now = datetime.now(timezone.utc)
        ticket_id = str(uuid.uuid4())
        ticket = SupportTicket(
            id=ticket_id,
            ticket_no=generate_ticket_no(),
            user_id=user_id,
            subject=subject.strip(),
            status=TicketStatus.OPEN,
            priority=priority or TicketPriority.MEDIUM,
            messages=[SupportMessage(
                id=str(uuid.uuid4()),
                ticket_id=ticket_id,
                sender_id=user_id,
                sender_type=SenderType.USER,
                content=message,
                created_at=now
            )],
            created_at=now,
            updated_at=now
        )
        async with self._uow() as uow:
            await uow.tickets.create(ticket)
            await uow.commit()

        logger.info(f"Создан тикет {ticket.ticket_no} от {user_id}")
        return ticket

    async def get_ticket(self, ticket_id: str, user_id: Optional[str] = None) -> SupportTicket:
        """Без user_id: админский доступ"""
        async with self._uow() as uow:
            ticket = await uow.tickets.get_by_id(ticket_id)
        if not ticket or (user_id is not None and ticket.user_id != user_id):
            raise TicketNotFoundError("Support ticket not found")
        return ticket

    async def list_user_tickets(self, user_id: str) -> List[SupportTicket]:
        async with self._uow() as uow:
            return await uow.tickets.list(user_id=user_id)

    async def list_tickets(
        self,
        status: Optional[TicketStatus] = None,
        assigned_to: Optional[str] = None
    ) -> List[SupportTicket]:
        async with self._uow() as uow:
            return await uow.tickets.list(status=status, assigned_to=assigned_to)

    async def add_message(
        self,
        ticket_id: str,
        sender_id: str,
        content: str,
        sender_type: SenderType,
        user_id: Optional[str] = None
    ) -> SupportMessage:
        if not content.strip():
            raise ValidationError("Message content is required")

        async with self._uow() as uow:
            ticket = await uow.tickets.get_by_id(ticket_id, with_messages=False)
            if not ticket or (user_id is not None and ticket.user_id != user_id):
                raise TicketNotFoundError("Support ticket not found")

            if ticket.status == TicketStatus.CLOSED:
                raise TicketClosedError()

            # Ответ пользователя переоткрывает решенный тикет
            if ticket.status == TicketStatus.RESOLVED and sender_type == SenderType.USER:
                await uow.tickets.update(ticket_id, status=TicketStatus.OPEN, resolved_at=None)

            # Первый ответ админа берет тикет в работу
            if ticket.status == TicketStatus.OPEN and sender_type == SenderType.ADMIN:
                await uow.tickets.update(ticket_id, status=TicketStatus.IN_PROGRESS)

            message = SupportMessage(
                id=str(uuid.uuid4()),
                ticket_id=ticket_id,
                sender_id=sender_id,
                sender_type=sender_type,
                content=content,
                is_read=False,
                created_at=datetime.now(timezone.utc)
            )
            await uow.tickets.add_message(message)
            await uow.tickets.mark_read(ticket_id, sender_type, sender_id=sender_id)
            await uow.commit()

        message.is_read = True
        logger.info(f"Сообщение в тикете {ticket_id} от {sender_type.value}")
        return message

    async def update_status(self, ticket_id: str, status: TicketStatus) -> SupportTicket:
        async with self._uow() as uow:
            ticket = await uow.tickets.get_by_id(ticket_id, with_messages=False)
            if not ticket:
                raise TicketNotFoundError("Support ticket not found")

            values = {"status": status}
            if status == TicketStatus.RESOLVED and ticket.resolved_at is None:
                values["resolved_at"] = datetime.now(timezone.utc)
            if status == TicketStatus.OPEN and ticket.resolved_at is not None:
                values["resolved_at"] = None

            await uow.tickets.update(ticket_id, **values)
            await uow.commit()
            return await uow.tickets.get_by_id(ticket_id)

    async def assign(self, ticket_id: str, admin_id: str) -> SupportTicket:
        async with self._uow() as uow:
            ticket = await uow.tickets.get_by_id(ticket_id, with_messages=False)
            if not ticket:
                raise TicketNotFoundError("Support ticket not found")
            if not await uow.admins.get_by_id(admin_id):
                raise AdminNotFoundError("Admin user not found")

            status = TicketStatus.IN_PROGRESS if ticket.status == TicketStatus.OPEN else ticket.status
            await uow.tickets.update(ticket_id, assigned_to=admin_id, status=status)
            await uow.commit()
            return await uow.tickets.get_by_id(ticket_id)

    async def update_priority(self, ticket_id: str, priority: TicketPriority) -> SupportTicket:
        async with self._uow() as uow:
            if not await uow.tickets.get_by_id(ticket_id, with_messages=False):
                raise TicketNotFoundError("Support ticket not found")
            await uow.tickets.update(ticket_id, priority=priority)
            await uow.commit()
            return await uow.tickets.get_by_id(ticket_id)

    async def mark_read(self, ticket_id: str, as_admin: bool, user_id: Optional[str] = None) -> int:
        """Помечает прочитанными сообщения другой стороны"""
        other_side = SenderType.USER if as_admin else SenderType.ADMIN
        async with self._uow() as uow:
            ticket = await uow.tickets.get_by_id(ticket_id, with_messages=False)
            if not ticket or (user_id is not None and ticket.user_id != user_id):
                raise TicketNotFoundError("Support ticket not found")
            updated = await uow.tickets.mark_read(ticket_id, other_side)
            await uow.commit()
        return updated
