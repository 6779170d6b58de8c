import logging
import uuid
from datetime import datetime, timezone
from pydantic import BaseModel
from typing import Optional

from petkoi.domain.models import OrderStatus, ManualPayment, ManualPaymentStatus, PaymentMethod
from petkoi.domain.exceptions import OrderNotFoundError, OrderNotPayableError, OrderExpiredError

logger = logging.getLogger(__name__)


class ManualPaymentDTO(BaseModel):
    user_id: str
    order_no: str
    method: PaymentMethod
    amount_bdt: int
    trx_id: str
    agent_account: Optional[str] = None
    contact_number: Optional[str] = None
    note: Optional[str] = None


class SubmitManualPaymentUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, dto: ManualPaymentDTO) -> ManualPayment:
        logger.info(f"Ручная оплата заказа {dto.order_no}, trx {dto.trx_id}")

        async with self._uow() as uow:
            order = await uow.orders.get_by_order_no(dto.order_no)
            if not order or order.user_id != dto.user_id:
                raise OrderNotFoundError(f"Order {dto.order_no} not found")

            if not order.can_accept_payment():
                raise OrderNotPayableError(order.status.value)

            now = datetime.now(timezone.utc)
            if order.is_expired(now):
                raise OrderExpiredError("Order expired")

            payment = ManualPayment(
                id=str(uuid.uuid4()),
                order_id=order.id,
                user_id=dto.user_id,
                method=dto.method,
                amount_bdt=dto.amount_bdt,
                trx_id=dto.trx_id,
                agent_account=dto.agent_account,
                contact_number=dto.contact_number,
                note=dto.note,
                status=ManualPaymentStatus.PENDING,
                created_at=now
            )
            await uow.manual_payments.create(payment)
            await uow.orders.update_status(order.id, OrderStatus.PAYMENT_UNDER_REVIEW)
            await uow.commit()

        logger.info(f"Заказ {dto.order_no} ожидает проверки оплаты (PAYMENT_UNDER_REVIEW)")
        return payment
