import logging

from petkoi.domain.models import Order, OrderStatus, valid_next_statuses
from petkoi.domain.exceptions import OrderNotFoundError

logger = logging.getLogger(__name__)


class UpdateOrderStatusUseCase:
    """Админ выставляет любой статус из перечня; граф переходов не проверяется"""

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, order_no: str, status: OrderStatus, admin_email: str = "") -> Order:
        async with self._uow() as uow:
            order = await uow.orders.get_by_order_no(order_no)
            if not order:
                raise OrderNotFoundError(f"Order {order_no} not found")

            if order.status != status and status not in valid_next_statuses(order.status):
                logger.warning(
                    f"Нестандартный переход заказа {order_no}: {order.status.value} -> {status.value} ({admin_email})"
                )

            await uow.orders.update_status(order.id, status)
            await uow.commit()

            updated = await uow.orders.get_by_order_no(order_no)

        logger.info(f"Заказ {order_no} переведен в {status.value} ({admin_email})")
        return updated
