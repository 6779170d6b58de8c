from typing import Optional, List

from petkoi.domain.models import Order, OrderStatus, ManualPayment
from petkoi.domain.exceptions import OrderNotFoundError

MAX_TAKE = 100
DEFAULT_TAKE = 20


class GetOrderUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, order_no: str, user_id: Optional[str] = None) -> Order:
        """Без user_id: админский доступ к любому заказу"""
        async with self._uow() as uow:
            order = await uow.orders.get_by_order_no(order_no)
            if not order or (user_id is not None and order.user_id != user_id):
                raise OrderNotFoundError(f"Order {order_no} not found")
            return order


class ListOrdersUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(
        self,
        status: Optional[OrderStatus] = None,
        order_no: Optional[str] = None,
        user_id: Optional[str] = None,
        take: Optional[int] = DEFAULT_TAKE,
    ) -> List[Order]:
        take = min(take or DEFAULT_TAKE, MAX_TAKE)
        async with self._uow() as uow:
            return await uow.orders.list(status=status, order_no=order_no, user_id=user_id, take=take)


class ListUserOrdersUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, user_id: str) -> List[Order]:
        async with self._uow() as uow:
            return await uow.orders.list(user_id=user_id)


class GetOrderPaymentsUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, order: Order) -> List[ManualPayment]:
        async with self._uow() as uow:
            return await uow.manual_payments.list_for_order(order.id)
