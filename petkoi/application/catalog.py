import logging
import uuid
from typing import List

from petkoi.domain.models import Product, Notification
from petkoi.domain.exceptions import ValidationError

logger = logging.getLogger(__name__)


class ListProductsUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self) -> List[Product]:
        async with self._uow() as uow:
            return await uow.products.list_active()


class AddProductUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, sku: str, name: str, price_bdt: int) -> Product:
        if price_bdt < 0:
            raise ValidationError("Price must not be negative")
        product = Product(id=str(uuid.uuid4()), sku=sku.strip(), name=name.strip(), price_bdt=price_bdt)
        async with self._uow() as uow:
            if await uow.products.get_by_sku(product.sku):
                raise ValidationError(f"Product {product.sku} already exists")
            await uow.products.create(product)
            await uow.commit()

        logger.info(f"Добавлен товар {product.sku} за {product.price_bdt} BDT")
        return product


class ListNotificationsUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, user_id: str) -> List[Notification]:
        async with self._uow() as uow:
            return await uow.notifications.list_for_user(user_id)
