import logging
import random
import re
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, List
from pydantic import BaseModel

from petkoi.domain.models import Order, OrderItem, OrderStatus
from petkoi.domain.exceptions import ProductUnavailableError, ValidationError


logger = logging.getLogger(__name__)


class OrderItemDTO(BaseModel):
    product_id: str
    quantity: int = 1


class CreateOrderDTO(BaseModel):
    user_id: str
    items: List[OrderItemDTO]
    shipping_address: Optional[str] = None
    shipping_district: Optional[str] = None
    shipping_postal_code: Optional[str] = None
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    pet_id: Optional[str] = None
    pet_qr_url: Optional[str] = None
    idempotency_key: Optional[str] = None


def generate_order_no() -> str:
    return f"ORD-{int(time.time() * 1000)}-{random.randint(0, 9999)}"


def extract_postal_code(address: Optional[str], provided: Optional[str]) -> Optional[str]:
    """Индекс из формы, иначе первые 4 цифры подряд в адресе"""
    if provided:
        return provided
    if not address:
        return None
    match = re.search(r"\d{4}", address)
    return match.group(0) if match else None


class CreateOrderUseCase:
    def __init__(
        self,
        unit_of_work,
        shipping_fee_bdt: int,
        free_shipping_threshold_bdt: int = 0,
        expiry_minutes: int = 30
    ):
        self._uow = unit_of_work
        self._shipping_fee_bdt = shipping_fee_bdt
        self._free_shipping_threshold_bdt = free_shipping_threshold_bdt
        self._expiry_minutes = expiry_minutes

    def _shipping_fee(self, subtotal_bdt: int) -> int:
        if self._free_shipping_threshold_bdt > 0 and subtotal_bdt >= self._free_shipping_threshold_bdt:
            return 0
        return self._shipping_fee_bdt

    async def __call__(self, order_data: CreateOrderDTO) -> Order:
        logger.info(f"Создание заказа для пользователя {order_data.user_id}, позиций: {len(order_data.items)}")

        if not order_data.items:
            raise ValidationError("No items provided")
        if any(item.quantity < 1 for item in order_data.items):
            raise ValidationError("Quantity must be at least 1")

        async with self._uow() as uow:
            # 1. Проверка идемпотентности
            if order_data.idempotency_key:
                existing = await uow.orders.get_by_idempotency_key(order_data.idempotency_key)
                if existing:
                    logger.info(f"Заказ уже существует: {existing.order_no}")
                    return existing

            # 2. Проверка товаров (по id или SKU)
            keys = sorted({item.product_id for item in order_data.items})
            products = await uow.products.find_by_keys(keys)
            by_key = {}
            for product in products:
                by_key[product.id] = product
                by_key[product.sku] = product

            items = []
            for item in order_data.items:
                product = by_key.get(item.product_id)
                if not product:
                    logger.warning(f"Товар {item.product_id} не найден или неактивен")
                    raise ProductUnavailableError("One or more products are unavailable")
                items.append(OrderItem(
                    product_id=product.id,
                    name=product.name,
                    sku=product.sku,
                    quantity=item.quantity,
                    unit_price_bdt=product.price_bdt,
                    total_bdt=product.price_bdt * item.quantity
                ))

            # 3. Расчет суммы
            subtotal = sum(item.total_bdt for item in items)
            shipping_fee = self._shipping_fee(subtotal)

            # 4. Создание заказа
            now = datetime.now(timezone.utc)
            order = Order(
                id=str(uuid.uuid4()),
                order_no=generate_order_no(),
                user_id=order_data.user_id,
                status=OrderStatus.PENDING,
                subtotal_bdt=subtotal,
                shipping_fee_bdt=shipping_fee,
                total_bdt=subtotal + shipping_fee,
                shipping_address=order_data.shipping_address or "",
                shipping_district=(order_data.shipping_district or "").strip() or None,
                shipping_postal_code=extract_postal_code(
                    order_data.shipping_address, order_data.shipping_postal_code
                ),
                contact_name=order_data.contact_name,
                contact_phone=order_data.contact_phone,
                pet_id=order_data.pet_id,
                pet_qr_url=order_data.pet_qr_url,
                idempotency_key=order_data.idempotency_key,
                items=items,
                created_at=now,
                updated_at=now,
                expires_at=now + timedelta(minutes=self._expiry_minutes)
            )
            await uow.orders.create(order)
            await uow.commit()

        logger.info(f"Заказ создан: {order.order_no}, сумма {order.total_bdt} BDT")
        return order
