import logging
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


class ExpirePendingOrdersUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, now: Optional[datetime] = None) -> int:
        """Переводит просроченные PENDING заказы в EXPIRED. Возвращает количество."""
        now = now or datetime.now(timezone.utc)
        async with self._uow() as uow:
            expired = await uow.orders.expire_pending(now)
            await uow.commit()

        if expired:
            logger.info(f"Просрочено {expired} заказов в статусе PENDING")
        return expired
