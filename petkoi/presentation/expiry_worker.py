import asyncio
import logging

from petkoi.config import settings
from petkoi.database import build_engine, build_session_factory, create_tables
from petkoi.infrastructure.unit_of_work import UnitOfWork
from petkoi.application.expire_orders import ExpirePendingOrdersUseCase

logging.basicConfig(level=settings.LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


async def expiry_worker(session_factory, interval_seconds: int):
    """Worker: просроченные PENDING заказы → EXPIRED"""
    logger.info(f"Expiry worker запущен, интервал {interval_seconds} сек")

    while True:
        try:
            uow = UnitOfWork(session_factory)
            use_case = ExpirePendingOrdersUseCase(uow)

            expired = await use_case()
            if expired:
                logger.info(f"Обработано {expired} просроченных заказов")

            await asyncio.sleep(interval_seconds)

        except asyncio.CancelledError:
            logger.info("Expiry worker остановлен")
            raise
        except Exception as e:
            logger.error(f"Ошибка в expiry worker: {e}", exc_info=True)
            await asyncio.sleep(interval_seconds * 2)


async def main():
    engine = build_engine(settings.DATABASE_URL)
    await create_tables(engine)
    try:
        await expiry_worker(build_session_factory(engine), settings.EXPIRY_SWEEP_SECONDS)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
