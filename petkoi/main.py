# petkoi/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from petkoi.config import settings
from petkoi.database import build_engine, build_session_factory, create_tables
from petkoi.domain.exceptions import InfrastructureError
from petkoi.infrastructure.http_clients import ResendEmailClient
from petkoi.presentation.api import router
from petkoi.presentation.admin_api import router as admin_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def service_unavailable_handler(request: Request, exc: Exception):
    """Сбои почты и БД: подробности только в лог"""
    logger.error(f"{request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=503, content={"detail": "Service unavailable"})


def create_app(database_url: Optional[str] = None, email_sender=None) -> FastAPI:
    engine = build_engine(database_url or settings.DATABASE_URL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Управление жизненным циклом приложения"""
        await create_tables(engine)
        logger.info("Таблицы созданы")

        yield

        logger.info("Приложение останавливается...")
        await engine.dispose()

    app = FastAPI(
        title="Pet Koi Service",
        description="Заказы QR-бирок, админка с OTP, пожертвования и поддержка",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.email_sender = email_sender or ResendEmailClient(
        settings.RESEND_BASE_URL, settings.RESEND_API_KEY, settings.RESEND_FROM
    )

    app.add_exception_handler(InfrastructureError, service_unavailable_handler)
    app.add_exception_handler(SQLAlchemyError, service_unavailable_handler)

    app.include_router(router, prefix="/api")
    app.include_router(admin_router, prefix="/api")

    @app.get("/")
    async def root():
        return {"message": "Pet Koi Service работает"}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return app


app = create_app()
