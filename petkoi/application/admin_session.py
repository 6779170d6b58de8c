import logging
import uuid
from datetime import datetime, timedelta, timezone

from petkoi.domain.admin import AdminIdentity, AdminRole, AdminUser
from petkoi.domain.exceptions import AuthenticationFailedError, AdminAlreadyExistsError, ValidationError
from petkoi.application.admin_login import VerifiedLogin
from petkoi.infrastructure.security import (
    hash_secret_async, hash_token, verify_token, generate_token_secret, compose_token, split_token,
)

logger = logging.getLogger(__name__)

INVALID_ACCESS_TOKEN = "Invalid or expired admin token"


async def _resolve(uow, access_token: str, now: datetime) -> AdminIdentity:
    parts = split_token(access_token)
    if not parts:
        raise AuthenticationFailedError(INVALID_ACCESS_TOKEN)
    session_id, secret = parts

    session = await uow.sessions.get_by_id(session_id)
    if not session or not session.is_active(now) or not verify_token(secret, session.token_hash):
        raise AuthenticationFailedError(INVALID_ACCESS_TOKEN)

    admin = await uow.admins.get_by_id(session.admin_id)
    if not admin:
        raise AuthenticationFailedError(INVALID_ACCESS_TOKEN)

    return AdminIdentity(admin_id=admin.id, email=admin.email, role=admin.role, session_id=session.id)


class AuthenticateAdminUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, access_token: str) -> AdminIdentity:
        async with self._uow() as uow:
            return await _resolve(uow, access_token, datetime.now(timezone.utc))


class RefreshSessionUseCase:
    """Ротация секрета сессии: старый токен перестает работать"""

    def __init__(self, unit_of_work, session_days: int = 7):
        self._uow = unit_of_work
        self._session_days = session_days

    async def __call__(self, access_token: str) -> VerifiedLogin:
        now = datetime.now(timezone.utc)
        async with self._uow() as uow:
            identity = await _resolve(uow, access_token, now)
            secret = generate_token_secret()
            expires_at = now + timedelta(days=self._session_days)
            await uow.sessions.rotate(identity.session_id, hash_token(secret), expires_at)
            await uow.commit()

        logger.info(f"Сессия {identity.session_id} обновлена для {identity.email}")
        return VerifiedLogin(
            access_token=compose_token(identity.session_id, secret),
            role=identity.role,
            expires_in=int((expires_at - now).total_seconds())
        )


class LogoutUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, identity: AdminIdentity) -> None:
        async with self._uow() as uow:
            await uow.sessions.revoke(identity.session_id, datetime.now(timezone.utc))
            await uow.commit()
        logger.info(f"Админ {identity.email} вышел")


class CreateAdminUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, email: str, password: str, role: AdminRole) -> AdminUser:
        email = email.strip().lower()
        if not email or not password:
            raise ValidationError("Email and password are required")

        async with self._uow() as uow:
            if await uow.admins.get_by_email(email):
                raise AdminAlreadyExistsError(f"Admin {email} already exists")
            admin = AdminUser(
                id=str(uuid.uuid4()),
                email=email,
                password_hash=await hash_secret_async(password),
                role=role,
                created_at=datetime.now(timezone.utc)
            )
            await uow.admins.create(admin)
            await uow.commit()

        logger.info(f"Создан админ {email} с ролью {role.value}")
        return admin
