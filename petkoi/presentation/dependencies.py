import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from petkoi.application.admin_session import AuthenticateAdminUseCase
from petkoi.domain.admin import AdminIdentity, AdminSection, ensure_access
from petkoi.domain.exceptions import AuthenticationFailedError, AccessDeniedError
from petkoi.infrastructure.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_unit_of_work(request: Request) -> UnitOfWork:
    return UnitOfWork(request.app.state.session_factory)


def get_email_sender(request: Request):
    return request.app.state.email_sender


def get_access_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> str:
    if not credentials or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing admin token")
    return credentials.credentials


async def require_admin(
    access_token: str = Depends(get_access_token),
    uow: UnitOfWork = Depends(get_unit_of_work)
) -> AdminIdentity:
    try:
        return await AuthenticateAdminUseCase(uow)(access_token)
    except AuthenticationFailedError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))


def require_section(section: AdminSection):
    """Зависимость: админ с доступом к разделу, иначе 403"""

    async def dependency(identity: AdminIdentity = Depends(require_admin)) -> AdminIdentity:
        try:
            ensure_access(identity.role, section)
        except AccessDeniedError as e:
            logger.warning(f"Доступ запрещен: {identity.email} ({identity.role.value}) -> {section.value}")
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
        return identity

    return dependency
