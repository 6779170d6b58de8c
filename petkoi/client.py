import asyncio
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Optional, List

import httpx
from pydantic import BaseModel

from petkoi.domain.admin import AdminRole, AdminSection
from petkoi.domain.models import OrderStatus

logger = logging.getLogger(__name__)

OTP_LENGTH = 6
_OTP_PATTERN = re.compile(r"[0-9]{6}")


def sanitize_otp_input(raw: str) -> str:
    """Оставляет только ASCII-цифры, не больше шести"""
    return "".join(ch for ch in raw if "0" <= ch <= "9")[:OTP_LENGTH]


def is_complete_otp(code: str) -> bool:
    return bool(_OTP_PATTERN.fullmatch(code or ""))


class ApiError(Exception):
    def __init__(self, status_code: Optional[int], detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{status_code}: {detail}")


class AdminSession(BaseModel):
    """Состояние входа админа; передается в каждый вызов явно"""
    otp_token: Optional[str] = None
    access_token: Optional[str] = None
    role: Optional[AdminRole] = None
    expires_at: Optional[datetime] = None

    @property
    def is_authenticated(self) -> bool:
        if not self.access_token:
            return False
        return self.expires_at is None or self.expires_at > datetime.now(timezone.utc)

    def clear(self) -> None:
        self.otp_token = None
        self.access_token = None
        self.role = None
        self.expires_at = None


class PetKoiClient:
    def __init__(
        self,
        base_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
        poll_initial_delay: float = 1.0,
        poll_max_delay: float = 8.0,
        poll_max_attempts: int = 10,
        sleep=asyncio.sleep
    ):
        self._base_url = base_url.rstrip("/")
        self._transport = transport
        self._timeout = timeout
        self._poll_initial_delay = poll_initial_delay
        self._poll_max_delay = poll_max_delay
        self._poll_max_attempts = poll_max_attempts
        self._sleep = sleep

    async def _request(self, method: str, path: str, session: Optional[AdminSession] = None, **kwargs):
        headers = {}
        if session is not None and session.access_token:
            headers["Authorization"] = f"Bearer {session.access_token}"

        try:
            async with httpx.AsyncClient(
                base_url=self._base_url, transport=self._transport, timeout=self._timeout
            ) as client:
                response = await client.request(method, path, headers=headers, **kwargs)
        except httpx.RequestError as e:
            logger.error(f"Pet Koi API не доступен: {e}")
            raise ApiError(None, f"Pet Koi API unavailable: {str(e)}")

        if response.status_code >= 400:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            raise ApiError(response.status_code, str(detail))

        return response.json()

    async def admin_login(self, session: AdminSession, email: str, password: str) -> AdminSession:
        session.clear()
        data = await self._request("POST", "/api/admin/login", json={"email": email, "password": password})
        session.otp_token = data["otp_token"]
        return session

    async def admin_verify(self, session: AdminSession, code: str) -> AdminSession:
        code = sanitize_otp_input(code)
        if not is_complete_otp(code):
            raise ValueError("OTP code must be exactly 6 digits")
        if not session.otp_token:
            raise ValueError("Login step was not started")

        data = await self._request(
            "POST", "/api/admin/login/verify", json={"otp_token": session.otp_token, "code": code}
        )
        session.otp_token = None
        session.access_token = data["access_token"]
        session.role = AdminRole(data["role"])
        session.expires_at = datetime.now(timezone.utc) + timedelta(seconds=data["expires_in"])
        return session

    async def admin_resend(self, session: AdminSession) -> None:
        if not session.otp_token:
            raise ValueError("Login step was not started")
        await self._request("POST", "/api/admin/login/resend", json={"otp_token": session.otp_token})

    async def admin_logout(self, session: AdminSession) -> None:
        try:
            if session.access_token:
                await self._request("POST", "/api/admin/logout", session=session)
        finally:
            session.clear()

    async def admin_sections(self, session: AdminSession) -> List[AdminSection]:
        data = await self._request("GET", "/api/admin/me", session=session)
        return [AdminSection(section) for section in data["sections"]]

    async def update_order_status(self, session: AdminSession, order_no: str, status: OrderStatus) -> dict:
        return await self._request(
            "PATCH", f"/api/admin/orders/{order_no}/status",
            session=session, json={"status": OrderStatus(status).value}
        )

    async def get_order(self, session: AdminSession, order_no: str) -> dict:
        return await self._request("GET", f"/api/admin/orders/{order_no}", session=session)

    async def wait_for_payment(self, session: AdminSession, order_no: str) -> dict:
        """Опрашивает заказ, пока он PENDING: задержка 1, 2, 4, 8, 8... сек"""
        delay = self._poll_initial_delay
        order = await self.get_order(session, order_no)
        try:
            for _ in range(self._poll_max_attempts - 1):
                if order["status"] != OrderStatus.PENDING.value:
                    break
                await self._sleep(delay)
                delay = min(delay * 2, self._poll_max_delay)
                order = await self.get_order(session, order_no)
        except asyncio.CancelledError:
            logger.info(f"Ожидание оплаты заказа {order_no} отменено")
            raise
        return order
