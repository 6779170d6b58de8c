import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional
from pydantic import BaseModel

from petkoi.domain.admin import AdminOtp, AdminRole, AdminSession, AdminUser
from petkoi.domain.exceptions import AuthenticationFailedError, OtpLockedError, OtpThrottledError
from petkoi.application.interfaces import EmailSender
from petkoi.infrastructure.security import (
    OTP_LENGTH, hash_secret_async, verify_secret_async, hash_token, verify_token,
    generate_otp_code, generate_token_secret, compose_token, split_token,
)

logger = logging.getLogger(__name__)

INVALID_OTP_TOKEN = "Invalid or expired OTP token"

OTP_EMAIL_HTML = """
<div style="font-family: Arial, sans-serif; padding:16px; max-width:600px; margin:auto; color:#111">
  <p style="font-size:22px; font-weight:700; color:#c8002a; text-align:center;">Pet Koi Admin</p>
  <p style="text-align:center; font-weight:600;">Your Admin Verification Code</p>
  <div style="font-size:32px; letter-spacing:8px; font-weight:700; color:#c8002a; text-align:center;">{code}</div>
  <p style="text-align:center; color:#555; font-size:14px;">This code is valid for {minutes} minutes.</p>
  <p style="color:#7a5b00; font-size:13px;">Do not share this code with anyone.
  If you did not request this login, contact support immediately.</p>
</div>
"""


class OtpChallenge(BaseModel):
    otp_token: str


class VerifiedLogin(BaseModel):
    access_token: str
    role: AdminRole
    expires_in: int


class _OtpMailer:
    def __init__(self, email_sender: EmailSender, expiry_minutes: int):
        self._email_sender = email_sender
        self._expiry_minutes = expiry_minutes

    async def send_code(self, admin: AdminUser, code: str) -> None:
        await self._email_sender.send(
            to=admin.email,
            subject="Pet Koi Admin OTP Code",
            text=f"Your verification code is {code}. It expires in {self._expiry_minutes} minutes.",
            html=OTP_EMAIL_HTML.format(code=code, minutes=self._expiry_minutes)
        )


async def _load_live_challenge(uow, otp_token: str, now: datetime):
    """Находит OTP по токену и проверяет, что им еще можно пользоваться"""
    parts = split_token(otp_token)
    if not parts:
        raise AuthenticationFailedError(INVALID_OTP_TOKEN)
    otp_id, secret = parts

    otp = await uow.otps.get_by_id(otp_id)
    if not otp or not verify_token(secret, otp.secret_hash):
        logger.warning("OTP: неизвестный или поддельный otp_token")
        raise AuthenticationFailedError(INVALID_OTP_TOKEN)

    admin = await uow.admins.get_by_id(otp.admin_id)
    if not admin:
        raise AuthenticationFailedError(INVALID_OTP_TOKEN)
    if admin.is_locked(now):
        raise OtpLockedError()
    if otp.consumed_at is not None:
        raise AuthenticationFailedError("OTP already used")
    if otp.expires_at < now:
        raise AuthenticationFailedError("OTP expired")
    return otp, admin


class InitiateLoginUseCase:
    def __init__(
        self,
        unit_of_work,
        email_sender: EmailSender,
        otp_expiry_minutes: int = 10,
        hourly_limit: int = 3,
        cooldown_seconds: int = 60
    ):
        self._uow = unit_of_work
        self._mailer = _OtpMailer(email_sender, otp_expiry_minutes)
        self._otp_expiry_minutes = otp_expiry_minutes
        self._hourly_limit = hourly_limit
        self._cooldown_seconds = cooldown_seconds

    async def __call__(self, email: str, password: str) -> OtpChallenge:
        email = email.strip().lower()
        now = datetime.now(timezone.utc)

        async with self._uow() as uow:
            admin = await uow.admins.get_by_email(email)
            if not admin:
                logger.warning(f"Вход не удался: админ {email} не найден")
                raise AuthenticationFailedError("Invalid credentials")

            if admin.is_locked(now):
                logger.warning(f"Вход заблокирован до {admin.otp_locked_until.isoformat()} для {email}")
                raise OtpLockedError()

            if not await verify_secret_async(password, admin.password_hash):
                logger.warning(f"Вход не удался: неверный пароль для {email}")
                raise AuthenticationFailedError("Invalid credentials")

            await self._check_throttle(uow, admin, now)

            code = generate_otp_code()
            secret = generate_token_secret()
            otp = AdminOtp(
                id=str(uuid.uuid4()),
                admin_id=admin.id,
                code_hash=await hash_secret_async(code),
                secret_hash=hash_token(secret),
                expires_at=now + timedelta(minutes=self._otp_expiry_minutes),
                created_at=now
            )
            await uow.otps.create(otp)
            # Письмо до commit: если почта упала, OTP не сохранится
            await self._mailer.send_code(admin, code)
            await uow.commit()

        logger.info(f"OTP выдан для {email}")
        return OtpChallenge(otp_token=compose_token(otp.id, secret))

    async def _check_throttle(self, uow, admin: AdminUser, now: datetime) -> None:
        """Не больше hourly_limit кодов в час и не чаще раза в cooldown_seconds"""
        issued = await uow.otps.count_created_since(admin.id, now - timedelta(hours=1))
        if issued >= self._hourly_limit:
            logger.warning(f"OTP: превышен часовой лимит для {admin.email}")
            raise OtpThrottledError("OTP throttled (hourly limit). Try again in 1 hour.")

        last_issued = await uow.otps.last_created_at(admin.id)
        if last_issued and (now - last_issued).total_seconds() < self._cooldown_seconds:
            logger.warning(f"OTP: слишком частый запрос кода для {admin.email}")
            raise OtpThrottledError(f"Please wait {self._cooldown_seconds} seconds before requesting another code.")


class VerifyOtpUseCase:
    def __init__(
        self,
        unit_of_work,
        max_attempts: int = 3,
        lock_minutes: int = 60,
        session_days: int = 7
    ):
        self._uow = unit_of_work
        self._max_attempts = max_attempts
        self._lock_minutes = lock_minutes
        self._session_days = session_days

    async def __call__(
        self,
        otp_token: str,
        code: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> VerifiedLogin:
        now = datetime.now(timezone.utc)

        async with self._uow() as uow:
            otp, admin = await _load_live_challenge(uow, otp_token, now)

            code_ok = (
                len(code) == OTP_LENGTH and code.isdigit() and await verify_secret_async(code, otp.code_hash)
            )
            if not code_ok:
                attempts = await uow.otps.increment_attempts(otp.id)
                locked_until = None
                if attempts >= self._max_attempts:
                    locked_until = now + timedelta(minutes=self._lock_minutes)
                await uow.admins.record_failed_otp(admin.id, locked_until)
                await uow.commit()
                if locked_until:
                    logger.warning(f"OTP: {admin.email} заблокирован до {locked_until.isoformat()}")
                    raise OtpLockedError()
                logger.warning(f"OTP: неверный код для {admin.email}, попытка {attempts}")
                raise AuthenticationFailedError("Invalid OTP code")

            # Параллельный verify с тем же кодом сюда уже не пройдет
            if not await uow.otps.mark_consumed(otp.id, now):
                logger.warning(f"OTP: повторное использование кода для {admin.email}")
                raise AuthenticationFailedError("OTP already used")
            await uow.admins.reset_otp_counters(admin.id)

            secret = generate_token_secret()
            session = AdminSession(
                id=str(uuid.uuid4()),
                admin_id=admin.id,
                token_hash=hash_token(secret),
                expires_at=now + timedelta(days=self._session_days),
                ip_address=ip_address,
                user_agent=user_agent,
                created_at=now
            )
            await uow.sessions.create(session)
            await uow.commit()

        logger.info(f"Админ {admin.email} вошел ({admin.role.value})")
        return VerifiedLogin(
            access_token=compose_token(session.id, secret),
            role=admin.role,
            expires_in=int((session.expires_at - now).total_seconds())
        )


class ResendOtpUseCase:
    """Новый код под тем же otp_token; частоту ограничивает транспортный уровень"""

    def __init__(self, unit_of_work, email_sender: EmailSender, otp_expiry_minutes: int = 10):
        self._uow = unit_of_work
        self._mailer = _OtpMailer(email_sender, otp_expiry_minutes)
        self._otp_expiry_minutes = otp_expiry_minutes

    async def __call__(self, otp_token: str) -> None:
        now = datetime.now(timezone.utc)

        async with self._uow() as uow:
            otp, admin = await _load_live_challenge(uow, otp_token, now)

            code = generate_otp_code()
            await uow.otps.replace_code(
                otp.id,
                code_hash=await hash_secret_async(code),
                expires_at=now + timedelta(minutes=self._otp_expiry_minutes)
            )
            await self._mailer.send_code(admin, code)
            await uow.commit()

        logger.info(f"OTP переотправлен для {admin.email}")
