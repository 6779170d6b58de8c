from typing import Optional
from datetime import datetime
from sqlalchemy import select, insert, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from petkoi.domain.admin import AdminUser, AdminOtp, AdminSession, AdminRole
from petkoi.infrastructure.db_schema import admin_users_tbl, admin_otps_tbl, admin_sessions_tbl
from petkoi.application.interfaces import AdminUserRepository, AdminOtpRepository, AdminSessionRepository


class SQLAlchemyAdminUserRepository(AdminUserRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, admin_id: str) -> Optional[AdminUser]:
        result = await self._session.execute(
            select(admin_users_tbl).where(admin_users_tbl.c.id == admin_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def get_by_email(self, email: str) -> Optional[AdminUser]:
        result = await self._session.execute(
            select(admin_users_tbl).where(admin_users_tbl.c.email == email)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def create(self, admin: AdminUser) -> None:
        await self._session.execute(
            insert(admin_users_tbl).values(
                id=admin.id,
                email=admin.email,
                password_hash=admin.password_hash,
                role=admin.role,
                otp_failed_count=admin.otp_failed_count,
                otp_locked_until=admin.otp_locked_until,
                created_at=admin.created_at
            )
        )

    async def record_failed_otp(self, admin_id: str, locked_until: Optional[datetime]) -> None:
        """Неверный код: либо +1 к счетчику, либо блокировка со сбросом счетчика"""
        if locked_until is not None:
            values = {"otp_failed_count": 0, "otp_locked_until": locked_until}
        else:
            values = {"otp_failed_count": admin_users_tbl.c.otp_failed_count + 1}
        await self._session.execute(
            update(admin_users_tbl).where(admin_users_tbl.c.id == admin_id).values(**values)
        )

    async def reset_otp_counters(self, admin_id: str) -> None:
        await self._session.execute(
            update(admin_users_tbl)
            .where(admin_users_tbl.c.id == admin_id)
            .values(otp_failed_count=0, otp_locked_until=None)
        )

    def _to_domain(self, row) -> AdminUser:
        return AdminUser(
            id=row.id,
            email=row.email,
            password_hash=row.password_hash,
            role=AdminRole(row.role),
            otp_failed_count=row.otp_failed_count or 0,
            otp_locked_until=row.otp_locked_until,
            created_at=row.created_at
        )


class SQLAlchemyAdminOtpRepository(AdminOtpRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, otp_id: str) -> Optional[AdminOtp]:
        result = await self._session.execute(
            select(admin_otps_tbl).where(admin_otps_tbl.c.id == otp_id)
        )
        row = result.fetchone()
        if not row:
            return None
        return AdminOtp(
            id=row.id,
            admin_id=row.admin_id,
            code_hash=row.code_hash,
            secret_hash=row.secret_hash,
            attempts=row.attempts or 0,
            expires_at=row.expires_at,
            consumed_at=row.consumed_at,
            created_at=row.created_at
        )

    async def create(self, otp: AdminOtp) -> None:
        await self._session.execute(
            insert(admin_otps_tbl).values(
                id=otp.id,
                admin_id=otp.admin_id,
                code_hash=otp.code_hash,
                secret_hash=otp.secret_hash,
                attempts=otp.attempts,
                expires_at=otp.expires_at,
                created_at=otp.created_at
            )
        )

    async def replace_code(self, otp_id: str, code_hash: str, expires_at: datetime) -> None:
        await self._session.execute(
            update(admin_otps_tbl)
            .where(admin_otps_tbl.c.id == otp_id)
            .values(code_hash=code_hash, expires_at=expires_at)
        )

    async def increment_attempts(self, otp_id: str) -> int:
        """+1 к попыткам одним UPDATE; возвращает значение после инкремента"""
        await self._session.execute(
            update(admin_otps_tbl)
            .where(admin_otps_tbl.c.id == otp_id)
            .values(attempts=admin_otps_tbl.c.attempts + 1)
        )
        result = await self._session.execute(
            select(admin_otps_tbl.c.attempts).where(admin_otps_tbl.c.id == otp_id)
        )
        return result.scalar_one()

    async def mark_consumed(self, otp_id: str, consumed_at: datetime) -> bool:
        """Погасить OTP, если его еще никто не погасил. False: опоздали"""
        result = await self._session.execute(
            update(admin_otps_tbl)
            .where(admin_otps_tbl.c.id == otp_id, admin_otps_tbl.c.consumed_at.is_(None))
            .values(consumed_at=consumed_at)
        )
        return result.rowcount == 1

    async def count_created_since(self, admin_id: str, since: datetime) -> int:
        result = await self._session.execute(
            select(func.count())
            .select_from(admin_otps_tbl)
            .where(admin_otps_tbl.c.admin_id == admin_id, admin_otps_tbl.c.created_at >= since)
        )
        return result.scalar_one()

    async def last_created_at(self, admin_id: str) -> Optional[datetime]:
        result = await self._session.execute(
            select(func.max(admin_otps_tbl.c.created_at)).where(admin_otps_tbl.c.admin_id == admin_id)
        )
        return result.scalar_one_or_none()


class SQLAlchemyAdminSessionRepository(AdminSessionRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, session_id: str) -> Optional[AdminSession]:
        result = await self._session.execute(
            select(admin_sessions_tbl).where(admin_sessions_tbl.c.id == session_id)
        )
        row = result.fetchone()
        if not row:
            return None
        return AdminSession(
            id=row.id,
            admin_id=row.admin_id,
            token_hash=row.token_hash,
            expires_at=row.expires_at,
            revoked_at=row.revoked_at,
            ip_address=row.ip_address,
            user_agent=row.user_agent,
            created_at=row.created_at
        )

    async def create(self, session: AdminSession) -> None:
        await self._session.execute(
            insert(admin_sessions_tbl).values(
                id=session.id,
                admin_id=session.admin_id,
                token_hash=session.token_hash,
                expires_at=session.expires_at,
                ip_address=session.ip_address,
                user_agent=session.user_agent,
                created_at=session.created_at
            )
        )

    async def rotate(self, session_id: str, token_hash: str, expires_at: datetime) -> None:
        await self._session.execute(
            update(admin_sessions_tbl)
            .where(admin_sessions_tbl.c.id == session_id)
            .values(token_hash=token_hash, expires_at=expires_at)
        )

    async def revoke(self, session_id: str, revoked_at: datetime) -> None:
        await self._session.execute(
            update(admin_sessions_tbl)
            .where(admin_sessions_tbl.c.id == session_id)
            .values(revoked_at=revoked_at)
        )
