from datetime import datetime
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel

from petkoi.domain.exceptions import AccessDeniedError


class AdminRole(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ORDER_TRACKER = "ORDER_TRACKER"
    LOST_PET = "LOST_PET"
    ADOPTION = "ADOPTION"
    HEALTH = "HEALTH"


class AdminSection(str, Enum):
    SYSTEM = "SYSTEM"
    ORDER_TRACKING = "ORDER_TRACKING"
    LOST_FOUND = "LOST_FOUND"
    ADOPTION = "ADOPTION"
    HEALTH = "HEALTH"


# SUPER_ADMIN видит все разделы, остальные роли ровно один
ROLE_SECTIONS = {
    AdminRole.SUPER_ADMIN: frozenset(AdminSection),
    AdminRole.ORDER_TRACKER: frozenset({AdminSection.ORDER_TRACKING}),
    AdminRole.LOST_PET: frozenset({AdminSection.LOST_FOUND}),
    AdminRole.ADOPTION: frozenset({AdminSection.ADOPTION}),
    AdminRole.HEALTH: frozenset({AdminSection.HEALTH}),
}


def sections_for_role(role: AdminRole) -> List[AdminSection]:
    """Разделы админки в порядке отображения"""
    allowed = ROLE_SECTIONS.get(role, frozenset())
    return [section for section in AdminSection if section in allowed]


def can_access(role: AdminRole, section: AdminSection) -> bool:
    return section in ROLE_SECTIONS.get(role, frozenset())


def ensure_access(role: AdminRole, section: AdminSection) -> None:
    if not can_access(role, section):
        raise AccessDeniedError(f"Access denied to {section.value}")


class AdminUser(BaseModel):
    id: str
    email: str
    password_hash: str
    role: AdminRole
    otp_failed_count: int = 0
    otp_locked_until: Optional[datetime] = None
    created_at: datetime

    def is_locked(self, now: datetime) -> bool:
        return self.otp_locked_until is not None and self.otp_locked_until > now


class AdminOtp(BaseModel):
    """Серверная сторона otp_token"""
    id: str
    admin_id: str
    code_hash: str
    secret_hash: str
    attempts: int = 0
    expires_at: datetime
    consumed_at: Optional[datetime] = None
    created_at: datetime

    def is_usable(self, now: datetime) -> bool:
        return self.consumed_at is None and self.expires_at >= now


class AdminSession(BaseModel):
    """Серверная сторона access_token"""
    id: str
    admin_id: str
    token_hash: str
    expires_at: datetime
    revoked_at: Optional[datetime] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime

    def is_active(self, now: datetime) -> bool:
        return self.revoked_at is None and self.expires_at >= now


class AdminIdentity(BaseModel):
    """Кто стоит за access_token"""
    admin_id: str
    email: str
    role: AdminRole
    session_id: str

    @property
    def sections(self) -> List[AdminSection]:
        return sections_for_role(self.role)
