import asyncio
import hashlib
import hmac
import secrets
from typing import Optional, Tuple

import bcrypt

from petkoi.config import settings

OTP_LENGTH = 6


def hash_secret(value: str, rounds: Optional[int] = None) -> str:
    """bcrypt-хэш пароля или OTP-кода"""
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(value.encode("utf-8"), salt).decode("utf-8")


def verify_secret(value: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(value.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# bcrypt держит CPU, в обработчиках зовем его из пула потоков
async def hash_secret_async(value: str) -> str:
    return await asyncio.to_thread(hash_secret, value)


async def verify_secret_async(value: str, hashed: str) -> bool:
    return await asyncio.to_thread(verify_secret, value, hashed)


def hash_token(secret: str) -> str:
    """sha256 для случайных 256-битных секретов otp_token и access_token"""
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


def verify_token(secret: str, hashed: str) -> bool:
    return hmac.compare_digest(hash_token(secret), hashed)


def generate_otp_code() -> str:
    return str(secrets.randbelow(900000) + 100000)


def generate_token_secret() -> str:
    return secrets.token_hex(32)


def compose_token(record_id: str, secret: str) -> str:
    return f"{record_id}.{secret}"


def split_token(token: Optional[str]) -> Optional[Tuple[str, str]]:
    """'<id>.<secret>' → (id, secret); None для мусора"""
    if not token or "." not in token:
        return None
    record_id, secret = token.split(".", 1)
    if not record_id or not secret:
        return None
    return record_id, secret
