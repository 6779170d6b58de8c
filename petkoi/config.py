import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    # Database
    POSTGRES_CONNECTION_STRING: str = os.getenv("POSTGRES_CONNECTION_STRING", "")
    SQLITE_FALLBACK_URL: str = os.getenv("SQLITE_FALLBACK_URL", "sqlite+aiosqlite:///./petkoi.db")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Email (Resend)
    RESEND_API_KEY: str = os.getenv("RESEND_API_KEY", "")
    RESEND_FROM: str = os.getenv("RESEND_FROM", "Pet Koi <onboarding@resend.dev>")
    RESEND_BASE_URL: str = os.getenv("RESEND_BASE_URL", "https://api.resend.com")

    # Admin auth
    OTP_EXPIRY_MINUTES: int = int(os.getenv("OTP_EXPIRY_MINUTES", "10"))
    OTP_MAX_ATTEMPTS: int = int(os.getenv("OTP_MAX_ATTEMPTS", "3"))
    OTP_LOCK_MINUTES: int = int(os.getenv("OTP_LOCK_MINUTES", "60"))
    OTP_HOURLY_LIMIT: int = int(os.getenv("OTP_HOURLY_LIMIT", "3"))
    OTP_COOLDOWN_SECONDS: int = int(os.getenv("OTP_COOLDOWN_SECONDS", "60"))
    ADMIN_SESSION_DAYS: int = int(os.getenv("ADMIN_SESSION_DAYS", "7"))
    BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "10"))

    # Orders
    ORDER_EXPIRY_MINUTES: int = int(os.getenv("ORDER_EXPIRY_MINUTES", "30"))
    SHIPPING_FEE_BDT: int = int(os.getenv("SHIPPING_FEE_BDT", "60"))
    FREE_SHIPPING_THRESHOLD_BDT: int = int(os.getenv("FREE_SHIPPING_THRESHOLD_BDT", "0"))
    EXPIRY_SWEEP_SECONDS: int = int(os.getenv("EXPIRY_SWEEP_SECONDS", "60"))

    @property
    def DATABASE_URL(self) -> str:
        """Асинхронный URL для приложения"""
        explicit = os.getenv("DATABASE_URL")
        if explicit:
            return explicit
        if not self.POSTGRES_CONNECTION_STRING:
            return self.SQLITE_FALLBACK_URL
        return (
            self.POSTGRES_CONNECTION_STRING
            .replace("postgresql://", "postgres://")
            .replace("postgres://", "postgresql+asyncpg://")
        )


settings = Settings()
