from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Dict, List, Optional
from pydantic import field_validator

TRUTHY = ("true", "1", "yes", "on")


def parse_bool(value) -> bool:
    """Env flags arrive as strings, sometimes still quoted from .env files"""
    if isinstance(value, str):
        return value.lower().strip('"').strip("'") in TRUTHY
    return bool(value)


class Settings(BaseSettings):
    # Store: PostgreSQL through asyncpg, or a full URL override (sqlite+aiosqlite:// in tests)
    POSTGRES_USER: str = 'billing_user'
    POSTGRES_PASSWORD: str = 'billing_pass'
    POSTGRES_DB: str = 'billing_db'
    POSTGRES_HOST: str = 'postgres'
    POSTGRES_PORT: int = 5432
    DATABASE_URL: Optional[str] = None

    # Celery broker and result backend
    REDIS_HOST: str = 'redis'
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None

    # Invoice listing
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # Bound on reserve-and-verify rounds before NumberingExhausted
    INVOICE_NUMBER_MAX_ATTEMPTS: int = 10

    PAYMENT_LINK_EXPIRY_HOURS: int = 72

    # Jurisdiction code -> regex for tax registration ids that must be strictly validated.
    # India (GSTIN) is always strict; anything listed here is added or overrides it.
    STRICT_TAX_REGISTRATION_PATTERNS: Dict[str, str] = {}

    # Beat intervals, seconds
    OVERDUE_SCAN_INTERVAL: float = 86400.0
    PAYMENT_EXPIRY_SCAN_INTERVAL: float = 3600.0

    # Outgoing mail
    EMAIL_SMTP_SERVER: str = 'smtp.gmail.com'
    EMAIL_SMTP_PORT: int = 587
    EMAIL_USE_TLS: bool = True
    EMAIL_USERNAME: str = ''
    EMAIL_PASSWORD: str = ''
    EMAIL_FROM: str = ''
    EMAIL_FROM_NAME: str = 'Billing'

    # Payment links point here; also the default CORS origin
    FRONTEND_URL: str = 'http://localhost:3000'
    # Extra comma separated origins
    CORS_ORIGINS: str = ''

    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    model_config = SettingsConfigDict(
        extra="allow",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @property
    def async_database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def redis_url(self) -> str:
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    @property
    def cors_origins(self) -> List[str]:
        origins = [self.FRONTEND_URL.rstrip("/")]
        for origin in self.CORS_ORIGINS.split(","):
            origin = origin.strip().rstrip("/")
            if origin and origin not in origins:
                origins.append(origin)
        return origins

    @field_validator("DEBUG", "EMAIL_USE_TLS", mode="before")
    @classmethod
    def parse_flags(cls, v):
        return parse_bool(v)

    @field_validator("STRICT_TAX_REGISTRATION_PATTERNS", mode="after")
    @classmethod
    def normalize_jurisdiction_codes(cls, v):
        return {code.strip().upper(): pattern for code, pattern in v.items()}


settings = Settings()
