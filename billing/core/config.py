from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from decimal import Decimal
from pydantic import field_validator

class Settings(BaseSettings):
    # Database settings
    POSTGRES_USER: str = 'billing_user'
    POSTGRES_PASSWORD: str = 'billing_pass'
    POSTGRES_DB: str = 'billing_db'
    POSTGRES_HOST: str = 'postgres'
    POSTGRES_PORT: int = 5432
    DATABASE_URL: Optional[str] = None  # Override completo (ej. sqlite+aiosqlite para pruebas)

    # Redis settings (broker de Celery)
    REDIS_HOST: str = 'redis'
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None

    # JWT settings
    APP_SECRET_STRING: str = 'your-super-secret-key-here-change-in-production-2024'
    ALGORITHM: str = 'HS256'
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # Facturación
    DEFAULT_CURRENCY: str = 'USD'
    DEFAULT_TAX_RATE: Decimal = Decimal('0.16')  # IVA

    # Numeración de documentos
    DEFAULT_SEQUENCE_PADDING: int = 5
    GENERIC_DOCUMENT_PREFIX: str = 'DOC'

    # Alertas de inventario
    LOW_STOCK_THRESHOLD: int = 5
    LOW_STOCK_WARNING_THRESHOLD: int = 3
    LOW_STOCK_SWEEP_INTERVAL_SECONDS: float = 3600.0
    LOW_STOCK_NOTIFIER: str = "celery"  # celery | inline | disabled

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
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
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    model_config = SettingsConfigDict(
        extra="allow",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @field_validator("DEBUG", mode="before")
    @classmethod
    def parse_debug(cls, v):
        if isinstance(v, str):
            return v.lower().strip('"').strip("'") in ("true", "1", "yes", "on")
        return bool(v)

    @field_validator("LOW_STOCK_NOTIFIER")
    @classmethod
    def validate_notifier(cls, v):
        v = v.lower().strip()
        if v not in ("celery", "inline", "disabled"):
            raise ValueError("LOW_STOCK_NOTIFIER debe ser celery, inline o disabled")
        return v

    @field_validator("LOW_STOCK_WARNING_THRESHOLD")
    @classmethod
    def validate_warning_threshold(cls, v, info):
        threshold = info.data.get("LOW_STOCK_THRESHOLD")
        if threshold is not None and v > threshold:
            raise ValueError("LOW_STOCK_WARNING_THRESHOLD no puede ser mayor que LOW_STOCK_THRESHOLD")
        return v

settings = Settings()
