from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "TEATRADE"
    DATABASE_URL: str = "sqlite+pysqlite:///./teatrade.db"
    AUTH_SECRET_KEY: str = "change-me"
    AUTH_ALGORITHM: str = "HS256"
    AUTH_AUDIENCE: str | None = None
    AUTH_ISSUER: str | None = None
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    TRANSACTION_MAX_ATTEMPTS: int = 3
    TRANSACTION_BACKOFF_MS: int = 100
    LOW_STOCK_WARNING_KG: Decimal = Decimal("100")
    IMPORT_BATCH_SIZE: int = 100
    IMPORT_MAX_CONCURRENT_BATCHES: int = 2
    IMPORT_MAX_ROWS: int = 10000
    LIST_MAX_PAGE_SIZE: int = 100
    HISTORY_MAX_PAGE_SIZE: int = 200
    OPS_ENABLE_INTEGRITY_SCAN: bool = True
    METRICS_ENABLED: bool = True


settings = Settings()
