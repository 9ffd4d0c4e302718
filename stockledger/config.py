from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "Stock Ledger"
    DATABASE_URL: str = "sqlite:///./stockledger.db"

    # Storage lock wait; stock updates sit on the checkout hot path
    DB_TIMEOUT_SECONDS: float = 1.0

    # Optimistic concurrency: total attempts per stock change before giving up
    LEDGER_MAX_ATTEMPTS: int = 5

    DEFAULT_LOW_STOCK_THRESHOLD: int = 10

    # Caller identity (JWT)
    SECRET_KEY: str = "change-me"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 72

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    # Overrides LOG_LEVEL for the ledger's per-change audit lines; empty means inherit
    LEDGER_LOG_LEVEL: str = ""

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
