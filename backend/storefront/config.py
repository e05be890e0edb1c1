from decimal import Decimal
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./dev.db"
    APP_HOST: str = "127.0.0.1"
    APP_PORT: int = 8000
    FRONTEND_ORIGINS: List[str] = ["http://localhost:3000"]
    CURRENCY: str = "SAR"
    # applied by an external tax collaborator, never by checkout itself
    TAX_RATE: Decimal = Decimal("0")
    SQLITE_BUSY_TIMEOUT: int = 30
    LOG_LEVEL: str = "INFO"
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()
