"""Application configuration via pydantic-settings."""
from enum import Enum
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class ShipmentPolicy(str, Enum):
    """Which ledger a shipment drains."""

    ASSEMBLY_STOCK = "assembly_stock"
    BUILD_TO_ORDER = "build_to_order"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = "sqlite:///./data/stockmate.db"
    SQL_ECHO: bool = False

    # JWT
    JWT_SECRET_KEY: str = "stockmate-dev-secret"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 12

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    # Production / shipment
    SHIPMENT_POLICY: ShipmentPolicy = ShipmentPolicy.ASSEMBLY_STOCK

    LOG_LEVEL: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
