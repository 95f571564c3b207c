from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):

    # App
    APP_NAME: str = "PriceScan API"
    APP_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"
    SESSION_SECRET: str = "change-me"
    SEED_SAMPLE_DATA: bool = False
    PRODUCT_FEED_URL: str = ""

    # Database
    SYNC_DATABASE_URL: str = "sqlite://"

    # Outbound lookups
    HTTP_TIMEOUT: float = 15.0
    USER_AGENT: str = "Smart Shopping Assistant"

    # Barcode databases
    BARCODE_LOOKUP_API_KEY: str = ""
    BARCODE_SPIDER_API_KEY: str = ""
    WALMART_API_KEY: str = ""
    TARGET_REDSKY_KEY: str = ""

    # Merchant pricing
    SHOPPING_API_KEY: str = ""
    GOOGLE_API_KEY: str = ""
    GOOGLE_SHOPPING_CX: str = ""
    KEEPA_API_KEY: str = ""
    PRICEAPI_KEY: str = ""

    # Chat assistant
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o-mini"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
