import os
from pathlib import Path

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_database_url() -> str:
    """Get database URL, using absolute path for SQLite to avoid path resolution issues."""
    db_url = os.getenv("DATABASE_URL", "")
    if db_url:
        return db_url

    db_path = Path(__file__).parent.parent.parent / "fitcoach.db"
    return f"sqlite:///{db_path.resolve()}"


class Settings(BaseSettings):
    ai_endpoint: str = Field(default="", validation_alias="AI_ENDPOINT")
    ai_api_key: str = Field(default="", validation_alias="AI_API_KEY")
    ai_model: str = Field(default="gpt-4o-mini", validation_alias="AI_MODEL")
    ai_max_tokens: int = Field(default=1500, validation_alias="AI_MAX_TOKENS")
    ai_temperature: float = Field(default=0.3, validation_alias="AI_TEMPERATURE")
    ai_timeout_seconds: float = Field(
        default=60.0,
        validation_alias="AI_TIMEOUT_SECONDS",
        description="Transport timeout for the completion endpoint",
    )
    response_cache_ttl_seconds: float = Field(default=120.0, validation_alias="RESPONSE_CACHE_TTL_SECONDS")
    daily_budget_usd: float = Field(default=5.0, validation_alias="DAILY_BUDGET_USD")
    enforce_daily_budget: bool = Field(
        default=False,
        validation_alias="ENFORCE_DAILY_BUDGET",
        description="Refuse further backend calls once the daily budget is exceeded (default: advisory only)",
    )
    nutrition_rollback_enabled: bool = Field(
        default=True,
        validation_alias="NUTRITION_ROLLBACK_ENABLED",
        description="Restore nutrition goals when the weekly plan write fails",
    )
    salvage_enabled: bool = Field(
        default=True,
        validation_alias="SALVAGE_ENABLED",
        description="Recover partial messages from truncated function-call arguments",
    )
    database_url: str = Field(
        default_factory=get_database_url,
        validation_alias="DATABASE_URL",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(valid_levels)}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @property
    def ai_configured(self) -> bool:
        return bool(self.ai_endpoint and self.ai_api_key)

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )


settings = Settings()
