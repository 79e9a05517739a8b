from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Relationship store (Postgres)
    DATABASE_URL: str = "postgresql://localhost:5432/kinship"

    # Gmail transport
    GMAIL_ACCESS_TOKEN: str | None = None

    # Summarization
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_TIMEOUT_SECONDS: float = 30.0

    # Addresses/numbers that belong to the account owner; never tracked as relationships
    SELF_IDENTIFIERS: list[str] = []

    # =================================================================
    # INGESTION SETTINGS
    # =================================================================
    HISTORY_YEARS_BACK: int = 5
    INGESTION_PAGE_SIZE: int = 50
    INGESTION_WINDOW_DELAY_SECONDS: float = 1.0
    STALE_RUN_TIMEOUT_MINUTES: int = 180

    # Storage tiers (whole months of age)
    FULL_TIER_MONTHS: int = 6
    SUMMARY_TIER_MONTHS: int = 18
    SUMMARY_MIN_CHARS: int = 100

    # =================================================================
    # DORMANCY RANKING DEFAULTS
    # =================================================================
    DORMANT_MIN_DAYS: int = 30
    DORMANT_MIN_TOTAL_SENT: int = 5
    DORMANT_LIMIT: int = 20
    DORMANT_MAX_LIMIT: int = 100
    DORMANT_HEALTH_FLOOR: float = 20.0

    # =================================================================
    # DATABASE POOL SETTINGS
    # =================================================================
    DB_POOL_MIN_SIZE: int = 1
    DB_POOL_MAX_SIZE: int = 4
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def has_gmail_credentials(self) -> bool:
        """Check if a Gmail access token is configured."""
        return bool(self.GMAIL_ACCESS_TOKEN)

    def has_openai(self) -> bool:
        """Check if an OpenAI API key is configured."""
        return bool(self.OPENAI_API_KEY)

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            # The pipeline is single-writer; a couple of connections is plenty locally
            config.update({"max_size": min(self.DB_POOL_MAX_SIZE, 2), "timeout": 15.0})

        return config


settings = Settings()
