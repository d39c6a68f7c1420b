from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Environment
    environment: str = "development"  # "development" or "production"
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./data/padel_alert.db"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    debug: bool = False

    # Scheduler
    check_interval: int = 300  # seconds between two evaluations of one rule
    scheduler_workers: int = 10
    scheduler_queue_size: int = 100
    scheduler_batch_size: int = 100

    # Playtomic catalog
    playtomic_base_url: str = "https://api.playtomic.io/v1"
    request_timeout: float = 10.0  # seconds, per external call

    # Seen activities are kept this many days after the activity started
    seen_retention_days: int = 7

    # Notifications
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    discord_webhook_url: str = ""
    notification_enabled: bool = True

    # CORS (comma-separated origins, empty means localhost only)
    cors_origins: str = ""

    # Admin
    admin_api_key: str = ""

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    return Settings()
