from functools import lru_cache
from typing import Annotated, Literal, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="ignore",
        validate_by_name=True,
        populate_by_name=True,
    )
    environment: Literal["development", "production", "test"] = Field(
        default="development",
        validation_alias=AliasChoices("ENVIRONMENT", "APP_ENV"),
    )
    database_url: str = ""
    app_base_url: str = Field(
        default="http://localhost:3000",
        validation_alias=AliasChoices("APP_BASE_URL", "PUBLIC_APP_URL"),
    )
    default_timezone: str = "UTC"

    docs_enabled: bool = True
    openapi_enabled: bool = True
    expose_error_details: bool = False
    security_headers_enabled: bool = True

    email_server_host: str = ""
    email_server_port: Optional[int] = None
    email_server_user: str = ""
    email_server_password: str = ""
    email_from: str = "noreply@biabook.example.com"
    email_use_tls: bool = True

    whatsapp_api_url: str = ""
    whatsapp_phone_number_id: str = ""
    whatsapp_access_token: str = ""
    # Kill switch: forces WhatsApp off even when the API credentials are present.
    whatsapp_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("WHATSAPP_ENABLED", "ENABLE_WHATSAPP"),
    )
    whatsapp_timeout_seconds: float = 10.0
    whatsapp_language_code: str = "en_US"
    whatsapp_currency_code: str = "USD"

    enable_recurring_jobs: bool = True
    notification_processor_interval_seconds: Optional[int] = None
    notification_batch_size: int = Field(default=20, ge=1, le=200)
    notification_cleanup_interval_hours: int = Field(default=24, ge=1)
    notification_retention_days: int = Field(default=15, ge=1, le=365)

    cron_secret: str = ""

    pii_redaction_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("PII_REDACTION_ENABLED"),
    )

    cors_allow_origins: Annotated[list[str], NoDecode] = Field(default_factory=list)

    @field_validator("email_server_port", "notification_processor_interval_seconds", mode="before")
    @classmethod
    def _empty_as_none(cls, value):
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _split_csv(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            if value.strip() == "":
                return []
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @property
    def email_configured(self) -> bool:
        return bool(
            self.email_server_host
            and self.email_server_port
            and self.email_server_user
            and self.email_server_password
        )

    @property
    def whatsapp_configured(self) -> bool:
        return bool(self.whatsapp_api_url and self.whatsapp_phone_number_id and self.whatsapp_access_token)

    @property
    def processor_interval_seconds(self) -> int:
        if self.notification_processor_interval_seconds:
            return int(self.notification_processor_interval_seconds)
        # Production drains every minute; development every two.
        return 60 if self.environment == "production" else 120

    @property
    def background_jobs_autostart(self) -> bool:
        return self.enable_recurring_jobs and self.environment in {"production", "development"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
