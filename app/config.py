from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_MESSAGE_TEMPLATE = (
    "Dear {name}, thank you for registering for RBG Membership. "
    "Our team will contact you shortly."
)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Built once at startup and passed to create_app().
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
    )

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./membership.db"

    # Logging Configuration
    LOG_LEVEL: str = "INFO"

    # SMS provider - empty values are tolerated, see missing_sms_settings()
    SMS_PROVIDER: str = "routesms"
    SMS_API_URL: str = ""
    SMS_HOST: str = ""
    SMS_PORT: str = ""
    SMS_USERNAME: str = ""
    SMS_PASSWORD: str = ""
    SMS_SENDER: str = ""
    SMS_TEMPLATE_ID: str = ""
    SMS_ENTITY_ID: str = ""
    SMS_MESSAGE_TEMPLATE: str = DEFAULT_MESSAGE_TEMPLATE
    SMS_TIMEOUT_SECONDS: float = 10.0

    def missing_sms_settings(self) -> list[str]:
        """Names of SMS settings that are unset."""
        missing = []
        if not (self.SMS_API_URL or self.SMS_HOST):
            missing.append("SMS_API_URL/SMS_HOST")
        for name in ("SMS_USERNAME", "SMS_PASSWORD", "SMS_SENDER", "SMS_TEMPLATE_ID"):
            if not getattr(self, name):
                missing.append(name)
        if self.SMS_PROVIDER.strip().lower() == "routesms" and not self.SMS_ENTITY_ID:
            missing.append("SMS_ENTITY_ID")
        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reading .env file more than once.
    """
    return Settings()
