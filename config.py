"""
Settings for the Nawartu API, read from the environment or a .env file.
"""
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent


class EmailSettings(BaseSettings):
    """EmailJS credentials, handed to the notifier explicitly."""
    service_id: Optional[str] = None
    template_id: Optional[str] = None
    user_id: Optional[str] = None
    api_url: str = "https://api.emailjs.com/api/v1.0/email/send"
    timeout: float = 10.0

    model_config = SettingsConfigDict(
        env_prefix="EMAILJS_",
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def configured(self) -> bool:
        return bool(self.service_id and self.template_id and self.user_id)


class Settings(BaseSettings):
    database_url: Optional[str] = None
    database_name: Optional[str] = None

    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_expire_days: int = 7

    base_url: Optional[str] = None
    upload_dir: str = "uploads"
    max_upload_bytes: int = 50 * 1024 * 1024
    max_upload_files: int = 10

    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"
    port: int = 8000

    email: EmailSettings = Field(default_factory=EmailSettings)

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
