"""Runtime settings, loaded from the environment and an optional .env file."""

from typing import Annotated, List, Optional

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict, SettingsError

from exceptions import ConfigurationError


class Settings(BaseSettings):
    """Bank API settings; environment variables win over the .env file."""

    postgres_url: str
    jwt_secret: str
    jwt_expiry_seconds: int = 60
    listen_host: str = "0.0.0.0"
    listen_port: int = 3000
    auth_enabled: bool = True
    db_pool_min: int = 1
    db_pool_max: int = 10
    log_level: str = "INFO"
    log_format: str = "standard"
    # comma-separated in the environment
    cors_origins: Annotated[List[str], NoDecode] = ["*"]

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    @field_validator("postgres_url", "jwt_secret")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_origins(cls, value):
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @classmethod
    def from_env(cls, env_file: Optional[str] = ".env") -> "Settings":
        try:
            return cls(_env_file=env_file)
        except (ValidationError, SettingsError) as exc:
            raise ConfigurationError(f"invalid settings: {exc}") from exc
