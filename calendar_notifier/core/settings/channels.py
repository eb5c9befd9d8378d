"""Delivery channel transport settings."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .yaml_sources import create_yaml_source

PushProvider = Literal["console", "http"]
EmailProvider = Literal["console", "smtp"]


class ChannelSettings(BaseSettings):
    """Push, email and realtime transport configuration.

    Environment variables use CHANNEL_ prefix.
    Example: CHANNEL_EMAIL_PROVIDER=smtp, CHANNEL_SMTP_HOST=mail.internal
    """

    # Push
    push_provider: PushProvider = Field(
        default="console", description="Push transport: console (log only) or http gateway"
    )
    push_gateway_url: str | None = Field(
        default=None, description="HTTP push gateway endpoint (required for provider=http)"
    )
    push_gateway_token: SecretStr | None = Field(
        default=None, description="Bearer token sent to the push gateway"
    )

    # Email
    email_provider: EmailProvider = Field(
        default="console", description="Email transport: console (log only) or smtp"
    )
    smtp_host: str = Field(default="localhost", description="SMTP server host")
    smtp_port: int = Field(default=587, ge=1, le=65535, description="SMTP server port")
    smtp_username: str | None = Field(default=None, description="SMTP username")
    smtp_password: SecretStr | None = Field(default=None, description="SMTP password")
    smtp_use_tls: bool = Field(default=False, description="Use implicit TLS (port 465)")
    smtp_start_tls: bool = Field(default=True, description="Upgrade the connection with STARTTLS")
    email_from: str = Field(
        default="notifications@calendar.local", description="From address of reminder emails"
    )

    # Realtime
    realtime_max_connections: int = Field(
        default=10_000, ge=1, description="Maximum concurrent websocket connections"
    )

    model_config = SettingsConfigDict(
        env_prefix="CHANNEL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_push_gateway(self) -> ChannelSettings:
        if self.push_provider == "http" and not self.push_gateway_url:
            raise ValueError("push_gateway_url is required when push_provider is 'http'")
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        return (
            init_settings,
            create_yaml_source(settings_cls, "channels", "CHANNEL_CONFIG_DIR"),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )
