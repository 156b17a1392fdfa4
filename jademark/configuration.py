"""pydantic-settings backed configuration loader for JadeMark."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, List, Literal, Sequence, Tuple, Type

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from .errors import ProviderConfigurationError
from .providers import normalise_base_url, normalise_provider_name
from .structures import TransformSettings

APP_NAME = "jademark"
ENV_PREFIX = "JADEMARK_"
KNOWN_PROVIDERS = ("google-free", "google-sdk", "custom", "openai", "echo")


def discover_config_files() -> List[Path]:
    """YAML layers in increasing priority: home directory, then working directory."""

    return [
        Path.home() / f".{APP_NAME}" / "config.yaml",
        Path.cwd() / f"{APP_NAME}.yaml",
    ]


class JadeMarkConfig(BaseSettings):
    """Schema describing all supported configuration options."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    PROVIDER: Literal["google-free", "google-sdk", "custom", "openai", "echo"] = Field(
        default="google-free",
        description="Text-transformation backend selection.",
    )
    BASE_URL: str = Field(default="", description="OpenAI-compatible endpoint for 'custom'.")
    API_KEY: SecretStr = Field(default=SecretStr(""))
    MODEL: str = Field(default="")
    TARGET_LANGUAGE: str = Field(default="Simplified Chinese")
    TARGET_LANGUAGE_CODE: str = Field(default="zh-CN")
    CONCURRENCY: int = Field(default=3, ge=1)
    BATCH_SIZE: int = Field(default=10, ge=1)
    SIZE_THRESHOLD: int = Field(default=1000, ge=1)
    STREAM_INTERVAL: float = Field(default=0.1, ge=0)
    PROVIDER_DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="WARNING")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        yaml_settings = YamlConfigSettingsSource(
            settings_cls, yaml_file=discover_config_files()
        )
        return init_settings, env_settings, dotenv_settings, yaml_settings

    @field_validator("PROVIDER", mode="before")
    @classmethod
    def _normalise_provider(cls, value: Any) -> Any:
        if isinstance(value, str):
            return normalise_provider_name(value)
        return value

    @field_validator("BASE_URL", mode="before")
    @classmethod
    def _normalise_base_url(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip():
            return normalise_base_url(value)
        return value

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _normalise_log_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value


def _validate_provider_settings(settings: JadeMarkConfig) -> None:
    provider = settings.PROVIDER
    api_key = settings.API_KEY.get_secret_value()
    errors: List[str] = []

    if provider == "google-sdk" and not api_key:
        errors.append(f"{ENV_PREFIX}API_KEY is required when PROVIDER is 'google-sdk'.")
    elif provider == "custom" and not settings.BASE_URL:
        errors.append(f"{ENV_PREFIX}BASE_URL is required when PROVIDER is 'custom'.")
    elif provider == "openai" and not api_key:
        errors.append(f"{ENV_PREFIX}API_KEY is required when PROVIDER is 'openai'.")

    if errors:
        bullet_list = "\n".join(f"- {message}" for message in errors)
        raise ProviderConfigurationError(
            "Configuration validation errors detected:\n" + bullet_list
        )


def _format_validation_errors(entries: Sequence[dict]) -> str:
    details: List[str] = []
    for entry in entries:
        location = ".".join(str(part) for part in entry.get("loc") or () if part not in {None, ""})
        message = str(entry.get("msg") or "Invalid value")
        prefix = f"{location}: " if location else ""
        details.append(f"- {prefix}{message}")
    return "Configuration validation errors detected:\n" + "\n".join(details)


@lru_cache(maxsize=1)
def _load_settings() -> JadeMarkConfig:
    """Load configuration layers once and cache the validated model."""

    try:
        settings = JadeMarkConfig()
    except ValidationError as exc:
        raise ProviderConfigurationError(_format_validation_errors(exc.errors())) from exc
    _validate_provider_settings(settings)
    return settings


def get_settings() -> JadeMarkConfig:
    """Return the validated configuration model for typed access."""

    return _load_settings()


def settings_to_transform(config: JadeMarkConfig, **overrides: Any) -> TransformSettings:
    """Project the configuration onto the settings a translation pass runs with.

    Keyword overrides (typically command line options) win over configured
    values; ``None`` overrides are ignored.
    """

    values = {
        "provider": config.PROVIDER,
        "base_url": config.BASE_URL,
        "api_key": config.API_KEY.get_secret_value(),
        "model": config.MODEL,
        "target_language": config.TARGET_LANGUAGE,
        "target_language_code": config.TARGET_LANGUAGE_CODE,
        "concurrency": config.CONCURRENCY,
        "batch_size": config.BATCH_SIZE,
        "size_threshold": config.SIZE_THRESHOLD,
        "stream_interval": config.STREAM_INTERVAL,
    }
    for key, value in overrides.items():
        if key not in values:
            raise TypeError(f"Unknown setting override '{key}'.")
        if value is not None:
            values[key] = value
    values["provider"] = normalise_provider_name(values["provider"])
    if values["provider"] not in KNOWN_PROVIDERS:
        raise ProviderConfigurationError(f"Unknown translation provider '{values['provider']}'.")
    if values["base_url"]:
        values["base_url"] = normalise_base_url(values["base_url"])
    try:
        return TransformSettings(**values)
    except ValueError as exc:
        raise ProviderConfigurationError(
            f"Configuration validation errors detected:\n- {exc}"
        ) from exc
