"""
Configuration

Settings for a tagging run, loaded from an optional YAML file and the
environment.

Example config.yaml:

    provider:
      provider: google
      model: gemini-2.5-flash
      temperature: 0.1
    run:
      inter_row_delay: 0.5
      max_retries: 3
    target_column: Customer Comment

Environment overrides (applied after the file):
    DATA_TAGGER_PROVIDER, DATA_TAGGER_MODEL, DATA_TAGGER_API_KEY

When no key is configured, the provider's conventional variable is used
(GEMINI_API_KEY / GOOGLE_API_KEY, OPENAI_API_KEY, OPENROUTER_API_KEY).

Usage:
    from data_tagger.config import load_config

    config = load_config("config.yaml", overrides={"provider": {"model": "gemini-2.5-pro"}})
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator

from .errors import ConfigurationError

# =============================================================================
# Provider Defaults
# =============================================================================

SUPPORTED_PROVIDERS = ("google", "openai", "openrouter")

DEFAULT_MODELS: Dict[str, str] = {
    "google": "gemini-2.5-flash",
    "openai": "gpt-4o-mini",
    "openrouter": "google/gemini-2.5-flash",
}

PROVIDER_KEY_ENV: Dict[str, tuple] = {
    "google": ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    "openai": ("OPENAI_API_KEY",),
    "openrouter": ("OPENROUTER_API_KEY",),
}


# =============================================================================
# Settings Models
# =============================================================================


class ProviderSettings(BaseModel):
    """Which backend to call and how to authenticate."""

    provider: str = Field(default="google", description="Provider id: google, openai or openrouter")
    model: str = Field(default="", description="Model identifier understood by the provider")
    api_key: SecretStr = Field(
        default=SecretStr(""), description="Provider API key (never logged)"
    )
    temperature: Optional[float] = Field(default=None, description="Sampling temperature")
    max_output_tokens: Optional[int] = Field(
        default=None, description="Upper bound on completion length"
    )
    referer: Optional[str] = Field(
        default=None, description="HTTP-Referer attribution header (OpenRouter only)"
    )
    app_title: str = Field(default="Data Tagger", description="X-Title header (OpenRouter only)")

    @field_validator("provider")
    @classmethod
    def _normalize_provider(cls, value: str) -> str:
        return (value or "").strip().lower()

    def require_complete(self) -> None:
        """Raise ConfigurationError unless provider, model and key are all set."""
        if self.provider not in SUPPORTED_PROVIDERS:
            raise ConfigurationError(
                f"Unknown provider '{self.provider}'. "
                f"Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
            )
        if not self.model.strip():
            raise ConfigurationError("A model identifier is required")
        if not self.api_key.get_secret_value().strip():
            raise ConfigurationError(f"An API key is required for provider '{self.provider}'")


class RunSettings(BaseModel):
    """Pacing and retry policy for the row loop."""

    inter_row_delay: float = Field(
        default=0.5, ge=0, description="Seconds to wait after each row that hit the network"
    )
    max_retries: int = Field(default=3, ge=0, description="Retries for rate-limited calls")
    backoff_base: float = Field(
        default=1.0, ge=0, description="First backoff delay in seconds; doubles per retry"
    )
    poll_interval: float = Field(
        default=0.1, gt=0, description="Seconds between flag checks while paused or sleeping"
    )
    request_timeout: float = Field(
        default=60.0, gt=0, description="Per-request read timeout in seconds"
    )


class TaggerConfig(BaseModel):
    """Complete configuration for one tagging run."""

    provider: ProviderSettings = Field(default_factory=ProviderSettings)
    run: RunSettings = Field(default_factory=RunSettings)
    target_column: Optional[str] = Field(default=None, description="Column holding the text")


# =============================================================================
# Loading
# =============================================================================


def _deep_merge(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in updates.items():
        if isinstance(value, dict):
            current = merged.get(key)
            merged[key] = _deep_merge(current if isinstance(current, dict) else {}, value)
        elif value is not None:
            merged[key] = value
    return merged


def _env_overrides() -> Dict[str, Any]:
    provider: Dict[str, Any] = {}
    if os.environ.get("DATA_TAGGER_PROVIDER"):
        provider["provider"] = os.environ["DATA_TAGGER_PROVIDER"]
    if os.environ.get("DATA_TAGGER_MODEL"):
        provider["model"] = os.environ["DATA_TAGGER_MODEL"]
    if os.environ.get("DATA_TAGGER_API_KEY"):
        provider["api_key"] = os.environ["DATA_TAGGER_API_KEY"]
    return {"provider": provider} if provider else {}


def api_key_from_env(provider: str) -> str:
    """Return the first non-empty conventional API key variable for a provider."""
    for name in PROVIDER_KEY_ENV.get(provider, ()):
        value = os.environ.get(name)
        if value:
            return value
    return ""


def load_config(
    path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> TaggerConfig:
    """
    Load configuration from YAML, the environment, and explicit overrides.

    Precedence (lowest to highest): file, DATA_TAGGER_* variables, overrides.
    Missing models fall back to DEFAULT_MODELS; missing keys fall back to the
    provider's conventional environment variable.

    Args:
        path: Optional YAML config file
        overrides: Nested dict merged last (None values are ignored)

    Returns:
        TaggerConfig instance

    Raises:
        ConfigurationError: If the file is unreadable or values are invalid
    """
    data: Dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")
        try:
            data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {config_path} must contain a mapping")

    data = _deep_merge(data, _env_overrides())
    if overrides:
        data = _deep_merge(data, overrides)

    try:
        config = TaggerConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    settings = config.provider
    if not settings.model:
        settings.model = DEFAULT_MODELS.get(settings.provider, "")
    if not settings.api_key.get_secret_value():
        settings.api_key = SecretStr(api_key_from_env(settings.provider))

    return config
