from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, List, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import ConfigError
from .models import RGBColor

LOGGER = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 3


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class ColumnsConfig(_FrozenModel):
    label: str = Field("label", description="Header of the column with unique row labels")
    description: str = Field("description", description="Header of the translator notes column")
    meta: str = Field("meta", description="Header of the column with JSON placeholder metadata")
    source: str = Field("en", description="Header of the source-text column")


class SheetsConfig(_FrozenModel):
    credentials_file: Path = Field(
        ..., description="Path to the Google service account JSON credentials"
    )
    spreadsheet_id: str = Field(..., description="ID of the spreadsheet with the strings")
    sheet_name: str = Field(..., description="Tab name holding the localization table")
    sheet_gid: Optional[int] = Field(
        None,
        description="Optional gid of the tab; looked up by name when omitted",
    )

    @field_validator("credentials_file")
    @classmethod
    def _expand_credentials_path(cls, value: Path) -> Path:
        return value.expanduser().resolve()


class ApiConfig(_FrozenModel):
    backend: Literal["http", "llm"] = Field(
        "http",
        description="'http' posts batches to the endpoint, 'llm' translates through chat models",
    )
    endpoint: Optional[str] = Field(None, description="URL of the batch translation endpoint")
    endpoint_env: Optional[str] = Field(
        None, description="Environment variable with the endpoint URL"
    )
    api_key: Optional[str] = Field(None, description="Explicit auth key for the endpoint")
    api_key_env: Optional[str] = Field(
        None, description="Environment variable with the auth key"
    )
    auth_scheme: str = Field(
        "Bearer",
        description="Prefix for the Authorization header; empty sends the raw key",
    )
    timeout_ms: int = Field(360000, gt=0, description="Request timeout in milliseconds")
    max_retries: int = Field(
        2, ge=0, description="Retries after the first failed attempt of a batch"
    )
    retry_base_delay_ms: int = Field(
        1000, ge=0, description="Base delay for exponential backoff in milliseconds"
    )

    def resolve_endpoint(self) -> Optional[str]:
        endpoint = self.endpoint
        if not endpoint and self.endpoint_env:
            endpoint = os.environ.get(self.endpoint_env)
        return (endpoint or "").strip() or None

    def resolve_api_key(self) -> Optional[str]:
        api_key = self.api_key
        if not api_key and self.api_key_env:
            api_key = os.environ.get(self.api_key_env)
        return (api_key or "").strip() or None


class HighlightConfig(_FrozenModel):
    color: Optional[str] = Field(
        None, description="Background for freshly written cells as an 'R,G,B' triple"
    )
    auto_clear_minutes: float = Field(
        0, ge=0, description="Minutes before the highlight is removed; 0 disables"
    )

    @field_validator("color")
    @classmethod
    def _validate_color(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not str(value).strip():
            return None
        return str(RGBColor.parse(value))

    @property
    def rgb(self) -> Optional[RGBColor]:
        if self.color is None:
            return None
        return RGBColor.parse(self.color)


class LLMProviderConfig(_FrozenModel):
    """Settings for a single prioritized LLM provider."""

    name: str | None = Field(
        None,
        description="Human-friendly name for the provider; used for logging",
    )
    model: str | None = Field(
        None,
        description="LLM model identifier; optional when model_env is provided",
    )
    model_env: str | None = Field(
        None,
        description="Environment variable with the model identifier",
    )
    temperature: float = Field(0.0, ge=0.0, le=2.0)
    max_output_tokens: int = Field(2048, gt=0)
    api_key: str | None = Field(None)
    api_key_env: str | None = Field(None)
    base_url: str | None = Field(None)
    base_url_env: str | None = Field(None)
    request_timeout: int = Field(60, gt=0, description="Timeout in seconds")

    @model_validator(mode="after")
    def _ensure_required_fields(self) -> "LLMProviderConfig":
        if not self.model and not self.model_env:
            raise ValueError("LLM provider must define 'model' or 'model_env'")
        if not self.api_key and not self.api_key_env:
            raise ValueError("LLM provider must define 'api_key' or 'api_key_env'")
        return self


class LLMConfig(_FrozenModel):
    max_retries: int = Field(
        3,
        ge=1,
        description="Number of attempts per provider before switching to the next one",
    )
    product_context: str | None = Field(
        None,
        description="One sentence describing the product, injected into the prompt",
    )
    providers: dict[int, LLMProviderConfig] = Field(
        ...,
        description="Mapping of priority -> provider configuration",
    )

    @field_validator("providers")
    @classmethod
    def _validate_providers(
        cls, value: dict[int, LLMProviderConfig]
    ) -> dict[int, LLMProviderConfig]:
        if not value:
            raise ValueError("At least one LLM provider must be configured")

        ordered_items = sorted(value.items(), key=lambda item: item[0])
        priorities = [priority for priority, _ in ordered_items]
        if priorities != list(range(1, len(ordered_items) + 1)):
            raise ValueError(
                "LLM provider priorities must be consecutive integers starting from 1"
            )
        return dict(ordered_items)

    @property
    def provider_sequence(self) -> List[tuple[int, LLMProviderConfig]]:
        return list(self.providers.items())


class AppConfig(_FrozenModel):
    sheets: Optional[SheetsConfig] = None
    columns: ColumnsConfig = Field(default_factory=ColumnsConfig)
    header_row: int = Field(
        1,
        ge=1,
        description="1-based row number that contains the column headers",
    )
    api: ApiConfig = Field(default_factory=ApiConfig)
    llm: Optional[LLMConfig] = None
    batch_size: int = Field(
        DEFAULT_BATCH_SIZE, description="Maximum number of rows sent per API request"
    )
    highlight: HighlightConfig = Field(default_factory=HighlightConfig)
    dry_run: bool = Field(False, description="Synthesize responses instead of calling the API")

    @field_validator("batch_size", mode="before")
    @classmethod
    def _fallback_batch_size(cls, value: Any) -> int:
        try:
            size = int(value)
        except (TypeError, ValueError):
            size = 0
        if isinstance(value, bool) or size <= 0 or str(size) != str(value).strip():
            LOGGER.warning(
                "Invalid batch_size %r; falling back to %s", value, DEFAULT_BATCH_SIZE
            )
            return DEFAULT_BATCH_SIZE
        return size

    @model_validator(mode="after")
    def _validate_backend(self) -> "AppConfig":
        if self.api.backend == "llm" and self.llm is None:
            raise ValueError("api.backend 'llm' requires an 'llm' section")
        return self

    def with_overrides(self, **overrides: Any) -> "AppConfig":
        """Return a re-validated copy with top-level fields replaced."""

        data = self.model_dump()
        data.update({key: value for key, value in overrides.items() if value is not None})
        try:
            return AppConfig.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration: {exc}") from exc


def load_config(path: str | Path) -> AppConfig:
    """Load configuration from a YAML file and return a validated object."""

    config_path = Path(path).expanduser().resolve()
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)

    if data is None:
        raise ConfigError(f"Configuration file is empty: {config_path}")

    try:
        return AppConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
