from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATA_DIR = ".channel-pulse"
_DATA_DIR_RELATIVE_DEFAULTS: tuple[tuple[str, Path], ...] = (("log_dir", Path("logs")),)
_PATH_FIELDS: tuple[str, ...] = (
    "data_dir",
    *(field_name for field_name, _ in _DATA_DIR_RELATIVE_DEFAULTS),
)
_BOOLEAN_COERCION_FIELDS: tuple[str, ...] = (
    "telemetry_enabled",
    "transcript_enabled",
    "channel_rate_limit_enabled",
)


def _resolve_path(value: str | Path) -> Path:
    return Path(value).expanduser().resolve()


def _parse_bool_with_default(value: Any, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value == 1:
            return True
        if value == 0:
            return False
        return default
    if not isinstance(value, str):
        return default

    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


class AppSettings(BaseSettings):
    """
    Runtime configuration, read from `CHANNEL_PULSE_*` environment variables
    (or a local `.env` file).
    """

    model_config = SettingsConfigDict(
        env_prefix="CHANNEL_PULSE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Paths.
    data_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR),
        description="Root runtime directory for local state and logs.",
    )

    # Upstream access.
    youtube_base_url: str = Field(
        default="https://www.youtube.com",
        description="Base URL for channel pages, watch pages and the internal JSON API.",
    )
    innertube_client_name: str = Field(
        default="WEB",
        description="Client name sent in the internal API request context.",
    )
    innertube_client_version: str = Field(
        default="2.20241201.00.00",
        description="Client version sent in the internal API request context.",
    )
    innertube_hl: str = Field(default="en", description="Interface language for API requests.")
    innertube_gl: str = Field(default="US", description="Region for API requests.")
    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        ),
        description="Desktop browser User-Agent used for every upstream request.",
    )
    accept_language: str = Field(
        default="en-US,en;q=0.9",
        description="Accept-Language header for HTML page fetches.",
    )
    http_timeout_seconds: float = Field(
        default=15.0,
        description="Timeout for a single upstream HTTP request.",
    )

    # Pipeline behavior.
    max_continuation_rounds: int = Field(
        default=10,
        ge=0,
        description="Maximum browse continuation requests per channel listing.",
    )
    fetch_workers: int = Field(
        default=1,
        ge=1,
        le=16,
        description=(
            "Parallel per-video fetch workers. `1` fetches videos strictly one after another."
        ),
    )
    transcript_enabled: bool = Field(
        default=True,
        description="Attempt transcript retrieval for each video.",
    )
    transcript_languages: str = Field(
        default="en",
        description="Comma-separated preferred transcript language codes, in priority order.",
    )
    stream_queue_size: int = Field(
        default=16,
        ge=1,
        description="Progress events buffered before the pipeline waits for the client.",
    )

    # Rate limiting.
    channel_rate_limit_enabled: bool = Field(
        default=True,
        description="Limit how many channel downloads a single client may start per window.",
    )
    channel_rate_limit_window_seconds: int = Field(
        default=60,
        ge=1,
        le=3600,
        description="Channel download rate-limit window size in seconds.",
    )
    channel_rate_limit_max_requests: int = Field(
        default=5,
        ge=1,
        le=1000,
        description="Maximum channel downloads a client may start in each window.",
    )

    # Logging.
    log_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR) / "logs",
        description="Directory for log files. Defaults to `${CHANNEL_PULSE_DATA_DIR}/logs`.",
    )
    log_level: str = Field(default="INFO", description="Console log level (stdout).")
    log_max_bytes: int = Field(
        default=10 * 1024 * 1024,
        description="Rotate log files at this size. `0` disables rotation.",
    )
    log_backup_count: int = Field(default=5, description="Rotated log files kept.")

    # Telemetry.
    telemetry_enabled: bool = Field(
        default=True,
        description="Enable lightweight internal telemetry events.",
    )
    telemetry_sink: Literal["none", "log"] = Field(
        default="log",
        description=(
            "Telemetry sink backend. `log` emits structured telemetry locally; "
            "`none` disables sink output."
        ),
    )

    @property
    def transcript_language_codes(self) -> tuple[str, ...]:
        codes = tuple(
            code.strip() for code in self.transcript_languages.split(",") if code.strip()
        )
        return codes or ("en",)

    @field_validator("youtube_base_url", mode="before")
    @classmethod
    def _normalize_base_url(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("CHANNEL_PULSE_YOUTUBE_BASE_URL must be a string.")
        normalized = value.strip().rstrip("/")
        if not normalized.startswith(("http://", "https://")):
            raise ValueError("CHANNEL_PULSE_YOUTUBE_BASE_URL must be an http(s) URL.")
        return normalized

    @field_validator("telemetry_sink", mode="before")
    @classmethod
    def _normalize_telemetry_sink(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("CHANNEL_PULSE_TELEMETRY_SINK must be a string.")
        normalized = value.strip().lower()
        if normalized in {"none", "log"}:
            return normalized
        raise ValueError("CHANNEL_PULSE_TELEMETRY_SINK must be set to: none, log.")

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _normalize_paths(cls, value: Any) -> Any:
        if value is None:
            return None
        return _resolve_path(value)

    @field_validator(*_BOOLEAN_COERCION_FIELDS, mode="before")
    @classmethod
    def _normalize_booleans(cls, value: Any, info: ValidationInfo) -> bool:
        field_name = info.field_name
        assert field_name is not None
        default_value = cls.model_fields[field_name].default
        assert isinstance(default_value, bool)
        return _parse_bool_with_default(value, default=default_value)


def _apply_path_defaults(settings: AppSettings) -> AppSettings:
    updates: dict[str, Path] = {}
    for field_name, relative_default in _DATA_DIR_RELATIVE_DEFAULTS:
        if field_name in settings.model_fields_set:
            continue
        updates[field_name] = settings.data_dir / relative_default
    if not updates:
        return settings
    return settings.model_copy(update=updates)


def _resolve_path_fields(settings: AppSettings) -> AppSettings:
    resolved_updates = {
        field_name: _resolve_path(getattr(settings, field_name)) for field_name in _PATH_FIELDS
    }
    return settings.model_copy(update=resolved_updates)


def load_settings() -> AppSettings:
    settings = AppSettings()
    settings = _apply_path_defaults(settings)
    return _resolve_path_fields(settings)
