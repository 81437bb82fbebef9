"""Pydantic configuration models with validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/122.0.0.0 Safari/537.36"
)


def _normalize_path(value: Any) -> Path:
    """
    Normalize a path-like value without causing filesystem side-effects.

    This function MUST NOT create directories or files.
    """
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise TypeError(f"Expected path-like value, got: {type(value)!r}")


class ProxyConfig(BaseModel):
    """Stream proxy behaviour (YAML section: proxy.*)."""

    stream_prefix: str = Field(
        default="/stream",
        description="Path prefix of the proxy endpoint used in rewritten manifests.",
    )
    playlist_max_age: int = Field(
        default=300,
        description="Cache-Control max-age for rewritten playlists (seconds).",
    )
    segment_max_age: int = Field(
        default=86_400,
        description="Cache-Control max-age for media segments (seconds).",
    )
    chunk_size: int = Field(
        default=65_536,
        description="Chunk size for streamed segment bodies (bytes).",
    )
    max_concurrent_fetches: int = Field(
        default=50,
        description="Max parallel upstream fetches issued by the proxy.",
    )

    @field_validator("stream_prefix")
    @classmethod
    def _validate_prefix(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("stream_prefix must start with '/'")
        return v.rstrip("/")


class ProvidersConfig(BaseModel):
    """Upstream endpoints and provider selection (YAML section: providers.*).

    Upstream hosts rotate; every base URL is configurable.
    """

    moviesapi_base: str = "https://ww2.moviesapi.to"
    flixcdn_base: str = "https://flixcdn.cyou"
    vidsrc_icu_base: str = "https://vidsrc.icu"
    vidsrc_movie_template: str = Field(
        default="https://vidsrc.xyz/embed/movie/{id}",
        description="Embed page opened by the headless scraper for movies.",
    )
    vidsrc_tv_template: str = Field(
        default="https://vidsrc.xyz/embed/tv/{id}/{season}/{episode}",
        description="Embed page opened by the headless scraper for episodes.",
    )
    flixhq_base: str = "https://flixhq.to"
    flixhq_default_referer: str = "https://streameeeeee.site/"
    morphtv_api: str | None = Field(
        default=None,
        description="MorphTV search endpoint. Provider fails fast when unset.",
    )
    morphtv_secret: str = Field(
        default="",
        description="Shared secret appended to the MorphTV request signature.",
    )
    teatv_api: str | None = Field(
        default=None,
        description="TeaTV search endpoint. Provider fails fast when unset.",
    )
    disabled: list[str] = Field(
        default_factory=list,
        description="Provider ids removed from the list.",
    )
    priority_overrides: dict[str, int] = Field(
        default_factory=dict,
        description="Provider id -> priority replacing the built-in value.",
    )


class AppConfig(BaseModel):
    """
    Canonical application configuration (validated, final).

    Note:
    - YAML is expected to be sectioned (http/extraction/proxy/providers/playwright/
      logging/cache).
    - Environment variables are handled by EnvOverrides(BaseSettings) to allow strict
      precedence control (defaults < YAML < ENV < CLI) in load.py.
    """

    # General
    app_name: str = Field(default="filmplus", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    # HTTP client (YAML section: http.*)
    http_timeout_seconds: float = Field(
        default=15.0,
        validation_alias=AliasChoices(
            "http_timeout_seconds",
            AliasPath("http", "timeout_seconds"),
        ),
        description="HTTP timeout in seconds for upstream requests.",
    )
    http_follow_redirects: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "http_follow_redirects",
            AliasPath("http", "follow_redirects"),
        ),
        description="Whether HTTP client follows redirects.",
    )
    http_user_agent: str = Field(
        default=BROWSER_USER_AGENT,
        validation_alias=AliasChoices(
            "http_user_agent",
            AliasPath("http", "user_agent"),
        ),
        description="User-Agent for outgoing HTTP requests.",
    )
    http_retry_max_attempts: int = Field(
        default=3,
        validation_alias=AliasChoices(
            "http_retry_max_attempts",
            AliasPath("http", "retry_max_attempts"),
        ),
        description="Total attempts per upstream fetch (first try included).",
    )
    http_retry_backoff_base: float = Field(
        default=0.5,
        validation_alias=AliasChoices(
            "http_retry_backoff_base",
            AliasPath("http", "retry_backoff_base"),
        ),
        description="Base delay of the exponential backoff (seconds).",
    )
    http_retry_max_backoff: float = Field(
        default=4.0,
        validation_alias=AliasChoices(
            "http_retry_max_backoff",
            AliasPath("http", "retry_max_backoff"),
        ),
        description="Upper bound for one backoff delay (seconds).",
    )

    # Extraction (YAML section: extraction.*)
    extraction_timeout_seconds: float = Field(
        default=25.0,
        validation_alias=AliasChoices(
            "extraction_timeout_seconds",
            AliasPath("extraction", "timeout_seconds"),
        ),
        description="Per-provider extraction timeout in seconds.",
    )

    # Playwright (YAML section: playwright.*)
    playwright_headless: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "playwright_headless",
            AliasPath("playwright", "headless"),
        ),
        description="Run Playwright headless.",
    )
    playwright_timeout_ms: int = Field(
        default=20_000,
        validation_alias=AliasChoices(
            "playwright_timeout_ms",
            AliasPath("playwright", "timeout_ms"),
        ),
        description="How long the embed sniffer waits for a manifest request.",
    )

    # Logging (YAML section: logging.*)
    log_level: LogLevel = Field(
        default="INFO",
        validation_alias=AliasChoices(
            "log_level",
            AliasPath("logging", "level"),
        ),
        description="Log level.",
    )
    log_format: Optional[LogFormat] = Field(
        default=None,
        validation_alias=AliasChoices(
            "log_format",
            AliasPath("logging", "format"),
        ),
        description=(
            "Log renderer format (console/json). If unset, derived from environment."
        ),
    )

    # Cache (YAML section: cache.*)
    cache_dir: Path = Field(
        default=Path("./.cache/filmplus"),
        validation_alias=AliasChoices(
            "cache_dir",
            AliasPath("cache", "dir"),
        ),
        description="Cache directory (disk).",
    )
    cache_ttl_seconds: int = Field(
        default=3600,
        validation_alias=AliasChoices(
            "cache_ttl_seconds",
            AliasPath("cache", "ttl_seconds"),
        ),
        description="Cache TTL in seconds.",
    )

    # TMDB API key (title lookup for title-keyed providers)
    tmdb_api_key: str | None = Field(
        default=None,
        description="TMDB API key for title/year lookups.",
    )

    proxy: ProxyConfig = Field(default_factory=ProxyConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)

    @field_validator("cache_dir", mode="before")
    @classmethod
    def _validate_paths(cls, v: Any) -> Path:
        return _normalize_path(v)

    @field_validator("http_timeout_seconds", "extraction_timeout_seconds")
    @classmethod
    def _validate_timeouts(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be > 0")
        return v

    @field_validator("http_retry_max_attempts")
    @classmethod
    def _validate_retry_attempts(cls, v: int) -> int:
        if not 1 <= v <= 6:
            raise ValueError("http_retry_max_attempts must be between 1 and 6")
        return v

    @field_validator("http_retry_backoff_base", "http_retry_max_backoff")
    @classmethod
    def _validate_backoff(cls, v: float) -> float:
        if v < 0:
            raise ValueError("backoff values must be >= 0")
        return v

    @field_validator("playwright_timeout_ms")
    @classmethod
    def _validate_playwright_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("playwright_timeout_ms must be > 0")
        return v

    @field_validator("cache_ttl_seconds")
    @classmethod
    def _validate_cache_ttl(cls, v: int) -> int:
        if v < 0:
            raise ValueError("cache_ttl_seconds must be >= 0")
        return v

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self


class EnvOverrides(BaseSettings):
    """
    Environment-variable overrides (all optional).

    load.py creates EnvOverrides() to read FILMPLUS_* variables, converts them
    to a dict of set values, merges into YAML/defaults, then validates AppConfig.

    Supported env var examples (flat, explicit):
    - FILMPLUS_HTTP_TIMEOUT_SECONDS
    - FILMPLUS_HTTP_RETRY_MAX_ATTEMPTS
    - FILMPLUS_LOG_LEVEL
    - FILMPLUS_MORPHTV_API / FILMPLUS_MORPHTV_SECRET / FILMPLUS_TEATV_API
    """

    model_config = SettingsConfigDict(
        env_prefix="FILMPLUS_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    http_timeout_seconds: Optional[float] = None
    http_follow_redirects: Optional[bool] = None
    http_user_agent: Optional[str] = None
    http_retry_max_attempts: Optional[int] = None
    http_retry_backoff_base: Optional[float] = None
    http_retry_max_backoff: Optional[float] = None

    extraction_timeout_seconds: Optional[float] = None

    playwright_headless: Optional[bool] = None
    playwright_timeout_ms: Optional[int] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    cache_dir: Optional[Path] = None
    cache_ttl_seconds: Optional[int] = None

    tmdb_api_key: Optional[str] = None

    morphtv_api: Optional[str] = None
    morphtv_secret: Optional[str] = None
    teatv_api: Optional[str] = None

    @field_validator("cache_dir", mode="before")
    @classmethod
    def _validate_paths(cls, v: Any) -> Any:
        if v is None:
            return None
        return _normalize_path(v)

    def to_update_dict(self) -> dict[str, Any]:
        """
        Return only values that were actually provided (non-None), for merging.
        """
        return self.model_dump(exclude_none=True)
