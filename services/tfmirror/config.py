"""
Configuration management for the terraform mirror.

Non-secret configuration loaded from an optional YAML file, overridden by
environment variables (TF_MIRROR_ prefix, ``__`` for nesting).

The flat variable names of earlier deployments are accepted as well
(TF_MIRROR_LISTEN, TF_MIRROR_UPSTREAM_URL, TF_MIRROR_UPSTREAM_TIMEOUT,
TF_MIRROR_CACHE_ENABLED, TF_MIRROR_CACHE_DIR, TF_MIRROR_SOCKS5_ADDR) and
take precedence over the nested ones. Timeouts accept plain seconds or
Go-style durations such as ``30s``, ``5m`` or ``1m30s``.
"""

import math
import os
import re
from enum import StrEnum
from pathlib import Path
from typing import Annotated, Any

import yaml
from pydantic import BaseModel, BeforeValidator, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_FILE = "/etc/tf-mirror/config.yaml"

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def yaml_config_settings_source() -> dict[str, Any]:
    """Load configuration from YAML file."""
    config_path = Path(os.environ.get("TF_MIRROR_CONFIG_FILE", DEFAULT_CONFIG_FILE))
    if config_path.exists():
        with open(config_path) as f:
            return yaml.safe_load(f) or {}
    return {}


def parse_duration(value: Any) -> Any:
    """Convert a duration string to seconds.

    Plain numbers are seconds. Otherwise the value is a sequence of
    number+unit pairs as in Go's time.ParseDuration ("300ms", "1h30m").
    Non-string input is passed through for normal float validation.
    """
    if not isinstance(value, str):
        return value

    text = value.strip()
    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        if not math.isfinite(seconds):
            raise ValueError(f"invalid duration: {value!r}")
        return seconds

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match[1]) * _DURATION_UNITS[match[2]]
        pos = match.end()

    if pos == 0 or pos != len(text):
        raise ValueError(f"invalid duration: {value!r}")
    return total


Seconds = Annotated[float, BeforeValidator(parse_duration)]


def split_listen_address(value: str) -> tuple[str, int]:
    """Split ``host:port`` (``:port`` meaning all interfaces) into its parts."""
    host, _, port = value.strip().rpartition(":")
    host = host.strip("[]") or "0.0.0.0"  # noqa: S104
    try:
        return host, int(port)
    except ValueError:
        raise ValueError(f"invalid listen address: {value!r}") from None


# --- Upstream Configuration ---


class UpstreamConfig(BaseModel):
    """Origin registry connection settings."""

    url: str = Field(
        default="https://registry.terraform.io",
        description="Base URL of the origin registry API",
    )
    timeout: Seconds = Field(
        default=60.0,
        description="Timeout in seconds for version listing and download resolution calls",
    )
    download_timeout: Seconds = Field(
        default=300.0,
        description="Ceiling in seconds for a full archive fetch from the origin",
    )
    socks5_addr: str = Field(
        default="",
        description="host:port of a SOCKS5 proxy for all origin traffic. Empty means direct.",
    )


# --- Hash Cache Configuration ---


class HashStoreBackend(StrEnum):
    """Supported hash store backends."""

    FILESYSTEM = "filesystem"
    MEMORY = "memory"


class CacheConfig(BaseModel):
    """h1 hash cache configuration."""

    enabled: bool = Field(default=True)
    backend: HashStoreBackend = Field(
        default=HashStoreBackend.FILESYSTEM,
        description="filesystem persists hashes under dir; memory keeps them for the "
        "process lifetime only",
    )
    dir: str = Field(default="./cache", description="Root directory of the hash cache")
    spool_dir: str = Field(
        default="",
        description="Directory for temporary archive copies while hashing. "
        "Empty uses the system temp directory.",
    )


# --- Main Settings ---


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="TF_MIRROR_",
        env_nested_delimiter="__",
        env_ignore_empty=True,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="terraform-mirror")
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=True, description="JSON logging in production")

    # Server
    listen_host: str = Field(default="0.0.0.0")  # noqa: S104
    listen_port: int = Field(default=8080)
    read_timeout: Seconds = Field(
        default=30.0,
        description="Seconds an idle client connection is kept open",
    )
    write_timeout: Seconds = Field(
        default=300.0,
        description="Seconds in-flight responses get to finish on shutdown",
    )

    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)

    # Flat names from earlier deployments; when set they win over the above
    listen: str | None = Field(default=None, description="host:port, e.g. :8080")
    upstream_url: str | None = Field(default=None)
    upstream_timeout: Seconds | None = Field(default=None)
    socks5_addr: str | None = Field(default=None)
    cache_enabled: bool | None = Field(default=None)
    cache_dir: str | None = Field(default=None)

    @model_validator(mode="after")
    def apply_flat_overrides(self) -> "Settings":
        """Fold the flat variable names into the structured settings."""
        if self.listen:
            self.listen_host, self.listen_port = split_listen_address(self.listen)
        if self.upstream_url:
            self.upstream.url = self.upstream_url
        if self.upstream_timeout is not None:
            self.upstream.timeout = self.upstream_timeout
        if self.socks5_addr:
            self.upstream.socks5_addr = self.socks5_addr
        if self.cache_enabled is not None:
            self.cache.enabled = self.cache_enabled
        if self.cache_dir:
            self.cache.dir = self.cache_dir
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
        """Customize settings sources: env vars override YAML config."""
        return (
            init_settings,
            env_settings,
            yaml_config_settings_source,
            dotenv_settings,
            file_secret_settings,
        )


# Global settings instance, used by the entrypoint only
settings = Settings()
