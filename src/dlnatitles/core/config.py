"""Configuration system for dlna-titles.

Layered config loading (lowest to highest priority):
1. config/default.toml (shipped with package)
2. ~/.config/dlnatitles/config.toml (user-level)
3. ./dlnatitles.toml (project-level)
4. Environment variables (DLNATITLES_LLM__MODEL, etc.)
5. CLI flags

The loaded config is passed explicitly into each component; nothing in the
package reads it back from process-wide state.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

_PACKAGE_ROOT = Path(__file__).resolve().parent.parent.parent.parent
_DEFAULT_CONFIG = _PACKAGE_ROOT / "config" / "default.toml"
_USER_CONFIG = Path.home() / ".config" / "dlnatitles" / "config.toml"
_PROJECT_CONFIG = Path("dlnatitles.toml")

DEFAULT_WORKERS = 4
DEFAULT_STREAM_PORT = 8090


class LLMConfig(BaseModel):
    model: str = "openai/gpt-4o-mini"
    api_base: str | None = None
    api_key: str | None = None  # Falls back to OPENAI_API_KEY inside LiteLLM
    temperature: float | None = None
    max_tokens: int = 50
    timeout: float = 10.0  # Per call, seconds


class GenerationConfig(BaseModel):
    workers: int = DEFAULT_WORKERS  # Pool width per ensure() call
    max_concurrent_requests: int = 0  # Process-wide cap, 0 disables it

    @property
    def effective_workers(self) -> int:
        return max(1, self.workers)


class CacheConfig(BaseModel):
    enabled: bool = True
    dir: Path | None = None  # Defaults to <data_dir>/cache
    memory_enabled: bool = True
    memory_max_entries: int = 4096
    routes: dict[str, Path] = {}  # Torrent-id prefix -> store directory


class LinksConfig(BaseModel):
    enabled: bool = True
    root: Path | None = None  # Defaults to <data_dir>/streamlinks
    extension: str = "strmlnk"


class ServerConfig(BaseModel):
    scheme: str = "http"
    public_host: str | None = None
    bind_host: str | None = None
    port: int = DEFAULT_STREAM_PORT


class DLNATitlesConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DLNATITLES_",
        env_nested_delimiter="__",
    )

    llm: LLMConfig = LLMConfig()
    generation: GenerationConfig = GenerationConfig()
    cache: CacheConfig = CacheConfig()
    links: LinksConfig = LinksConfig()
    server: ServerConfig = ServerConfig()
    data_dir: Path = Path("./dlnatitles_data")
    debug: bool = False

    @property
    def cache_dir(self) -> Path:
        """Durable title store directory."""
        return self._under_data_dir(self.cache.dir, "cache")

    @property
    def links_root(self) -> Path:
        """Root directory holding one link directory per torrent."""
        return self._under_data_dir(self.links.root, "streamlinks")

    def _under_data_dir(self, custom: Path | None, default: str) -> Path:
        if custom is None:
            return self.data_dir / default
        if custom.is_absolute():
            return custom
        return self.data_dir / custom


def _load_toml(path: Path) -> dict:
    """Load a TOML file if it exists, return empty dict otherwise."""
    if path.is_file():
        with open(path, "rb") as f:
            return tomllib.load(f)
    return {}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(**cli_overrides: object) -> DLNATitlesConfig:
    """Load configuration from all layers and merge.

    Args:
        **cli_overrides: Direct overrides from CLI flags. Keys can be
            dot-separated (e.g. llm.model="openai/gpt-4o").
    """
    # Layer 1-3: TOML files
    config_data: dict = {}
    for path in (_DEFAULT_CONFIG, _USER_CONFIG, _PROJECT_CONFIG):
        layer = _load_toml(path)
        config_data = _deep_merge(config_data, layer)

    # Flatten 'general' section into top-level
    if "general" in config_data:
        general = config_data.pop("general")
        config_data = _deep_merge(config_data, general)

    # Apply CLI overrides (dot-separated keys)
    for key, value in cli_overrides.items():
        if value is None:
            continue
        parts = key.split(".")
        target = config_data
        for part in parts[:-1]:
            target = target.setdefault(part, {})
        target[parts[-1]] = value

    # Layer 4: env vars are handled by Pydantic BaseSettings
    return DLNATitlesConfig(**config_data)
