"""Runtime configuration helpers for flowtrace."""

from __future__ import annotations
import os
from functools import lru_cache
from dynaconf import Dynaconf
from pydantic import ValidationError
from flowtrace.config.agent_settings import AgentConfig
from flowtrace.config.defaults import _DEFAULTS
from flowtrace.config.exporter_settings import BatchConfig, ExporterConfig
from flowtrace.config.resource_settings import ResourceConfig
from flowtrace.config.span_settings import SpanGenerationConfig
from flowtrace.errors import ConfigurationError


ENVVAR_PREFIX = "FLOWTRACE"
SETTINGS_FILES_ENVVAR = "FLOWTRACE_CONFIG_FILES"


def _settings_files() -> list[str]:
    raw = os.environ.get(SETTINGS_FILES_ENVVAR, "")
    return [entry.strip() for entry in raw.split(",") if entry.strip()]


def _build_loader() -> Dynaconf:
    """Create a Dynaconf loader wired to ``FLOWTRACE_*`` variables."""
    return Dynaconf(
        envvar_prefix=ENVVAR_PREFIX,
        settings_files=_settings_files(),
        load_dotenv=True,
        environments=False,
    )


def _normalize_settings(source: Dynaconf) -> Dynaconf:
    """Fill defaults on the raw Dynaconf settings."""
    normalized = Dynaconf(
        envvar_prefix=ENVVAR_PREFIX,
        settings_files=[],
        load_dotenv=False,
        environments=False,
    )
    for key, default in _DEFAULTS.items():
        value = source.get(key, default)
        normalized.set(key, default if value is None else value)
    return normalized


@lru_cache(maxsize=1)
def _load_settings() -> Dynaconf:
    """Load settings once and cache the normalized Dynaconf instance."""
    return _normalize_settings(_build_loader())


def get_settings(*, refresh: bool = False) -> Dynaconf:
    """Return the cached Dynaconf settings, reloading them if requested."""
    if refresh:
        _load_settings.cache_clear()
    return _load_settings()


def load_agent_config(settings: Dynaconf | None = None) -> AgentConfig:
    """Build the agent configuration, raising ``ConfigurationError`` if invalid."""
    source = settings if settings is not None else get_settings()
    try:
        return AgentConfig.from_mapping(source)
    except (ValidationError, ValueError) as exc:
        msg = f"Invalid flowtrace configuration: {exc}"
        raise ConfigurationError(msg) from exc


__all__ = [
    "AgentConfig",
    "BatchConfig",
    "ExporterConfig",
    "ResourceConfig",
    "SpanGenerationConfig",
    "get_settings",
    "load_agent_config",
]
