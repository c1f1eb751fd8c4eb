"""Settings loading.

Settings come from ``settings.toml``/``settings.json`` (current directory or
``CFPAAS_CONFIG_DIR``), an optional ``.env`` file and ``CFPAAS_``-prefixed
environment variables, e.g. ``CFPAAS_LOCATION__ENDPOINT``.
"""

import os
from typing import Any, Optional

from dynaconf import Dynaconf
from pydantic import ValidationError

from cfpaas.config.schemas import ApplicationDefaults, LocationConfig
from cfpaas.domain.exceptions import ConfigurationError

_settings: Optional[Dynaconf] = None


def _settings_files() -> list[str]:
    config_dir = os.environ.get("CFPAAS_CONFIG_DIR", ".")
    return [os.path.join(config_dir, name) for name in ("settings.toml", "settings.json")]


def load_settings(settings_files: Optional[list[str]] = None, **overrides: Any) -> Dynaconf:
    """
    Build a fresh settings object.

    Args:
        settings_files: Files to load; the default discovery list when omitted
        **overrides: Values that take precedence over files and environment

    Returns:
        Dynaconf settings
    """
    settings = Dynaconf(
        envvar_prefix="CFPAAS",
        settings_files=settings_files if settings_files is not None else _settings_files(),
        environments=False,
        load_dotenv=True,
        merge_enabled=True,
    )
    for key, value in overrides.items():
        settings.set(key, value)
    return settings


def get_settings() -> Dynaconf:
    """Return the process settings, loading them on first access."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None


def location_from_settings(settings: Optional[Dynaconf] = None) -> LocationConfig:
    """Read the ``location`` table into a validated :class:`LocationConfig`."""
    settings = settings if settings is not None else get_settings()
    data = settings.get("LOCATION", {}) or {}
    try:
        return LocationConfig(**{str(k).lower(): v for k, v in dict(data).items()})
    except ValidationError as e:
        raise ConfigurationError(
            "Invalid Cloud Foundry location in settings",
            details={"errors": [error["msg"] for error in e.errors()]},
            cause=e,
        ) from e


def application_defaults(settings: Optional[Dynaconf] = None) -> ApplicationDefaults:
    """Read the ``defaults`` table, falling back to built-in values."""
    settings = settings if settings is not None else get_settings()
    data = settings.get("DEFAULTS", {}) or {}
    return ApplicationDefaults(**{str(k).lower(): v for k, v in dict(data).items()})
