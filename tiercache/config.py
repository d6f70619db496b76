"""
Central configuration loader for tiercache.

Reads ``config/config.yaml`` and ``.env``, merges environment-variable
overrides (``TIERCACHE_`` prefix), and exposes a typed :class:`Settings`
singleton via :func:`get_settings`.
"""

import logging
import math
import os
import threading
from dataclasses import Field, dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import yaml
from dotenv import load_dotenv

from tiercache.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Resolve project root (directory containing ``config/``)
# ---------------------------------------------------------------------------

_THIS_DIR = Path(__file__).resolve().parent          # tiercache/
_PROJECT_ROOT = _THIS_DIR.parent                     # repo root

WRITE_MODES = ("best_effort", "strict")


def _project_path(*parts: str) -> Path:
    """Build an absolute path relative to the project root."""
    return _PROJECT_ROOT.joinpath(*parts)


# ---------------------------------------------------------------------------
# Nested settings dataclasses
# ---------------------------------------------------------------------------


@dataclass
class RedisSettings:
    url: str = "redis://localhost:6379/0"
    socket_timeout_seconds: float = 0.0
    key_prefix: str = ""


@dataclass
class CacheSettings:
    ttl_seconds: float = 300.0
    max_entries: int = 10000
    write_mode: str = "best_effort"


@dataclass
class LoggingSettings:
    level: str = "INFO"


@dataclass
class Settings:
    """Top-level settings container."""
    redis: RedisSettings = field(default_factory=RedisSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


# ---------------------------------------------------------------------------
# YAML loader
# ---------------------------------------------------------------------------

def _load_yaml(path: Path) -> Dict[str, Any]:
    """Read and parse a YAML file.  Returns ``{}`` if the file is missing."""
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with open(path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    return data if isinstance(data, dict) else {}


def _section_fields(section: object) -> Dict[str, Field]:
    return {f.name: f for f in fields(section)}


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes", "on")


# Parsers for string input (env vars, quoted YAML scalars), keyed by the
# declared field type.
_STR_PARSERS: Dict[type, Callable[[str], Any]] = {
    int: lambda raw: int(raw.strip()),
    float: lambda raw: float(raw.strip()),
    bool: _parse_bool,
    str: str,
}


def _coerce(field_type: type, value: Any) -> Any:
    """Convert *value* to the declared *field_type*.

    Raises:
        ValueError, TypeError: If the value does not fit the field.
    """
    if isinstance(value, bool) and field_type is not bool:
        raise TypeError(f"expected {field_type.__name__}, got a boolean")
    if isinstance(value, str):
        return _STR_PARSERS.get(field_type, str)(value)
    if field_type is float and isinstance(value, int):
        return float(value)
    if isinstance(value, field_type):
        return value
    raise TypeError(f"expected {field_type.__name__}, got {type(value).__name__}")


def _apply_dict(target: object, data: Dict[str, Any], section_name: str = "") -> None:
    """Apply *data* onto a settings section, typed by its declared fields.

    Raises:
        ConfigurationError: If a known key holds a value of the wrong type.
    """
    known = _section_fields(target)
    for key, value in data.items():
        f = known.get(key)
        if f is None:
            logger.debug("Ignoring unknown config key: %s", key)
            continue
        try:
            setattr(target, key, _coerce(f.type, value))
        except (ValueError, TypeError) as e:
            raise ConfigurationError(f"{section_name}.{key}: {e}") from e


# ---------------------------------------------------------------------------
# Env-var overrides  (TIERCACHE_SECTION_KEY  e.g. TIERCACHE_CACHE_TTL_SECONDS)
# ---------------------------------------------------------------------------

_SECTIONS = ["redis", "cache", "logging"]


def _apply_env_overrides(settings: Settings) -> None:
    """Override scalar fields via ``TIERCACHE_<SECTION>_<KEY>`` env vars.

    Values are parsed by the field's declared type, so ``2.5`` is
    accepted for a float field even when YAML supplied an integer.
    Unparseable values are logged and skipped.
    """
    for section_name in _SECTIONS:
        section = getattr(settings, section_name)
        prefix = f"TIERCACHE_{section_name.upper()}_"
        for f in fields(section):
            env_key = prefix + f.name.upper()
            env_val = os.environ.get(env_key)
            if env_val is None:
                continue
            try:
                setattr(section, f.name, _coerce(f.type, env_val))
                logger.debug("Env override applied: %s=%s", env_key, env_val)
            except (ValueError, TypeError):
                logger.warning("Invalid env override %s=%s", env_key, env_val)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_settings(settings: Settings) -> None:
    """Reject values the cache cannot be built from.

    Raises:
        ConfigurationError: On a non-positive capacity, a negative or
            non-numeric TTL or timeout, or an unknown write mode.
    """
    cache = settings.cache
    if not isinstance(cache.max_entries, int) or isinstance(cache.max_entries, bool) \
            or cache.max_entries <= 0:
        raise ConfigurationError(
            f"cache.max_entries must be a positive integer, got {cache.max_entries!r}"
        )
    if not _is_number(cache.ttl_seconds) or not math.isfinite(cache.ttl_seconds) \
            or cache.ttl_seconds < 0:
        raise ConfigurationError(
            f"cache.ttl_seconds must be a finite number >= 0, got {cache.ttl_seconds!r}"
        )
    if cache.write_mode not in WRITE_MODES:
        raise ConfigurationError(
            f"cache.write_mode must be one of {WRITE_MODES}, got {cache.write_mode!r}"
        )
    timeout = settings.redis.socket_timeout_seconds
    if not _is_number(timeout) or not math.isfinite(timeout) or timeout < 0:
        raise ConfigurationError(
            f"redis.socket_timeout_seconds must be a finite number >= 0, got {timeout!r}"
        )


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_settings: Optional[Settings] = None
_lock = threading.Lock()


def get_settings(
    *,
    yaml_path: Optional[Path] = None,
    env_path: Optional[Path] = None,
    _force_reload: bool = False,
) -> Settings:
    """Return the application-wide :class:`Settings` singleton.

    On first call (or when ``_force_reload=True``) the function:

    1. Calls ``load_dotenv()`` to populate env vars from ``.env``.
    2. Reads ``config/config.yaml``.
    3. Applies ``TIERCACHE_*`` environment-variable overrides.
    4. Validates the result.

    Args:
        yaml_path: Override the YAML config file path (testing).
        env_path: Override the ``.env`` file path (testing).
        _force_reload: Re-read everything even if already loaded.

    Returns:
        The global ``Settings`` instance.

    Raises:
        ConfigurationError: If the merged settings are invalid.
    """
    global _settings

    if _settings is not None and not _force_reload:
        return _settings

    with _lock:
        # Double-check after acquiring lock
        if _settings is not None and not _force_reload:
            return _settings

        dotenv_path = env_path or _project_path(".env")
        load_dotenv(dotenv_path, override=True)

        config_path = yaml_path or _project_path("config", "config.yaml")
        raw = _load_yaml(config_path)

        settings = Settings()
        for section_name in _SECTIONS:
            section_data = raw.get(section_name)
            if isinstance(section_data, dict):
                _apply_dict(getattr(settings, section_name), section_data, section_name)

        _apply_env_overrides(settings)
        validate_settings(settings)

        _settings = settings
        logger.info("Settings loaded from %s", config_path)
        return _settings


def reset_settings() -> None:
    """Clear the cached singleton (for testing)."""
    global _settings
    with _lock:
        _settings = None
