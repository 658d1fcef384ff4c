"""
Settings for the answercache tiers.

Three sections, ``cache``, ``redis`` and ``logging``, come from
``config/config.yaml``.  Any scalar can be overridden per deployment with
``ANSWERCACHE_<SECTION>_<FIELD>`` (for example ``ANSWERCACHE_REDIS_ENABLED=true``),
either in the process environment or in a ``.env`` file at the repo root.
"""

import logging
import os
import threading
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_DEFAULT_YAML = _PROJECT_ROOT / "config" / "config.yaml"
_DEFAULT_DOTENV = _PROJECT_ROOT / ".env"

ENV_PREFIX = "ANSWERCACHE_"


@dataclass
class CacheSettings:
    """In-process tier size/TTL and the fuzzy-match threshold."""
    local_max_size: int = 500
    local_ttl_seconds: int = 1800
    similarity_threshold: float = 0.85


@dataclass
class RedisSettings:
    """Shared tier; off unless ``enabled`` is set."""
    enabled: bool = False
    url: str = "redis://localhost:6379/0"
    key_prefix: str = "knowi:chat"
    ttl_seconds: int = 3600
    timeout_seconds: float = 2.0


@dataclass
class LoggingSettings:
    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class Settings:
    cache: CacheSettings = field(default_factory=CacheSettings)
    redis: RedisSettings = field(default_factory=RedisSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


def _load_yaml(path: Path) -> Dict[str, Any]:
    """Parse *path*; a missing file or a non-mapping document yields ``{}``."""
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with open(path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    return data if isinstance(data, dict) else {}


def _apply_dict(target: object, data: Dict[str, Any]) -> None:
    """Copy known fields from *data* onto a section; unknown keys are ignored."""
    for key, value in data.items():
        if hasattr(target, key):
            setattr(target, key, value)


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes", "on")


_CASTS: Dict[type, Callable[[str], Any]] = {
    bool: _parse_bool,
    int: int,
    float: float,
}


def _apply_env_overrides(settings: Settings) -> None:
    for section_field in fields(settings):
        section = getattr(settings, section_field.name)
        for item in fields(section):
            env_key = f"{ENV_PREFIX}{section_field.name}_{item.name}".upper()
            raw = os.environ.get(env_key)
            if raw is None:
                continue
            cast = _CASTS.get(type(getattr(section, item.name)), str)
            try:
                setattr(section, item.name, cast(raw))
            except ValueError:
                logger.warning("Ignoring invalid %s=%r", env_key, raw)


_settings: Optional[Settings] = None
_lock = threading.Lock()


def get_settings(
    *,
    yaml_path: Optional[Path] = None,
    env_path: Optional[Path] = None,
    _force_reload: bool = False,
) -> Settings:
    """Return the process-wide settings, loading them on first use.

    ``ANSWERCACHE_*`` variables, including those loaded from ``.env``,
    win over the YAML file.

    Args:
        yaml_path: YAML file to read instead of ``config/config.yaml``.
        env_path: dotenv file to read instead of the repo-root ``.env``.
        _force_reload: Rebuild even if settings were already loaded.
    """
    global _settings

    if _settings is not None and not _force_reload:
        return _settings

    with _lock:
        if _settings is not None and not _force_reload:
            return _settings

        load_dotenv(env_path or _DEFAULT_DOTENV, override=True)
        config_path = yaml_path or _DEFAULT_YAML
        raw = _load_yaml(config_path)

        settings = Settings()
        for section_field in fields(settings):
            section_data = raw.get(section_field.name)
            if isinstance(section_data, dict):
                _apply_dict(getattr(settings, section_field.name), section_data)
        _apply_env_overrides(settings)

        _settings = settings
        logger.info("Settings loaded from %s", config_path)
        return _settings


def reset_settings() -> None:
    global _settings
    with _lock:
        _settings = None
