"""
Session Configuration

Settings for probe timeouts, geometry defaults and system id hashing,
optionally loaded from a YAML file.
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from clisession.errors import ConfigError

CONFIG_ENV_VAR = "CLISESSION_CONFIG"

SYSTEM_ID_CACHE_MODES = ("first", "per-args")


@dataclass
class SessionConfig:
    """
    Configuration for a Session.

    Attributes:
        command_timeout: Seconds each probe command may run (None = no limit)
        default_width: Width reported when no probe succeeds
        default_height: Height reported when no probe succeeds
        algorithm: hashlib algorithm used by get_system_id()
        system_id_cache: "first" returns the first computed id for every
            later call; "per-args" caches one id per (prefix, algorithm, binary)
    """

    command_timeout: Optional[float] = 10.0
    default_width: int = 80
    default_height: int = 24
    algorithm: str = "sha256"
    system_id_cache: str = "first"

    def validate(self, file_path: Optional[str] = None) -> None:
        """Raise ConfigError for out-of-range values."""
        if self.command_timeout is not None and self.command_timeout <= 0:
            raise ConfigError("command_timeout must be positive or null", file_path)
        if self.default_width <= 0:
            raise ConfigError("default_width must be positive", file_path)
        if self.default_height <= 0:
            raise ConfigError("default_height must be positive", file_path)
        if not self.algorithm:
            raise ConfigError("algorithm must not be empty", file_path)
        if self.system_id_cache not in SYSTEM_ID_CACHE_MODES:
            raise ConfigError(
                f"system_id_cache must be one of {', '.join(SYSTEM_ID_CACHE_MODES)}",
                file_path,
                details=f"got {self.system_id_cache!r}",
            )


_FIELD_TYPES = {
    "command_timeout": (int, float, type(None)),
    "default_width": (int,),
    "default_height": (int,),
    "algorithm": (str,),
    "system_id_cache": (str,),
}


def default_config_path(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Return ``$XDG_CONFIG_HOME/clisession/config.yml``."""
    if environ is None:
        environ = os.environ
    base = environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / "clisession" / "config.yml"


def config_from_dict(data: Dict[str, Any], file_path: Optional[str] = None) -> SessionConfig:
    """Build and validate a SessionConfig from a mapping."""
    known = {f.name for f in fields(SessionConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown option(s): {', '.join(unknown)}", file_path)

    for key, value in data.items():
        # bool is an int subclass but never a valid size or timeout
        if isinstance(value, bool) or not isinstance(value, _FIELD_TYPES[key]):
            raise ConfigError(
                f"Invalid type for {key}",
                file_path,
                details=f"got {type(value).__name__}",
            )

    config = SessionConfig(**data)
    config.validate(file_path)
    return config


def load_config(
    path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> SessionConfig:
    """
    Load configuration.

    Resolution order: explicit ``path``, ``$CLISESSION_CONFIG``, then the
    default config path if it exists. Without any file the defaults apply.

    Raises:
        ConfigError: If the file is missing (when named explicitly),
            unreadable, not valid YAML, or contains invalid options
    """
    if environ is None:
        environ = os.environ

    explicit = path or environ.get(CONFIG_ENV_VAR)
    if explicit:
        config_path = Path(explicit)
        if not config_path.is_file():
            raise ConfigError("Config file not found", str(config_path))
    else:
        config_path = default_config_path(environ)
        if not config_path.is_file():
            return SessionConfig()

    try:
        content = config_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError("Cannot read config file", str(config_path), details=str(e)) from e

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError("Invalid YAML", str(config_path), details=str(e)) from e

    if data is None:
        return SessionConfig()
    if not isinstance(data, dict):
        raise ConfigError("Config must be a mapping", str(config_path))

    return config_from_dict(data, str(config_path))
