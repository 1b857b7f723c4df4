"""
Config system - Layered runtime configuration.

Merge precedence (later overrides earlier):
config files > .env file > environment variables > manual overrides
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import dotenv_values

logger = logging.getLogger("kontext.config")


class ConfigError(Exception):
    """Raised when configuration validation fails."""
    pass


@dataclass
class KontextConfig:
    """
    Runtime configuration.

    Attributes:
        log_level: Level applied to the ``kontext`` logger
        strict_tags: Reject tag collisions when merging contexts
        dispose_timeout: Per-member timeout (seconds) for async teardown
    """

    log_level: str = "WARNING"
    strict_tags: bool = True
    dispose_timeout: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KontextConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

        config = cls(**data)
        if not isinstance(config.strict_tags, bool):
            raise ConfigError(f"strict_tags must be a boolean, got {config.strict_tags!r}")
        if config.dispose_timeout is not None:
            timeout = config.dispose_timeout
            if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
                raise ConfigError(f"dispose_timeout must be a positive number, got {config.dispose_timeout!r}")
        if logging.getLevelName(str(config.log_level).upper()) == f"Level {str(config.log_level).upper()}":
            raise ConfigError(f"Unknown log level: {config.log_level!r}")
        return config


_FIELDS = frozenset(f.name for f in fields(KontextConfig))


class ConfigLoader:
    """
    Loads and merges configuration from multiple sources.
    """

    def __init__(self, env_prefix: str = "KONTEXT_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        paths: Optional[list[str]] = None,
        env_prefix: str = "KONTEXT_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration with proper merge strategy.

        Args:
            paths: Config file paths (.json, .yaml, .yml)
            env_prefix: Prefix for environment variables
            env_file: Path to .env file
            overrides: Manual overrides (highest precedence)

        Returns:
            Configured ConfigLoader instance
        """
        loader = cls(env_prefix=env_prefix)

        for path in paths or []:
            loader._load_file(Path(path))

        if env_file:
            loader._load_env_file(env_file)

        loader._load_from_env()

        if overrides:
            loader.config_data.update(overrides)

        return loader

    def _load_file(self, path: Path):
        """Load config from JSON or YAML file."""
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")

        if path.suffix == ".json":
            with open(path) as f:
                data = json.load(f)
        elif path.suffix in (".yaml", ".yml"):
            import yaml
            with open(path) as f:
                data = yaml.safe_load(f)
        else:
            raise ConfigError(f"Unsupported config file type: {path.suffix}")

        if data:
            if not isinstance(data, dict):
                raise ConfigError(f"Config file {path} must contain a mapping")
            self.config_data.update(data)

    def _load_env_file(self, path: str):
        """Load config from .env file."""
        for key, value in dotenv_values(path).items():
            if key.startswith(self.env_prefix) and value is not None:
                self._set(key, value)

    def _load_from_env(self):
        """Load config from environment variables."""
        for key, value in os.environ.items():
            if key.startswith(self.env_prefix):
                self._set(key, value)

    def _set(self, key: str, value: str):
        """
        Convert KONTEXT_STRICT_TAGS to strict_tags.

        Only known fields are picked up; the prefix is shared with
        unrelated variables (KONTEXT_HOME, ...).
        """
        name = key[len(self.env_prefix):].lower()
        if name not in _FIELDS:
            logger.debug(f"Ignoring {key}: not a kontext setting")
            return
        self.config_data[name] = self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "yes", "on"):
            return True
        if value.lower() in ("false", "no", "off"):
            return False
        if value.lower() in ("none", "null", ""):
            return None

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def get(self, key: str, default: Any = None) -> Any:
        return self.config_data.get(key, default)

    def to_config(self) -> KontextConfig:
        """Validate and build a KontextConfig."""
        return KontextConfig.from_dict(self.config_data)


# ============================================================================
# Process-wide config
# ============================================================================

_current: Optional[KontextConfig] = None


def get_config() -> KontextConfig:
    """
    Get or create the process-wide config.

    The first call loads it from the environment.
    """
    global _current
    if _current is None:
        _current = ConfigLoader.load().to_config()
    return _current


def set_config(config: Optional[KontextConfig]) -> None:
    """Replace the process-wide config (None reloads on next access)."""
    global _current
    _current = config


def configure_logging(config: Optional[KontextConfig] = None) -> logging.Logger:
    """Apply the configured level to the ``kontext`` logger."""
    config = config or get_config()
    logger = logging.getLogger("kontext")
    logger.setLevel(str(config.log_level).upper())
    return logger
