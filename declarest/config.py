"""
Config system - layered typed configuration with validation.

Merge precedence (later overrides earlier):
defaults < JSON/YAML files < .env file < environment variables < overrides
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union, get_args, get_origin, get_type_hints

import yaml
from dotenv import dotenv_values


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

PathLike = Union[str, Path]


class ConfigError(Exception):
    """Raised when configuration validation fails."""
    pass


@dataclass
class ServerConfig:
    """
    Settings of a RestServer.

    Attributes:
        host / port: Bind address used by ``run`` and ``declarest serve``
        log_level: Root log level for ``configure_logging``
        error_format: "text" (plain message) or "json" error bodies
        expose_errors: Show messages of non-public faults (development only)
        max_body_size: Request body limit in bytes
        upload_dir: Where large uploads spill (system temp dir when None)
        max_file_size: Per-upload limit in bytes
        form_memory_threshold: Uploads above this size spill to disk
    """
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "info"
    error_format: str = "text"
    expose_errors: bool = False
    max_body_size: int = 10_485_760
    upload_dir: Optional[str] = None
    max_file_size: int = 104_857_600
    form_memory_threshold: int = 1024 * 1024

    def __post_init__(self):
        if self.error_format not in ("text", "json"):
            raise ConfigError(f"Config field 'error_format' must be 'text' or 'json', got {self.error_format!r}")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ConfigError(f"Config field 'log_level' has unknown level {self.log_level!r}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ConfigLoader:
    """
    Loads and merges configuration from multiple sources.

    Example:
        ```python
        config = ConfigLoader.load(["declarest.yaml"], env_file=".env").server_config()
        ```
    """

    def __init__(self, env_prefix: str = "DECLAREST_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        paths: Optional[Iterable[PathLike]] = None,
        env_prefix: str = "DECLAREST_",
        env_file: Optional[PathLike] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration from every source.

        Args:
            paths: JSON or YAML files, merged in order
            env_prefix: Prefix for environment variables
            env_file: Path to .env file
            overrides: Manual overrides (highest precedence)

        Raises:
            ConfigError: Missing or malformed config file
        """
        loader = cls(env_prefix=env_prefix)

        for path in paths or ():
            loader._load_file(Path(path))

        if env_file:
            loader._load_env_file(Path(env_file))

        loader._load_from_env()

        if overrides:
            loader._merge_dict(loader.config_data, overrides)

        return loader

    def _load_file(self, path: Path) -> None:
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        try:
            with open(path) as f:
                if path.suffix in (".yaml", ".yml"):
                    data = yaml.safe_load(f)
                else:
                    data = json.load(f)
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Invalid config file {path}: {exc}") from exc
        if data is None:
            return
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        self._merge_dict(self.config_data, data)

    def _load_env_file(self, path: Path) -> None:
        """Load prefixed keys from a .env file."""
        if not path.exists():
            return
        for key, value in dotenv_values(path).items():
            if key.startswith(self.env_prefix) and value is not None:
                self._set_nested(key, value)

    def _load_from_env(self) -> None:
        for key, value in os.environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str) -> None:
        """Convert DECLAREST_SECTION__NAME to nested dict keys."""
        parts = key[len(self.env_prefix):].lower().split("__")
        current = self.config_data
        for part in parts[:-1]:
            current = current.setdefault(part, {})
        current[parts[-1]] = self._parse_value(value)

    @staticmethod
    def _parse_value(value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

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

    def _merge_dict(self, target: dict, source: dict) -> None:
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Get config value by dot-separated path."""
        current: Any = self.config_data
        for part in path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def to_dict(self) -> dict:
        return self.config_data.copy()

    def server_config(self) -> ServerConfig:
        """
        Build a validated ServerConfig. Unknown keys are ignored.

        Raises:
            ConfigError: A value has the wrong type
        """
        hints = get_type_hints(ServerConfig)
        kwargs = {}
        for field_info in fields(ServerConfig):
            if field_info.name not in self.config_data:
                continue
            value = self.config_data[field_info.name]
            expected = hints[field_info.name]
            if not self._check_type(value, expected):
                raise ConfigError(
                    f"Config field '{field_info.name}' expected {getattr(expected, '__name__', expected)}, "
                    f"got {type(value).__name__}"
                )
            kwargs[field_info.name] = value
        return ServerConfig(**kwargs)

    def _check_type(self, value: Any, expected_type: Any) -> bool:
        """Basic type checking."""
        if get_origin(expected_type) is Union:
            if value is None:
                return True
            return any(self._check_type(value, arg) for arg in get_args(expected_type) if arg is not type(None))
        if expected_type is int:
            return isinstance(value, int) and not isinstance(value, bool)
        if expected_type is float:
            return isinstance(value, (int, float)) and not isinstance(value, bool)
        try:
            return isinstance(value, expected_type)
        except TypeError:
            return True


def configure_logging(level: Union[str, int] = "info") -> None:
    """Configure root logging for the declarest.* loggers."""
    if isinstance(level, str):
        level = getattr(logging, level.upper())
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("declarest").setLevel(level)
