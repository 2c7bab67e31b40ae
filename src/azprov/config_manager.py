"""Configuration management module.

This module handles persistent configuration storage using TOML format.
It replaces implicit "current subscription" session state with an explicit
configuration object that is passed to the Azure provider.

Security:
- Config file permissions: 0600 (owner read/write only)
- Path validation
- No credentials are ever stored in the config file

Precedence for every setting: CLI option > AZPROV_* environment variable >
config file > built-in default.
"""

import logging
import os
import tempfile
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, ClassVar

import tomli
import tomlkit

from azprov.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".azprov"


@dataclass
class ProvisionerConfig:
    """azprov configuration data."""

    subscription_id: str | None = None
    default_location: str | None = None
    default_storage_account: str | None = None
    vm_size: str = "Standard_B2s"
    image: str = "Win2022Datacenter"
    admin_username: str = "azprovadmin"
    disk_sku: str = "Standard_LRS"
    winrm_port: int = 5986
    trust_store_dir: str = str(DEFAULT_CONFIG_DIR / "trusted_certs")
    command_timeout: int = 120
    create_timeout: int = 1800
    boot_wait_timeout: int = 900
    boot_poll_interval: int = 15
    remote_command_timeout: int = 1800
    app_service_plan: str | None = None
    app_service_sku: str = "B1"

    ENV_PREFIX: ClassVar[str] = "AZPROV_"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, excluding None values (TOML has no null)."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProvisionerConfig":
        """Create from dictionary, ignoring unknown keys with a warning.

        Raises:
            ConfigError: If a value has the wrong type
        """
        known = {f.name: f for f in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                logger.warning(f"Unknown config key ignored: {key}")
                continue
            values[key] = _coerce(key, value, getattr(cls, key, None))
        return cls(**values)

    def with_environment(self) -> "ProvisionerConfig":
        """Return a copy with AZPROV_<FIELD> environment overrides applied."""
        data = asdict(self)
        for name in data:
            env_value = os.getenv(f"{self.ENV_PREFIX}{name.upper()}")
            if env_value is not None and env_value != "":
                data[name] = _coerce(name, env_value, getattr(type(self), name, None))
        return ProvisionerConfig(**data)


def _coerce(key: str, value: Any, default: Any) -> Any:
    if isinstance(default, int):
        try:
            coerced = int(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Config value '{key}' must be an integer, got {value!r}") from e
        if coerced <= 0:
            raise ConfigError(f"Config value '{key}' must be positive, got {coerced}")
        return coerced
    if value is None:
        return None
    return str(value)


class ConfigManager:
    """Manage the azprov configuration file.

    Configuration is stored at ~/.azprov/config.toml with secure permissions.
    """

    DEFAULT_CONFIG_DIR = DEFAULT_CONFIG_DIR
    DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.toml"

    @classmethod
    def _validate_config_path(cls, path: Path) -> Path:
        """Validate a configuration file path.

        Only ~/.azprov/, the current working directory and the system
        temporary directory are accepted.

        Raises:
            ConfigError: If path is outside allowed directories
        """
        resolved_path = path.resolve()
        allowed_dirs = [
            cls.DEFAULT_CONFIG_DIR.resolve(),
            Path.cwd().resolve(),
            Path(tempfile.gettempdir()).resolve(),
        ]
        for allowed_dir in allowed_dirs:
            if resolved_path.is_relative_to(allowed_dir):
                return resolved_path

        raise ConfigError(
            f"Config path outside allowed directories: {resolved_path}\n"
            f"Allowed directories:\n"
            f"  - {cls.DEFAULT_CONFIG_DIR}\n"
            f"  - {Path.cwd()}"
        )

    @classmethod
    def get_config_path(cls, custom_path: str | None = None) -> Path:
        """Get configuration file path.

        Raises:
            ConfigError: If a custom path is invalid or missing
        """
        if custom_path:
            path = cls._validate_config_path(Path(custom_path).expanduser())
            if not path.exists():
                raise ConfigError(f"Config file not found: {path}")
            return path
        return cls.DEFAULT_CONFIG_FILE

    @classmethod
    def load_config(cls, custom_path: str | None = None) -> ProvisionerConfig:
        """Load configuration from file, then apply environment overrides.

        Args:
            custom_path: Custom config file path (optional)

        Returns:
            ProvisionerConfig object

        Raises:
            ConfigError: If loading fails
        """
        config_path = cls.get_config_path(custom_path)

        if not config_path.exists():
            logger.debug("Config file not found, using defaults")
            return ProvisionerConfig().with_environment()

        config = cls._read_file(config_path)
        logger.debug(f"Loaded config from: {config_path}")
        return config.with_environment()

    @classmethod
    def _read_file(cls, config_path: Path) -> ProvisionerConfig:
        try:
            mode = config_path.stat().st_mode & 0o777
            if mode & 0o077:
                logger.warning(
                    f"Config file has insecure permissions: {oct(mode)}. Fixing to 0600..."
                )
                os.chmod(config_path, 0o600)

            with open(config_path, "rb") as f:
                data = tomli.load(f)
        except (OSError, tomli.TOMLDecodeError) as e:
            raise ConfigError(f"Failed to load config: {e}") from e
        return ProvisionerConfig.from_dict(data)

    @classmethod
    def save_config(cls, config: ProvisionerConfig, custom_path: str | None = None) -> Path:
        """Save configuration to file (atomic write, mode 0600).

        Existing comments and formatting are preserved through tomlkit.

        Returns:
            Path the configuration was written to

        Raises:
            ConfigError: If saving fails
        """
        if custom_path:
            config_path = cls._validate_config_path(Path(custom_path).expanduser())
        else:
            config_path = cls.DEFAULT_CONFIG_FILE

        temp_path = config_path.with_suffix(".tmp")
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            if not custom_path:
                os.chmod(config_path.parent, 0o700)

            if config_path.exists():
                with open(config_path) as f:
                    doc = tomlkit.load(f)
            else:
                doc = tomlkit.document()
            data = config.to_dict()
            for key, value in data.items():
                doc[key] = value
            for item in fields(config):
                if item.name not in data and item.name in doc:
                    del doc[item.name]

            with open(temp_path, "w") as f:
                tomlkit.dump(doc, f)
            os.chmod(temp_path, 0o600)
            temp_path.replace(config_path)
        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            raise ConfigError(f"Failed to save config: {e}") from e

        logger.debug(f"Saved config to: {config_path}")
        return config_path

    @classmethod
    def update_config(cls, custom_path: str | None = None, **updates: Any) -> ProvisionerConfig:
        """Update values in the config file.

        Environment overrides are not written back; only the file contents and
        the given updates are saved. A value of None resets the key to its
        default.

        Args:
            custom_path: Custom config file path (optional)
            **updates: Configuration values to update

        Returns:
            Updated ProvisionerConfig (without environment overrides)

        Raises:
            ConfigError: If a key is unknown, a value is invalid or saving fails
        """
        config_path = (
            cls._validate_config_path(Path(custom_path).expanduser())
            if custom_path
            else cls.DEFAULT_CONFIG_FILE
        )
        config = cls._read_file(config_path) if config_path.exists() else ProvisionerConfig()

        known = {item.name for item in fields(ProvisionerConfig)}
        for key, value in updates.items():
            if key not in known:
                raise ConfigError(f"Unknown config key: {key}")
            default = getattr(ProvisionerConfig, key, None)
            setattr(config, key, default if value is None else _coerce(key, value, default))

        cls.save_config(config, custom_path)
        return config


__all__ = ["ConfigManager", "ProvisionerConfig"]
