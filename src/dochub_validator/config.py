"""Configuration management for dochub-validator using Pydantic models."""

import json
from collections.abc import Mapping
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

CONFIG_FILE_NAME = ".dochub-validate.json"

# Environment variables read by DocHub itself
ENV_ROOT_MANIFEST = "VUE_APP_DOCHUB_ROOT_MANIFEST"
ENV_ROLES_MODEL = "VUE_APP_DOCHUB_ROLES_MODEL"
ENV_ROLES = "VUE_APP_DOCHUB_ROLES"


class RuleOrder(str, Enum):
    """Ordering of rule results in the final report."""
    ID = "id"
    COMPLETION = "completion"


class LogLevel(str, Enum):
    """Logging levels."""
    ERROR = "error"
    WARN = "warn"
    INFO = "info"
    DEBUG = "debug"


class LoaderConfig(BaseModel):
    """Manifest loading configuration section."""
    root_manifest: str = Field(alias="rootManifest", default="dochub.yaml")
    fetch_timeout: float = Field(alias="fetchTimeout", default=30.0)
    required_sections: list[str] = Field(
        alias="requiredSections", default_factory=lambda: ["components"]
    )

    @field_validator("fetch_timeout")
    @classmethod
    def validate_fetch_timeout(cls, v):
        if v <= 0:
            raise ValueError("fetch_timeout must be > 0")
        return v

    @field_validator("root_manifest")
    @classmethod
    def validate_root_manifest(cls, v):
        if not v.strip():
            raise ValueError("root_manifest must not be empty")
        return v

    model_config = ConfigDict(populate_by_name=True)


class EngineConfig(BaseModel):
    """Validator engine configuration section."""
    timeout: float = 10.0
    order: RuleOrder = RuleOrder.ID
    builtin_rules: list[str] | None = Field(alias="builtinRules", default=None)

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError("timeout must be > 0")
        return v

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)


class RolesConfig(BaseModel):
    """Role scoping configuration section."""
    enabled: bool = False
    uri: str | None = None
    role_id: str = Field(alias="roleId", default="default")

    model_config = ConfigDict(populate_by_name=True)


class LoggingConfig(BaseModel):
    """Logging configuration section."""
    level: LogLevel = LogLevel.WARN

    model_config = ConfigDict(use_enum_values=True)


class ValidatorConfig(BaseModel):
    """Complete dochub-validator configuration model."""
    loader: LoaderConfig = Field(default_factory=LoaderConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    roles: RolesConfig = Field(default_factory=RolesConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(extra="forbid")


def load_config(config_path: str | Path | None = None) -> ValidatorConfig:
    """Load configuration from file with fallback to defaults.

    Args:
        config_path: Optional path to configuration file. If None, searches
                    current directory and parents for .dochub-validate.json

    Returns:
        ValidatorConfig: Loaded and validated configuration

    Raises:
        ValueError: If configuration is invalid
    """
    if config_path is None:
        config_path = find_config_file()
    else:
        config_path = Path(config_path)

    if config_path and config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                config_data = json.load(f)
            return ValidatorConfig(**config_data)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in config file {config_path}: {e}")
        except Exception as e:
            raise ValueError(f"Failed to load config from {config_path}: {e}")
    else:
        return create_default_config()


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Find the configuration file by searching up the directory tree.

    Args:
        start_dir: Directory to start search from (default: current directory)

    Returns:
        Path to config file if found, None otherwise
    """
    if start_dir is None:
        start_dir = Path.cwd()

    current = Path(start_dir).resolve()

    while True:
        config_file = current / CONFIG_FILE_NAME
        if config_file.exists():
            return config_file

        parent = current.parent
        if parent == current:  # Reached root directory
            break
        current = parent

    return None


def create_default_config() -> ValidatorConfig:
    """Create default configuration."""
    return ValidatorConfig()


def apply_environment(config: ValidatorConfig, environ: Mapping[str, str]) -> ValidatorConfig:
    """Return a copy of ``config`` with DocHub environment overrides applied.

    The environment is passed in explicitly; nothing here reads process state.

    Args:
        config: Base configuration
        environ: Environment-style mapping (usually ``os.environ``)

    Returns:
        New configuration instance
    """
    loader = config.loader
    roles = config.roles

    root_manifest = environ.get(ENV_ROOT_MANIFEST)
    if root_manifest:
        loader = loader.model_copy(update={"root_manifest": root_manifest})

    roles_mode = environ.get(ENV_ROLES_MODEL)
    if roles_mode is not None:
        enabled = roles_mode.strip().lower() not in ("", "0", "false", "off", "no")
        roles = roles.model_copy(update={"enabled": enabled})

    roles_uri = environ.get(ENV_ROLES)
    if roles_uri:
        roles = roles.model_copy(update={"uri": roles_uri})

    return config.model_copy(update={"loader": loader, "roles": roles})
