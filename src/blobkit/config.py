"""Storage configuration helpers.

Drivers are declared in a YAML file and registered explicitly at startup::

    drivers:
      - scheme: data
        kind: local
        work_dir: /srv/data
        perm: "0640"
      - scheme: bucket
        kind: fs
        location: /mnt/share
        work_dir: /var/cache/blobkit
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .constants import CONFIG_ENV
from .errors import ConfigError
from .registry import Registry
from .storage.factory import DRIVER_KINDS, default_registry, make_driver

logger = logging.getLogger(__name__)


class DriverSpec(BaseModel):
    """One driver entry of the configuration file.

    Keys other than ``scheme`` and ``kind`` are passed to the driver
    constructor, which validates them.
    """
    model_config = ConfigDict(extra="allow")

    scheme: str
    kind: str = "local"

    @field_validator("kind")
    @classmethod
    def validate_kind(cls, v: str) -> str:
        if v not in DRIVER_KINDS:
            raise ValueError(f"unknown driver kind '{v}' (available: {', '.join(sorted(DRIVER_KINDS))})")
        return v

    @property
    def options(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})


class StorageConfig(BaseModel):
    """Storage configuration (drivers to register)."""

    drivers: List[DriverSpec] = Field(default_factory=list)
    include_defaults: bool = True   # Register the built-in "file" scheme

    @model_validator(mode="after")
    def validate_unique_schemes(self):
        """Ensure every scheme is declared once."""
        seen = set()
        for spec in self.drivers:
            if spec.scheme in seen:
                raise ValueError(f"scheme '{spec.scheme}' declared more than once")
            seen.add(spec.scheme)
        return self


def config_path_from_env() -> Optional[Path]:
    """Config file named by BLOBKIT_CONFIG, if set."""
    value = os.environ.get(CONFIG_ENV, "").strip()
    return Path(value).expanduser() if value else None


def load_config(path: Optional[Path] = None) -> StorageConfig:
    """
    Load storage configuration from YAML.

    Args:
        path: Config file (default: BLOBKIT_CONFIG; empty config when unset)

    Raises:
        ConfigError: If the file is missing or invalid
    """
    path = path or config_path_from_env()
    if path is None:
        return StorageConfig()

    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text()) or {}
        return StorageConfig(**data)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except (ValidationError, TypeError) as e:
        raise ConfigError(f"Invalid storage config in {path}: {e}") from e


def build_registry(config: StorageConfig) -> Registry:
    """
    Create a registry with every configured driver registered.

    Raises:
        ConfigError: If a driver cannot be built or a scheme clashes
    """
    registry = default_registry() if config.include_defaults else Registry()
    for spec in config.drivers:
        if registry.registered(spec.scheme):
            # Configured drivers override built-in defaults
            registry.unregister(spec.scheme)
        try:
            driver = make_driver(spec.kind, **spec.options)
        except (TypeError, ValidationError) as e:
            raise ConfigError(f"Invalid options for driver '{spec.scheme}' ({spec.kind}): {e}") from e
        registry.register(spec.scheme, driver)
        logger.debug("Configured %s:// -> %r", spec.scheme, driver)
    return registry
