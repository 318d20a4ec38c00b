"""Storage-related data models.

This module contains the metadata record returned by driver info queries and
the typed option models used to configure drivers and blob handles.
"""

import locale
from datetime import datetime, timezone
from pathlib import Path
from typing import ClassVar, Dict, FrozenSet, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import InvalidOptionError
from .paths import norm_mode

EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


class FileInfo(BaseModel):
    """Metadata about a stored object."""
    model_config = ConfigDict(frozen=True)

    path: Optional[str] = None
    size: int = Field(default=0, ge=0)          # Bytes
    mtime: datetime = EPOCH                     # Last modification
    mode: int = 0                               # Permission bits
    content_type: Optional[str] = None          # MIME type when known
    metadata: Dict[str, str] = Field(default_factory=dict)


def default_encoding() -> str:
    """Platform default encoding for text data."""
    return locale.getpreferredencoding(False)


def _check_extras(extras: Dict[str, str], allowed: FrozenSet[str], driver: str) -> Dict[str, str]:
    for key in extras:
        if key not in allowed:
            raise InvalidOptionError(key, driver)
    return extras


class DriverOptions(BaseModel):
    """Construction parameters common to every driver.

    Backend-specific settings go in ``extras`` and must be declared by the
    driver class (see ``Driver.extra_options``).
    """
    model_config = ConfigDict(extra="forbid")

    work_dir: Path
    encoding: str = Field(default_factory=default_encoding)
    perm: Optional[int] = None
    extras: Dict[str, str] = Field(default_factory=dict)

    @field_validator("perm", mode="before")
    @classmethod
    def validate_perm(cls, v: Union[int, str, None]) -> Optional[int]:
        """Accept int or octal string, masked to 0o777."""
        if v is None or v == "":
            return None
        return norm_mode(v)

    @field_validator("work_dir", mode="before")
    @classmethod
    def validate_work_dir(cls, v: Union[str, Path]) -> Path:
        """Expand ~ and make absolute."""
        return Path(v).expanduser().absolute()

    def checked(self, allowed: FrozenSet[str], driver: str) -> "DriverOptions":
        """Validate ``extras`` against the driver's declared option names."""
        _check_extras(self.extras, allowed, driver)
        return self


class BlobOptions(BaseModel):
    """Per-handle options, usually parsed from a URL query string."""
    model_config = ConfigDict(extra="forbid")

    KNOWN: ClassVar[FrozenSet[str]] = frozenset({"encoding", "perm"})

    encoding: Optional[str] = None
    perm: Optional[int] = None
    extras: Dict[str, str] = Field(default_factory=dict)

    @field_validator("perm", mode="before")
    @classmethod
    def validate_perm(cls, v: Union[int, str, None]) -> Optional[int]:
        """Accept int or octal string, masked to 0o777."""
        if v is None or v == "":
            return None
        return norm_mode(v)

    @classmethod
    def parse(cls, options: Dict[str, str], allowed: FrozenSet[str], driver: str) -> "BlobOptions":
        """Split a flat option map into known fields and declared extras.

        Raises:
            InvalidOptionError: If a key is neither known nor declared
        """
        known = {k: v for k, v in options.items() if k in cls.KNOWN}
        extras = {k: v for k, v in options.items() if k not in cls.KNOWN}
        _check_extras(extras, allowed, driver)
        return cls(extras=extras, **known)
