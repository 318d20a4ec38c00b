"""Storage drivers."""

from .base import Driver
from .factory import default_registry, make_driver
from .fs import FilesystemBucketDriver
from .local import LocalDriver

__all__ = ["Driver", "FilesystemBucketDriver", "LocalDriver", "default_registry", "make_driver"]
