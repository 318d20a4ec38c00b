"""Factory for creating storage drivers."""

from typing import Dict, Type

from ..errors import UnknownDriverKindError
from .base import Driver
from .fs import FilesystemBucketDriver
from .local import LocalDriver


def _azure_driver() -> Type[Driver]:
    # Imported lazily; the module itself only needs azure-storage-blob when a driver is built
    from .azure import AzureDriver
    return AzureDriver


DRIVER_KINDS: Dict[str, object] = {
    "local": LocalDriver,
    "fs": FilesystemBucketDriver,
    "azure": _azure_driver,
}


def driver_class(kind: str) -> Type[Driver]:
    """
    Look up the driver class for a kind.

    Raises:
        UnknownDriverKindError: If the kind is not known
    """
    entry = DRIVER_KINDS.get(kind)
    if entry is None:
        raise UnknownDriverKindError(kind, list(DRIVER_KINDS))
    if isinstance(entry, type):
        return entry
    return entry()


def make_driver(kind: str, **options) -> Driver:
    """
    Create a driver instance.

    Args:
        kind: Driver kind ("local", "fs", "azure")
        **options: Constructor arguments for the driver class

    Returns:
        Driver instance

    Raises:
        UnknownDriverKindError: If the kind is not known
        ConfigError: If the options are invalid
    """
    return driver_class(kind)(**options)


def default_registry():
    """
    Registry with the built-in schemes registered.

    Only ``file`` is registered: a LocalDriver rooted at the filesystem root,
    so ``file:///srv/data/x`` addresses ``/srv/data/x``. Other schemes need
    configuration (see ``blobkit.config``).
    """
    from ..registry import Registry

    registry = Registry()
    registry.register(LocalDriver.protocol, lambda: LocalDriver("/"))
    return registry
