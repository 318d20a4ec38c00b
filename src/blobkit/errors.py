"""Custom exceptions for blobkit.

This module defines typed exceptions for better error handling and clearer
error messages throughout the storage layer.
"""

import builtins


class BlobkitError(RuntimeError):
    """Base class for all blobkit errors."""
    pass


# Storage Errors
class StorageError(BlobkitError):
    """Base class for storage-related errors."""
    pass


class BlobNotFoundError(StorageError, builtins.FileNotFoundError):
    """Object does not exist in the backend."""

    def __init__(self, path: str, protocol: str = ""):
        self.path = path
        self.protocol = protocol
        location = f"{protocol}://{path}" if protocol else path
        super().__init__(f"File not found: {location}")


class DriverNotImplementedError(StorageError, NotImplementedError):
    """Concrete driver omits a required primitive."""

    def __init__(self, driver: str, method: str):
        self.driver = driver
        self.method = method
        super().__init__(
            f"Driver {driver} does not implement '{method}'. "
            f"Every driver must provide the full primitive set."
        )


class PathEscapeError(StorageError, ValueError):
    """Resolved path leaves the driver root."""

    def __init__(self, path: str, root: str):
        self.path = path
        self.root = root
        super().__init__(f"Path escapes storage root {root}: {path}")


# Configuration Errors
class ConfigError(BlobkitError):
    """Base class for configuration errors."""
    pass


class SchemeAlreadyRegisteredError(ConfigError):
    """Scheme is already bound to a driver."""

    def __init__(self, scheme: str):
        self.scheme = scheme
        super().__init__(f"Scheme {scheme} is already registered")


class SchemeNotRegisteredError(ConfigError):
    """Scheme has no driver bound to it."""

    def __init__(self, scheme: str):
        self.scheme = scheme
        super().__init__(f"Scheme {scheme} is not registered")


class InvalidOptionError(ConfigError):
    """Option not recognized by the driver."""

    def __init__(self, name: str, driver: str):
        self.name = name
        self.driver = driver
        super().__init__(f"Option '{name}' is not supported by driver {driver}")


class UnknownDriverKindError(ConfigError):
    """No driver class for the requested kind."""

    def __init__(self, kind: str, known: list):
        self.kind = kind
        super().__init__(
            f"Unknown driver kind '{kind}'. "
            f"Available kinds: {', '.join(sorted(known))}"
        )
