"""Protocol registry for URL resolution.

The registry maps URL schemes to drivers and turns URLs into Blob handles::

    registry = Registry()
    registry.register("data", LocalDriver("/srv/data"))
    blob = registry.resolve("data://reports/q1.csv?encoding=latin-1")

Registries are plain objects: build one at startup (see ``config.build_registry``
and ``storage.factory.default_registry``) and pass it to the code that
resolves URLs. Registration is meant to happen before request handling
starts; the internal lock only keeps the map itself consistent.
"""

import logging
import threading
import urllib.parse
from typing import TYPE_CHECKING, Callable, Dict, List, Union

from .errors import SchemeAlreadyRegisteredError, SchemeNotRegisteredError
from .paths import safepath
from .storage.base import Driver

if TYPE_CHECKING:
    from .blob import Blob

logger = logging.getLogger(__name__)

DriverFactory = Callable[[], Driver]


def parse_opts(query: str) -> Dict[str, str]:
    """Parse a query string, keeping only the first value of repeated keys.

    Examples:
        "a=1&b=2&a=3" -> {"a": "1", "b": "2"}
    """
    opts: Dict[str, str] = {}
    for key, value in urllib.parse.parse_qsl(query or "", keep_blank_values=True):
        opts.setdefault(key, value)
    return opts


def split_url(url: str):
    """Split a storage URL into (scheme, logical path, options).

    The authority part belongs to the path: "mem://a/b" has path "a/b",
    "file:///srv/x" has path "srv/x".
    """
    parts = urllib.parse.urlsplit(url)
    path = safepath(urllib.parse.unquote(parts.netloc + parts.path))
    return parts.scheme, path, parse_opts(parts.query)


class Registry:
    """Mapping from URL scheme to driver."""

    def __init__(self):
        self._entries: Dict[str, Union[Driver, DriverFactory]] = {}
        self._lock = threading.RLock()

    def __contains__(self, scheme: str) -> bool:
        return self.registered(scheme)

    def __repr__(self) -> str:
        return f"<Registry schemes={self.schemes()}>"

    def registered(self, scheme: str) -> bool:
        with self._lock:
            return str(scheme) in self._entries

    def schemes(self) -> List[str]:
        with self._lock:
            return sorted(self._entries)

    def register(self, scheme: str, driver: Union[Driver, DriverFactory]) -> None:
        """Bind *scheme* to a driver or a zero-argument driver factory.

        A factory is called on first use and its driver is kept.

        Raises:
            SchemeAlreadyRegisteredError: If the scheme is already bound
        """
        scheme = str(scheme)
        with self._lock:
            if scheme in self._entries:
                raise SchemeAlreadyRegisteredError(scheme)
            self._entries[scheme] = driver
        logger.debug("Registered scheme %s -> %r", scheme, driver)

    def unregister(self, scheme: str) -> None:
        """Remove a binding.

        Raises:
            SchemeNotRegisteredError: If the scheme was never bound
        """
        scheme = str(scheme)
        with self._lock:
            if scheme not in self._entries:
                raise SchemeNotRegisteredError(scheme)
            del self._entries[scheme]
        logger.debug("Unregistered scheme %s", scheme)

    def driver(self, scheme: str) -> Driver:
        """Get the driver bound to *scheme*, building it from its factory if needed.

        Raises:
            SchemeNotRegisteredError: If the scheme is not bound
        """
        scheme = str(scheme)
        with self._lock:
            entry = self._entries.get(scheme)
            if entry is None:
                raise SchemeNotRegisteredError(scheme)
            if not isinstance(entry, Driver):
                entry = entry()
                self._entries[scheme] = entry
            return entry

    def resolve(self, url: str) -> "Blob":
        """Resolve a URL to a Blob handle on the matching driver.

        Raises:
            SchemeNotRegisteredError: If no driver is bound to the URL's scheme
            InvalidOptionError: If the query string holds unsupported options
        """
        scheme, path, opts = split_url(url)
        return self.driver(scheme).resolve(path, **opts)
