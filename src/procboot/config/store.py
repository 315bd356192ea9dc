"""
Validated, override-aware property store.

A PropertyStore holds the string properties of a process. The intended use is:

1. load properties once at startup (see ``procboot.config.loader``)
2. read them anywhere in the process with ``get`` and its typed variants

Reads cascade through three sources in order: the loaded properties, the
override source (``os.environ`` unless injected), then the caller's default.
Keys present in the override source are never loaded into the store, so an
override always wins without a per-key merge.

Loading is strict: keys and values must not carry leading/trailing whitespace
and no key may be loaded twice during the life of the store (a key that was
removed may be loaded again). Empty values are dropped with a warning.

Thread Safety:
- All accessors are guarded by an internal re-entrant lock
"""

import os
import threading
from types import MappingProxyType
from typing import Mapping

from procboot.config.errors import PropertyAlreadyDefinedError, PropertyFormatError, PropertyValueError
from procboot.system import LoggerFactory

logger = LoggerFactory.get_logger()

_TRUE = "true"
_FALSE = "false"


class CascadingLookup:
    """
    Ordered chain of key/value sources.

    ``get`` returns the value from the first source that defines the key,
    otherwise the default.

    Example:
        >>> lookup = CascadingLookup({"a": "1"}, {"a": "2", "b": "3"})
        >>> lookup.get("a"), lookup.get("b"), lookup.get("c", "x")
        ('1', '3', 'x')
    """

    def __init__(self, *sources: Mapping[str, str]):
        self._sources = sources

    def get(self, key: str, default: str | None = None) -> str | None:
        for source in self._sources:
            value = source.get(key)
            if value is not None:
                return value
        return default


class PropertyStore:
    """
    Process property table with cascading lookup and typed accessors.

    Example:
        >>> store = PropertyStore(override={})
        >>> store.merge({"pool.size": "8", "feature.enabled": "true"}, origin="example")
        2
        >>> store.get_int("pool.size", 1)
        8
        >>> store.get("missing", "fallback")
        'fallback'
    """

    def __init__(self, override: Mapping[str, str] | None = None):
        """
        Initialize an empty store.

        Args:
            override: Override source consulted after the store on every read.
                      Defaults to ``os.environ``.
        """
        self._override: Mapping[str, str] = os.environ if override is None else override
        self._props: dict[str, str] = {}
        self._lock = threading.RLock()
        self._lookup = CascadingLookup(self._props, self._override)
        self._checked = False
        self._loaded = False

    @property
    def override(self) -> Mapping[str, str]:
        """Override source consulted after the loaded properties."""
        return self._override

    @property
    def is_loaded(self) -> bool:
        """True once a load has completed and until the store is cleared."""
        with self._lock:
            return self._loaded

    def mark_loaded(self) -> None:
        with self._lock:
            self._loaded = True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, key: str, default: str | None = None) -> str | None:
        """
        Get a property value.

        Returns the loaded value if present, otherwise the override value,
        otherwise ``default``.
        """
        self._check_once()
        with self._lock:
            return self._lookup.get(key, default)

    def get_int(self, key: str, default: int) -> int:
        """
        Get a property as an int.

        Raises:
            PropertyValueError: If the value is present but not an integer
        """
        value = self.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError as e:
            raise PropertyValueError(f"Property [{key}] value [{value}] is not an integer") from e

    def get_bool(self, key: str, default: bool) -> bool:
        """
        Get a property as a bool (``true``/``false``, case-insensitive).

        Raises:
            PropertyValueError: If the value is present but not a boolean
        """
        value = self.get(key)
        if value is None:
            return default
        lowered = value.strip().lower()
        if lowered == _TRUE:
            return True
        if lowered == _FALSE:
            return False
        raise PropertyValueError(f"Property [{key}] value [{value}] is not a boolean (true/false)")

    def get_list(self, key: str, default: list[str] | None = None) -> list[str]:
        """
        Get a comma-separated property as a list.

        Elements are trimmed and empty elements dropped.
        """
        value = self.get(key)
        if value is None:
            return list(default) if default is not None else []
        return [item.strip() for item in value.split(",") if item.strip()]

    def snapshot(self) -> Mapping[str, str]:
        """Get an immutable copy of the loaded properties (override source excluded)."""
        self._check_once()
        with self._lock:
            return MappingProxyType(dict(self._props))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set(self, key: str, value: str) -> str | None:
        """
        Create or update a property.

        Returns:
            The previous value if the property was updated, else None
        """
        with self._lock:
            previous = self._props.get(key)
            self._props[key] = value
        if previous is not None:
            logger.warning("properties.replaced", key=key, previous=previous, value=value)
        return previous

    def remove(self, key: str) -> str | None:
        """
        Remove a property.

        Returns:
            The previous value if the property existed, else None
        """
        with self._lock:
            previous = self._props.pop(key, None)
        if previous is not None:
            logger.warning("properties.removed", key=key)
        return previous

    def clear(self) -> int:
        """
        Unload the store: remove every property and reset the loaded flag.

        Returns:
            Number of properties removed
        """
        with self._lock:
            keys = list(self._props)
            for key in keys:
                self.remove(key)
            self._loaded = False
        return len(keys)

    def merge(self, batch: Mapping[str, str], origin: str = "<memory>") -> int:
        """
        Merge a freshly loaded batch of properties.

        Processing order:
        1. Drop keys defined in the override source (warning)
        2. Validate keys and values for leading/trailing whitespace
        3. Reject keys already present in the store
        4. Insert the remainder, dropping empty values (warning)

        Validation happens before anything is inserted, so a failing batch
        leaves the store unchanged.

        Args:
            batch: Parsed properties from one stream
            origin: Source description used in log context

        Returns:
            Number of properties added

        Raises:
            PropertyFormatError: If a key or value has leading/trailing whitespace or a key is empty
            PropertyAlreadyDefinedError: If a key is already loaded
        """
        with self._lock:
            accepted: dict[str, str] = {}
            for key, value in batch.items():
                if key in self._override:
                    logger.warning("properties.overridden", key=key, origin=origin)
                    continue
                _validate_key(key)
                _validate_value(key, value)
                if key in self._props:
                    raise PropertyAlreadyDefinedError(f"Property with key [{key}] is already defined")
                accepted[key] = value

            added = 0
            for key, value in accepted.items():
                if not value:
                    logger.warning("properties.empty_removed", key=key, origin=origin)
                    continue
                self._props[key] = value
                added += 1

        logger.debug("properties.merged", origin=origin, added=added)
        return added

    def _check_once(self) -> None:
        """Warn once if the first read finds nothing loaded."""
        with self._lock:
            if self._checked:
                return
            self._checked = True
            empty = not self._props
        if empty:
            logger.warning(
                "properties.none_loaded",
                hint="No properties have been loaded, did you forget to load a configuration source?",
            )


def _validate_key(key: str) -> None:
    if not key:
        raise PropertyFormatError("Property key cannot be empty")
    if key != key.strip():
        raise PropertyFormatError(f"Property key '{key}' contains leading/trailing whitespace")


def _validate_value(key: str, value: str) -> None:
    if value != value.strip():
        raise PropertyFormatError(f"Property [{key}] value '{value}' contains leading/trailing whitespace")


_default_store: PropertyStore | None = None
_default_store_lock = threading.Lock()


def get_property_store() -> PropertyStore:
    """
    Get the process-wide property store (created on first use).

    Components should accept a store explicitly; this accessor is the default
    they fall back to.
    """
    global _default_store
    with _default_store_lock:
        if _default_store is None:
            _default_store = PropertyStore()
        return _default_store


def reset_property_store(store: PropertyStore | None = None) -> PropertyStore:
    """
    Replace the process-wide property store (mainly for testing).

    Args:
        store: Replacement store. A new empty store if None.

    Returns:
        The new process-wide store
    """
    global _default_store
    with _default_store_lock:
        _default_store = store if store is not None else PropertyStore()
        return _default_store
