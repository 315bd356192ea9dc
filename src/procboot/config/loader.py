"""
Property source loader.

Turns a source identifier into a property stream and merges it into a
PropertyStore. For each identifier the loader tries, in order:

1. Regular file on the filesystem
2. Filesystem directory: every ``*.properties`` file directly inside it
3. Packaged resource directory: every ``*.properties`` resource directly inside it
4. Packaged resource file

Packaged resources are resolved with ``importlib.resources`` relative to an
anchor package supplied by the application (``resource_package``). A resource
that does not exist contributes no properties and only logs a warning.

Stream format (UTF-8):
    # comment
    db.url=jdbc:example://localhost/app
    pool.size = 8

Whitespace around the first ``=`` is a separator. Every stream is checked for
duplicate keys before it is parsed into the store.
"""

import os
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Iterable

from procboot.config.errors import DuplicatePropertyError, PropertyFormatError, PropertySourceError
from procboot.config.store import PropertyStore, get_property_store
from procboot.system import LoggerFactory

logger = LoggerFactory.get_logger()

PROPERTIES_EXT = ".properties"
COMMENT_PREFIX = "#"


def _property_lines(text: str) -> Iterable[tuple[int, str]]:
    """Yield (line number, line) for every non-blank, non-comment line."""
    for lineno, line in enumerate(text.splitlines(), start=1):
        stripped = line.lstrip()
        if not stripped or stripped.startswith(COMMENT_PREFIX):
            continue
        yield lineno, stripped


def _split_line(line: str, lineno: int, origin: str) -> tuple[str, str]:
    key, sep, value = line.partition("=")
    if not sep:
        raise PropertyFormatError(f"Line {lineno} of [{origin}] is not a key=value pair: {line!r}")
    return key.rstrip(), value.lstrip()


def check_duplicate_keys(text: str, origin: str) -> None:
    """
    Reject a stream that defines the same key twice.

    Raises:
        DuplicatePropertyError: On the first repeated key
        PropertyFormatError: If a line is not a key=value pair
    """
    seen: set[str] = set()
    for lineno, line in _property_lines(text):
        key, _ = _split_line(line, lineno, origin)
        if key in seen:
            raise DuplicatePropertyError(f"Property stream [{origin}] contains duplicate key [{key}]")
        seen.add(key)


def parse_properties(data: bytes, origin: str = "<stream>") -> dict[str, str]:
    """
    Parse a property stream.

    Args:
        data: Raw UTF-8 bytes
        origin: Source description used in errors and logs

    Returns:
        Dict of key to value, in stream order

    Raises:
        PropertyFormatError: If the stream is not UTF-8 or a line is malformed
        DuplicatePropertyError: If a key is defined twice
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise PropertyFormatError(f"Property stream [{origin}] is not valid UTF-8: {e}") from e

    check_duplicate_keys(text, origin)

    properties: dict[str, str] = {}
    for lineno, line in _property_lines(text):
        key, value = _split_line(line, lineno, origin)
        properties[key] = value
    return properties


class PropertyLoader:
    """
    Loads property sources into a PropertyStore.

    Example:
        >>> loader = PropertyLoader(store, resource_package="myapp.config")
        >>> loader.load_sources(["defaults", "/etc/myapp/site.properties"])
        14
    """

    def __init__(self, store: PropertyStore | None = None, resource_package: str | None = None):
        """
        Initialize loader.

        Args:
            store: Target store (defaults to the process-wide store)
            resource_package: Importable package that packaged resources are
                              relative to. None disables packaged resources.
        """
        self.store = store if store is not None else get_property_store()
        self.resource_package = resource_package

    def load_sources(self, sources: Iterable[str]) -> int:
        """
        Load every source in order and mark the store loaded.

        Returns:
            Total number of properties added
        """
        total = 0
        for source in sources:
            total += self.load_source(source)
        self.store.mark_loaded()
        return total

    def load_source(self, source: str) -> int:
        """Load one source identifier, deciding how from what it names."""
        path = Path(source)
        if path.is_file():
            return self.load_files(source)
        if path.is_dir():
            return self.load_directory(source)
        if self.is_resource_dir(source):
            return self.load_resource_directory(source)
        return self.load_resources(source)

    def load_files(self, *paths: str | Path) -> int:
        """
        Load one or more property files.

        Raises:
            PropertySourceError: If a path is not a regular file or cannot be read
        """
        logger.info("properties.loading_files", files=[str(p) for p in paths])
        total = 0
        for path in map(Path, paths):
            if not path.is_file():
                raise PropertySourceError(f"Expect [{path}] to be a property file")
            try:
                data = path.read_bytes()
            except OSError as e:
                raise PropertySourceError(f"Unable to read property file [{path}]: {e}") from e
            total += self.load_stream(data, str(path))
        return total

    def load_directory(self, directory: str | Path) -> int:
        """
        Load every ``*.properties`` file directly inside ``directory``.

        Raises:
            PropertySourceError: If ``directory`` is not a directory
        """
        directory = Path(directory)
        logger.info("properties.loading_directory", directory=str(directory))
        if not directory.is_dir():
            raise PropertySourceError(f"Expect [{directory}] to be a directory with *{PROPERTIES_EXT} files in it")
        files = sorted(p for p in directory.iterdir() if p.is_file() and p.name.endswith(PROPERTIES_EXT))
        if not files:
            return 0
        return self.load_files(*files)

    def load_resources(self, *names: str) -> int:
        """Load one or more packaged resources; missing resources are skipped with a warning."""
        total = 0
        for name in names:
            logger.info("properties.loading_resource", resource=name, package=self.resource_package)
            resource = self._resource(name)
            if resource is None or not resource.is_file():
                logger.warning("properties.resource_missing", resource=name, package=self.resource_package)
                continue
            total += self.load_stream(resource.read_bytes(), f"{self.resource_package}:{name}")
        return total

    def load_resource_directory(self, name: str) -> int:
        """
        Load every ``*.properties`` resource directly inside resource directory ``name``.

        Raises:
            PropertySourceError: If ``name`` is not a packaged resource directory
        """
        resource = self._resource(name)
        if resource is None or not resource.is_dir():
            raise PropertySourceError(f"[{name}] is not a resource directory")
        logger.info("properties.loading_resource_directory", resource=name, package=self.resource_package)
        total = 0
        for entry in sorted(resource.iterdir(), key=lambda r: r.name):
            if entry.is_file() and entry.name.endswith(PROPERTIES_EXT):
                total += self.load_stream(entry.read_bytes(), f"{self.resource_package}:{name}/{entry.name}")
        return total

    def is_resource_dir(self, name: str) -> bool:
        """Check whether ``name`` is a packaged resource directory."""
        resource = self._resource(name)
        return resource is not None and resource.is_dir()

    def load_stream(self, data: bytes, origin: str) -> int:
        """
        Parse a raw property stream and merge it into the store.

        Returns:
            Number of properties added
        """
        batch = parse_properties(data, origin)
        added = self.store.merge(batch, origin=origin)
        logger.debug("properties.stream_loaded", origin=origin, parsed=len(batch), added=added)
        return added

    def _resource(self, name: str) -> Traversable | None:
        if self.resource_package is None:
            return None
        try:
            node = resources.files(self.resource_package)
        except ModuleNotFoundError:
            logger.warning("properties.resource_package_missing", package=self.resource_package)
            return None
        for part in name.replace(os.sep, "/").split("/"):
            if part:
                node = node.joinpath(part)
        return node
