"""
Configuration source resolution.

Decides which property sources a process loads. The value is looked up under
a fixed key (``config``) in this order:

1. Override source (``os.environ`` unless injected), if present and non-empty
2. Command-line argument ``config=...``
3. The literal default ``config.properties``

A value names a single source or a comma-separated list of sources; each
source is a file, a directory, a packaged resource or a packaged resource
directory (the loader decides which). Values that do not match the source
grammar are treated as absent, so malformed or injected text falls through to
the next candidate instead of being loaded.
"""

import os
import re
from typing import Mapping, Sequence

from procboot.config.args import get_arg_value
from procboot.system import LoggerFactory

logger = LoggerFactory.get_logger()

CONFIG_KEY = "config"
DEFAULT_CONFIG_SOURCE = "config.properties"

_SEPARATORS = "".join(sorted({"/", os.sep}))
_TOKEN_PATTERN = re.compile(r"[a-zA-Z0-9.\-_" + re.escape(_SEPARATORS) + r"]+")


def parse_sources(text: str | None) -> tuple[str, ...]:
    """
    Parse a source value into source identifiers.

    Every comma-separated token must be non-empty and contain only ASCII
    alphanumerics, ``.``, ``-``, ``_`` or a path separator. If any token
    fails, the whole value is rejected.

    Args:
        text: Raw value (may be None)

    Returns:
        Tuple of identifiers, empty when ``text`` is absent or malformed

    Examples:
        >>> parse_sources("dir/config1.properties,dir/config2.properties")
        ('dir/config1.properties', 'dir/config2.properties')
        >>> parse_sources("config.properties,")
        ()
    """
    if not text:
        return ()
    tokens = text.split(",")
    if all(_TOKEN_PATTERN.fullmatch(token) for token in tokens):
        return tuple(tokens)
    logger.debug("sources.rejected", value=text)
    return ()


def resolve_config_sources(
    args: Sequence[str],
    override: Mapping[str, str] | None = None,
    key: str = CONFIG_KEY,
    default: str = DEFAULT_CONFIG_SOURCE,
) -> tuple[str, ...]:
    """
    Resolve the ordered configuration sources for this process.

    Args:
        args: Initial command-line arguments
        override: Override source (defaults to ``os.environ``)
        key: Key looked up in both the override source and the arguments
        default: Source used when neither yields a valid value

    Returns:
        Ordered tuple of source identifiers (never empty)
    """
    override = os.environ if override is None else override

    sources = parse_sources(override.get(key))
    origin = "override"
    if not sources:
        sources = parse_sources(get_arg_value(args, key))
        origin = "argument"
    if not sources:
        sources = (default,)
        origin = "default"

    logger.debug("sources.resolved", origin=origin, sources=list(sources))
    return sources
