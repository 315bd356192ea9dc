"""Command-line argument helpers."""

from typing import Sequence


def get_arg_value(args: Sequence[str], key: str) -> str | None:
    """
    Get the value of the first ``key=value`` argument whose key equals ``key``.

    Only the first ``=`` separates key from value, so ``config=a=b`` yields
    ``a=b``. Arguments without ``=`` never match.

    Args:
        args: Flat argument list (e.g. ``sys.argv[1:]``)
        key: Argument key to look for

    Returns:
        Text to the right of the ``=``, or None if no argument matches

    Example:
        >>> get_arg_value(["config=config.properties", "verbose"], "config")
        'config.properties'
    """
    for arg in args:
        name, sep, value = arg.partition("=")
        if sep and name == key:
            return value
    return None
