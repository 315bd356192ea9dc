"""
procboot - Process Bootstrap Toolkit

Resolves and validates process configuration from override, command-line and
file sources, and watches the process for thread deadlocks.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("procboot")
except PackageNotFoundError:
    __version__ = "0.0.0.dev"  # Fallback for development


__all__ = [
    "__version__",
]
