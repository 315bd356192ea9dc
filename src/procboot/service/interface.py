"""
Subsystem Protocol Interface.

A subsystem is a unit of process lifecycle: the application starts its
subsystems in order at startup and stops them in reverse order at shutdown,
handing each the same AppContext.
"""

from dataclasses import dataclass, field
from typing import Protocol

from procboot.config.store import PropertyStore, get_property_store


@dataclass
class AppContext:
    """
    State shared by the subsystems of one application.

    Attributes:
        name: Application name
        init_args: Initial command-line arguments (``key=value`` tokens)
        properties: Property store (defaults to the process-wide store)
    """

    name: str
    init_args: list[str] = field(default_factory=list)
    properties: PropertyStore = field(default_factory=get_property_store)


class Subsystem(Protocol):
    """
    Protocol interface for lifecycle subsystems.

    Example:
        >>> class Cache:
        ...     def start(self, context: AppContext) -> None: ...
        ...     def stop(self, context: AppContext) -> None: ...
    """

    def start(self, context: AppContext) -> None:
        """Bring the subsystem up; raise to abort startup."""
        ...

    def stop(self, context: AppContext) -> None:
        """Release whatever ``start`` acquired."""
        ...
