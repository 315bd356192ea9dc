"""
Property subsystem.

Loads the process properties at startup and unloads them at shutdown. It
should be the first subsystem started so later subsystems can read their
tunables from the store.

Sources come from the override value for ``config``, else a ``config=...``
argument, else ``config.properties``:

    myapp config=app.properties
    myapp config=app.properties,site.properties
    myapp config=config_dir/

Recommended report tunables:

    procboot.config.logPropValuesAfterLoad=true
    procboot.config.excludePropLogForKeysContainingCsv=secret,password,passwd,credential
"""

from typing import Callable, Mapping, Sequence

from procboot.config.loader import PropertyLoader
from procboot.config.reporter import RedactedReporter
from procboot.config.sources import resolve_config_sources
from procboot.config.store import PropertyStore, get_property_store
from procboot.service.interface import AppContext
from procboot.system import LoggerFactory

logger = LoggerFactory.get_logger()


def bootstrap_properties(
    args: Sequence[str],
    store: PropertyStore | None = None,
    resource_package: str | None = None,
    override: Mapping[str, str] | None = None,
    sink: Callable[[str], None] | None = None,
) -> PropertyStore:
    """
    Resolve, load and report the process properties.

    Loading happens at most once per store: once the store is loaded, later
    calls (eager or from PropSubsystem.start) only log and return it.

    Args:
        args: Initial command-line arguments
        store: Target store (defaults to the process-wide store)
        resource_package: Anchor package for packaged resources
        override: Override source used to pick sources (defaults to the store's)
        sink: Report line sink (defaults to the structured logger)

    Returns:
        The loaded store

    Raises:
        ConfigError: If any source fails to load
    """
    store = store if store is not None else get_property_store()
    if store.is_loaded:
        logger.debug("properties.already_loaded")
        return store
    override = store.override if override is None else override

    logger.info("properties.loading")
    sources = resolve_config_sources(args, override=override)
    PropertyLoader(store, resource_package=resource_package).load_sources(sources)
    RedactedReporter.from_store(store, sink=sink).report(store.snapshot())
    return store


class PropSubsystem:
    """
    Subsystem that loads properties on start and unloads them on stop.

    Example:
        >>> context = AppContext("orders", ["config=orders.properties"])
        >>> PropSubsystem(resource_package="orders.config").start(context)
    """

    def __init__(
        self,
        resource_package: str | None = None,
        override: Mapping[str, str] | None = None,
        sink: Callable[[str], None] | None = None,
    ):
        self.resource_package = resource_package
        self.override = override
        self.sink = sink

    def start(self, context: AppContext) -> None:
        bootstrap_properties(
            context.init_args,
            store=context.properties,
            resource_package=self.resource_package,
            override=self.override,
            sink=self.sink,
        )

    def stop(self, context: AppContext) -> None:
        logger.info("properties.unloading")
        removed = context.properties.clear()
        logger.debug("properties.unloaded", count=removed)
