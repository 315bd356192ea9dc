"""
Redacted property report.

Renders the loaded properties as sorted ``key=value`` lines for startup
diagnostics, masking values whose key contains a sensitive substring. Masking
only affects the report; stored values are untouched.

Both tunables are read from the property store itself:

    procboot.config.logPropValuesAfterLoad=true
    procboot.config.excludePropLogForKeysContainingCsv=secret,password,passwd,credential
"""

from typing import Callable, Mapping

from pydantic import BaseModel, Field

from procboot.config.store import PropertyStore
from procboot.system import LoggerFactory

logger = LoggerFactory.get_logger()

PROP_KEY_LOG_PROP_VALUES_AFTER_LOAD = "procboot.config.logPropValuesAfterLoad"
PROP_KEY_EXCLUDE_PROP_LOG_FOR_KEYS_CONTAINING_CSV = "procboot.config.excludePropLogForKeysContainingCsv"

DEFAULT_REDACTIONS = ("secret", "password", "passwd", "credential")
MASK = "***"


class ReportSettings(BaseModel):
    """Report tunables."""

    log_values: bool = Field(default=True, description="Emit one key=value line per property")
    redactions: tuple[str, ...] = Field(
        default=DEFAULT_REDACTIONS,
        description="Case-insensitive key substrings whose values are masked",
    )

    @classmethod
    def from_store(cls, store: PropertyStore) -> "ReportSettings":
        """Read report tunables from the store (defaults where absent)."""
        return cls(
            log_values=store.get_bool(PROP_KEY_LOG_PROP_VALUES_AFTER_LOAD, True),
            redactions=tuple(
                store.get_list(PROP_KEY_EXCLUDE_PROP_LOG_FOR_KEYS_CONTAINING_CSV, list(DEFAULT_REDACTIONS))
            ),
        )


def _log_sink(line: str) -> None:
    logger.info("properties.property", entry=line)


class RedactedReporter:
    """
    Reports loaded properties with sensitive values masked.

    Example:
        >>> reporter = RedactedReporter(redactions=("password",), sink=print)
        >>> reporter.report({"db.password": "hunter2", "db.user": "app"})
        db.password=***
        db.user=app
    """

    def __init__(
        self,
        log_values: bool = True,
        redactions: tuple[str, ...] = DEFAULT_REDACTIONS,
        sink: Callable[[str], None] | None = None,
    ):
        """
        Initialize reporter.

        Args:
            log_values: Emit per-key lines (the count is always logged)
            redactions: Case-insensitive key substrings to mask
            sink: Receives each rendered line (defaults to the structured logger)
        """
        self.log_values = log_values
        self.redactions = tuple(r.lower() for r in redactions if r)
        self.sink = sink if sink is not None else _log_sink

    @classmethod
    def from_store(cls, store: PropertyStore, sink: Callable[[str], None] | None = None) -> "RedactedReporter":
        settings = ReportSettings.from_store(store)
        return cls(log_values=settings.log_values, redactions=settings.redactions, sink=sink)

    def is_redacted(self, key: str) -> bool:
        lowered = key.lower()
        return any(redaction in lowered for redaction in self.redactions)

    def render(self, properties: Mapping[str, str]) -> list[str]:
        """Render sorted ``key=value`` lines, masking redacted keys."""
        return [
            f"{key}={MASK if self.is_redacted(key) else properties[key]}"
            for key in sorted(properties)
        ]

    def report(self, properties: Mapping[str, str]) -> list[str]:
        """
        Log the property count and, if enabled, emit each rendered line to the sink.

        Returns:
            Lines emitted to the sink
        """
        logger.info("properties.loaded", count=len(properties))
        if not self.log_values:
            return []
        lines = self.render(properties)
        for line in lines:
            self.sink(line)
        return lines
