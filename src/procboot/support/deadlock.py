"""
Periodic deadlock detector.

Runs a fixed-rate check on a dedicated daemon thread. Every tick asks the
wait-for graph (see ``procboot.support.locks``) for cycles and, when one
exists, logs a single report at error level describing every deadlocked
thread: name, ident, locks held, lock awaited and Python stack.

Lifecycle:
    idle --start(period)--> running --stop(timeout)--> idle

Tunables (read from the property store by DeadlockSettings):
    procboot.deadlock.enabled=true
    procboot.deadlock.period=PT10S
    procboot.deadlock.shutdownTimeout=PT5S
"""

import sys
import threading
import time
import traceback
from datetime import timedelta
from typing import Callable

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from procboot.config.errors import PropertyValueError
from procboot.config.store import PropertyStore
from procboot.support.locks import WaitForGraph, get_default_graph
from procboot.system import LoggerFactory

logger = LoggerFactory.get_logger()

PROP_KEY_DEADLOCK_ENABLED = "procboot.deadlock.enabled"
PROP_KEY_DEADLOCK_PERIOD = "procboot.deadlock.period"
PROP_KEY_DEADLOCK_SHUTDOWN_TIMEOUT = "procboot.deadlock.shutdownTimeout"

DEFAULT_PERIOD = timedelta(seconds=10)
DEFAULT_SHUTDOWN_TIMEOUT = timedelta(seconds=5)

THREAD_NAME = "deadlock-detect"

_duration = TypeAdapter(timedelta)


def as_duration(value: timedelta | str | float) -> timedelta:
    """
    Coerce a duration.

    Accepts a timedelta, an ISO-8601 duration string (``PT10S``) or seconds.

    Raises:
        ValueError: If the value is not a duration
    """
    if isinstance(value, timedelta):
        return value
    try:
        return _duration.validate_python(value)
    except ValidationError as e:
        raise ValueError(f"[{value}] is not a duration") from e


class DetectorInterruptedError(RuntimeError):
    """Caller was interrupted while waiting for the detector to stop."""

    pass


class DeadlockSettings(BaseModel):
    """Deadlock detector tunables."""

    enabled: bool = Field(default=True, description="Start the detector with the process")
    period: timedelta = Field(default=DEFAULT_PERIOD, description="Interval between checks")
    shutdown_timeout: timedelta = Field(default=DEFAULT_SHUTDOWN_TIMEOUT, description="Max wait for the worker on stop")

    @classmethod
    def from_store(cls, store: PropertyStore) -> "DeadlockSettings":
        """
        Read detector tunables from the store (defaults where absent).

        Raises:
            PropertyValueError: If a tunable is present but malformed
        """
        enabled = store.get_bool(PROP_KEY_DEADLOCK_ENABLED, True)
        values = {
            "period": (PROP_KEY_DEADLOCK_PERIOD, store.get(PROP_KEY_DEADLOCK_PERIOD)),
            "shutdown_timeout": (PROP_KEY_DEADLOCK_SHUTDOWN_TIMEOUT, store.get(PROP_KEY_DEADLOCK_SHUTDOWN_TIMEOUT)),
        }
        durations = {}
        for field, (key, raw) in values.items():
            if raw is None:
                continue
            try:
                durations[field] = as_duration(raw)
            except ValueError as e:
                raise PropertyValueError(f"Property [{key}] value [{raw}] is not an ISO-8601 duration") from e
        return cls(enabled=enabled, **durations)


class ThreadState(BaseModel):
    """State of one deadlocked thread."""

    name: str
    ident: int
    held: list[str] = Field(default_factory=list)
    waiting_for: str | None = None
    stack: list[str] = Field(default_factory=list)

    def __str__(self) -> str:
        lines = [f'"{self.name}" ident={self.ident} waiting for {self.waiting_for}']
        lines.extend(f"\tholds {name}" for name in self.held)
        lines.extend("\t" + frame for frame in self.stack)
        return "\n".join(lines)


class DeadlockReport(BaseModel):
    """Deadlocked threads found by one tick."""

    cycles: list[tuple[int, ...]]
    threads: list[ThreadState]

    def __str__(self) -> str:
        header = f"Deadlock detected ({len(self.cycles)} cycle(s), {len(self.threads)} thread(s))"
        return "\n".join([header, *(str(t) for t in self.threads)])


class DeadlockDetector:
    """
    Cancellable periodic deadlock check.

    Example:
        >>> detector = DeadlockDetector()
        >>> detector.start("PT10S")
        >>> ...
        >>> detector.stop(timedelta(seconds=5))
    """

    def __init__(
        self,
        graph: WaitForGraph | None = None,
        sink: Callable[[DeadlockReport], None] | None = None,
    ):
        """
        Initialize detector.

        Args:
            graph: Wait-for graph to inspect (defaults to the process-wide graph)
            sink: Optional callback receiving every report
        """
        self.graph = graph if graph is not None else get_default_graph()
        self.sink = sink
        self._state_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._stop_event: threading.Event | None = None

    @property
    def is_running(self) -> bool:
        with self._state_lock:
            return self._thread is not None

    def start(self, period: timedelta | str | float) -> None:
        """
        Start checking at a fixed rate, first check immediately.

        Raises:
            RuntimeError: If the detector is already running
            ValueError: If ``period`` is not a positive duration
        """
        interval = as_duration(period)
        if interval <= timedelta(0):
            raise ValueError(f"Deadlock detection period must be positive, got {interval}")

        with self._state_lock:
            if self._thread is not None:
                raise RuntimeError("Deadlock detector is already running")
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run,
                args=(interval.total_seconds(), stop_event),
                name=THREAD_NAME,
                daemon=True,
            )
            self._thread = thread
            self._stop_event = stop_event

        logger.info("deadlock.scheduled", initial_delay_ms=0, period_ms=_millis(interval))
        thread.start()

    def stop(self, timeout: timedelta | str | float = DEFAULT_SHUTDOWN_TIMEOUT) -> None:
        """
        Cancel the schedule and wait at most ``timeout`` for the worker.

        A worker still running after ``timeout`` is left behind with a warning.
        No-op when idle.

        Raises:
            DetectorInterruptedError: If interrupted while waiting
        """
        wait = as_duration(timeout)
        with self._state_lock:
            thread, stop_event = self._thread, self._stop_event
            self._thread = None
            self._stop_event = None
        if thread is None or stop_event is None:
            return

        stop_event.set()
        try:
            thread.join(max(wait.total_seconds(), 0.0))
        except KeyboardInterrupt as e:
            raise DetectorInterruptedError("Interrupted while waiting for the deadlock detector to stop") from e

        if thread.is_alive():
            logger.warning("deadlock.shutdown_timeout", thread=thread.name, timeout_ms=_millis(wait))
        else:
            logger.debug("deadlock.stopped")

    def check(self) -> DeadlockReport | None:
        """
        Run one detection pass.

        Returns:
            The report if any threads are deadlocked, else None
        """
        cycles = self.graph.find_cycles()
        if not cycles:
            return None

        names = {t.ident: t.name for t in threading.enumerate()}
        frames = sys._current_frames()
        idents = sorted({ident for cycle in cycles for ident in cycle})
        threads = []
        for ident in idents:
            locks = self.graph.describe(ident)
            frame = frames.get(ident)
            stack = _format_stack(frame) if frame is not None else []
            threads.append(
                ThreadState(
                    name=names.get(ident, "<unknown>"),
                    ident=ident,
                    held=locks["held"],
                    waiting_for=locks["waiting_for"],
                    stack=stack,
                )
            )

        report = DeadlockReport(cycles=cycles, threads=threads)
        logger.error("deadlock.detected", cycles=len(cycles), threads=len(threads), report=str(report))
        if self.sink is not None:
            self.sink(report)
        return report

    def _run(self, period: float, stop_event: threading.Event) -> None:
        next_run = time.monotonic()
        while not stop_event.is_set():
            try:
                self.check()
            except Exception as e:
                logger.error("deadlock.check_failed", error=str(e), exc_info=True)
            next_run += period
            if stop_event.wait(max(next_run - time.monotonic(), 0.0)):
                break


def _millis(duration: timedelta) -> int:
    return duration // timedelta(milliseconds=1)


def _format_stack(frame) -> list[str]:
    return [line.rstrip() for entry in traceback.format_stack(frame) for line in entry.splitlines()]
