"""
Cooperative lock tracking for deadlock detection.

Python's ``threading`` locks do not expose their owner or their waiters, so a
deadlock cannot be found by inspecting the interpreter. Instead, locks that
should take part in detection are created as ``TrackedLock`` and report every
wait, acquisition and release to a ``WaitForGraph``.

The graph has one edge per blocked thread: waiter -> owner of the lock it is
blocked on. A thread waits on at most one lock at a time, so every node has an
out-degree of at most one and each cycle is found by following edges.

Usage:
    >>> lock_a = TrackedLock("accounts")
    >>> with lock_a:
    ...     pass
    >>> get_default_graph().find_cycles()
    []
"""

import threading
from typing import Any

__all__ = ["TrackedLock", "WaitForGraph", "get_default_graph"]


class WaitForGraph:
    """
    Thread/lock wait-for graph fed by TrackedLock.

    Thread Safety:
    - All methods are guarded by an internal lock
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._waiting: dict[int, "TrackedLock"] = {}
        # lock -> (owning thread ident, hold count)
        self._owners: dict["TrackedLock", tuple[int, int]] = {}

    def waiting(self, lock: "TrackedLock", ident: int | None = None) -> None:
        """Record that a thread is about to block on ``lock``."""
        ident = threading.get_ident() if ident is None else ident
        with self._lock:
            self._waiting[ident] = lock

    def acquired(self, lock: "TrackedLock", ident: int | None = None) -> None:
        """Record that a thread now holds ``lock`` (clears its wait)."""
        ident = threading.get_ident() if ident is None else ident
        with self._lock:
            self._waiting.pop(ident, None)
            owner, count = self._owners.get(lock, (ident, 0))
            self._owners[lock] = (ident, count + 1 if owner == ident else 1)

    def abandoned(self, lock: "TrackedLock", ident: int | None = None) -> None:
        """Record that a thread stopped waiting for ``lock`` without acquiring it."""
        ident = threading.get_ident() if ident is None else ident
        with self._lock:
            if self._waiting.get(ident) is lock:
                del self._waiting[ident]

    def released(self, lock: "TrackedLock", ident: int | None = None) -> None:
        """
        Record one release of ``lock``; ownership ends when the hold count reaches zero.

        A plain lock may be released by any thread, so its ownership always
        ends. A reentrant lock only counts releases by its owner.
        """
        ident = threading.get_ident() if ident is None else ident
        with self._lock:
            owner = self._owners.get(lock)
            if owner is None:
                return
            if not lock.reentrant:
                del self._owners[lock]
                return
            if owner[0] != ident:
                return
            if owner[1] > 1:
                self._owners[lock] = (ident, owner[1] - 1)
            else:
                del self._owners[lock]

    def find_cycles(self) -> list[tuple[int, ...]]:
        """
        Find deadlocked threads.

        Returns:
            One tuple of thread idents per cycle, each rotated to start at its
            smallest ident, in ascending order of that ident
        """
        with self._lock:
            edges: dict[int, int] = {}
            for waiter, lock in self._waiting.items():
                owner = self._owners.get(lock)
                if owner is not None and owner[0] != waiter:
                    edges[waiter] = owner[0]

        cycles: list[tuple[int, ...]] = []
        visited: set[int] = set()
        for start in edges:
            if start in visited:
                continue
            path: list[int] = []
            position: dict[int, int] = {}
            node = start
            while node in edges and node not in visited and node not in position:
                position[node] = len(path)
                path.append(node)
                node = edges[node]
            if node in position:
                cycle = path[position[node]:]
                first = cycle.index(min(cycle))
                cycles.append(tuple(cycle[first:] + cycle[:first]))
            visited.update(path)
        return sorted(cycles)

    def describe(self, ident: int) -> dict[str, Any]:
        """Get the locks held and awaited by thread ``ident``."""
        with self._lock:
            held = sorted(lock.name for lock, (owner, _) in self._owners.items() if owner == ident)
            waiting = self._waiting.get(ident)
        return {"held": held, "waiting_for": waiting.name if waiting is not None else None}


_default_graph = WaitForGraph()


def get_default_graph() -> WaitForGraph:
    """Get the process-wide wait-for graph used when none is injected."""
    return _default_graph


class TrackedLock:
    """
    Lock that reports its waits and ownership to a WaitForGraph.

    Drop-in for ``threading.Lock`` (or ``threading.RLock`` with
    ``reentrant=True``) including the context manager protocol.

    Example:
        >>> graph = WaitForGraph()
        >>> lock = TrackedLock("orders", reentrant=True, graph=graph)
        >>> with lock:
        ...     graph.describe(threading.get_ident())["held"]
        ['orders']
    """

    def __init__(self, name: str | None = None, reentrant: bool = False, graph: WaitForGraph | None = None):
        """
        Initialize lock.

        Args:
            name: Name used in deadlock reports (defaults to an id-based name)
            reentrant: Wrap an RLock instead of a Lock
            graph: Graph to report to (defaults to the process-wide graph)
        """
        self.name = name or f"lock-{id(self):x}"
        self.reentrant = reentrant
        self._lock = threading.RLock() if reentrant else threading.Lock()
        self._graph = graph if graph is not None else _default_graph

    def acquire(self, blocking: bool = True, timeout: float = -1) -> bool:
        """Acquire the lock, recording the wait while blocked."""
        if self._lock.acquire(blocking=False):
            self._graph.acquired(self)
            return True
        if not blocking:
            return False

        self._graph.waiting(self)
        acquired = False
        try:
            acquired = self._lock.acquire(True, timeout)
        finally:
            if acquired:
                self._graph.acquired(self)
            else:
                self._graph.abandoned(self)
        return acquired

    def release(self) -> None:
        # Graph first: once the underlying lock is free another thread may record itself as owner.
        self._graph.released(self)
        self._lock.release()

    def __enter__(self) -> "TrackedLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    def __repr__(self) -> str:
        kind = "reentrant" if self.reentrant else "plain"
        return f"<TrackedLock {self.name} {kind}>"
