"""Thread-safe store of resolved component values with compute-once semantics."""

import threading
from concurrent.futures import Future
from typing import Any, Callable

from kindling.errors import CircularDependencyError, ResolutionFailed

__all__ = ["ResolvedValues"]


class _InFlight:
    """A computation claimed by one thread that other threads may wait on."""

    def __init__(self, owner: int):
        self.owner = owner
        self.future: Future = Future()


class ResolvedValues:
    """
    Mapping of component names to resolved values.

    Values are stored with first-writer-wins semantics and are only removed by
    :meth:`clear`. :meth:`fetch_or_store` is single-flight: while one thread is
    computing the value for a name, other threads asking for the same name
    block until the computation finishes and then share its outcome. Different
    names are computed independently and in parallel.

    No lock is held while a computation runs.
    """

    def __init__(self):
        self._values: dict[str, Any] = {}
        self._in_flight: dict[str, _InFlight] = {}
        self._lock = threading.Lock()
        self._local = threading.local()

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._values

    def __getitem__(self, name: str) -> Any:
        with self._lock:
            return self._values[name]

    def names(self) -> list[str]:
        with self._lock:
            return list(self._values)

    def clear(self):
        """Forget every stored value. Computations in flight still store their result."""
        with self._lock:
            self._values.clear()

    def fetch_or_store(
        self, name: str, compute: Callable[[], Any], reentrant: bool = False
    ) -> Any:
        """Return the value stored under ``name``, computing and storing it if absent.

        Args:
            name: The component name.
            compute: Called at most once per successful store. If it raises,
                nothing is stored and the exception propagates. Threads waiting
                on the same name get a :class:`ResolutionFailed` chained to it.
            reentrant: If the current thread is already computing ``name``,
                compute the value and store it immediately instead of raising.
                The outer computation then finds the name taken and its own
                result is discarded.

        Returns:
            The stored value, which may have been stored by another caller.

        Raises:
            CircularDependencyError: If the current thread is already computing
                ``name`` and ``reentrant`` is false.
            ResolutionFailed: If another thread was computing ``name`` and failed.
        """
        current_thread = threading.get_ident()
        with self._lock:
            if name in self._values:
                return self._values[name]
            in_flight = self._in_flight.get(name)
            claimed = in_flight is None
            if claimed:
                in_flight = self._in_flight[name] = _InFlight(current_thread)

        if not claimed:
            if in_flight.owner != current_thread:
                return self._wait_for(name, in_flight)
            if not reentrant:
                chain = self._chain()
                raise CircularDependencyError(chain[chain.index(name):] + [name])
            return self._store(name, compute())

        chain = self._chain()
        chain.append(name)
        try:
            value = compute()
        except BaseException as error:
            self._abandon(name, in_flight)
            in_flight.future.set_exception(error)
            raise
        finally:
            chain.pop()

        value = self._store(name, value, in_flight)
        in_flight.future.set_result(value)
        return value

    def _wait_for(self, name: str, in_flight: _InFlight) -> Any:
        # the owner's exception is never re-raised here, only chained
        error = in_flight.future.exception()
        if error is not None:
            raise ResolutionFailed(name, error) from error
        return in_flight.future.result()

    def _store(self, name: str, value: Any, in_flight: _InFlight = None) -> Any:
        with self._lock:
            if in_flight is not None:
                self._release(name, in_flight)
            return self._values.setdefault(name, value)

    def _abandon(self, name: str, in_flight: _InFlight):
        with self._lock:
            self._release(name, in_flight)

    def _release(self, name: str, in_flight: _InFlight):
        if self._in_flight.get(name) is in_flight:
            del self._in_flight[name]

    def _chain(self) -> list[str]:
        # names being computed by the current thread, outermost first
        chain = getattr(self._local, "chain", None)
        if chain is None:
            chain = self._local.chain = []
        return chain
