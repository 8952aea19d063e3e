"""Single-flight coalescing for concurrent remote syncs."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Flight(Generic[T]):
    def __init__(self) -> None:
        self.done = threading.Event()
        self.result: Optional[T] = None
        self.error: Optional[BaseException] = None


class SingleFlight(Generic[T]):
    """
    Run at most one call at a time; callers arriving while it runs share its outcome.

    A caller that arrives after the in-flight call finished starts a new one.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._flight: Optional[_Flight[T]] = None

    def do(self, fn: Callable[[], T]) -> T:
        with self._lock:
            flight = self._flight
            leader = flight is None
            if leader:
                flight = self._flight = _Flight()

        if not leader:
            logger.debug("Joining in-flight call")
            flight.done.wait()
            if flight.error is not None:
                raise flight.error
            return flight.result

        try:
            flight.result = fn()
        except BaseException as e:
            flight.error = e
            raise
        finally:
            with self._lock:
                self._flight = None
            flight.done.set()
        return flight.result
