from contextlib import contextmanager
from threading import Lock
from typing import Iterator, Optional

from src.core.allocation.errors import ReentrantCallError


class ConcurrencyGuard:
    """Non-reentrant exclusive lock over a portfolio's mutating surface.

    Acquisition never blocks: a second entry while the guard is held (an
    adapter calling back in, or a concurrent caller) fails immediately with
    ``ReentrantCallError`` before touching any state.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._operation: Optional[str] = None

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @property
    def current_operation(self) -> Optional[str]:
        return self._operation

    @contextmanager
    def hold(self, operation: str) -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            raise ReentrantCallError("REENTRANT_CALL")
        self._operation = operation
        try:
            yield
        finally:
            self._operation = None
            self._lock.release()
