"""Execution guard: one operation at a time, all-or-nothing, no re-entry.

Every mutating vault operation runs inside `UnitOfWork.run`:
- a per-vault re-entrant lock serializes callers across threads
- a busy flag rejects nested mutating calls (e.g. from an asset transfer
  callback) with ReentrancyViolation
- every participant is snapshotted first and restored if anything raises
"""

import logging
import threading
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Iterable, Iterator, Optional, Protocol, TypeVar

from .errors import ReentrancyViolation, VaultError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class Snapshotable(Protocol):
    def snapshot(self) -> Any:
        ...

    def restore(self, snapshot: Any) -> None:
        ...


class UnitOfWork:
    """Serializes and journals mutating operations."""

    def __init__(self):
        self._lock = threading.RLock()
        self._active: Optional[str] = None

    @property
    def active_operation(self) -> Optional[str]:
        return self._active

    @contextmanager
    def run(self, operation: str, participants: Iterable[Snapshotable]) -> Iterator[None]:
        with self._lock:
            # RLock lets the same thread back in; the flag is what rejects it
            if self._active is not None:
                logger.error("re-entrant %s during %s", operation, self._active)
                raise ReentrancyViolation(operation)
            journal = [(p, p.snapshot()) for p in participants]
            self._active = operation
            try:
                yield
            except BaseException as exc:
                for participant, snapshot in reversed(journal):
                    participant.restore(snapshot)
                if isinstance(exc, VaultError):
                    logger.warning("%s rejected: %s", operation, exc)
                else:
                    logger.exception("%s aborted", operation)
                raise
            finally:
                self._active = None


def mutating(func: F) -> F:
    """Run a vault method as one unit of work.

    The instance must provide `_uow` (UnitOfWork) and `_participants()`.
    """
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        with self._uow.run(func.__name__, self._participants()):
            return func(self, *args, **kwargs)
    return wrapper  # type: ignore[return-value]
