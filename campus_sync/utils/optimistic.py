# campus_sync/utils/optimistic.py
"""Commit-then-confirm helper shared by attendance and chat writes."""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from ..core.exceptions import AuthError, CampusSyncException

logger = logging.getLogger(__name__)

T = TypeVar('T')
S = TypeVar('S')


@dataclass(frozen=True)
class OptimisticResult(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[CampusSyncException] = None

    @property
    def message(self) -> Optional[str]:
        return self.error.message if self.error else None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "OptimisticResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: CampusSyncException) -> "OptimisticResult[T]":
        return cls(ok=False, error=error)


async def optimistic_update(
    snapshot: Callable[[], S],
    apply: Callable[[], Any],
    remote: Callable[[], Awaitable[T]],
    restore: Optional[Callable[[S], Any]] = None,
    label: str = "optimistic update",
) -> OptimisticResult[T]:
    """Apply locally, then confirm remotely.

    On failure the snapshot is handed to ``restore`` when one is given;
    without it the local change is kept. Only ``AuthError`` escapes, the
    session is already gone at that point.
    """
    saved = snapshot()
    apply()
    try:
        value = await remote()
    except AuthError:
        raise
    except CampusSyncException as e:
        logger.error(f"{label} failed: {e.message}")
        if restore is not None:
            restore(saved)
        return OptimisticResult.failure(e)
    return OptimisticResult.success(value)
