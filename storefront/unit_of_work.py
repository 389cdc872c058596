"""
Unit of work over Redis optimistic transactions (WATCH/MULTI/EXEC).

Every key read through a unit of work is WATCHed. Writes are queued inside
MULTI and applied together on ``commit``; if any watched key changed since it
was read, EXEC aborts with ``WatchError`` and nothing is written. Post-commit
hooks run only after EXEC succeeds, and a failing hook never undoes the commit.
"""
import logging
from typing import Any, Callable, List, Optional, TypeVar

from redis.exceptions import RedisError, WatchError

from storefront.config import Config
from storefront.exceptions import OperationFailed, StorageError
from storefront.redis_client import RedisClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UnitOfWork:
    """One atomic multi-key write with explicit begin/commit/rollback"""

    def __init__(self, redis: RedisClient):
        self.redis = redis
        self.pipe = None
        self.committed = False
        self._queued = False
        self._hooks: List[Callable[[], Any]] = []

    def __enter__(self) -> "UnitOfWork":
        return self.begin()

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None or not self.committed:
            self.rollback()

    def begin(self) -> "UnitOfWork":
        self.pipe = self.redis.pipeline(transaction=True)
        self.committed = False
        self._queued = False
        self._hooks = []
        return self

    # Reads (immediate, watched)

    def _watch(self, *keys: str) -> None:
        if self._queued:
            raise RuntimeError("Cannot read after writes have been queued")
        self.pipe.watch(*keys)

    def get(self, key: str) -> Optional[str]:
        self._watch(key)
        return self.pipe.get(key)

    def lrange(self, key: str, start: int = 0, end: int = -1) -> List[str]:
        self._watch(key)
        return self.pipe.lrange(key, start, end)

    def zrange(self, key: str, start: int = 0, end: int = -1) -> List[str]:
        self._watch(key)
        return self.pipe.zrange(key, start, end)

    # Writes (queued until commit)

    def _queue(self):
        if not self._queued:
            self.pipe.multi()
            self._queued = True
        return self.pipe

    def set(self, key: str, value: str, ex: Optional[int] = None) -> None:
        self._queue().set(key, value, ex=ex)

    def delete(self, *keys: str) -> None:
        self._queue().delete(*keys)

    def rpush(self, key: str, *values: str) -> None:
        self._queue().rpush(key, *values)

    def zadd(self, key: str, mapping: dict) -> None:
        self._queue().zadd(key, mapping)

    def zrem(self, key: str, *members: str) -> None:
        self._queue().zrem(key, *members)

    def on_commit(self, hook: Callable[[], Any]) -> None:
        """Register a callable to run after a successful commit"""
        self._hooks.append(hook)

    def commit(self) -> None:
        if self._queued:
            self.pipe.execute()
        self.committed = True
        self.pipe.reset()
        self._run_hooks()

    def rollback(self) -> None:
        if self.pipe is not None:
            self.pipe.reset()
        self._hooks = []
        self._queued = False

    def _run_hooks(self) -> None:
        hooks, self._hooks = self._hooks, []
        for hook in hooks:
            try:
                hook()
            except Exception:
                logger.exception(f"Post-commit hook {getattr(hook, '__name__', hook)!r} failed")


def run_in_transaction(
    redis: RedisClient,
    work: Callable[[UnitOfWork], T],
    max_retries: Optional[int] = None
) -> T:
    """
    Run ``work`` inside a unit of work and commit it.

    ``work`` is re-run from scratch when a watched key changes underneath it.
    Any other exception rolls the unit back and propagates.
    """
    attempts = max_retries or Config.TX_MAX_RETRIES

    for attempt in range(1, attempts + 1):
        uow = UnitOfWork(redis)
        try:
            with uow:
                result = work(uow)
                uow.commit()
            return result
        except WatchError:
            logger.warning(
                "Concurrent modification detected, retrying transaction",
                extra={"attempt": attempt, "max_attempts": attempts}
            )
        except RedisError as e:
            raise StorageError(f"Redis transaction failed: {e}")

    raise OperationFailed(f"Transaction aborted after {attempts} concurrent modification retries")
