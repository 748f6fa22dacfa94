"""Redis-backed persistence layer for decision runs."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional, TypeVar

from redis import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, WatchError
from redis.exceptions import TimeoutError as RedisTimeoutError

from app.core.errors import NotFoundError, PersistenceError, StateConflictError
from app.models.domain import DecisionRunResult
from app.repositories.memory_store import MemoryRunStore

_logger = logging.getLogger(__name__)

T = TypeVar("T")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _timestamp(dt: datetime) -> float:
    return dt.timestamp()


class RedisRunStore:
    """Stores runs in Redis, degrading once to an in-process store.

    The first connection or timeout error switches this instance to a
    :class:`MemoryRunStore` for the rest of its lifetime; Redis is not retried.
    """

    def __init__(self, client: Redis, *, key_prefix: str = "runs") -> None:
        self._client = client
        self._prefix = key_prefix
        self._memory: MemoryRunStore | None = None

    @property
    def backend(self) -> str:
        return "memory" if self._memory is not None else "redis"

    def get(self, run_id: str) -> Optional[DecisionRunResult]:
        return self._dispatch(lambda: self._redis_get(run_id), lambda memory: memory.get(run_id))

    def insert(self, run: DecisionRunResult) -> DecisionRunResult:
        """Create a run; an existing ``run_id`` is never overwritten."""

        timestamp = _now()
        stored = run.model_copy(update={"version": 1, "created_at": timestamp, "updated_at": timestamp})
        self._dispatch(lambda: self._redis_insert(stored), lambda memory: memory.insert(stored))
        return stored

    def replace(self, run: DecisionRunResult) -> DecisionRunResult:
        """Overwrite an existing run if nobody replaced it since ``run.version`` was read."""

        stored = run.model_copy(update={"version": run.version + 1, "updated_at": _now()})
        self._dispatch(
            lambda: self._redis_replace(stored, run.version),
            lambda memory: memory.replace(stored, run.version),
        )
        return stored

    def list_for_decision(self, decision_id: str) -> list[DecisionRunResult]:
        runs = self._dispatch(
            lambda: self._redis_list_for_decision(decision_id),
            lambda memory: memory.list_for_decision(decision_id),
        )
        return sorted(
            runs,
            key=lambda run: (run.created_at or datetime.min.replace(tzinfo=timezone.utc), run.run_id),
        )

    def ping(self) -> bool:
        return self._dispatch(lambda: bool(self._client.ping()), lambda memory: memory.ping())

    def _dispatch(self, redis_call: Callable[[], T], memory_call: Callable[[MemoryRunStore], T]) -> T:
        if self._memory is not None:
            return memory_call(self._memory)
        try:
            return redis_call()
        except (RedisConnectionError, RedisTimeoutError) as exc:
            self._degrade(exc)
            return memory_call(self._memory)
        except WatchError as exc:
            raise StateConflictError("Run was modified concurrently") from exc
        except RedisError as exc:
            raise PersistenceError(f"Run store operation failed: {exc}") from exc

    def _degrade(self, exc: Exception) -> None:
        _logger.warning(
            "Redis unavailable (%s); using in-memory run store. Runs will not persist across restarts.",
            exc,
        )
        self._memory = MemoryRunStore()

    def _redis_get(self, run_id: str) -> Optional[DecisionRunResult]:
        data = self._client.get(self._run_key(run_id))
        if not data:
            return None
        return DecisionRunResult.model_validate_json(data)

    def _redis_insert(self, run: DecisionRunResult) -> None:
        created = self._client.set(self._run_key(run.run_id), run.model_dump_json(), nx=True)
        if not created:
            raise PersistenceError(f"Run {run.run_id} already exists")
        pipeline = self._client.pipeline()
        pipeline.zadd(self._index_key(), {run.run_id: _timestamp(run.created_at)})
        pipeline.sadd(self._decision_key(run.decision_id), run.run_id)
        pipeline.execute()

    def _redis_replace(self, run: DecisionRunResult, expected_version: int) -> None:
        key = self._run_key(run.run_id)
        with self._client.pipeline() as pipeline:
            pipeline.watch(key)
            current = pipeline.get(key)
            if not current:
                raise NotFoundError(f"Run {run.run_id} not found")
            if DecisionRunResult.model_validate_json(current).version != expected_version:
                raise StateConflictError(f"Run {run.run_id} was modified concurrently")
            pipeline.multi()
            pipeline.set(key, run.model_dump_json())
            pipeline.execute()

    def _redis_list_for_decision(self, decision_id: str) -> list[DecisionRunResult]:
        run_ids = self._client.smembers(self._decision_key(decision_id))
        if not run_ids:
            return []
        pipeline = self._client.pipeline()
        for run_id in run_ids:
            pipeline.get(self._run_key(run_id))
        runs: list[DecisionRunResult] = []
        for blob in pipeline.execute():
            if blob:
                runs.append(DecisionRunResult.model_validate_json(blob))
        return runs

    def _run_key(self, run_id: str) -> str:
        return f"{self._prefix}:{run_id}"

    def _index_key(self) -> str:
        return f"{self._prefix}:index"

    def _decision_key(self, decision_id: str) -> str:
        return f"{self._prefix}:decision:{decision_id}"
