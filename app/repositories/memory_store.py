"""In-process run storage used when Redis is unreachable."""

from __future__ import annotations

import threading
from typing import Optional

from app.core.errors import NotFoundError, PersistenceError, StateConflictError
from app.models.domain import DecisionRunResult


class MemoryRunStore:
    """Keeps serialized runs in a dict; contents vanish with the process."""

    def __init__(self) -> None:
        self._runs: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, run_id: str) -> Optional[DecisionRunResult]:
        with self._lock:
            blob = self._runs.get(run_id)
        if blob is None:
            return None
        return DecisionRunResult.model_validate_json(blob)

    def insert(self, run: DecisionRunResult) -> None:
        with self._lock:
            if run.run_id in self._runs:
                raise PersistenceError(f"Run {run.run_id} already exists")
            self._runs[run.run_id] = run.model_dump_json()

    def replace(self, run: DecisionRunResult, expected_version: int) -> None:
        with self._lock:
            blob = self._runs.get(run.run_id)
            if blob is None:
                raise NotFoundError(f"Run {run.run_id} not found")
            stored = DecisionRunResult.model_validate_json(blob)
            if stored.version != expected_version:
                raise StateConflictError(f"Run {run.run_id} was modified concurrently")
            self._runs[run.run_id] = run.model_dump_json()

    def list_for_decision(self, decision_id: str) -> list[DecisionRunResult]:
        with self._lock:
            blobs = list(self._runs.values())
        runs = [DecisionRunResult.model_validate_json(blob) for blob in blobs]
        return [run for run in runs if run.decision_id == decision_id]

    def ping(self) -> bool:
        return True
