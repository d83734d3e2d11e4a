"""
Task runner implementations.

- SequentialTaskRunner: runs units one after the other, in-process.
- ThreadPoolTaskRunner: fans units out over a thread pool.
- PrecomputedTaskRunner: replays results produced by an external runner
  (one pod per unit), used when finalizing a fanned-out export.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Callable, Sequence, TypeVar

from snapshot_export.export.runtime.results import CopyResult

if TYPE_CHECKING:
    from snapshot_export.export.orchestrator.planner_models import CopyUnit

LOGGER = logging.getLogger(__name__)

U = TypeVar("U")
R = TypeVar("R")


class SequentialTaskRunner:
    def submit(self, units: Sequence[U], work: Callable[[U], R]) -> list[R]:
        return [work(unit) for unit in units]


class ThreadPoolTaskRunner:
    """Runs units concurrently on at most ``workers`` threads."""

    def __init__(self, workers: int) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self._workers = workers

    def submit(self, units: Sequence[U], work: Callable[[U], R]) -> list[R]:
        if not units:
            return []

        with ThreadPoolExecutor(
            max_workers=min(self._workers, len(units)),
            thread_name_prefix="copy-unit",
        ) as pool:
            futures = [pool.submit(work, unit) for unit in units]
            # Leaving the executor waits for every unit, failed or not.
            return [future.result() for future in futures]


class PrecomputedTaskRunner:
    """
    Returns results that were computed elsewhere.

    A unit without a recorded result is reported as failed; ``work`` is
    never called.
    """

    def __init__(self, results: dict[str, CopyResult]) -> None:
        self._results = results

    def submit(
        self,
        units: Sequence[CopyUnit],
        work: Callable[[CopyUnit], CopyResult],
    ) -> list[CopyResult]:
        results: list[CopyResult] = []

        for unit in units:
            result = self._results.get(unit.unit_id)

            if result is None:
                LOGGER.error("Missing copy unit result", extra={"unit_id": unit.unit_id})
                result = CopyResult(
                    unit_id=unit.unit_id,
                    status="failed",
                    error_type="MissingResult",
                    error=f"No result recorded for copy unit {unit.unit_id}",
                )

            results.append(result)

        return results
