"""Parallel task runner protocol.

The exporter hands its copy units to a runner and waits for all of them
(fan-out / fan-in). Runners never coordinate units with each other.
"""

from __future__ import annotations

from typing import Callable, Protocol, Sequence, TypeVar

U = TypeVar("U")
R = TypeVar("R")


class TaskRunner(Protocol):
    """Fan-out / fan-in boundary for independent work units."""

    def submit(self, units: Sequence[U], work: Callable[[U], R]) -> list[R]:
        """Run ``work`` on every unit and return results in input order.

        All units run to completion even when some of them fail.
        """
