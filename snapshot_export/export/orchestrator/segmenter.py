"""
Copy task grouping logic.

This module contains utilities for splitting copy tasks into
file-count-constrained groups.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from snapshot_export.core.domain.errors import PlanningError

if TYPE_CHECKING:
    from snapshot_export.export.orchestrator.planner_models import CopyTask


def group_tasks(
    tasks: list[CopyTask],
    max_files: int,
) -> list[list[CopyTask]]:
    """
    Split tasks into ordered groups of at most ``max_files`` tasks.

    Input order is preserved, so a fixed task list and group size always
    produce the same grouping.
    """

    if max_files <= 0:
        raise PlanningError("max_files_per_group must be > 0")

    groups: list[list[CopyTask]] = []
    current_group: list[CopyTask] = []

    for task in tasks:
        if len(current_group) >= max_files:
            groups.append(current_group)
            current_group = []

        current_group.append(task)

    if current_group:
        groups.append(current_group)

    return groups
