"""
Export lifecycle state machine definitions.

This module defines the export states and the allowed transitions between
them. The exporter consults it on every transition and treats an invalid
transition as a programming error.
"""

from __future__ import annotations

PLANNING = "planning"
COPYING = "copying"
ASSEMBLING = "assembling"
VERIFYING = "verifying"
DONE = "done"
FAILED = "failed"

# Terminal export states: once reached, the invocation is over.
EXPORT_TERMINAL_STATES: frozenset[str] = frozenset(
    {
        DONE,
        FAILED,
    }
)


# Allowed export state transitions.
#
# Key   : previous state (or None before the export started)
# Value : set of allowed next states
#
# Notes:
# - FAILED is reachable from every non-terminal state.
# - VERIFYING is optional; ASSEMBLING may go straight to DONE.
EXPORT_ALLOWED_TRANSITIONS: dict[str | None, frozenset[str]] = {
    None: frozenset({PLANNING}),

    PLANNING: frozenset(
        {
            COPYING,
            FAILED,
        }
    ),

    COPYING: frozenset(
        {
            ASSEMBLING,
            FAILED,
        }
    ),

    ASSEMBLING: frozenset(
        {
            VERIFYING,
            DONE,
            FAILED,
        }
    ),

    VERIFYING: frozenset(
        {
            DONE,
            FAILED,
        }
    ),
}


def is_terminal_state(state: str) -> bool:
    """Return True if the given state is terminal."""
    return state in EXPORT_TERMINAL_STATES


def is_valid_transition(prev_state: str | None, next_state: str) -> bool:
    """Return True if the transition prev_state -> next_state is allowed."""
    allowed = EXPORT_ALLOWED_TRANSITIONS.get(prev_state)
    if allowed is None:
        return False
    return next_state in allowed
