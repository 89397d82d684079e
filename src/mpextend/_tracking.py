"""Commit cycle tracking.

Uses a contextvar to mark the commit currently running its before-update
pass. While a cycle is active for an instance, writes made through that
instance's runtime context land in the pending payload instead of issuing a
nested commit, so computed setters feed the same cycle's recomputation.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager


class CommitCycle:
    """One before-update pass: the instance and its pending payload."""

    __slots__ = ("instance", "payload")

    def __init__(self, instance, payload: dict) -> None:
        self.instance = instance
        self.payload = payload

    def owns(self, instance) -> bool:
        return self.instance is instance


current_cycle: contextvars.ContextVar[CommitCycle | None] = contextvars.ContextVar(
    "current_cycle", default=None
)


@contextmanager
def commit_cycle(instance, payload: dict):
    """Scope a before-update pass. Nested cycles restore the outer one on exit."""
    token = current_cycle.set(CommitCycle(instance, payload))
    try:
        yield current_cycle.get()
    finally:
        current_cycle.reset(token)


def active_cycle(instance) -> CommitCycle | None:
    """The running cycle if it belongs to instance."""
    cycle = current_cycle.get()
    if cycle is not None and cycle.owns(instance):
        return cycle
    return None
