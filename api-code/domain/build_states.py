from __future__ import annotations

from enum import Enum


class BuildState(str, Enum):
    CREATED = "created"
    QUEUED = "queued"
    PROCESSING = "processing"
    SKIPPED = "skipped"
    ERROR = "error"
    SUCCESS = "success"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES

    @property
    def awaits_dispatch(self) -> bool:
        return self in PENDING_STATES


PENDING_STATES: frozenset[BuildState] = frozenset({BuildState.CREATED, BuildState.QUEUED})
TERMINAL_STATES: frozenset[BuildState] = frozenset(
    {BuildState.SKIPPED, BuildState.ERROR, BuildState.SUCCESS}
)
COMPLETION_STATES: frozenset[BuildState] = frozenset({BuildState.ERROR, BuildState.SUCCESS})

STATUS_SEQUENCE: tuple[BuildState, ...] = (
    BuildState.CREATED,
    BuildState.QUEUED,
    BuildState.PROCESSING,
    BuildState.SUCCESS,
)


def is_valid_transition(current: BuildState, new: BuildState) -> bool:
    """Builds only move forward; any live build may fail or be skipped."""
    if current == new:
        return True
    if current.is_terminal:
        return False
    if new in (BuildState.ERROR, BuildState.SKIPPED):
        return True
    sequence = list(STATUS_SEQUENCE)
    try:
        return sequence.index(new) >= sequence.index(current)
    except ValueError:
        return False


class SiteBuildStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class SiteEngine(str, Enum):
    HUGO = "hugo"
    JEKYLL = "jekyll"
    NODE = "node.js"
    STATIC = "static"
