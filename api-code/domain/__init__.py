from .build_states import (
    PENDING_STATES,
    BuildState,
    SiteBuildStatus,
    SiteEngine,
    is_valid_transition,
)
from .errors import (
    AuthenticationError,
    AuthorizationError,
    FederalistError,
    GitHubError,
    InvalidRequestError,
    NotFoundError,
)
from .events import EventLabel, EventType

__all__ = [
    "PENDING_STATES",
    "BuildState",
    "SiteBuildStatus",
    "SiteEngine",
    "is_valid_transition",
    "AuthenticationError",
    "AuthorizationError",
    "FederalistError",
    "GitHubError",
    "InvalidRequestError",
    "NotFoundError",
    "EventLabel",
    "EventType",
]
