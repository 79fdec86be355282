from __future__ import annotations

from enum import Enum


class EventType(str, Enum):
    ERROR = "error"
    AUDIT = "audit"


class EventLabel(str, Enum):
    TIMING = "timing"
    ADDED = "added"
    REMOVED = "removed"
    UPDATED = "updated"
    AUTHENTICATION = "authentication"
    FEDERALIST_USERS_MEMBERSHIP = "federalist-users-membership"
    BUILD_STATUS = "build-status"
    BUILD_REQUEST = "build-request"
    SERVER_STATUS = "server-status"
    ADMIN = "admin"
    DEPLOYMENT = "deployment"
    SOCKET_IO = "socket.io"
    SITE_USER = "site-user"
    SITE_ADD = "site-add"
    SITE_DESTROY = "site-destroy"
    PROXY_EDGE = "proxy-edge"


EVENT_MODELS: frozenset[str] = frozenset(
    {"User", "Site", "Build", "BuildLog", "UserAction", "Organization"}
)
