from .auth import LogoutResponse, MeResponse
from .build import (
    BuildCreateRequest,
    BuildLogRequest,
    BuildLogResponse,
    BuildResponse,
    BuildSourceResponse,
    BuildStatusRequest,
)
from .site import (
    SiteCreateRequest,
    SiteResponse,
    SiteSummary,
    SiteUpdateRequest,
    SiteUserAddRequest,
)
from .user import UserActionResponse, UserResponse, UserSummary

__all__ = [
    "LogoutResponse",
    "MeResponse",
    "BuildCreateRequest",
    "BuildLogRequest",
    "BuildLogResponse",
    "BuildResponse",
    "BuildSourceResponse",
    "BuildStatusRequest",
    "SiteCreateRequest",
    "SiteResponse",
    "SiteSummary",
    "SiteUpdateRequest",
    "SiteUserAddRequest",
    "UserActionResponse",
    "UserResponse",
    "UserSummary",
]
