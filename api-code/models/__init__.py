from .activity import BuildLog, Event, UserAction
from .base import DocumentUpdate, MongoModel, generate_token, new_id, utc_now
from .build import Build, BuildUpdate, job_state_update
from .site import Site, SiteUpdate, generate_s3_service_name
from .user import User, UserUpdate

__all__ = [
    "BuildLog",
    "Event",
    "UserAction",
    "DocumentUpdate",
    "MongoModel",
    "generate_token",
    "new_id",
    "utc_now",
    "Build",
    "BuildUpdate",
    "job_state_update",
    "Site",
    "SiteUpdate",
    "generate_s3_service_name",
    "User",
    "UserUpdate",
]
