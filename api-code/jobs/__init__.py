from .federalist_users_auditor import audit_federalist_users
from .nightly_builds import queue_nightly_builds
from .repository_verifier import verify_repositories
from .scheduler import DailyJob, DailyScheduler, seconds_until
from .site_user_auditor import audit_all_sites

__all__ = [
    "DailyJob",
    "DailyScheduler",
    "audit_all_sites",
    "audit_federalist_users",
    "queue_nightly_builds",
    "seconds_until",
    "verify_repositories",
]
