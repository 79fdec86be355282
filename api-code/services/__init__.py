from .auth_service import AuthService
from .build_queue import BuildQueue
from .build_service import BuildService
from .cloud_foundry import CloudFoundryClient
from .event_service import EventService
from .github_client import GitHubClient
from .proxy_data_sync import ProxyDataSync
from .s3_site_remover import S3SiteRemover
from .site_service import SiteService
from .status_reporter import BuildStatusReporter
from .user_service import UserService
from .webhook_service import WebhookService

__all__ = [
    "AuthService",
    "BuildQueue",
    "BuildService",
    "BuildStatusReporter",
    "CloudFoundryClient",
    "EventService",
    "GitHubClient",
    "ProxyDataSync",
    "S3SiteRemover",
    "SiteService",
    "UserService",
    "WebhookService",
]
