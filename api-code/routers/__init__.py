from .auth import build_auth_router
from .build import build_build_router
from .health import build_health_router
from .main import build_main_router
from .site import build_site_router
from .user import build_user_router
from .webhook import build_webhook_router

__all__ = [
    "build_auth_router",
    "build_build_router",
    "build_health_router",
    "build_main_router",
    "build_site_router",
    "build_user_router",
    "build_webhook_router",
]
