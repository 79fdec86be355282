from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter


def build_health_router(repository_holder) -> APIRouter:
    """``repository_holder`` is any object exposing the live ``repository``."""
    router = APIRouter()

    @router.get("/healthz")
    async def healthcheck() -> Dict[str, Any]:
        repository = repository_holder.repository
        mongo_ok = await repository.ping()
        latest_build = await repository.find_latest_build()

        issues = []
        if not mongo_ok:
            issues.append("MongoDB ping failed.")

        return {
            "status": "healthy" if not issues else "degraded",
            "mongo": "ok" if mongo_ok else "unreachable",
            "repository": type(repository).__name__,
            "last_build_id": latest_build.build_id if latest_build else None,
            "last_build_state": latest_build.state if latest_build else None,
            "issues": issues,
        }

    return router
