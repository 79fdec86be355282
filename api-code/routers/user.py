from __future__ import annotations

from fastapi import APIRouter, Depends

from models import User
from schemas import MeResponse, SiteSummary
from services import UserService


def build_user_router(user_service: UserService, auth_dependency) -> APIRouter:
    router = APIRouter(prefix="/v0", tags=["user"])

    @router.get("/me", response_model=MeResponse, summary="Return the signed-in user.")
    async def me(user: User = Depends(auth_dependency)) -> MeResponse:
        user, sites = await user_service.profile(user)
        return MeResponse(
            **user.to_public(),
            sites=[SiteSummary.from_site(site) for site in sites],
        )

    return router
