from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from domain.errors import FederalistError, GitHubError
from models import User
from schemas import (
    SiteCreateRequest,
    SiteResponse,
    SiteUpdateRequest,
    SiteUserAddRequest,
    UserActionResponse,
)
from services import SiteService, UserService

from .errors import http_error


def build_site_router(site_service: SiteService, user_service: UserService, auth_dependency) -> APIRouter:
    router = APIRouter(prefix="/v0", tags=["site"])

    async def _respond(site) -> SiteResponse:
        return SiteResponse.from_site(site, await site_service.list_members(site))

    @router.get("/site", response_model=List[SiteResponse], summary="List the user's sites.")
    async def list_sites(user: User = Depends(auth_dependency)) -> List[SiteResponse]:
        return [await _respond(site) for site in await site_service.list_for_user(user)]

    @router.get("/site/{site_id}", response_model=SiteResponse, summary="Show a site.")
    async def get_site(site_id: str, user: User = Depends(auth_dependency)) -> SiteResponse:
        try:
            site = await site_service.get_for_member(user, site_id)
        except FederalistError as exc:
            raise http_error(exc) from exc
        return await _respond(site)

    @router.post(
        "/site",
        response_model=SiteResponse,
        status_code=status.HTTP_200_OK,
        summary="Register a GitHub repository as a site and queue its first build.",
    )
    async def create_site(payload: SiteCreateRequest, user: User = Depends(auth_dependency)) -> SiteResponse:
        try:
            site = await site_service.create(
                user,
                owner=payload.owner,
                repository=payload.repository,
                engine=payload.engine.value if payload.engine else None,
                default_branch=payload.default_branch,
            )
        except (FederalistError, GitHubError) as exc:
            raise http_error(exc) from exc
        return await _respond(site)

    @router.put(
        "/site/{site_id}",
        response_model=SiteResponse,
        summary="Update site settings and rebuild its default and demo branches.",
    )
    async def update_site(
        site_id: str, payload: SiteUpdateRequest, user: User = Depends(auth_dependency)
    ) -> SiteResponse:
        params = payload.model_dump(exclude_unset=True, mode="json")
        if not params:
            raise HTTPException(status_code=400, detail="No site settings were provided")
        try:
            site = await site_service.update(user, site_id, params)
        except FederalistError as exc:
            raise http_error(exc) from exc
        return await _respond(site)

    @router.delete(
        "/site/{site_id}",
        response_model=SiteResponse,
        summary="Remove a site's published content and infrastructure.",
    )
    async def destroy_site(site_id: str, user: User = Depends(auth_dependency)) -> SiteResponse:
        try:
            site = await site_service.destroy(user, site_id)
        except (FederalistError, GitHubError) as exc:
            raise http_error(exc) from exc
        return await _respond(site)

    @router.post(
        "/site/user",
        response_model=SiteResponse,
        summary="Join an existing site the user can push to.",
    )
    async def add_site_user(payload: SiteUserAddRequest, user: User = Depends(auth_dependency)) -> SiteResponse:
        try:
            site = await site_service.add_user(user, owner=payload.owner, repository=payload.repository)
        except (FederalistError, GitHubError) as exc:
            raise http_error(exc) from exc
        return await _respond(site)

    @router.delete(
        "/site/{site_id}/user/{user_id}",
        response_model=SiteResponse,
        summary="Remove a member from a site.",
    )
    async def remove_site_user(
        site_id: str, user_id: str, user: User = Depends(auth_dependency)
    ) -> SiteResponse:
        try:
            site = await site_service.remove_user(user, site_id, user_id)
        except FederalistError as exc:
            raise http_error(exc) from exc
        return await _respond(site)

    @router.get(
        "/site/{site_id}/user-action",
        response_model=List[UserActionResponse],
        summary="List membership changes recorded for a site.",
    )
    async def list_user_actions(
        site_id: str, user: User = Depends(auth_dependency)
    ) -> List[UserActionResponse]:
        try:
            actions = await user_service.list_site_actions(user, site_id)
        except FederalistError as exc:
            raise http_error(exc) from exc
        return [UserActionResponse.from_action(action, target) for action, target in actions]

    return router
