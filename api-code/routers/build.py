from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status

from domain.errors import FederalistError, GitHubError, NotFoundError
from models import Build, User
from schemas import (
    BuildCreateRequest,
    BuildLogRequest,
    BuildLogResponse,
    BuildResponse,
    BuildSourceResponse,
    BuildStatusRequest,
)
from services import BuildService

from .errors import http_error


def build_build_router(build_service: BuildService, auth_dependency) -> APIRouter:
    router = APIRouter(prefix="/v0", tags=["build"])

    async def _respond(build: Build) -> BuildResponse:
        site = await build_service.repository.get_site(build.site_id)
        user = await build_service.repository.get_user(build.user_id)
        if site is None:
            raise http_error(NotFoundError("The site for this build no longer exists"))
        return BuildResponse.from_build(build, site, user)

    @router.get(
        "/site/{site_id}/build",
        response_model=List[BuildResponse],
        summary="List the latest builds of a site.",
    )
    async def list_builds(site_id: str, user: User = Depends(auth_dependency)) -> List[BuildResponse]:
        try:
            builds = await build_service.list_for_site(user, site_id)
            site = await build_service.repository.get_site(site_id)
        except FederalistError as exc:
            raise http_error(exc) from exc
        builders = sorted({build.user_id for build in builds})
        users = {member.user_id: member for member in await build_service.repository.list_users(builders)}
        return [BuildResponse.from_build(build, site, users.get(build.user_id)) for build in builds]

    @router.post(
        "/build",
        response_model=BuildResponse,
        status_code=status.HTTP_200_OK,
        summary="Rebuild an earlier build or build a branch.",
    )
    async def create_build(payload: BuildCreateRequest, user: User = Depends(auth_dependency)) -> BuildResponse:
        try:
            build = await build_service.create(
                user,
                payload.site_id,
                build_id=payload.build_id,
                branch=payload.branch,
                sha=payload.sha,
            )
        except (FederalistError, GitHubError) as exc:
            raise http_error(exc) from exc
        return await _respond(build)

    @router.post(
        "/build/{build_id}/source/{token}",
        response_model=BuildSourceResponse,
        summary="Claim a queued build from the build container.",
    )
    async def claim_source(build_id: str, token: str) -> BuildSourceResponse:
        try:
            build, site, user = await build_service.claim_source(build_id, token)
        except FederalistError as exc:
            raise http_error(exc) from exc
        return BuildSourceResponse.from_build(build, site, user)

    @router.post(
        "/build/{build_id}/status/{token}",
        response_model=BuildResponse,
        summary="Status callback from the build container.",
    )
    async def update_status(build_id: str, token: str, payload: BuildStatusRequest) -> BuildResponse:
        try:
            build = await build_service.update_status(build_id, token, payload.status, payload.message)
        except FederalistError as exc:
            raise http_error(exc) from exc
        return await _respond(build)

    @router.post(
        "/build/{build_id}/log/{token}",
        response_model=BuildLogResponse,
        summary="Log callback from the build container.",
    )
    async def append_log(build_id: str, token: str, payload: BuildLogRequest) -> BuildLogResponse:
        try:
            log = await build_service.append_log(build_id, token, payload.output, payload.source)
        except FederalistError as exc:
            raise http_error(exc) from exc
        return BuildLogResponse.from_log(log)

    @router.get(
        "/build/{build_id}/log/page/{page}",
        response_model=List[BuildLogResponse],
        summary="Page through a build's logs.",
    )
    async def list_logs(
        build_id: str, page: int, user: User = Depends(auth_dependency)
    ) -> List[BuildLogResponse]:
        try:
            logs = await build_service.list_logs(user, build_id, page)
        except FederalistError as exc:
            raise http_error(exc) from exc
        return [BuildLogResponse.from_log(log) for log in logs]

    return router
