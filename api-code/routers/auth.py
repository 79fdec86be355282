from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, Query, Response, status
from fastapi.responses import RedirectResponse

from domain.errors import AuthenticationError
from models import User
from schemas import LogoutResponse
from services import AuthService


def build_auth_router(auth_service: AuthService) -> APIRouter:
    router = APIRouter(tags=["auth"])

    optional_user = auth_service.build_optional_user_dependency()

    @router.get("/auth/github", summary="Start the GitHub OAuth sign-in.")
    async def login() -> RedirectResponse:
        url, state_token = auth_service.start_login()
        response = RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)
        auth_service.set_state_cookie(response, state_token)
        return response

    @router.get(
        "/auth/github/callback",
        summary="Finish the GitHub OAuth sign-in and issue the session cookie.",
    )
    async def callback(
        code: Optional[str] = Query(default=None),
        state: Optional[str] = Query(default=None),
        state_cookie: Optional[str] = Cookie(default=None, alias=auth_service.state_cookie_name),
    ) -> RedirectResponse:
        response = RedirectResponse(url="/", status_code=status.HTTP_302_FOUND)
        try:
            await auth_service.complete_login(code, state, state_cookie, response)
        except AuthenticationError as exc:
            raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
        return response

    @router.get("/logout", summary="Clear the session cookie and return home.")
    async def logout(user: Optional[User] = Depends(optional_user)) -> RedirectResponse:
        response = RedirectResponse(url="/", status_code=status.HTTP_302_FOUND)
        await auth_service.logout(response, user)
        return response

    @router.post("/v0/logout", response_model=LogoutResponse, summary="Clear the session cookie.")
    async def api_logout(
        response: Response, user: Optional[User] = Depends(optional_user)
    ) -> LogoutResponse:
        await auth_service.logout(response, user)
        return LogoutResponse(success=True)

    return router
