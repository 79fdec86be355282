from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import jwt
from fastapi import Cookie, HTTPException, Response, status

from domain.errors import AuthenticationError, GitHubError
from domain.events import EventLabel
from models import User, UserUpdate, utc_now
from settings import Settings

from .event_service import EventService
from .github_client import GitHubClient


logger = logging.getLogger("federalist.auth")

STATE_COOKIE_SUFFIX = ".state"
STATE_TTL_MINUTES = 10
UNAUTHORIZED_ORG_MESSAGE = "Unauthorized: you must be a member of an approved GitHub organization"


class AuthService:
    """GitHub OAuth sign-in, session JWT issuance and cookie helpers."""

    algorithm = "HS256"

    def __init__(
        self,
        settings: Settings,
        repository,
        *,
        github: GitHubClient,
        events: EventService,
    ):
        self.repository = repository
        self.github = github
        self.events = events
        self.secret_key = settings.session_secret
        self.expire_minutes = int(settings.session_expire_minutes or 60)
        self.cookie_name = settings.session_cookie_name
        self.state_cookie_name = f"{settings.session_cookie_name}{STATE_COOKIE_SUFFIX}"
        self.cookie_secure = bool(settings.session_cookie_secure)
        self.approved_organization_ids = settings.approved_organization_ids

        if settings.is_production and (not self.secret_key or self.secret_key == "change-me"):
            raise RuntimeError("FEDERALIST_SESSION_SECRET must be configured with a non-default value.")

    # tokens

    def _encode(self, claims: dict, minutes: int) -> Tuple[str, datetime]:
        issued_at = datetime.now(timezone.utc)
        expires_at = issued_at + timedelta(minutes=minutes)
        payload = {
            **claims,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm), expires_at

    def create_access_token(self, user_id: str) -> Tuple[str, datetime]:
        return self._encode({"sub": user_id}, self.expire_minutes)

    def decode_subject(self, token: Optional[str]) -> str:
        if not token:
            raise AuthenticationError()
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.InvalidTokenError as exc:
            raise AuthenticationError() from exc
        subject = payload.get("sub")
        if not subject:
            raise AuthenticationError()
        return str(subject)

    # cookies

    def set_auth_cookie(self, response: Response, token: str, expires_at: Optional[datetime] = None) -> None:
        max_age = self.expire_minutes * 60
        response.set_cookie(
            key=self.cookie_name,
            value=token,
            httponly=True,
            secure=self.cookie_secure,
            samesite="lax",
            max_age=max_age,
            expires=int(expires_at.timestamp()) if expires_at else max_age,
            path="/",
        )

    def clear_auth_cookie(self, response: Response) -> None:
        response.delete_cookie(key=self.cookie_name, path="/")

    # oauth

    def start_login(self) -> Tuple[str, str]:
        """Return the GitHub authorize URL and the signed state for the state cookie."""
        state = secrets.token_urlsafe(16)
        token, _ = self._encode({"state": state}, STATE_TTL_MINUTES)
        return self.github.authorize_url(state), token

    def set_state_cookie(self, response: Response, token: str) -> None:
        response.set_cookie(
            key=self.state_cookie_name,
            value=token,
            httponly=True,
            secure=self.cookie_secure,
            samesite="lax",
            max_age=STATE_TTL_MINUTES * 60,
            path="/",
        )

    def _check_state(self, state: Optional[str], state_cookie: Optional[str]) -> None:
        if not state or not state_cookie:
            raise AuthenticationError("OAuth state is missing")
        try:
            payload = jwt.decode(state_cookie, self.secret_key, algorithms=[self.algorithm])
        except jwt.InvalidTokenError as exc:
            raise AuthenticationError("OAuth state is invalid or expired") from exc
        if not secrets.compare_digest(str(payload.get("state", "")), state):
            raise AuthenticationError("OAuth state does not match")

    async def complete_login(
        self,
        code: Optional[str],
        state: Optional[str],
        state_cookie: Optional[str],
        response: Response,
    ) -> User:
        self._check_state(state, state_cookie)
        if not code:
            raise AuthenticationError("OAuth code is missing")

        try:
            access_token = await self.github.exchange_code(code)
            profile = await self.github.get_authenticated_user(access_token)
            if self.approved_organization_ids and not await self.github.validate_user(
                access_token, self.approved_organization_ids
            ):
                raise AuthenticationError(UNAUTHORIZED_ORG_MESSAGE)
        except GitHubError as exc:
            logger.warning("GitHub sign-in failed: %s", exc)
            raise AuthenticationError("Unable to sign in with GitHub") from exc

        user, created = await self.repository.find_or_create_user(str(profile.get("login", "")))
        user = await self.repository.update_user(
            user.user_id,
            UserUpdate(
                email=profile.get("email") or user.email,
                github_access_token=access_token,
                github_user_id=str(profile.get("id")) if profile.get("id") is not None else None,
                signed_in_at=utc_now(),
            ),
        ) or user
        await self.events.audit(
            EventLabel.AUTHENTICATION,
            model="User",
            model_id=user.user_id,
            body={"action": "login", "new_user": created},
        )

        token, expires_at = self.create_access_token(user.user_id)
        self.set_auth_cookie(response, token, expires_at)
        response.delete_cookie(key=self.state_cookie_name, path="/")
        logger.info("%s signed in", user.username)
        return user

    async def logout(self, response: Response, user: Optional[User] = None) -> None:
        self.clear_auth_cookie(response)
        if user:
            await self.events.audit(
                EventLabel.AUTHENTICATION,
                model="User",
                model_id=user.user_id,
                body={"action": "logout"},
            )

    # request dependencies

    async def require_user(self, token: Optional[str]) -> User:
        try:
            user_id = self.decode_subject(token)
        except AuthenticationError as exc:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.message) from exc
        user = await self.repository.get_user(user_id)
        if not user:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail=AuthenticationError.default_message
            )
        return user

    def build_auth_dependency(self):
        async def dependency(
            session_token: Optional[str] = Cookie(default=None, alias=self.cookie_name)
        ) -> User:
            return await self.require_user(session_token)

        return dependency

    def build_optional_user_dependency(self):
        async def dependency(
            session_token: Optional[str] = Cookie(default=None, alias=self.cookie_name)
        ) -> Optional[User]:
            if not session_token:
                return None
            try:
                return await self.require_user(session_token)
            except HTTPException:
                return None

        return dependency
