from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional
from urllib import error as urllib_error, parse as urllib_parse, request as urllib_request

from domain.errors import GitHubError, InvalidRequestError
from settings import Settings


logger = logging.getLogger("federalist.github")

GITHUB_OAUTH_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
GITHUB_OAUTH_TOKEN_URL = "https://github.com/login/oauth/access_token"
OAUTH_SCOPES = ("user", "repo", "read:org", "write:repo_hook")
PAGE_SIZE = 100

HOOK_EXISTS_MESSAGE = "Hook already exists on this repository"
NO_ACCESS_MESSAGE = "Not Found"
NO_ADMIN_ACCESS_ERROR_MESSAGE = "You do not have admin access to this repository"


def parse_github_error_message(body: str) -> str:
    """Pull the most specific message out of a GitHub error body."""
    try:
        payload = json.loads(body)
    except (TypeError, ValueError):
        return "Encountered an unexpected GitHub error"
    if not isinstance(payload, dict):
        return "Encountered an unexpected GitHub error"
    errors = payload.get("errors")
    if isinstance(errors, list) and errors and isinstance(errors[0], dict):
        message = errors[0].get("message")
        if message:
            return str(message)
    return str(payload.get("message") or "Encountered an unexpected GitHub error")


class GitHubClient:
    """Thin GitHub REST client; blocking urllib calls run in worker threads."""

    def __init__(self, settings: Settings, *, timeout: float = 15.0):
        self.api_url = settings.github_api_url.rstrip("/")
        self.client_id = settings.github_client_id
        self.client_secret = settings.github_client_secret
        self.callback_url = settings.github_callback_url
        self.webhook_endpoint = settings.webhook_endpoint
        self.webhook_secret = settings.webhook_secret
        self.status_attempts = max(1, int(settings.status_report_attempts))
        self.timeout = timeout

    # transport

    def _request(
        self,
        method: str,
        url: str,
        *,
        token: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        if not url.startswith("http"):
            url = f"{self.api_url}{url}"
        if params:
            url = f"{url}?{urllib_parse.urlencode(params)}"
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "federalist",
        }
        if token:
            headers["Authorization"] = f"token {token}"
        data = None
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json"

        request = urllib_request.Request(url, data=data, headers=headers, method=method)
        try:
            with urllib_request.urlopen(request, timeout=self.timeout) as response:
                body = response.read()
        except urllib_error.HTTPError as exc:
            error_body = exc.read().decode("utf-8", errors="ignore") if exc.fp else ""
            raise GitHubError(
                exc.code, parse_github_error_message(error_body) if error_body else str(exc.reason),
                body=error_body,
            ) from exc
        except urllib_error.URLError as exc:
            raise GitHubError(0, f"request failed: {exc.reason}") from exc

        if not body:
            return None
        try:
            return json.loads(body.decode("utf-8"))
        except ValueError as exc:
            raise GitHubError(0, "Failed to parse GitHub response") from exc

    async def _call(self, method: str, url: str, **kwargs: Any) -> Any:
        return await asyncio.to_thread(self._request, method, url, **kwargs)

    async def _paginate(
        self, path: str, *, token: str, params: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        collected: List[Dict[str, Any]] = []
        page = 1
        while True:
            query = {**(params or {}), "per_page": PAGE_SIZE, "page": page}
            items = await self._call("GET", path, token=token, params=query)
            if not items:
                return collected
            collected.extend(items)
            page += 1

    # repositories

    async def get_repository(self, token: str, owner: str, repo: str) -> Optional[Dict[str, Any]]:
        try:
            return await self._call("GET", f"/repos/{owner}/{repo}", token=token)
        except GitHubError as exc:
            if exc.status == 404:
                return None
            raise

    async def check_permissions(self, token: str, owner: str, repo: str) -> Dict[str, bool]:
        repository = await self.get_repository(token, owner, repo)
        if not repository:
            return {}
        return dict(repository.get("permissions") or {})

    async def get_branch(
        self, token: str, owner: str, repo: str, branch: str
    ) -> Optional[Dict[str, Any]]:
        try:
            return await self._call(
                "GET",
                f"/repos/{owner}/{repo}/branches/{urllib_parse.quote(branch, safe='')}",
                token=token,
            )
        except GitHubError as exc:
            if exc.status == 404:
                return None
            raise

    async def set_webhook(self, token: str, owner: str, repo: str) -> None:
        try:
            await self._call(
                "POST",
                f"/repos/{owner}/{repo}/hooks",
                token=token,
                payload={
                    "name": "web",
                    "active": True,
                    "config": {
                        "url": self.webhook_endpoint,
                        "secret": self.webhook_secret,
                        "content_type": "json",
                    },
                },
            )
        except GitHubError as exc:
            if exc.message == HOOK_EXISTS_MESSAGE:
                logger.info("Webhook already present on %s/%s", owner, repo)
                return
            if exc.message == NO_ACCESS_MESSAGE or exc.status == 404:
                raise InvalidRequestError(NO_ADMIN_ACCESS_ERROR_MESSAGE) from exc
            raise

    async def list_collaborators(self, token: str, owner: str, repo: str) -> List[Dict[str, Any]]:
        return await self._paginate(f"/repos/{owner}/{repo}/collaborators", token=token)

    async def create_status(
        self,
        token: str,
        owner: str,
        repo: str,
        sha: str,
        *,
        state: str,
        target_url: Optional[str] = None,
        description: Optional[str] = None,
        context: str = "federalist/build",
    ) -> Dict[str, Any]:
        """Create a commit status, retrying transient failures up to ``status_attempts`` times."""
        payload: Dict[str, Any] = {"state": state, "context": context}
        if target_url:
            payload["target_url"] = target_url
        if description:
            payload["description"] = description

        attempt = 1
        while True:
            try:
                return await self._call(
                    "POST", f"/repos/{owner}/{repo}/statuses/{sha}", token=token, payload=payload
                )
            except GitHubError as exc:
                if not exc.is_transient or attempt >= self.status_attempts:
                    raise
                logger.warning(
                    "Commit status attempt %d/%d failed for %s/%s@%s: %s",
                    attempt,
                    self.status_attempts,
                    owner,
                    repo,
                    sha,
                    exc,
                )
                attempt += 1

    # organizations

    async def get_organizations(self, token: str) -> List[Dict[str, Any]]:
        return await self._call("GET", "/user/orgs", token=token) or []

    async def check_organizations(self, token: str, org_name: str) -> bool:
        organizations = await self.get_organizations(token)
        return any(org.get("login", "").lower() == org_name.lower() for org in organizations)

    async def list_organization_members(
        self, token: str, organization: str, role: str = "all"
    ) -> List[Dict[str, Any]]:
        return await self._paginate(
            f"/orgs/{organization}/members", token=token, params={"role": role}
        )

    async def list_team_members(self, token: str, team_id: int) -> List[Dict[str, Any]]:
        return await self._paginate(f"/teams/{team_id}/members", token=token)

    async def remove_organization_member(self, token: str, organization: str, username: str) -> None:
        try:
            await self._call("DELETE", f"/orgs/{organization}/members/{username}", token=token)
        except GitHubError as exc:
            if exc.status == 404:
                return
            raise

    # oauth

    def authorize_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id or "",
            "redirect_uri": self.callback_url,
            "scope": " ".join(OAUTH_SCOPES),
            "state": state,
        }
        return f"{GITHUB_OAUTH_AUTHORIZE_URL}?{urllib_parse.urlencode(params)}"

    async def exchange_code(self, code: str) -> str:
        payload = await self._call(
            "POST",
            GITHUB_OAUTH_TOKEN_URL,
            payload={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "code": code,
                "redirect_uri": self.callback_url,
            },
        )
        token = (payload or {}).get("access_token")
        if not token:
            message = (payload or {}).get("error_description") or "OAuth code exchange failed"
            raise GitHubError(401, str(message))
        return str(token)

    async def get_authenticated_user(self, token: str) -> Dict[str, Any]:
        return await self._call("GET", "/user", token=token)

    async def validate_user(self, token: str, approved_organization_ids: List[int]) -> bool:
        organizations = await self.get_organizations(token)
        approved = set(approved_organization_ids)
        return any(org.get("id") in approved for org in organizations)
