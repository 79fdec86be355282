from __future__ import annotations

import asyncio
import base64
import json
import logging
import time
from typing import Any, Dict, Optional
from urllib import error as urllib_error, parse as urllib_parse, request as urllib_request

from settings import Settings


logger = logging.getLogger("federalist.cloud_foundry")


class CloudFoundryError(RuntimeError):
    def __init__(self, status: int, message: str):
        self.status = status
        super().__init__(message)


class CloudFoundryNotFound(CloudFoundryError):
    def __init__(self, message: str):
        super().__init__(404, message)


class CloudFoundryClient:
    """Minimal Cloud Foundry v2 API client for routes and S3 service instances."""

    def __init__(self, settings: Settings, *, timeout: float = 15.0):
        self.api_host = (settings.cf_api_host or "").rstrip("/")
        self.token_url = settings.cf_oauth_token_url
        self.username = settings.deploy_user_username
        self.password = settings.deploy_user_password
        self.timeout = timeout
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    @property
    def configured(self) -> bool:
        return bool(self.api_host and self.token_url and self.username and self.password)

    def _open(self, request: urllib_request.Request) -> Any:
        try:
            with urllib_request.urlopen(request, timeout=self.timeout) as response:
                body = response.read()
        except urllib_error.HTTPError as exc:
            details = exc.read().decode("utf-8", errors="ignore") if exc.fp else str(exc.reason)
            if exc.code == 404:
                raise CloudFoundryNotFound(details or "Not found") from exc
            raise CloudFoundryError(exc.code, details) from exc
        except urllib_error.URLError as exc:
            raise CloudFoundryError(0, f"Cloud Foundry request failed: {exc.reason}") from exc
        return json.loads(body.decode("utf-8")) if body else None

    def _access_token(self) -> str:
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token
        form = urllib_parse.urlencode(
            {"grant_type": "password", "username": self.username, "password": self.password}
        ).encode("utf-8")
        basic = base64.b64encode(b"cf:").decode("ascii")
        request = urllib_request.Request(
            self.token_url or "",
            data=form,
            headers={
                "Authorization": f"Basic {basic}",
                "Content-Type": "application/x-www-form-urlencoded",
                "Accept": "application/json",
            },
            method="POST",
        )
        payload = self._open(request) or {}
        self._token = payload["access_token"]
        self._token_expires_at = time.monotonic() + int(payload.get("expires_in", 600)) - 30
        return self._token

    def _api(self, method: str, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        url = f"{self.api_host}{path}"
        if params:
            url = f"{url}?{urllib_parse.urlencode(params)}"
        request = urllib_request.Request(
            url,
            headers={
                "Authorization": f"Bearer {self._access_token()}",
                "Accept": "application/json",
            },
            method=method,
        )
        return self._open(request)

    def _first_resource(self, path: str, query: str, label: str) -> Dict[str, Any]:
        payload = self._api("GET", path, {"q": query}) or {}
        resources = payload.get("resources") or []
        if not resources:
            raise CloudFoundryNotFound(f"Not found: {label}")
        return resources[0]

    def _fetch_credentials(self, service_instance_name: str) -> Dict[str, Any]:
        instance = self._first_resource(
            "/v2/service_instances", f"name:{service_instance_name}", service_instance_name
        )
        guid = instance["metadata"]["guid"]
        keys = self._api("GET", f"/v2/service_instances/{guid}/service_keys") or {}
        resources = keys.get("resources") or []
        if not resources:
            raise CloudFoundryNotFound(f"Not found: service key for {service_instance_name}")
        return resources[0]["entity"]["credentials"]

    def _delete_route(self, host: str) -> None:
        route = self._first_resource("/v2/routes", f"host:{host}", host)
        self._api("DELETE", f"/v2/routes/{route['metadata']['guid']}", {"recursive": "true", "async": "true"})

    def _delete_service_instance(self, name: str) -> None:
        instance = self._first_resource("/v2/service_instances", f"name:{name}", name)
        self._api(
            "DELETE",
            f"/v2/service_instances/{instance['metadata']['guid']}",
            {"accepts_incomplete": "true", "recursive": "true", "async": "true"},
        )

    async def fetch_service_instance_credentials(self, service_instance_name: str) -> Dict[str, Any]:
        return await asyncio.to_thread(self._fetch_credentials, service_instance_name)

    async def delete_route(self, host: str) -> None:
        await asyncio.to_thread(self._delete_route, host)
        logger.info("Deleted route %s", host)

    async def delete_service_instance(self, name: str) -> None:
        await asyncio.to_thread(self._delete_service_instance, name)
        logger.info("Deleted service instance %s", name)
