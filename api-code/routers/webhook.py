from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Header, Request

from domain.errors import FederalistError
from schemas import BuildResponse
from services import WebhookService

from .errors import http_error


logger = logging.getLogger("federalist.webhooks")


def build_webhook_router(webhook_service: WebhookService) -> APIRouter:
    router = APIRouter(prefix="/webhook", tags=["webhook"])

    @router.post("/github", summary="Receive a GitHub webhook delivery.")
    async def github(
        request: Request,
        x_github_event: Optional[str] = Header(default=None),
        x_github_delivery: Optional[str] = Header(default=None),
        x_hub_signature_256: Optional[str] = Header(default=None),
        x_hub_signature: Optional[str] = Header(default=None),
    ) -> Dict[str, Any]:
        body = await request.body()
        try:
            payload = webhook_service.parse_delivery(
                body, signature_256=x_hub_signature_256, signature=x_hub_signature
            )
            if x_github_event == "push":
                build = await webhook_service.handle_push(payload)
                if build is None:
                    return {"status": "ignored"}
                site = await webhook_service.repository.get_site(build.site_id)
                user = await webhook_service.repository.get_user(build.user_id)
                return BuildResponse.from_build(build, site, user).model_dump(mode="json")
            if x_github_event == "organization":
                event = await webhook_service.handle_organization(payload)
                return {"status": "recorded" if event else "ignored"}
        except FederalistError as exc:
            logger.warning("Rejected webhook delivery %s: %s", x_github_delivery, exc.message)
            raise http_error(exc) from exc

        logger.info("Ignoring %s delivery %s", x_github_event, x_github_delivery)
        return {"status": "ignored"}

    return router
