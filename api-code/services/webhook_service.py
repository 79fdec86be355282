from __future__ import annotations

import hashlib
import hmac
import json
import logging
from typing import Any, Dict, Optional

from domain.errors import InvalidRequestError
from domain.events import EventLabel
from models import Build, Event
from settings import Settings

from .build_service import BuildService
from .event_service import EventService


logger = logging.getLogger("federalist.webhooks")

BRANCH_REF_PREFIX = "refs/heads/"
MEMBERSHIP_ACTIONS = ("member_added", "member_removed", "member_invited")


class WebhookService:
    """Turns GitHub webhook deliveries into builds and membership audits."""

    def __init__(
        self,
        repository,
        settings: Settings,
        *,
        builds: BuildService,
        events: EventService,
    ):
        self.repository = repository
        self.secret = settings.webhook_secret or ""
        self.users_org = settings.federalist_users_org.lower()
        self.builds = builds
        self.events = events

    def signature_is_valid(
        self,
        body: bytes,
        *,
        signature_256: Optional[str] = None,
        signature: Optional[str] = None,
    ) -> bool:
        """Check ``X-Hub-Signature-256`` or, failing that, ``X-Hub-Signature``."""
        if not self.secret:
            return False
        key = self.secret.encode("utf-8")
        if signature_256:
            expected = "sha256=" + hmac.new(key, body, hashlib.sha256).hexdigest()
            return hmac.compare_digest(expected, signature_256)
        if signature:
            expected = "sha1=" + hmac.new(key, body, hashlib.sha1).hexdigest()
            return hmac.compare_digest(expected, signature)
        return False

    def parse_delivery(
        self,
        body: bytes,
        *,
        signature_256: Optional[str] = None,
        signature: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not self.signature_is_valid(body, signature_256=signature_256, signature=signature):
            raise InvalidRequestError("No X-Hub-Signature found or signature does not match")
        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise InvalidRequestError("Webhook payload is not valid JSON") from exc
        if not isinstance(payload, dict):
            raise InvalidRequestError("Webhook payload must be a JSON object")
        return payload

    async def handle_push(self, payload: Dict[str, Any]) -> Optional[Build]:
        """Coalesce a push into the branch's pending build.

        Returns ``None`` when the push carries no commits (branch deletions,
        tag pushes) and nothing was queued.
        """
        repository = payload.get("repository") or {}
        full_name = str(repository.get("full_name") or "")
        owner, _, repo_name = full_name.lower().partition("/")
        if not owner or not repo_name:
            raise InvalidRequestError("Unable to find the repository for this webhook")

        site = await self.repository.find_site_by_repository(owner, repo_name)
        if not site:
            raise InvalidRequestError(f"Unable to find a Federalist site for {full_name}")
        if not site.is_active:
            raise InvalidRequestError(f"The site {site.full_name} is inactive")

        login = str((payload.get("sender") or {}).get("login") or "")
        if not login:
            raise InvalidRequestError("Unable to find the sender of this webhook")
        user, created = await self.repository.find_or_create_user(login)
        if created:
            logger.info("Created user %s from a push to %s", user.username, site.full_name)
        if not site.has_member(user.user_id):
            site = await self.repository.add_site_user(site.site_id, user.user_id) or site

        if not payload.get("commits"):
            logger.info("Push to %s carries no commits; nothing to build", site.full_name)
            return None

        ref = str(payload.get("ref") or "")
        if not ref.startswith(BRANCH_REF_PREFIX):
            logger.info("Ignoring push of non-branch ref %s to %s", ref, site.full_name)
            return None
        branch = ref[len(BRANCH_REF_PREFIX):]

        build, _ = await self.builds.request_build(
            site, user, branch, commit_sha=payload.get("after")
        )
        return build

    async def handle_organization(self, payload: Dict[str, Any]) -> Optional[Event]:
        organization = str((payload.get("organization") or {}).get("login") or "")
        action = payload.get("action")
        if organization.lower() != self.users_org or action not in MEMBERSHIP_ACTIONS:
            return None

        if action == "member_invited":
            login = (payload.get("invitation") or {}).get("login")
        else:
            login = ((payload.get("membership") or {}).get("user") or {}).get("login")
        if not login:
            return None

        if action == "member_added":
            user, _ = await self.repository.find_or_create_user(str(login))
        else:
            user = await self.repository.get_user_by_username(str(login))
        if not user:
            return None

        return await self.events.audit(
            EventLabel.FEDERALIST_USERS_MEMBERSHIP,
            model="User",
            model_id=user.user_id,
            body={"action": action, "organization": organization},
        )
