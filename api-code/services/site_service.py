from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from domain.errors import AuthorizationError, InvalidRequestError, NotFoundError
from domain.events import EventLabel
from models import Site, SiteUpdate, User, UserAction, new_id
from settings import Settings

from .build_service import BuildService, validation_message, ensure_site_member
from .event_service import EventService
from .github_client import GitHubClient
from .proxy_data_sync import ProxyDataSync
from .s3_site_remover import S3SiteRemover


logger = logging.getLogger("federalist.sites")

SITE_EXISTS = "This site has already been added to Federalist."
SITE_MISSING = "The site you are trying to add does not exist"
NO_WRITE_ACCESS = "You do not have write access to this repository"
NO_ADMIN_ACCESS = "You do not have admin access to this repository"
ALREADY_MEMBER = "You've already added this site to Federalist"
USER_REQUIRED = "A site must have at least one user"

UPDATABLE_FIELDS = (
    "default_branch",
    "demo_branch",
    "domain",
    "demo_domain",
    "engine",
    "config",
    "default_config",
    "demo_config",
    "preview_config",
)

_SUBDOMAIN_UNSAFE = re.compile(r"[^a-z0-9-]+")


def generate_subdomain(owner: str, repository: str) -> str:
    return _SUBDOMAIN_UNSAFE.sub("-", f"{owner}--{repository}".lower()).strip("-")


class SiteService:
    """Site lifecycle: registration, membership, settings and teardown."""

    def __init__(
        self,
        repository,
        settings: Settings,
        *,
        github: GitHubClient,
        builds: BuildService,
        remover: S3SiteRemover,
        proxy: ProxyDataSync,
        events: EventService,
    ):
        self.repository = repository
        self.settings = settings
        self.github = github
        self.builds = builds
        self.remover = remover
        self.proxy = proxy
        self.events = events

    async def _permissions(self, user: User, owner: str, repository: str) -> Dict[str, bool]:
        if not user.github_access_token:
            return {}
        return await self.github.check_permissions(user.github_access_token, owner, repository)

    async def _sync_proxy(self, site: Site, *, remove: bool = False) -> None:
        try:
            if remove:
                await self.proxy.remove_site(site)
            else:
                await self.proxy.save_site(site)
        except (BotoCoreError, ClientError) as exc:
            logger.error("Proxy table sync failed for %s: %s", site.full_name, exc)
            await self.events.error(
                EventLabel.PROXY_EDGE, error=exc, model="Site", model_id=site.site_id
            )

    async def get_for_member(self, user: User, site_id: str) -> Site:
        site = await self.repository.get_site(site_id)
        if not site:
            raise NotFoundError()
        ensure_site_member(user, site)
        return site

    async def list_for_user(self, user: User) -> list[Site]:
        return await self.repository.list_sites_for_user(user.user_id)

    async def list_members(self, site: Site) -> list[User]:
        return await self.repository.list_users(site.users)

    async def create(
        self,
        user: User,
        *,
        owner: str,
        repository: str,
        engine: Optional[str] = None,
        default_branch: Optional[str] = None,
    ) -> Site:
        owner, repository = owner.strip().lower(), repository.strip().lower()
        if await self.repository.find_site_by_repository(owner, repository):
            raise InvalidRequestError(SITE_EXISTS)

        github_repo = await self.github.get_repository(
            user.github_access_token or "", owner, repository
        )
        if not github_repo:
            raise InvalidRequestError(f"The repository {owner}/{repository} does not exist.")
        if not (github_repo.get("permissions") or {}).get("push"):
            raise InvalidRequestError(NO_WRITE_ACCESS)

        values: Dict[str, Any] = {
            "_id": new_id(),
            "owner": owner,
            "repository": repository,
            "default_branch": default_branch or github_repo.get("default_branch") or "main",
            "s3_service_name": self.settings.s3_service_name,
            "aws_bucket_name": self.settings.s3_bucket,
            "aws_bucket_region": self.settings.aws_region,
            "subdomain": generate_subdomain(owner, repository),
            "users": [user.user_id],
        }
        if engine:
            values["engine"] = engine
        try:
            site = Site(**values)
        except ValidationError as exc:
            raise InvalidRequestError(validation_message(exc)) from exc

        await self.github.set_webhook(user.github_access_token or "", owner, repository)
        site = await self.repository.create_site(site)
        await self._sync_proxy(site)
        await self.events.audit(
            EventLabel.SITE_ADD, model="Site", model_id=site.site_id, body={"user": user.username}
        )
        logger.info("%s added site %s", user.username, site.full_name)

        await self.builds.request_build(site, user, site.default_branch)
        return site

    async def add_user(self, user: User, *, owner: str, repository: str) -> Site:
        site = await self.repository.find_site_by_repository(owner, repository)
        if not site:
            raise NotFoundError(SITE_MISSING)
        if site.has_member(user.user_id):
            raise InvalidRequestError(ALREADY_MEMBER)
        permissions = await self._permissions(user, site.owner, site.repository)
        if not permissions.get("push"):
            raise InvalidRequestError(NO_WRITE_ACCESS)

        site = await self.repository.add_site_user(site.site_id, user.user_id) or site
        await self.repository.create_user_action(
            UserAction(
                user_id=user.user_id,
                target_id=user.user_id,
                action="add",
                site_id=site.site_id,
            )
        )
        return site

    async def remove_user(self, user: User, site_id: str, user_id: str) -> Site:
        site = await self.get_for_member(user, site_id)
        if len(site.users) <= 1:
            raise InvalidRequestError(USER_REQUIRED)
        if not site.has_member(user_id):
            raise NotFoundError()

        site = await self.repository.remove_site_user(site.site_id, user_id) or site
        await self.repository.create_user_action(
            UserAction(
                user_id=user.user_id,
                target_id=user_id,
                action="remove",
                site_id=site.site_id,
            )
        )
        await self.events.audit(
            EventLabel.SITE_USER,
            model="Site",
            model_id=site.site_id,
            body={"action": "remove", "removed_user_id": user_id, "by": user.username},
        )
        return site

    async def update(self, user: User, site_id: str, params: Dict[str, Any]) -> Site:
        site = await self.get_for_member(user, site_id)
        changes = {key: params[key] for key in UPDATABLE_FIELDS if key in params}
        for key in ("demo_branch", "domain", "demo_domain"):
            if key in changes and not changes[key]:
                changes[key] = None

        candidate = {**site.model_dump(by_alias=True), **changes}
        try:
            Site.model_validate(candidate)
            update = SiteUpdate(**changes)
        except ValidationError as exc:
            raise InvalidRequestError(validation_message(exc)) from exc

        site = await self.repository.update_site(site.site_id, update) or site
        await self._sync_proxy(site)

        await self.builds.request_build(site, user, site.default_branch)
        if site.demo_branch:
            await self.builds.request_build(site, user, site.demo_branch)
        return site

    async def destroy(self, user: User, site_id: str) -> Site:
        """Remove a site's published content and infrastructure, then soft delete it."""
        site = await self.get_for_member(user, site_id)
        permissions = await self._permissions(user, site.owner, site.repository)
        if not permissions.get("admin"):
            raise AuthorizationError(NO_ADMIN_ACCESS)

        removed = await self.remover.remove_site(site)
        await self.remover.remove_infrastructure(site)
        await self._sync_proxy(site, remove=True)

        await self.repository.soft_delete_site(site.site_id)
        await self.events.audit(
            EventLabel.SITE_DESTROY,
            model="Site",
            model_id=site.site_id,
            body={"user": user.username, "objects_removed": removed},
        )
        logger.info("%s destroyed site %s (%d objects removed)", user.username, site.full_name, removed)
        return site
