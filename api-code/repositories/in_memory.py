from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

from domain.build_states import BuildState
from models import (
    Build,
    BuildLog,
    BuildUpdate,
    Event,
    Site,
    SiteUpdate,
    User,
    UserAction,
    UserUpdate,
    new_id,
    utc_now,
)


class InMemoryFederalistRepository:
    """Fallback repository used when MongoDB is unavailable, and in tests."""

    def __init__(self) -> None:
        self.users: Dict[str, User] = {}
        self.sites: Dict[str, Site] = {}
        self.builds: Dict[str, Build] = {}
        self.build_logs: List[BuildLog] = []
        self.user_actions: List[UserAction] = []
        self.events: List[Event] = []
        self._pending_lock = asyncio.Lock()

    async def ensure_indexes(self) -> None:  # pragma: no cover - no-op
        return

    async def ping(self) -> bool:
        return True

    # users

    async def get_user(self, user_id: str) -> Optional[User]:
        return self.users.get(user_id)

    async def get_user_by_username(self, username: str) -> Optional[User]:
        wanted = username.strip().lower()
        for user in self.users.values():
            if user.username == wanted:
                return user
        return None

    async def list_users(self, user_ids: list[str]) -> list[User]:
        return [self.users[user_id] for user_id in user_ids if user_id in self.users]

    async def create_user(self, user: User) -> User:
        self.users[user.user_id] = user
        return user

    async def find_or_create_user(
        self, username: str, *, email: Optional[str] = None
    ) -> tuple[User, bool]:
        existing = await self.get_user_by_username(username)
        if existing:
            return existing, False
        user = User(_id=new_id(), username=username, email=email)
        self.users[user.user_id] = user
        return user, True

    async def update_user(self, user_id: str, update: UserUpdate) -> Optional[User]:
        user = self.users.get(user_id)
        if not user:
            return None
        user = update.apply_to(user)
        self.users[user_id] = user
        return user

    # sites

    async def create_site(self, site: Site) -> Site:
        self.sites[site.site_id] = site
        return site

    async def get_site(self, site_id: str) -> Optional[Site]:
        site = self.sites.get(site_id)
        if site is None or site.deleted_at is not None:
            return None
        return site

    async def find_site_by_repository(self, owner: str, repository: str) -> Optional[Site]:
        owner, repository = owner.strip().lower(), repository.strip().lower()
        for site in self.sites.values():
            if site.deleted_at is None and site.owner == owner and site.repository == repository:
                return site
        return None

    async def list_sites(self, *, active_only: bool = False) -> list[Site]:
        sites = [site for site in self.sites.values() if site.deleted_at is None]
        if active_only:
            sites = [site for site in sites if site.is_active]
        return sorted(sites, key=lambda site: site.created_at)

    async def list_sites_for_user(self, user_id: str) -> list[Site]:
        return [site for site in await self.list_sites() if site.has_member(user_id)]

    async def update_site(self, site_id: str, update: SiteUpdate) -> Optional[Site]:
        site = self.sites.get(site_id)
        if not site:
            return None
        site = update.apply_to(site)
        self.sites[site_id] = site
        return site

    async def add_site_user(self, site_id: str, user_id: str) -> Optional[Site]:
        site = self.sites.get(site_id)
        if not site:
            return None
        if user_id not in site.users:
            site = site.model_copy(update={"users": [*site.users, user_id], "updated_at": utc_now()})
            self.sites[site_id] = site
        return site

    async def remove_site_user(self, site_id: str, user_id: str) -> Optional[Site]:
        site = self.sites.get(site_id)
        if not site:
            return None
        remaining = [member for member in site.users if member != user_id]
        site = site.model_copy(update={"users": remaining, "updated_at": utc_now()})
        self.sites[site_id] = site
        return site

    async def soft_delete_site(self, site_id: str) -> Optional[Site]:
        return await self.update_site(site_id, SiteUpdate(deleted_at=utc_now()))

    # builds

    async def create_build(self, build: Build) -> Build:
        if build.is_pending and await self.find_pending_build(build.site_id, build.branch or ""):
            raise ValueError(
                f"a build is already awaiting dispatch for site={build.site_id} branch={build.branch}"
            )
        self.builds[build.build_id] = build
        return build

    async def get_build(self, build_id: str) -> Optional[Build]:
        return self.builds.get(build_id)

    async def list_builds_for_site(self, site_id: str, *, limit: int = 100) -> list[Build]:
        builds = [build for build in self.builds.values() if build.site_id == site_id]
        builds.sort(key=lambda build: build.created_at, reverse=True)
        return builds[:limit]

    async def count_builds_for_site(self, site_id: str) -> int:
        return sum(1 for build in self.builds.values() if build.site_id == site_id)

    async def find_latest_build(
        self, *, site_id: Optional[str] = None, branch: Optional[str] = None
    ) -> Optional[Build]:
        builds = [
            build
            for build in self.builds.values()
            if (site_id is None or build.site_id == site_id)
            and (branch is None or build.branch == branch)
        ]
        if not builds:
            return None
        return max(builds, key=lambda build: build.created_at)

    async def find_pending_build(self, site_id: str, branch: str) -> Optional[Build]:
        for build in self.builds.values():
            if build.site_id == site_id and build.branch == branch and build.is_pending:
                return build
        return None

    async def upsert_pending_build(
        self,
        *,
        site_id: str,
        branch: str,
        user_id: str,
        commit_sha: Optional[str] = None,
    ) -> tuple[Build, bool]:
        candidate = Build(
            site_id=site_id,
            user_id=user_id,
            branch=branch,
            commit_sha=commit_sha,
            state=BuildState.QUEUED,
        )
        async with self._pending_lock:
            existing = await self.find_pending_build(site_id, branch)
            if existing:
                if commit_sha is None:
                    update = BuildUpdate(user_id=user_id)
                else:
                    update = BuildUpdate(user_id=user_id, commit_sha=commit_sha)
                build = update.apply_to(existing)
                self.builds[build.build_id] = build
                return build, False

            self.builds[candidate.build_id] = candidate
            return candidate, True

    async def update_build(self, build_id: str, update: BuildUpdate) -> Optional[Build]:
        build = self.builds.get(build_id)
        if not build:
            return None
        build = update.apply_to(build)
        self.builds[build_id] = build
        return build

    # build logs

    async def create_build_log(self, log: BuildLog) -> BuildLog:
        self.build_logs.append(log)
        return log

    async def list_build_logs(
        self,
        build_id: str,
        *,
        source: Optional[str] = None,
        exclude_source: Optional[str] = None,
        offset: int = 0,
        limit: int = 100,
    ) -> list[BuildLog]:
        logs = [log for log in self.build_logs if log.build_id == build_id]
        if source is not None:
            logs = [log for log in logs if log.source == source]
        elif exclude_source is not None:
            logs = [log for log in logs if log.source != exclude_source]
        return logs[offset : offset + limit]

    # user actions and events

    async def create_user_action(self, action: UserAction) -> UserAction:
        self.user_actions.append(action)
        return action

    async def list_user_actions_for_site(self, site_id: str) -> list[UserAction]:
        actions = [action for action in self.user_actions if action.site_id == site_id]
        return list(reversed(actions))

    async def create_event(self, event: Event) -> Event:
        self.events.append(event)
        return event
