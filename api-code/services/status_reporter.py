from __future__ import annotations

import logging
from typing import Optional

from domain.build_states import BuildState
from domain.errors import GitHubError
from models import Build, Site, User
from settings import Settings

from .build_links import build_view_link
from .github_client import GitHubClient


logger = logging.getLogger("federalist.status")

STATUS_BY_STATE: dict[BuildState, tuple[str, str]] = {
    BuildState.CREATED: ("pending", "The build is queued."),
    BuildState.QUEUED: ("pending", "The build is queued."),
    BuildState.PROCESSING: ("pending", "The build is running."),
    BuildState.SKIPPED: ("success", "The build was skipped."),
    BuildState.SUCCESS: ("success", "The build is complete!"),
    BuildState.ERROR: ("error", "The build has encountered an error."),
}


class BuildStatusReporter:
    """Mirrors build state onto the commit as a GitHub status."""

    def __init__(self, repository, github: GitHubClient, settings: Settings):
        self.repository = repository
        self.github = github
        self.app_hostname = settings.app_hostname.rstrip("/")
        self.context = settings.github_status_context

    def target_url(self, build: Build, site: Site) -> str:
        if BuildState(build.state) == BuildState.SUCCESS:
            return build_view_link(build, site)
        return f"{self.app_hostname}/sites/{site.site_id}/builds/{build.build_id}/logs"

    async def _resolve_reporting_user(self, build: Build, site: Site) -> Optional[User]:
        candidates: list[User] = []
        builder = await self.repository.get_user(build.user_id)
        if builder:
            candidates.append(builder)
        for member in await self.repository.list_users(site.users):
            if member.user_id != build.user_id:
                candidates.append(member)

        for candidate in candidates:
            if not candidate.github_access_token:
                continue
            try:
                permissions = await self.github.check_permissions(
                    candidate.github_access_token, site.owner, site.repository
                )
            except GitHubError as exc:
                logger.warning("Permission check failed for %s on %s: %s", candidate.username, site.full_name, exc)
                continue
            if permissions.get("push"):
                return candidate
        return None

    async def report_build_status(self, build: Build, site: Optional[Site] = None) -> bool:
        """Report the build state; GitHub failures are logged and swallowed."""
        if not build.commit_sha:
            logger.info("Build %s has no commit sha; skipping status report", build.build_id)
            return False
        site = site or await self.repository.get_site(build.site_id)
        if not site:
            logger.warning("Build %s references a missing site", build.build_id)
            return False

        reporter = await self._resolve_reporting_user(build, site)
        if not reporter:
            logger.warning(
                "No site member with push access to %s; status for build %s not reported",
                site.full_name,
                build.build_id,
            )
            return False

        state, description = STATUS_BY_STATE[BuildState(build.state)]
        try:
            await self.github.create_status(
                reporter.github_access_token or "",
                site.owner,
                site.repository,
                build.commit_sha,
                state=state,
                target_url=self.target_url(build, site),
                description=description,
                context=self.context,
            )
        except GitHubError as exc:
            logger.error(
                "Reporting %s status for build %s on %s failed: %s",
                state,
                build.build_id,
                site.full_name,
                exc,
            )
            return False
        return True
