from __future__ import annotations

import base64
import binascii
import logging
from typing import Optional

from pydantic import ValidationError

from domain.build_states import BuildState, is_valid_transition
from domain.errors import AuthorizationError, InvalidRequestError, NotFoundError
from domain.events import EventLabel
from models import Build, BuildLog, Site, SiteUpdate, User, job_state_update

from .build_queue import BuildQueue
from .event_service import EventService
from .github_client import GitHubClient
from .status_reporter import BuildStatusReporter


logger = logging.getLogger("federalist.builds")

BUILD_LIST_LIMIT = 100
LOG_LINES_PER_PAGE = 5 * 1000
LEGACY_LOGS_PER_PAGE = 5
ALL_SOURCE = "ALL"

BRANCH_NOT_FOUND = "The branch you are trying to build does not exist on GitHub"
BUILD_NOT_FOUND = "The build you are trying to restart does not exist"


def decode_b64(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    try:
        return base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise InvalidRequestError("Payload is not valid base64") from exc


def ensure_site_member(user: User, site: Site) -> None:
    if not site.has_member(user.user_id):
        raise AuthorizationError()


class BuildService:
    """Creates, dispatches and tracks builds."""

    def __init__(
        self,
        repository,
        *,
        github: GitHubClient,
        queue: BuildQueue,
        status_reporter: BuildStatusReporter,
        events: EventService,
    ):
        self.repository = repository
        self.github = github
        self.queue = queue
        self.status_reporter = status_reporter
        self.events = events

    async def _get_site_for_member(self, user: User, site_id: str) -> Site:
        site = await self.repository.get_site(site_id)
        if not site:
            raise NotFoundError()
        ensure_site_member(user, site)
        return site

    async def request_build(
        self,
        site: Site,
        user: User,
        branch: str,
        *,
        commit_sha: Optional[str] = None,
    ) -> tuple[Build, bool]:
        """Queue a build of ``branch``, folding into one still awaiting dispatch.

        Only a newly inserted build is sent to the queue. The message names the
        build, not the commit: the container claims the row through
        ``claim_source`` when it starts, so an in-place update of a pending
        build is what gets built. Queue and status failures are logged and
        never undo the stored build.
        """
        try:
            build, created = await self.repository.upsert_pending_build(
                site_id=site.site_id,
                branch=branch,
                user_id=user.user_id,
                commit_sha=commit_sha,
            )
        except ValidationError as exc:
            raise InvalidRequestError(validation_message(exc)) from exc

        if created:
            count = await self.repository.count_builds_for_site(site.site_id)
            await self.queue.send_build_message(build, site, count)
            logger.info("Created build %s for %s@%s", build.build_id, site.full_name, branch)
        else:
            logger.info(
                "Updated queued build %s for %s@%s to %s",
                build.build_id,
                site.full_name,
                branch,
                commit_sha,
            )
        await self.status_reporter.report_build_status(build, site)
        return build, created

    async def list_for_site(self, user: User, site_id: str) -> list[Build]:
        site = await self._get_site_for_member(user, site_id)
        return await self.repository.list_builds_for_site(site.site_id, limit=BUILD_LIST_LIMIT)

    async def create(
        self,
        user: User,
        site_id: str,
        *,
        build_id: Optional[str] = None,
        branch: Optional[str] = None,
        sha: Optional[str] = None,
    ) -> Build:
        site = await self._get_site_for_member(user, site_id)

        if build_id:
            previous = await self.repository.get_build(build_id)
            if not previous or previous.site_id != site.site_id:
                raise NotFoundError(BUILD_NOT_FOUND)
            branch, sha = previous.branch, previous.commit_sha
        elif branch:
            previous = await self.repository.find_latest_build(site_id=site.site_id, branch=branch)
            if previous is None:
                branch_info = await self.github.get_branch(
                    user.github_access_token or "", site.owner, site.repository, branch
                )
                if not branch_info:
                    raise NotFoundError(BRANCH_NOT_FOUND)
                branch = branch_info.get("name", branch)
                sha = sha or (branch_info.get("commit") or {}).get("sha")
        else:
            raise InvalidRequestError("A build id or a branch is required")

        if not branch:
            raise InvalidRequestError("Unable to determine the branch to build")
        build, _ = await self.request_build(site, user, branch, commit_sha=sha)
        return build

    async def claim_source(self, build_id: str, token: str) -> tuple[Build, Site, Optional[User]]:
        """Return what the build container should check out and mark the build running.

        A pending build moves to ``processing`` here; pushes that arrive after
        the claim queue a new build instead of changing this one. Claiming a
        build that is already running returns it unchanged.
        """
        build = await self.repository.get_build(build_id)
        if not build or build.token != token:
            raise NotFoundError()
        site = await self.repository.get_site(build.site_id)
        if not site:
            raise NotFoundError("The site for this build no longer exists")

        claimed = False
        if build.is_pending:
            updated = await self.repository.update_build(
                build.build_id, job_state_update(BuildState.PROCESSING)
            )
            if updated is None:
                raise NotFoundError()
            build, claimed = updated, True
        elif BuildState(build.state).is_terminal:
            raise InvalidRequestError(f"Build {build.build_id} has already finished")

        user = await self.repository.get_user(build.user_id)
        if claimed:
            logger.info(
                "Build %s claimed for %s@%s at %s",
                build.build_id,
                site.full_name,
                build.branch,
                build.commit_sha or "branch head",
            )
            await self.status_reporter.report_build_status(build, site)
        return build, site, user

    async def update_status(
        self, build_id: str, token: str, status: str, message: Optional[str] = None
    ) -> Build:
        """Apply a status callback from the build container."""
        build = await self.repository.get_build(build_id)
        if not build or build.token != token:
            raise NotFoundError()
        try:
            new_state = BuildState(status)
        except ValueError as exc:
            raise InvalidRequestError(f"Invalid build status: {status}") from exc
        if not is_valid_transition(BuildState(build.state), new_state):
            raise InvalidRequestError(
                f"invalid status transition from {BuildState(build.state).value} to {new_state.value}"
            )

        update = job_state_update(new_state, decode_b64(message))
        build = await self.repository.update_build(build.build_id, update)
        if build is None:
            raise NotFoundError()
        if new_state == BuildState.SUCCESS:
            await self.repository.update_site(build.site_id, SiteUpdate(published_at=build.completed_at))
        if new_state == BuildState.ERROR:
            await self.events.audit(
                EventLabel.BUILD_STATUS,
                model="Build",
                model_id=build.build_id,
                body={"state": new_state.value, "error": build.error},
            )
        logger.info("Build %s is now %s", build.build_id, new_state.value)
        await self.status_reporter.report_build_status(build)
        return build

    # logs

    async def append_log(
        self, build_id: str, token: str, output: Optional[str], source: Optional[str]
    ) -> BuildLog:
        build = await self.repository.get_build(build_id)
        if not build or build.token != token:
            raise NotFoundError()
        log = BuildLog(build_id=build.build_id, output=decode_b64(output), source=source or ALL_SOURCE)
        return await self.repository.create_build_log(log)

    async def list_logs(self, user: User, build_id: str, page: int = 1) -> list[BuildLog]:
        if page < 1:
            raise InvalidRequestError("page must be a positive integer")
        build = await self.repository.get_build(build_id)
        if not build:
            raise NotFoundError()
        await self._get_site_for_member(user, build.site_id)

        logs = await self.repository.list_build_logs(
            build.build_id,
            source=ALL_SOURCE,
            offset=LOG_LINES_PER_PAGE * (page - 1),
            limit=LOG_LINES_PER_PAGE,
        )
        if logs:
            return logs
        # builds recorded before combined logging stored one row per step
        return await self.repository.list_build_logs(
            build.build_id,
            exclude_source=ALL_SOURCE,
            offset=LEGACY_LOGS_PER_PAGE * (page - 1),
            limit=LEGACY_LOGS_PER_PAGE,
        )


def validation_message(exc: ValidationError) -> str:
    """First validation error message, without pydantic's prefix."""
    errors = exc.errors()
    if not errors:
        return str(exc)
    message = str(errors[0].get("msg", exc))
    return message.removeprefix("Value error, ")
