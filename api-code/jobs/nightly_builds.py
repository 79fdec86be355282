from __future__ import annotations

import logging
from typing import Optional

from domain.errors import FederalistError
from models import Site, User
from services.build_service import BuildService


logger = logging.getLogger("federalist.jobs.nightly")

NIGHTLY = "nightly"


def scheduled_branches(site: Site) -> list[str]:
    branches = []
    if site.default_config.get("schedule") == NIGHTLY:
        branches.append(site.default_branch)
    if site.demo_branch and site.demo_config.get("schedule") == NIGHTLY:
        branches.append(site.demo_branch)
    return branches


async def _build_user(repository, site: Site) -> Optional[User]:
    members = await repository.list_users(site.users)
    with_token = [member for member in members if member.github_access_token]
    return (with_token or members or [None])[0]


async def queue_nightly_builds(repository, builds: BuildService) -> int:
    """Queue a build of the branch head for each branch with ``schedule: nightly``."""
    queued = 0
    for site in await repository.list_sites(active_only=True):
        branches = scheduled_branches(site)
        if not branches:
            continue
        user = await _build_user(repository, site)
        if not user:
            logger.warning("Site %s has no members; skipping nightly build", site.full_name)
            continue
        for branch in branches:
            try:
                await builds.request_build(site, user, branch)
            except FederalistError as exc:
                logger.warning("Nightly build of %s@%s failed: %s", site.full_name, branch, exc)
                continue
            queued += 1
    logger.info("Queued %d nightly builds", queued)
    return queued
