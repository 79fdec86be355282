from __future__ import annotations

import logging

from domain.errors import GitHubError
from models import Site, SiteUpdate, utc_now
from services.github_client import GitHubClient


logger = logging.getLogger("federalist.jobs.repos")


async def verify_site_repository(repository, github: GitHubClient, site: Site) -> bool:
    """Stamp ``repo_last_verified`` when any member can still see the repository."""
    for member in await repository.list_users(site.users):
        if not member.github_access_token:
            continue
        try:
            found = await github.get_repository(member.github_access_token, site.owner, site.repository)
        except GitHubError as exc:
            logger.warning("Verifying %s as %s failed: %s", site.full_name, member.username, exc)
            continue
        if found:
            await repository.update_site(site.site_id, SiteUpdate(repo_last_verified=utc_now()))
            return True
    return False


async def verify_repositories(repository, github: GitHubClient) -> int:
    verified = 0
    for site in await repository.list_sites():
        if await verify_site_repository(repository, github, site):
            verified += 1
        else:
            logger.info("Repository for %s could not be verified", site.full_name)
    return verified
