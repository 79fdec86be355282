from __future__ import annotations

import logging
from typing import Optional

from domain.errors import GitHubError
from domain.events import EventLabel
from models import Site, User, UserAction
from services.event_service import EventService
from services.github_client import GitHubClient


logger = logging.getLogger("federalist.jobs.site_users")


async def _collaborator_logins(github: GitHubClient, site: Site, auditor: User) -> Optional[set[str]]:
    try:
        collaborators = await github.list_collaborators(
            auditor.github_access_token or "", site.owner, site.repository
        )
    except GitHubError as exc:
        logger.warning("Listing collaborators of %s failed: %s", site.full_name, exc)
        return None
    return {
        str(collaborator.get("login", "")).lower()
        for collaborator in collaborators
        if (collaborator.get("permissions") or {}).get("push")
    }


async def audit_site(
    repository, github: GitHubClient, events: EventService, site: Site, auditor: User
) -> list[str]:
    """Remove members without push access to the repository; returns removed usernames.

    At least one member always remains.
    """
    allowed = await _collaborator_logins(github, site, auditor)
    if allowed is None:
        return []

    members = await repository.list_users(site.users)
    remaining = len(members)
    removed: list[str] = []
    for member in members:
        if member.username in allowed or remaining <= 1:
            continue
        await repository.remove_site_user(site.site_id, member.user_id)
        await repository.create_user_action(
            UserAction(
                user_id=auditor.user_id,
                target_id=member.user_id,
                action="remove",
                site_id=site.site_id,
            )
        )
        await events.audit(
            EventLabel.SITE_USER,
            model="Site",
            model_id=site.site_id,
            body={"action": "remove", "removed_user_id": member.user_id, "by": "audit"},
        )
        remaining -= 1
        removed.append(member.username)
    if removed:
        logger.info("Removed %s from %s", ", ".join(removed), site.full_name)
    return removed


async def audit_all_sites(
    repository, github: GitHubClient, events: EventService, auditor_username: Optional[str]
) -> int:
    if not auditor_username:
        logger.warning("No auditor configured; skipping site user audit")
        return 0
    auditor = await repository.get_user_by_username(auditor_username)
    if not auditor or not auditor.github_access_token:
        logger.warning("Auditor %s has no GitHub token; skipping site user audit", auditor_username)
        return 0

    total = 0
    for site in await repository.list_sites():
        total += len(await audit_site(repository, github, events, site, auditor))
    return total
