from __future__ import annotations

import asyncio
import logging

from services.github_client import GitHubClient
from settings import Settings


logger = logging.getLogger("federalist.jobs.federalist_users")


async def audit_federalist_users(repository, github: GitHubClient, settings: Settings) -> list[str]:
    """Remove audited team members who left the parent org and are not admins."""
    if not settings.federalist_users_admin:
        logger.warning("FEDERALIST_USERS_ADMIN not configured; skipping audit")
        return []
    auditor = await repository.get_user_by_username(settings.federalist_users_admin)
    if not auditor or not auditor.github_access_token:
        logger.warning("Auditor %s has no GitHub token; skipping audit", settings.federalist_users_admin)
        return []
    token = auditor.github_access_token

    parent_members = {
        member["login"]
        for member in await github.list_organization_members(token, settings.federalist_users_parent_org)
    }
    if not parent_members:
        return []
    admins = {
        member["login"]
        for member in await github.list_organization_members(
            token, settings.federalist_users_org, role="admin"
        )
    }
    teams = await asyncio.gather(
        *(github.list_team_members(token, team_id) for team_id in settings.audited_team_ids)
    )

    removed: list[str] = []
    for team in teams:
        for member in team:
            login = member["login"]
            if login in parent_members or login in admins or login in removed:
                continue
            await github.remove_organization_member(token, settings.federalist_users_org, login)
            logger.info("%s: removed user %s", settings.federalist_users_org, login)
            removed.append(login)
    return removed
