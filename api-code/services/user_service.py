from __future__ import annotations

from typing import Optional

from models import User, UserAction

from .site_service import SiteService


class UserService:
    def __init__(self, repository, *, sites: SiteService):
        self.repository = repository
        self.sites = sites

    async def profile(self, user: User) -> tuple[User, list]:
        """The signed-in user and the sites they belong to."""
        return user, await self.sites.list_for_user(user)

    async def list_site_actions(
        self, user: User, site_id: str
    ) -> list[tuple[UserAction, Optional[User]]]:
        site = await self.sites.get_for_member(user, site_id)
        actions = await self.repository.list_user_actions_for_site(site.site_id)
        targets = {
            target.user_id: target
            for target in await self.repository.list_users(
                sorted({action.target_id for action in actions})
            )
        }
        return [(action, targets.get(action.target_id)) for action in actions]
