from __future__ import annotations

import unittest

from botocore.exceptions import ClientError
from fakes import FakeProxy, FakeRemover, build_stack, make_site, make_user

from domain import AuthorizationError, EventLabel, InvalidRequestError, NotFoundError
from services import SiteService
from services.site_service import generate_subdomain


class FailingProxy(FakeProxy):
    async def save_site(self, site) -> bool:
        raise ClientError({"Error": {"Code": "500", "Message": "boom"}}, "PutItem")


class SiteServiceTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        (
            self.settings,
            self.repository,
            self.github,
            self.queue,
            self.events,
            self.builds,
        ) = build_stack()
        self.remover = FakeRemover()
        self.proxy = FakeProxy()
        self.service = SiteService(
            self.repository,
            self.settings,
            github=self.github,
            builds=self.builds,
            remover=self.remover,
            proxy=self.proxy,
            events=self.events,
        )
        self.user = await self.repository.create_user(make_user("octocat"))
        self.github.permissions["token-octocat"] = {"push": True, "admin": True}

    async def test_create_registers_site_webhook_and_first_build(self) -> None:
        self.github.repositories["18f/new-site"] = {"default_branch": "trunk"}

        site = await self.service.create(self.user, owner="18F", repository="New-Site")

        self.assertEqual(site.full_name, "18f/new-site")
        self.assertEqual(site.default_branch, "trunk")
        self.assertEqual(site.users, [self.user.user_id])
        self.assertEqual(site.aws_bucket_name, self.settings.s3_bucket)
        self.assertEqual(site.subdomain, "18f--new-site")
        self.assertEqual(self.github.hooks, ["18f/new-site"])
        self.assertEqual(self.proxy.saved, [site.site_id])
        self.assertEqual([build.branch for build in self.repository.builds.values()], ["trunk"])
        labels = [event.label for event in self.repository.events]
        self.assertIn(EventLabel.SITE_ADD.value, labels)

    async def test_create_rejects_existing_site(self) -> None:
        await self.repository.create_site(make_site("18f", "taken", users=[self.user]))
        with self.assertRaises(InvalidRequestError):
            await self.service.create(self.user, owner="18f", repository="taken")

    async def test_create_requires_push_access(self) -> None:
        self.github.repositories["18f/readonly"] = {"default_branch": "main"}
        self.github.permissions["token-octocat"] = {"pull": True}
        with self.assertRaises(InvalidRequestError):
            await self.service.create(self.user, owner="18f", repository="readonly")
        self.assertEqual(self.repository.sites, {})

    async def test_create_survives_proxy_failure(self) -> None:
        self.service.proxy = FailingProxy()
        self.github.repositories["18f/new-site"] = {"default_branch": "main"}

        site = await self.service.create(self.user, owner="18f", repository="new-site")

        self.assertIn(site.site_id, self.repository.sites)
        labels = [event.label for event in self.repository.events]
        self.assertIn(EventLabel.PROXY_EDGE.value, labels)

    async def test_add_user_records_action(self) -> None:
        other = await self.repository.create_user(make_user("maintainer", token="token-maintainer"))
        site = await self.repository.create_site(make_site(users=[other]))

        updated = await self.service.add_user(self.user, owner="18F", repository="example-site")

        self.assertIn(self.user.user_id, updated.users)
        self.assertEqual(self.repository.user_actions[-1].action, "add")
        self.assertEqual(self.repository.user_actions[-1].site_id, site.site_id)

    async def test_add_user_to_missing_site_is_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            await self.service.add_user(self.user, owner="18f", repository="missing")

    async def test_remove_last_user_is_rejected(self) -> None:
        site = await self.repository.create_site(make_site(users=[self.user]))
        with self.assertRaises(InvalidRequestError):
            await self.service.remove_user(self.user, site.site_id, self.user.user_id)

    async def test_remove_user_records_action(self) -> None:
        other = await self.repository.create_user(make_user("maintainer"))
        site = await self.repository.create_site(make_site(users=[self.user, other]))

        updated = await self.service.remove_user(self.user, site.site_id, other.user_id)

        self.assertEqual(updated.users, [self.user.user_id])
        action = self.repository.user_actions[-1]
        self.assertEqual((action.action, action.target_id), ("remove", other.user_id))

    async def test_update_queues_default_and_demo_builds(self) -> None:
        site = await self.repository.create_site(make_site(users=[self.user]))

        updated = await self.service.update(
            self.user, site.site_id, {"demo_branch": "demo", "demo_domain": "https://demo.example.gov"}
        )

        self.assertEqual(updated.demo_branch, "demo")
        branches = sorted(build.branch for build in self.repository.builds.values())
        self.assertEqual(branches, ["demo", "main"])
        self.assertEqual(self.proxy.saved, [site.site_id])

    async def test_update_rejects_matching_default_and_demo_branch(self) -> None:
        site = await self.repository.create_site(make_site(users=[self.user]))
        with self.assertRaises(InvalidRequestError):
            await self.service.update(self.user, site.site_id, {"demo_branch": "main"})

    async def test_update_rejects_plain_http_domain(self) -> None:
        site = await self.repository.create_site(make_site(users=[self.user]))
        with self.assertRaises(InvalidRequestError):
            await self.service.update(self.user, site.site_id, {"domain": "http://example.gov"})

    async def test_destroy_removes_content_and_soft_deletes(self) -> None:
        site = await self.repository.create_site(make_site(users=[self.user]))

        await self.service.destroy(self.user, site.site_id)

        self.assertEqual(self.remover.removed_sites, [site.site_id])
        self.assertEqual(self.remover.removed_infrastructure, [site.site_id])
        self.assertEqual(self.proxy.removed, [site.site_id])
        self.assertIsNone(await self.repository.get_site(site.site_id))
        self.assertIsNotNone(self.repository.sites[site.site_id].deleted_at)

    async def test_destroy_requires_admin(self) -> None:
        self.github.permissions["token-octocat"] = {"push": True}
        site = await self.repository.create_site(make_site(users=[self.user]))
        with self.assertRaises(AuthorizationError):
            await self.service.destroy(self.user, site.site_id)
        self.assertEqual(self.remover.removed_sites, [])

    def test_generate_subdomain(self) -> None:
        self.assertEqual(generate_subdomain("18F", "My.Site"), "18f--my-site")


if __name__ == "__main__":
    unittest.main()
