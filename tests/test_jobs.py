from __future__ import annotations

import asyncio
import unittest
from datetime import datetime, timezone

from fakes import SHA_A, build_stack, make_settings, make_site, make_user

from domain import EventLabel, InvalidRequestError
from jobs import (
    DailyScheduler,
    audit_all_sites,
    audit_federalist_users,
    queue_nightly_builds,
    seconds_until,
    verify_repositories,
)


class SchedulerTests(unittest.IsolatedAsyncioTestCase):
    def test_seconds_until_later_today(self) -> None:
        now = datetime(2024, 1, 1, 23, 50, tzinfo=timezone.utc)
        self.assertEqual(seconds_until(0, 10, now), 20 * 60)

    def test_seconds_until_exact_time_waits_a_day(self) -> None:
        now = datetime(2024, 1, 1, 0, 10, tzinfo=timezone.utc)
        self.assertEqual(seconds_until(0, 10, now), 24 * 60 * 60)

    async def test_failing_job_is_logged_not_raised(self) -> None:
        scheduler = DailyScheduler()

        async def boom() -> None:
            raise RuntimeError("boom")

        scheduler.add("boom", 0, 0, boom)
        with self.assertLogs("federalist.scheduler", level="ERROR"):
            await scheduler.run_once(scheduler.jobs[0])

    async def test_start_and_stop(self) -> None:
        scheduler = DailyScheduler()

        async def noop() -> None:
            return None

        scheduler.add("noop", 0, 0, noop)
        scheduler.start()
        await asyncio.sleep(0)
        self.assertTrue(scheduler.running)
        await scheduler.stop()
        self.assertFalse(scheduler.running)


class HousekeepingJobTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        (
            self.settings,
            self.repository,
            self.github,
            self.queue,
            self.events,
            self.builds,
        ) = build_stack()
        self.user = await self.repository.create_user(make_user("octocat"))
        self.github.permissions["token-octocat"] = {"push": True}

    async def test_nightly_builds_only_for_scheduled_branches(self) -> None:
        nightly = await self.repository.create_site(
            make_site(
                repository="nightly",
                users=[self.user],
                demo_branch="demo",
                default_config={"schedule": "nightly"},
            )
        )
        await self.repository.create_site(make_site(repository="manual", users=[self.user]))
        previous, _ = await self.builds.request_build(nightly, self.user, "main", commit_sha=SHA_A)
        await self.builds.update_status(previous.build_id, previous.token, "success")

        queued = await queue_nightly_builds(self.repository, self.builds)

        self.assertEqual(queued, 1)
        latest = await self.repository.find_latest_build(site_id=nightly.site_id, branch="main")
        self.assertNotEqual(latest.build_id, previous.build_id)
        self.assertIsNone(latest.commit_sha)

    async def test_nightly_build_failure_does_not_stop_other_sites(self) -> None:
        for name in ("broken", "healthy"):
            await self.repository.create_site(
                make_site(repository=name, users=[self.user], default_config={"schedule": "nightly"})
            )
        request_build = self.builds.request_build

        async def failing_for_broken(site, user, branch, **kwargs):
            if site.repository == "broken":
                raise InvalidRequestError("branch: invalid")
            return await request_build(site, user, branch, **kwargs)

        self.builds.request_build = failing_for_broken
        with self.assertLogs("federalist.jobs.nightly", level="WARNING"):
            queued = await queue_nightly_builds(self.repository, self.builds)

        self.assertEqual(queued, 1)
        self.assertEqual(
            [build.site_id for build in self.repository.builds.values()],
            [site.site_id for site in self.repository.sites.values() if site.repository == "healthy"],
        )

    async def test_verify_repositories_stamps_visible_sites(self) -> None:
        visible = await self.repository.create_site(make_site(repository="visible", users=[self.user]))
        gone = await self.repository.create_site(make_site(repository="gone", users=[self.user]))
        self.github.repositories["18f/visible"] = {"default_branch": "main"}

        verified = await verify_repositories(self.repository, self.github)

        self.assertEqual(verified, 1)
        self.assertIsNotNone((await self.repository.get_site(visible.site_id)).repo_last_verified)
        self.assertIsNone((await self.repository.get_site(gone.site_id)).repo_last_verified)

    async def test_site_user_audit_removes_members_without_push(self) -> None:
        keeper = await self.repository.create_user(make_user("keeper"))
        leaver = await self.repository.create_user(make_user("leaver"))
        site = await self.repository.create_site(make_site(users=[keeper, leaver]))
        self.github.collaborators = [
            {"login": "Keeper", "permissions": {"push": True}},
            {"login": "leaver", "permissions": {"push": False}},
        ]

        removed = await audit_all_sites(self.repository, self.github, self.events, "octocat")

        self.assertEqual(removed, 1)
        self.assertEqual((await self.repository.get_site(site.site_id)).users, [keeper.user_id])
        self.assertEqual(self.repository.user_actions[-1].target_id, leaver.user_id)
        self.assertIn(EventLabel.SITE_USER.value, [event.label for event in self.repository.events])

    async def test_site_user_audit_keeps_last_member(self) -> None:
        only = await self.repository.create_user(make_user("only"))
        site = await self.repository.create_site(make_site(users=[only]))
        self.github.collaborators = []

        await audit_all_sites(self.repository, self.github, self.events, "octocat")

        self.assertEqual((await self.repository.get_site(site.site_id)).users, [only.user_id])

    async def test_federalist_users_audit(self) -> None:
        settings = make_settings(federalist_users_admin="octocat", federalist_users_teams="1,2")
        self.github.org_members[("18F", "all")] = [{"login": "staff"}]
        self.github.org_members[("federalist-users", "admin")] = [{"login": "admin"}]
        self.github.team_members = {
            1: [{"login": "staff"}, {"login": "departed"}],
            2: [{"login": "admin"}, {"login": "departed"}],
        }

        removed = await audit_federalist_users(self.repository, self.github, settings)

        self.assertEqual(removed, ["departed"])
        self.assertEqual(self.github.removed_members, [("federalist-users", "departed")])


if __name__ == "__main__":
    unittest.main()
