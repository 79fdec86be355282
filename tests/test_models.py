from __future__ import annotations

import unittest

from fakes import SHA_A, make_site
from pydantic import ValidationError

from domain import BuildState, is_valid_transition
from domain.validators import is_valid_branch, sanitize_error_message
from models import Build, BuildUpdate, Event, User, job_state_update
from services.build_links import base_url, build_url, build_view_link, site_prefix


class SiteModelTests(unittest.TestCase):
    def test_owner_and_repository_are_lower_cased(self) -> None:
        site = make_site("18F", "Example-Site")
        self.assertEqual(site.full_name, "18f/example-site")

    def test_default_and_demo_branch_must_differ(self) -> None:
        with self.assertRaises(ValidationError):
            make_site(default_branch="main", demo_branch="main")

    def test_domains_must_be_https(self) -> None:
        with self.assertRaises(ValidationError):
            make_site(domain="http://example.gov")
        with self.assertRaises(ValidationError):
            make_site(domain="https://example.gov", demo_domain="https://example.gov")

    def test_urls(self) -> None:
        site = make_site(demo_branch="demo", demo_domain="https://demo.example.gov")
        self.assertEqual(site.site_url(), "https://shared-bucket.app.cloud.gov/site/18f/example-site/")
        self.assertEqual(site.demo_url(), "https://demo.example.gov/")
        self.assertEqual(
            site.view_link_for_branch("feature"),
            "https://shared-bucket.app.cloud.gov/preview/18f/example-site/feature/",
        )

    def test_dedicated_bucket_detection(self) -> None:
        self.assertFalse(make_site().is_s3_bucket_dedicated())
        self.assertTrue(make_site(s3_service_name="o-18f-r-example-site").is_s3_bucket_dedicated())


class BuildModelTests(unittest.TestCase):
    def test_rejects_invalid_sha_and_branch(self) -> None:
        with self.assertRaises(ValidationError):
            Build(site_id="s", user_id="u", branch="main", commit_sha="not-a-sha")
        with self.assertRaises(ValidationError):
            Build(site_id="s", user_id="u", branch="has space", commit_sha=SHA_A)

    def test_mongo_document_carries_dispatch_flag(self) -> None:
        build = Build(site_id="s", user_id="u", branch="main", commit_sha=SHA_A)
        document = build.to_mongo()
        self.assertTrue(document["awaiting_dispatch"])
        self.assertEqual(Build.from_mongo(document).build_id, build.build_id)

    def test_state_update_clears_dispatch_flag(self) -> None:
        changes = BuildUpdate(state=BuildState.PROCESSING).changes()
        self.assertFalse(changes["awaiting_dispatch"])

    def test_public_payload_hides_token(self) -> None:
        payload = Build(site_id="s", user_id="u", branch="main").to_public()
        self.assertNotIn("token", payload)
        self.assertIn("id", payload)

    def test_job_state_update(self) -> None:
        update = job_state_update("error", "boom https://secret@github.com/x")
        self.assertEqual(update.state, BuildState.ERROR)
        self.assertEqual(update.error, "boom https://[token_redacted]@github.com/x")
        self.assertIsNotNone(update.completed_at)

        processing = job_state_update("processing")
        self.assertIsNone(processing.completed_at)
        self.assertIsNone(processing.error)


class ValidatorTests(unittest.TestCase):
    def test_branch_names(self) -> None:
        for name in ("main", "feature/nav-bar", "release_1.2", "user.name"):
            self.assertTrue(is_valid_branch(name), name)
        for name in ("", "has space", "-leading", "trailing/", "semi;colon"):
            self.assertFalse(is_valid_branch(name), name)

    def test_sanitize_default_message(self) -> None:
        self.assertEqual(sanitize_error_message(None), "An unknown error occurred")

    def test_transitions(self) -> None:
        self.assertTrue(is_valid_transition(BuildState.QUEUED, BuildState.PROCESSING))
        self.assertTrue(is_valid_transition(BuildState.PROCESSING, BuildState.ERROR))
        self.assertFalse(is_valid_transition(BuildState.PROCESSING, BuildState.QUEUED))
        self.assertFalse(is_valid_transition(BuildState.SUCCESS, BuildState.ERROR))


class UserAndEventTests(unittest.TestCase):
    def test_user_public_payload_hides_credentials(self) -> None:
        user = User(_id="u1", username="OctoCat", github_access_token="secret")
        payload = user.to_public()
        self.assertEqual(payload["username"], "octocat")
        self.assertNotIn("github_access_token", payload)

    def test_event_rejects_unknown_label(self) -> None:
        with self.assertRaises(ValidationError):
            Event(type="audit", label="not-a-label")
        with self.assertRaises(ValidationError):
            Event(type="audit", label="site-add", model="Spaceship")


class BuildLinkTests(unittest.TestCase):
    def setUp(self) -> None:
        self.site = make_site(
            domain="https://www.example.gov",
            demo_branch="demo",
        )

    def test_build_url_by_branch(self) -> None:
        host = "https://shared-bucket.app.cloud.gov"
        for branch, path in (
            ("main", "/site/18f/example-site"),
            ("demo", "/demo/18f/example-site"),
            ("feature", "/preview/18f/example-site/feature"),
        ):
            build = Build(site_id=self.site.site_id, user_id="u", branch=branch)
            self.assertEqual(build_url(build, self.site), f"{host}{path}")

    def test_view_link_prefers_custom_domain(self) -> None:
        build = Build(site_id=self.site.site_id, user_id="u", branch="main")
        self.assertEqual(build_view_link(build, self.site), "https://www.example.gov/")
        self.assertEqual(base_url(build, self.site), "")

    def test_view_link_for_preview_has_one_trailing_slash(self) -> None:
        build = Build(site_id=self.site.site_id, user_id="u", branch="feature", url="https://x.gov/path/")
        self.assertEqual(build_view_link(build, self.site), "https://x.gov/path/")
        self.assertEqual(site_prefix(build, self.site), "preview/18f/example-site/feature")


if __name__ == "__main__":
    unittest.main()
