from __future__ import annotations

import hashlib
import hmac
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError

PROJECT_ROOT = Path(__file__).resolve().parent.parent
API_CODE_PATH = PROJECT_ROOT / "api-code"
if str(API_CODE_PATH) not in sys.path:
    sys.path.insert(0, str(API_CODE_PATH))

from domain.errors import GitHubError  # noqa: E402
from models import Site, User, new_id  # noqa: E402
from repositories import InMemoryFederalistRepository  # noqa: E402
from services import BuildService, BuildStatusReporter, EventService  # noqa: E402
from settings import Settings  # noqa: E402


WEBHOOK_SECRET = "test-webhook-secret"
SHA_A = "a" * 40
SHA_B = "b" * 40


def make_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = {
        "app_hostname": "https://federalist.test",
        "webhook_secret": WEBHOOK_SECRET,
        "session_secret": "test-session-secret",
        "sqs_queue_url": "https://sqs.test/queue",
        "s3_bucket": "shared-bucket",
        "s3_service_name": "federalist-shared-s3",
        "aws_region": "us-gov-west-1",
        "status_report_attempts": 5,
    }
    values.update(overrides)
    return Settings(**values)


def make_user(username: str = "octocat", *, token: Optional[str] = "token-octocat", **kwargs: Any) -> User:
    return User(_id=new_id(), username=username, github_access_token=token, **kwargs)


def make_site(
    owner: str = "18f",
    repository: str = "example-site",
    *,
    users: Optional[List[User]] = None,
    **kwargs: Any,
) -> Site:
    values: Dict[str, Any] = {
        "_id": new_id(),
        "owner": owner,
        "repository": repository,
        "s3_service_name": "federalist-shared-s3",
        "aws_bucket_name": "shared-bucket",
        "aws_bucket_region": "us-gov-west-1",
        "subdomain": f"{owner}--{repository}".lower(),
        "users": [user.user_id for user in users or []],
    }
    values.update(kwargs)
    return Site(**values)


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return "sha256=" + hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def push_payload(
    full_name: str = "18F/example-site",
    *,
    sender: str = "octocat",
    ref: str = "refs/heads/main",
    after: str = SHA_A,
    commits: Optional[list] = None,
) -> Dict[str, Any]:
    return {
        "ref": ref,
        "after": after,
        "commits": [{"id": after}] if commits is None else commits,
        "sender": {"login": sender},
        "repository": {"full_name": full_name},
    }


def encode(payload: Dict[str, Any]) -> bytes:
    return json.dumps(payload).encode("utf-8")


class FakeGitHub:
    """In-process stand-in for GitHubClient."""

    def __init__(self) -> None:
        self.permissions: Dict[str, Dict[str, bool]] = {}
        self.repositories: Dict[str, Dict[str, Any]] = {}
        self.branches: Dict[str, Dict[str, Any]] = {}
        self.collaborators: List[Dict[str, Any]] = []
        self.org_members: Dict[tuple, List[Dict[str, Any]]] = {}
        self.team_members: Dict[int, List[Dict[str, Any]]] = {}
        self.statuses: List[Dict[str, Any]] = []
        self.hooks: List[str] = []
        self.removed_members: List[tuple] = []
        self.status_failures = 0

    async def check_permissions(self, token: str, owner: str, repo: str) -> Dict[str, bool]:
        return dict(self.permissions.get(token, {}))

    async def get_repository(self, token: str, owner: str, repo: str) -> Optional[Dict[str, Any]]:
        repository = self.repositories.get(f"{owner}/{repo}")
        if repository is None:
            return None
        return {**repository, "permissions": self.permissions.get(token, {})}

    async def get_branch(self, token: str, owner: str, repo: str, branch: str) -> Optional[Dict[str, Any]]:
        return self.branches.get(branch)

    async def set_webhook(self, token: str, owner: str, repo: str) -> None:
        self.hooks.append(f"{owner}/{repo}")

    async def create_status(self, token: str, owner: str, repo: str, sha: str, **kwargs: Any) -> Dict[str, Any]:
        if self.status_failures:
            self.status_failures -= 1
            raise GitHubError(502, "Bad Gateway")
        status = {"token": token, "repo": f"{owner}/{repo}", "sha": sha, **kwargs}
        self.statuses.append(status)
        return status

    async def list_collaborators(self, token: str, owner: str, repo: str) -> List[Dict[str, Any]]:
        return list(self.collaborators)

    async def list_organization_members(
        self, token: str, organization: str, role: str = "all"
    ) -> List[Dict[str, Any]]:
        return list(self.org_members.get((organization, role), []))

    async def list_team_members(self, token: str, team_id: int) -> List[Dict[str, Any]]:
        return list(self.team_members.get(team_id, []))

    async def remove_organization_member(self, token: str, organization: str, username: str) -> None:
        self.removed_members.append((organization, username))

    def authorize_url(self, state: str) -> str:
        return f"https://github.com/login/oauth/authorize?state={state}"


class FakeSQS:
    """boto3 SQS client double recording sent messages."""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.messages: List[Dict[str, Any]] = []

    def send_message(self, **kwargs: Any) -> Dict[str, Any]:
        if self.failures:
            self.failures -= 1
            raise ClientError({"Error": {"Code": "ServiceUnavailable", "Message": "try later"}}, "SendMessage")
        self.messages.append(kwargs)
        return {"MessageId": str(len(self.messages))}

    def environment(self, index: int = -1) -> Dict[str, str]:
        body = json.loads(self.messages[index]["MessageBody"])
        return {item["name"]: item["value"] for item in body["environment"]}


class FakeQueue:
    def __init__(self, *, succeed: bool = True) -> None:
        self.succeed = succeed
        self.sent: List[Dict[str, Any]] = []

    async def send_build_message(self, build, site, build_count: int) -> bool:
        self.sent.append({"build": build, "site": site, "count": build_count})
        return self.succeed


class FakeRemover:
    def __init__(self) -> None:
        self.removed_sites: List[str] = []
        self.removed_infrastructure: List[str] = []

    async def remove_site(self, site: Site) -> int:
        self.removed_sites.append(site.site_id)
        return 3

    async def remove_infrastructure(self, site: Site) -> bool:
        self.removed_infrastructure.append(site.site_id)
        return False


class FakeProxy:
    def __init__(self) -> None:
        self.saved: List[str] = []
        self.removed: List[str] = []

    async def save_site(self, site: Site) -> bool:
        self.saved.append(site.site_id)
        return True

    async def remove_site(self, site: Site) -> bool:
        self.removed.append(site.site_id)
        return True


def build_stack(settings: Optional[Settings] = None):
    """Repository, fakes and a BuildService wired the way the app wires them."""
    settings = settings or make_settings()
    repository = InMemoryFederalistRepository()
    github = FakeGitHub()
    queue = FakeQueue()
    events = EventService(repository)
    reporter = BuildStatusReporter(repository, github, settings)
    builds = BuildService(
        repository, github=github, queue=queue, status_reporter=reporter, events=events
    )
    return settings, repository, github, queue, events, builds
