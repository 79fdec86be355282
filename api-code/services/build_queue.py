from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from domain.build_states import SiteEngine
from models import Build, Site
from settings import Settings

from .build_links import base_url, site_prefix


logger = logging.getLogger("federalist.queue")


class BuildQueue:
    """Publishes build-dispatch messages to the build container queue (SQS)."""

    def __init__(self, settings: Settings, *, client: Any = None):
        self.queue_url = settings.sqs_queue_url
        self.app_hostname = settings.app_hostname.rstrip("/")
        self.attempts = max(1, int(settings.queue_send_attempts))
        self.region = settings.aws_region
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client("sqs", region_name=self.region)
        return self._client

    def build_message(self, build: Build, site: Site, build_count: int) -> Dict[str, Any]:
        config = site.config_for_branch(build.branch or "")
        environment: List[Dict[str, str]] = [
            {"name": "BUILD_ID", "value": build.build_id},
            {"name": "AWS_DEFAULT_REGION", "value": site.aws_bucket_region},
            {"name": "BUCKET", "value": site.aws_bucket_name},
            {"name": "BASEURL", "value": base_url(build, site)},
            {"name": "BRANCH", "value": build.branch or ""},
            {"name": "CONFIG", "value": json.dumps(config) if config else ""},
            {"name": "REPOSITORY", "value": site.repository},
            {"name": "OWNER", "value": site.owner},
            {"name": "SITE_PREFIX", "value": site_prefix(build, site)},
            {"name": "GENERATOR", "value": SiteEngine(site.engine).value},
            {
                "name": "SOURCE_CALLBACK",
                "value": f"{self.app_hostname}/v0/build/{build.build_id}/source/{build.token}",
            },
            {
                "name": "STATUS_CALLBACK",
                "value": f"{self.app_hostname}/v0/build/{build.build_id}/status/{build.token}",
            },
            {
                "name": "LOG_CALLBACK",
                "value": f"{self.app_hostname}/v0/build/{build.build_id}/log/{build.token}",
            },
        ]
        return {
            "environment": environment,
            "build_id": build.build_id,
            "site_id": site.site_id,
            "build_count": build_count,
        }

    async def send_build_message(self, build: Build, site: Site, build_count: int) -> bool:
        """Send the dispatch message; failures are logged and reported as False."""
        if not self.queue_url:
            logger.warning("SQS_QUEUE_URL not configured; build %s was not dispatched", build.build_id)
            return False

        body = json.dumps(self.build_message(build, site, build_count))
        last_error: Optional[Exception] = None
        for attempt in range(1, self.attempts + 1):
            try:
                await asyncio.to_thread(
                    self.client.send_message, QueueUrl=self.queue_url, MessageBody=body
                )
                logger.info("Queued build %s for %s (%s)", build.build_id, site.full_name, build.branch)
                return True
            except (BotoCoreError, ClientError) as exc:
                last_error = exc
                logger.warning(
                    "Build message attempt %d/%d failed for build %s: %s",
                    attempt,
                    self.attempts,
                    build.build_id,
                    exc,
                )
        logger.error("Giving up on build message for build %s: %s", build.build_id, last_error)
        return False
