from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

import boto3

from models import Site
from settings import Settings

from .cloud_foundry import CloudFoundryClient, CloudFoundryNotFound


logger = logging.getLogger("federalist.s3")


def site_prefixes(site: Site) -> List[str]:
    return [
        f"site/{site.owner}/{site.repository}",
        f"demo/{site.owner}/{site.repository}",
        f"preview/{site.owner}/{site.repository}",
    ]


def default_s3_client_factory(credentials: Dict[str, Any]) -> Any:
    if credentials.get("access_key_id"):
        return boto3.client(
            "s3",
            aws_access_key_id=credentials["access_key_id"],
            aws_secret_access_key=credentials["secret_access_key"],
            region_name=credentials.get("region"),
        )
    return boto3.client("s3", region_name=credentials.get("region"))


class S3SiteRemover:
    """Deletes a site's published objects and its dedicated infrastructure."""

    def __init__(
        self,
        settings: Settings,
        *,
        cf_client: Optional[CloudFoundryClient] = None,
        s3_client_factory: Callable[[Dict[str, Any]], Any] = default_s3_client_factory,
    ):
        self.shared_bucket = settings.s3_bucket
        self.shared_service_name = settings.s3_service_name
        self.batch_size = max(1, min(1000, int(settings.s3_delete_batch_size)))
        self.cf_client = cf_client or CloudFoundryClient(settings)
        self.s3_client_factory = s3_client_factory

    async def _credentials_for(self, site: Site) -> Dict[str, Any]:
        if site.s3_service_name == self.shared_service_name or not self.cf_client.configured:
            return {"bucket": site.aws_bucket_name, "region": site.aws_bucket_region}
        return await self.cf_client.fetch_service_instance_credentials(site.s3_service_name)

    @staticmethod
    def _list_keys(client: Any, bucket: str, prefix: str) -> List[str]:
        keys: List[str] = []
        paginator = client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
            keys.extend(item["Key"] for item in page.get("Contents", []))
        return keys

    def _delete_keys(self, client: Any, bucket: str, keys: List[str]) -> int:
        """Delete keys in sequential batches to stay inside the S3 request limits."""
        batches = 0
        for start in range(0, len(keys), self.batch_size):
            chunk = keys[start : start + self.batch_size]
            client.delete_objects(
                Bucket=bucket,
                Delete={"Objects": [{"Key": key} for key in chunk], "Quiet": True},
            )
            batches += 1
        return batches

    async def remove_site(self, site: Site) -> int:
        """Remove every object published for the site; returns the number of keys deleted."""
        try:
            credentials = await self._credentials_for(site)
        except CloudFoundryNotFound as exc:
            logger.info("No S3 service credentials for %s (%s); nothing to remove", site.full_name, exc)
            return 0

        bucket = credentials.get("bucket") or site.aws_bucket_name
        client = self.s3_client_factory(credentials)
        prefixes = site_prefixes(site)
        listed = await asyncio.gather(
            *(asyncio.to_thread(self._list_keys, client, bucket, f"{prefix}/") for prefix in prefixes)
        )
        keys = [key for group in listed for key in group]
        if keys:
            # redirect objects named after each bare prefix sit beside the prefix folders
            keys.extend(prefixes)
        batches = await asyncio.to_thread(self._delete_keys, client, bucket, keys)
        logger.info(
            "Removed %d objects for %s from %s in %d batches", len(keys), site.full_name, bucket, batches
        )
        return len(keys)

    async def remove_infrastructure(self, site: Site) -> bool:
        """Delete the route and S3 service instance of a dedicated bucket."""
        if site.s3_service_name == self.shared_service_name or site.aws_bucket_name == self.shared_bucket:
            return False
        if not self.cf_client.configured:
            logger.warning("Cloud Foundry API not configured; leaving infrastructure for %s", site.full_name)
            return False
        try:
            await self.cf_client.delete_route(site.aws_bucket_name)
        except CloudFoundryNotFound:
            logger.info("Route %s already removed", site.aws_bucket_name)
        try:
            await self.cf_client.delete_service_instance(site.s3_service_name)
        except CloudFoundryNotFound:
            logger.info("Service instance %s already removed", site.s3_service_name)
        return True
