from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import boto3

from models import Site, utc_now
from settings import Settings


logger = logging.getLogger("federalist.proxy")

SITE_KEY = "Id"


def get_site_key(site: Site) -> Optional[str]:
    return site.subdomain


def site_to_item(site: Site) -> Dict[str, Any]:
    item: Dict[str, Any] = {
        SITE_KEY: get_site_key(site),
        "BucketName": site.aws_bucket_name,
        "BucketRegion": site.aws_bucket_region,
        "Settings": {},
        "SiteUpdatedAt": site.updated_at.isoformat(),
        "UpdatedAt": utc_now().isoformat(),
    }
    basic_auth = site.config.get("basicAuth") or {}
    if basic_auth.get("username") and basic_auth.get("password"):
        item["Settings"]["BasicAuth"] = {
            "Username": basic_auth["username"],
            "Password": basic_auth["password"],
        }
    return item


class ProxyDataSync:
    """Keeps the proxy's DynamoDB routing table in step with site records."""

    def __init__(self, settings: Settings, *, table: Any = None):
        self.table_name = settings.proxy_site_table
        self.region = settings.aws_region
        self._table = table

    @property
    def table(self) -> Any:
        if self._table is None:
            self._table = boto3.resource("dynamodb", region_name=self.region).Table(self.table_name)
        return self._table

    async def save_site(self, site: Site) -> bool:
        if not get_site_key(site):
            logger.info("Site %s has no subdomain; skipping proxy sync", site.full_name)
            return False
        await asyncio.to_thread(self.table.put_item, Item=site_to_item(site))
        return True

    def _batch_write(self, items: List[Dict[str, Any]]) -> None:
        with self.table.batch_writer() as batch:
            for item in items:
                batch.put_item(Item=item)

    async def save_sites(self, sites: List[Site]) -> int:
        items = [site_to_item(site) for site in sites if get_site_key(site)]
        if items:
            await asyncio.to_thread(self._batch_write, items)
        return len(items)

    async def remove_site(self, site: Site) -> bool:
        key = get_site_key(site)
        if not key:
            return False
        await asyncio.to_thread(self.table.delete_item, Key={SITE_KEY: key})
        return True
