from __future__ import annotations

from typing import Any, Optional

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from db.mongo import get_database
from domain.build_states import BuildState
from models import (
    Build,
    BuildLog,
    BuildUpdate,
    Event,
    Site,
    SiteUpdate,
    User,
    UserAction,
    UserUpdate,
    new_id,
    utc_now,
)


PENDING_BUILD_INDEX = "one_pending_build_per_branch"


class FederalistRepository:
    """MongoDB repository for users, sites, builds, logs, user actions and events."""

    def __init__(self, database: Optional[AsyncIOMotorDatabase] = None):
        self._db = database if database is not None else get_database()
        self._users: AsyncIOMotorCollection = self._db["users"]
        self._sites: AsyncIOMotorCollection = self._db["sites"]
        self._builds: AsyncIOMotorCollection = self._db["builds"]
        self._build_logs: AsyncIOMotorCollection = self._db["build_logs"]
        self._user_actions: AsyncIOMotorCollection = self._db["user_actions"]
        self._events: AsyncIOMotorCollection = self._db["events"]

    async def ensure_indexes(self) -> None:
        await self._users.create_index("username", unique=True)
        await self._sites.create_index([("owner", ASCENDING), ("repository", ASCENDING)])
        await self._sites.create_index("users")
        await self._builds.create_index([("site_id", ASCENDING), ("created_at", DESCENDING)])
        await self._builds.create_index("created_at")
        await self._builds.create_index(
            [("site_id", ASCENDING), ("branch", ASCENDING)],
            unique=True,
            partialFilterExpression={"awaiting_dispatch": True},
            name=PENDING_BUILD_INDEX,
        )
        await self._build_logs.create_index([("build_id", ASCENDING), ("created_at", ASCENDING)])
        await self._user_actions.create_index("site_id")
        await self._events.create_index([("label", ASCENDING), ("created_at", DESCENDING)])

    async def ping(self) -> bool:
        try:
            await self._db.command("ping")
        except PyMongoError:
            return False
        return True

    # users

    async def get_user(self, user_id: str) -> Optional[User]:
        document = await self._users.find_one({"_id": user_id})
        return User.from_mongo(document) if document else None

    async def get_user_by_username(self, username: str) -> Optional[User]:
        document = await self._users.find_one({"username": username.strip().lower()})
        return User.from_mongo(document) if document else None

    async def list_users(self, user_ids: list[str]) -> list[User]:
        cursor = self._users.find({"_id": {"$in": list(user_ids)}})
        return [User.from_mongo(document) async for document in cursor]

    async def create_user(self, user: User) -> User:
        document = user.to_mongo()
        await self._users.insert_one(document)
        return User.from_mongo(document)

    async def find_or_create_user(
        self, username: str, *, email: Optional[str] = None
    ) -> tuple[User, bool]:
        candidate = User(_id=new_id(), username=username, email=email)
        on_insert = candidate.to_mongo()
        on_insert.pop("username")
        try:
            document = await self._users.find_one_and_update(
                {"username": candidate.username},
                {"$setOnInsert": on_insert},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            document = await self._users.find_one({"username": candidate.username})
        return User.from_mongo(document), document["_id"] == candidate.user_id

    async def update_user(self, user_id: str, update: UserUpdate) -> Optional[User]:
        update_query = update.to_update_query()
        if not update_query:
            return await self.get_user(user_id)
        document = await self._users.find_one_and_update(
            {"_id": user_id}, update_query, return_document=ReturnDocument.AFTER
        )
        return User.from_mongo(document) if document else None

    # sites

    async def create_site(self, site: Site) -> Site:
        document = site.to_mongo()
        await self._sites.insert_one(document)
        return Site.from_mongo(document)

    async def get_site(self, site_id: str) -> Optional[Site]:
        document = await self._sites.find_one({"_id": site_id, "deleted_at": None})
        return Site.from_mongo(document) if document else None

    async def find_site_by_repository(self, owner: str, repository: str) -> Optional[Site]:
        document = await self._sites.find_one(
            {
                "owner": owner.strip().lower(),
                "repository": repository.strip().lower(),
                "deleted_at": None,
            }
        )
        return Site.from_mongo(document) if document else None

    async def list_sites(self, *, active_only: bool = False) -> list[Site]:
        query: dict[str, Any] = {"deleted_at": None}
        if active_only:
            query["build_status"] = "active"
        cursor = self._sites.find(query).sort("created_at", ASCENDING)
        return [Site.from_mongo(document) async for document in cursor]

    async def list_sites_for_user(self, user_id: str) -> list[Site]:
        cursor = self._sites.find({"users": user_id, "deleted_at": None}).sort(
            "created_at", ASCENDING
        )
        return [Site.from_mongo(document) async for document in cursor]

    async def update_site(self, site_id: str, update: SiteUpdate) -> Optional[Site]:
        update_query = update.to_update_query()
        if not update_query:
            return await self.get_site(site_id)
        document = await self._sites.find_one_and_update(
            {"_id": site_id}, update_query, return_document=ReturnDocument.AFTER
        )
        return Site.from_mongo(document) if document else None

    async def add_site_user(self, site_id: str, user_id: str) -> Optional[Site]:
        document = await self._sites.find_one_and_update(
            {"_id": site_id},
            {"$addToSet": {"users": user_id}, "$set": {"updated_at": utc_now()}},
            return_document=ReturnDocument.AFTER,
        )
        return Site.from_mongo(document) if document else None

    async def remove_site_user(self, site_id: str, user_id: str) -> Optional[Site]:
        document = await self._sites.find_one_and_update(
            {"_id": site_id},
            {"$pull": {"users": user_id}, "$set": {"updated_at": utc_now()}},
            return_document=ReturnDocument.AFTER,
        )
        return Site.from_mongo(document) if document else None

    async def soft_delete_site(self, site_id: str) -> Optional[Site]:
        return await self.update_site(site_id, SiteUpdate(deleted_at=utc_now()))

    # builds

    async def create_build(self, build: Build) -> Build:
        document = build.to_mongo()
        await self._builds.insert_one(document)
        return Build.from_mongo(document)

    async def get_build(self, build_id: str) -> Optional[Build]:
        document = await self._builds.find_one({"_id": build_id})
        return Build.from_mongo(document) if document else None

    async def list_builds_for_site(self, site_id: str, *, limit: int = 100) -> list[Build]:
        cursor = self._builds.find({"site_id": site_id}).sort("created_at", DESCENDING).limit(limit)
        return [Build.from_mongo(document) async for document in cursor]

    async def count_builds_for_site(self, site_id: str) -> int:
        return await self._builds.count_documents({"site_id": site_id})

    async def find_latest_build(
        self, *, site_id: Optional[str] = None, branch: Optional[str] = None
    ) -> Optional[Build]:
        query: dict[str, Any] = {}
        if site_id is not None:
            query["site_id"] = site_id
        if branch is not None:
            query["branch"] = branch
        document = await self._builds.find_one(query, sort=[("created_at", DESCENDING)])
        return Build.from_mongo(document) if document else None

    async def find_pending_build(self, site_id: str, branch: str) -> Optional[Build]:
        document = await self._builds.find_one(
            {"site_id": site_id, "branch": branch, "awaiting_dispatch": True}
        )
        return Build.from_mongo(document) if document else None

    async def upsert_pending_build(
        self,
        *,
        site_id: str,
        branch: str,
        user_id: str,
        commit_sha: Optional[str] = None,
    ) -> tuple[Build, bool]:
        """Update the (site, branch) build awaiting dispatch, or insert a queued one.

        Returns the stored build and whether it was newly inserted. The unique
        partial index guarantees a single pending row even under concurrent
        deliveries; the losing upsert falls back to a plain update.
        """
        candidate = Build(
            site_id=site_id,
            user_id=user_id,
            branch=branch,
            commit_sha=commit_sha,
            state=BuildState.QUEUED,
        )
        set_fields: dict[str, Any] = {"user_id": user_id, "updated_at": utc_now()}
        if commit_sha is not None:
            set_fields["commit_sha"] = commit_sha
        on_insert = {
            key: value
            for key, value in candidate.to_mongo().items()
            if key not in set_fields and key not in ("site_id", "branch", "awaiting_dispatch")
        }
        query = {"site_id": site_id, "branch": branch, "awaiting_dispatch": True}
        try:
            document = await self._builds.find_one_and_update(
                query,
                {"$set": set_fields, "$setOnInsert": on_insert},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            document = await self._builds.find_one_and_update(
                query, {"$set": set_fields}, return_document=ReturnDocument.AFTER
            )
        if document is None:
            raise RuntimeError(f"pending build vanished during upsert: site={site_id} branch={branch}")
        return Build.from_mongo(document), document["_id"] == candidate.build_id

    async def update_build(self, build_id: str, update: BuildUpdate) -> Optional[Build]:
        update_query = update.to_update_query()
        if not update_query:
            return await self.get_build(build_id)
        document = await self._builds.find_one_and_update(
            {"_id": build_id}, update_query, return_document=ReturnDocument.AFTER
        )
        return Build.from_mongo(document) if document else None

    # build logs

    async def create_build_log(self, log: BuildLog) -> BuildLog:
        document = log.to_mongo()
        await self._build_logs.insert_one(document)
        return BuildLog.from_mongo(document)

    async def list_build_logs(
        self,
        build_id: str,
        *,
        source: Optional[str] = None,
        exclude_source: Optional[str] = None,
        offset: int = 0,
        limit: int = 100,
    ) -> list[BuildLog]:
        query: dict[str, Any] = {"build_id": build_id}
        if source is not None:
            query["source"] = source
        elif exclude_source is not None:
            query["source"] = {"$ne": exclude_source}
        cursor = (
            self._build_logs.find(query)
            .sort([("created_at", ASCENDING), ("_id", ASCENDING)])
            .skip(offset)
            .limit(limit)
        )
        return [BuildLog.from_mongo(document) async for document in cursor]

    # user actions and events

    async def create_user_action(self, action: UserAction) -> UserAction:
        document = action.to_mongo()
        await self._user_actions.insert_one(document)
        return UserAction.from_mongo(document)

    async def list_user_actions_for_site(self, site_id: str) -> list[UserAction]:
        cursor = self._user_actions.find({"site_id": site_id}).sort("created_at", DESCENDING)
        return [UserAction.from_mongo(document) async for document in cursor]

    async def create_event(self, event: Event) -> Event:
        document = event.to_mongo()
        await self._events.insert_one(document)
        return Event.from_mongo(document)
