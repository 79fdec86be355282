from __future__ import annotations

import copy
import unittest
from typing import Any, Callable, Dict, List, Optional

from fakes import SHA_A, SHA_B
from pymongo.errors import DuplicateKeyError, OperationFailure

from domain import BuildState
from models import Build, job_state_update
from repositories import FederalistRepository
from repositories.mongo import PENDING_BUILD_INDEX


def _matches(document: Dict[str, Any], query: Dict[str, Any]) -> bool:
    return all(document.get(key) == value for key, value in query.items())


class FakeCollection:
    """Equality-only stand-in for a motor collection.

    Unique indexes (including partial ones) are enforced on insert, and a
    field present in both ``$set`` and ``$setOnInsert`` fails the way MongoDB does.
    """

    def __init__(self) -> None:
        self.documents: List[Dict[str, Any]] = []
        self.indexes: List[Dict[str, Any]] = []
        self.before_upsert_insert: Optional[Callable[["FakeCollection"], None]] = None

    async def create_index(self, keys: Any, **options: Any) -> str:
        fields = [keys] if isinstance(keys, str) else [field for field, _ in keys]
        name = options.get("name") or "_".join(fields)
        self.indexes.append({"name": name, "fields": fields, **options})
        return name

    def index(self, name: str) -> Dict[str, Any]:
        return next(index for index in self.indexes if index["name"] == name)

    def _check_unique(self, candidate: Dict[str, Any]) -> None:
        for index in self.indexes:
            if not index.get("unique"):
                continue
            partial = index.get("partialFilterExpression") or {}
            if not _matches(candidate, partial):
                continue
            key = [candidate.get(field) for field in index["fields"]]
            for existing in self.documents:
                if _matches(existing, partial) and [existing.get(field) for field in index["fields"]] == key:
                    raise DuplicateKeyError(f"E11000 duplicate key error index: {index['name']}")

    def insert(self, document: Dict[str, Any]) -> None:
        self._check_unique(document)
        self.documents.append(copy.deepcopy(document))

    async def insert_one(self, document: Dict[str, Any]) -> None:
        self.insert(document)

    async def find_one(self, query: Dict[str, Any], sort: Any = None) -> Optional[Dict[str, Any]]:
        for document in self.documents:
            if _matches(document, query):
                return copy.deepcopy(document)
        return None

    async def find_one_and_update(
        self,
        query: Dict[str, Any],
        update: Dict[str, Any],
        *,
        upsert: bool = False,
        return_document: Any = None,
    ) -> Optional[Dict[str, Any]]:
        set_fields = update.get("$set", {})
        on_insert = update.get("$setOnInsert", {})
        conflicts = set(set_fields) & set(on_insert)
        if conflicts:
            raise OperationFailure(f"Updating the path '{sorted(conflicts)[0]}' would create a conflict")

        for document in self.documents:
            if _matches(document, query):
                document.update(copy.deepcopy(set_fields))
                for field in update.get("$unset", {}):
                    document.pop(field, None)
                return copy.deepcopy(document)
        if not upsert:
            return None

        if self.before_upsert_insert is not None:
            hook, self.before_upsert_insert = self.before_upsert_insert, None
            hook(self)
        document = {key: value for key, value in query.items() if not isinstance(value, dict)}
        document.update(copy.deepcopy(on_insert))
        document.update(copy.deepcopy(set_fields))
        self.insert(document)
        return copy.deepcopy(document)


class FakeDatabase:
    def __init__(self) -> None:
        self.collections: Dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        return self.collections.setdefault(name, FakeCollection())

    async def command(self, name: str) -> Dict[str, Any]:
        return {"ok": 1.0}


class PendingBuildUpsertTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.database = FakeDatabase()
        self.repository = FederalistRepository(self.database)
        await self.repository.ensure_indexes()
        self.builds = self.database["builds"]

    async def _upsert(self, user_id: str = "u1", sha: Optional[str] = SHA_A) -> tuple[Build, bool]:
        return await self.repository.upsert_pending_build(
            site_id="site-1", branch="main", user_id=user_id, commit_sha=sha
        )

    async def test_pending_index_is_unique_and_partial(self) -> None:
        index = self.builds.index(PENDING_BUILD_INDEX)
        self.assertTrue(index["unique"])
        self.assertEqual(index["fields"], ["site_id", "branch"])
        self.assertEqual(index["partialFilterExpression"], {"awaiting_dispatch": True})
        self.assertTrue(await self.repository.ping())

    async def test_first_request_inserts_a_queued_build(self) -> None:
        build, created = await self._upsert()

        self.assertTrue(created)
        self.assertEqual(build.state, BuildState.QUEUED.value)
        self.assertEqual(build.commit_sha, SHA_A)
        self.assertTrue(build.token)
        self.assertEqual(len(self.builds.documents), 1)
        self.assertTrue(self.builds.documents[0]["awaiting_dispatch"])
        self.assertEqual(self.builds.documents[0]["_id"], build.build_id)

    async def test_later_request_updates_the_pending_row(self) -> None:
        first, _ = await self._upsert("u1", SHA_A)
        second, created = await self._upsert("u2", SHA_B)

        self.assertFalse(created)
        self.assertEqual(second.build_id, first.build_id)
        self.assertEqual(second.token, first.token)
        self.assertEqual(second.commit_sha, SHA_B)
        self.assertEqual(second.user_id, "u2")
        self.assertEqual(len(self.builds.documents), 1)

    async def test_request_without_sha_keeps_stored_sha(self) -> None:
        await self._upsert("u1", SHA_A)
        build, created = await self._upsert("u2", None)

        self.assertFalse(created)
        self.assertEqual(build.commit_sha, SHA_A)
        self.assertEqual(build.user_id, "u2")

    async def test_running_build_is_no_longer_pending(self) -> None:
        first, _ = await self._upsert("u1", SHA_A)
        running = await self.repository.update_build(
            first.build_id, job_state_update(BuildState.PROCESSING)
        )
        self.assertEqual(running.state, BuildState.PROCESSING.value)
        self.assertIsNone(await self.repository.find_pending_build("site-1", "main"))

        second, created = await self._upsert("u1", SHA_B)

        self.assertTrue(created)
        self.assertNotEqual(second.build_id, first.build_id)
        self.assertEqual(len(self.builds.documents), 2)
        self.assertEqual((await self.repository.get_build(first.build_id)).commit_sha, SHA_A)

    async def test_concurrent_insert_falls_back_to_updating_the_winner(self) -> None:
        winner = Build(site_id="site-1", user_id="other", branch="main", commit_sha=SHA_A)
        self.builds.before_upsert_insert = lambda collection: collection.insert(winner.to_mongo())

        build, created = await self._upsert("u2", SHA_B)

        self.assertFalse(created)
        self.assertEqual(build.build_id, winner.build_id)
        self.assertEqual(build.user_id, "u2")
        self.assertEqual(build.commit_sha, SHA_B)
        self.assertEqual(len(self.builds.documents), 1)


if __name__ == "__main__":
    unittest.main()
