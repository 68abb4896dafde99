"""Shared pytest fixtures.

The document store is replaced by an in-memory async double that implements
the subset of the pymongo collection API the services use.
"""

import copy
import operator
from collections.abc import AsyncIterator, Callable
from types import SimpleNamespace
from typing import Any

import bcrypt
import pytest
from pymongo.errors import DuplicateKeyError

from warden.config import Config
from warden.core.core import Core
from warden.core.modules.account.models import Account
from warden.core.modules.session.models import DeviceInfo

STRONG_PASSWORD = "Str0ng!pass"

_COMPARATORS: dict[str, Callable[[Any, Any], bool]] = {
    "$lt": operator.lt,
    "$lte": operator.le,
    "$gt": operator.gt,
    "$gte": operator.ge,
}


def _matches_condition(value: Any, condition: Any) -> bool:
    if isinstance(condition, dict) and condition and all(key.startswith("$") for key in condition):
        for op, arg in condition.items():
            if op == "$eq" and value != arg:
                return False
            if op == "$ne" and value == arg:
                return False
            if op == "$in" and value not in arg:
                return False
            if op == "$nin" and value in arg:
                return False
            if op in _COMPARATORS and (value is None or not _COMPARATORS[op](value, arg)):
                return False
        return True
    return value == condition


def matches(document: dict[str, Any], query: dict[str, Any]) -> bool:
    for key, condition in query.items():
        if key == "$or":
            if not any(matches(document, sub) for sub in condition):
                return False
        elif key == "$and":
            if not all(matches(document, sub) for sub in condition):
                return False
        elif not _matches_condition(document.get(key), condition):
            return False
    return True


class FakeCursor:
    def __init__(self, documents: list[dict[str, Any]]) -> None:
        self._documents = documents

    def sort(self, key: str, direction: int = 1) -> "FakeCursor":
        self._documents.sort(key=lambda doc: doc.get(key), reverse=direction < 0)
        return self

    def limit(self, count: int) -> "FakeCursor":
        if count:
            self._documents = self._documents[:count]
        return self

    def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[dict[str, Any]]:
        for document in self._documents:
            yield copy.deepcopy(document)


class FakeCollection:
    def __init__(self, name: str) -> None:
        self.name = name
        self.documents: list[dict[str, Any]] = []
        self._unique_indexes: list[tuple[list[str], dict[str, Any]]] = []

    async def create_index(self, keys: list[tuple[str, int]], unique: bool = False, **kwargs: Any) -> str:
        if unique:
            self._unique_indexes.append(([key for key, _ in keys], kwargs.get("partialFilterExpression", {})))
        return kwargs.get("name", "_".join(key for key, _ in keys))

    def _check_unique(self, candidate: dict[str, Any]) -> None:
        for fields, partial in self._unique_indexes:
            if not matches(candidate, partial):
                continue
            key = tuple(candidate.get(field) for field in fields)
            for existing in self.documents:
                if existing["_id"] == candidate["_id"] or not matches(existing, partial):
                    continue
                if tuple(existing.get(field) for field in fields) == key:
                    raise DuplicateKeyError(f"E11000 duplicate key on {self.name} {fields}", 11000)

    async def insert_one(self, document: dict[str, Any]) -> SimpleNamespace:
        document = copy.deepcopy(document)
        self._check_unique(document)
        self.documents.append(document)
        return SimpleNamespace(inserted_id=document["_id"])

    async def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        for document in self.documents:
            if matches(document, query):
                return copy.deepcopy(document)
        return None

    def find(self, query: dict[str, Any] | None = None) -> FakeCursor:
        return FakeCursor([doc for doc in self.documents if matches(doc, query or {})])

    async def count_documents(self, query: dict[str, Any]) -> int:
        return sum(1 for doc in self.documents if matches(doc, query))

    async def _update(self, query: dict[str, Any], update: dict[str, Any], many: bool) -> SimpleNamespace:
        matched = modified = 0
        for index, document in enumerate(self.documents):
            if not matches(document, query):
                continue
            matched += 1
            updated = {**document, **update.get("$set", {})}
            if updated != document:
                self._check_unique(updated)
                self.documents[index] = updated
                modified += 1
            if not many:
                break
        return SimpleNamespace(matched_count=matched, modified_count=modified)

    async def update_one(self, query: dict[str, Any], update: dict[str, Any]) -> SimpleNamespace:
        return await self._update(query, update, many=False)

    async def update_many(self, query: dict[str, Any], update: dict[str, Any]) -> SimpleNamespace:
        return await self._update(query, update, many=True)

    async def delete_one(self, query: dict[str, Any]) -> SimpleNamespace:
        for index, document in enumerate(self.documents):
            if matches(document, query):
                del self.documents[index]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def delete_many(self, query: dict[str, Any]) -> SimpleNamespace:
        before = len(self.documents)
        self.documents = [doc for doc in self.documents if not matches(doc, query)]
        return SimpleNamespace(deleted_count=before - len(self.documents))


class FakeDatabase:
    def __init__(self) -> None:
        self._collections: dict[str, FakeCollection] = {}

    def get_collection(self, name: str) -> FakeCollection:
        if name not in self._collections:
            self._collections[name] = FakeCollection(name)
        return self._collections[name]


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Use the cheapest bcrypt cost factor so account fixtures stay fast."""
    real_gensalt = bcrypt.gensalt
    monkeypatch.setattr(bcrypt, "gensalt", lambda rounds=4, prefix=b"2b": real_gensalt(rounds=4, prefix=prefix))


@pytest.fixture
def config():
    return Config(
        database_url="mongodb://localhost:27017/warden_test",
        jwt_secret="test-secret",
        session_max_count=1,
        session_sweep_interval_hours=0,
    )


@pytest.fixture
def database():
    return FakeDatabase()


@pytest.fixture
async def core(config, database):
    core = Core(config, database=database)
    await core.on_start()
    yield core
    await core.on_stop()


@pytest.fixture
def sessions_collection(database):
    return database.get_collection("sessions")


@pytest.fixture
def make_account(core):
    async def factory(
        email: str = "user@example.com", is_admin: bool = False, is_verified: bool = True, password: str = STRONG_PASSWORD
    ) -> Account:
        return await core.services.account.create_account(email, password, is_admin=is_admin, is_verified=is_verified)

    return factory


@pytest.fixture
def device():
    return DeviceInfo(device_name="phoneA", device_os="android", os_version="14")


@pytest.fixture
def password():
    """Password the make_account factory uses by default."""
    return STRONG_PASSWORD
