"""
Pytest configuration and shared test helpers for backend tests.
"""
import copy
import itertools
import os
from types import SimpleNamespace

# Skip MongoDB connect in the app lifespan when running under pytest.
os.environ.setdefault("PYTEST_RUNNING", "1")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")

import pytest
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from fastapi.testclient import TestClient
from auth import create_access_token, hash_password
from database import create_indexes, get_db
from models import User, UserRole
from server import app

_object_ids = itertools.count(1)


def run_sync(coro):
    """Drive a coroutine that never suspends (everything on the fake store) to completion."""
    try:
        coro.send(None)
    except StopIteration as stop:
        return stop.value
    coro.close()
    raise RuntimeError("coroutine suspended; the fake store should never block")


def _matches(doc, query):
    for key, expected in query.items():
        if doc.get(key) != expected:
            return False
    return True


def _project(doc, projection):
    doc = copy.deepcopy(doc)
    if not projection:
        return doc
    included = [k for k, v in projection.items() if v and k != "_id"]
    if included:
        out = {k: doc[k] for k in included if k in doc}
        if projection.get("_id", 1) and "_id" in doc:
            out["_id"] = doc["_id"]
        return out
    for key, value in projection.items():
        if not value:
            doc.pop(key, None)
    return doc


def _apply_update(doc, update):
    for key, value in update.get("$set", {}).items():
        doc[key] = copy.deepcopy(value)
    for key, value in update.get("$inc", {}).items():
        doc[key] = doc.get(key, 0) + value
    for key, value in update.get("$push", {}).items():
        doc.setdefault(key, []).append(copy.deepcopy(value))


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    def sort(self, key, direction=1):
        self._docs = sorted(self._docs, key=lambda d: d.get(key), reverse=direction == -1)
        return self

    async def to_list(self, length=None):
        return self._docs if length is None else self._docs[:length]


class FakeCollection:
    """The slice of the motor collection API the services use."""

    def __init__(self, name):
        self.name = name
        self.docs = []
        self.unique_keys = []
        self.indexes = []

    def _check_unique(self, candidate, ignore=None):
        for keys in self.unique_keys:
            value = tuple(candidate.get(k) for k in keys)
            for other in self.docs:
                if other is ignore:
                    continue
                if tuple(other.get(k) for k in keys) == value:
                    raise DuplicateKeyError(f"E11000 duplicate key error collection: {self.name} index: {keys}", 11000)

    def seed(self, doc):
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", next(_object_ids))
        self._check_unique(doc)
        self.docs.append(doc)
        return doc

    async def create_index(self, keys, unique=False, **kwargs):
        names = (keys,) if isinstance(keys, str) else tuple(k for k, _ in keys)
        self.indexes.append((names, unique, kwargs))
        if unique:
            self.unique_keys.append(names)
        return "_".join(names)

    async def find_one(self, query, projection=None):
        for doc in self.docs:
            if _matches(doc, query):
                return _project(doc, projection)
        return None

    def find(self, query=None, projection=None):
        return FakeCursor([_project(d, projection) for d in self.docs if _matches(d, query or {})])

    async def insert_one(self, doc):
        stored = self.seed(doc)
        doc["_id"] = stored["_id"]
        return SimpleNamespace(inserted_id=stored["_id"])

    async def insert_many(self, docs):
        return SimpleNamespace(inserted_ids=[(await self.insert_one(d)).inserted_id for d in docs])

    async def update_one(self, query, update, upsert=False):
        for doc in self.docs:
            if _matches(doc, query):
                before = copy.deepcopy(doc)
                _apply_update(doc, update)
                return SimpleNamespace(matched_count=1, modified_count=int(before != doc), upserted_id=None)
        return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)

    async def find_one_and_update(self, query, update, projection=None, upsert=False,
                                  return_document=ReturnDocument.BEFORE):
        for doc in self.docs:
            if _matches(doc, query):
                before = _project(doc, projection)
                candidate = copy.deepcopy(doc)
                _apply_update(candidate, update)
                self._check_unique(candidate, ignore=doc)
                doc.clear()
                doc.update(candidate)
                return _project(doc, projection) if return_document == ReturnDocument.AFTER else before
        if not upsert:
            return None
        doc = dict(query)
        doc.update(copy.deepcopy(update.get("$setOnInsert", {})))
        _apply_update(doc, update)
        stored = self.seed(doc)
        return _project(stored, projection) if return_document == ReturnDocument.AFTER else None


class FakeDatabase:
    def __init__(self):
        self._collections = {}

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        if name not in self._collections:
            self._collections[name] = FakeCollection(name)
        return self._collections[name]

    async def command(self, name):
        return {"ok": 1}


@pytest.fixture
def fake_db():
    """In-memory store with the production unique indexes."""
    db = FakeDatabase()
    run_sync(create_indexes(db))
    return db


@pytest.fixture
def client(fake_db):
    """TestClient for server:app with the fake store injected."""
    app.dependency_overrides[get_db] = lambda: fake_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def make_user(db, role=UserRole.USER, email=None, password="secret123", name="Test User"):
    """Insert a user and return (user_doc, bearer_headers)."""
    user = User(
        name=name,
        email=email or f"{role.value}-{next(_object_ids)}@example.com",
        password_hash=hash_password(password),
        role=role,
    )
    doc = db.users.seed(user.model_dump())
    token = create_access_token({"userId": user.user_id, "role": role.value, "email": user.email})
    return doc, {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_factory(fake_db):
    def factory(role=UserRole.USER, **kwargs):
        return make_user(fake_db, role=role, **kwargs)
    return factory


@pytest.fixture
def run():
    """Run a service coroutine against the fake store from a sync test."""
    return run_sync
