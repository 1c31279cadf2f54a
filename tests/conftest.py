"""Pytest fixtures for the rewards & pricing API tests."""

import copy
import random
from datetime import datetime, timedelta, timezone

import pytest
from google.api_core.exceptions import AlreadyExists, NotFound
from google.cloud.firestore_v1.transforms import Increment

import firebase_client
import redis_config


# ============================================
# IN-MEMORY FIRESTORE
# ============================================

def _apply(current, value):
    if isinstance(value, Increment):
        return (current if isinstance(current, (int, float)) else 0) + value.value
    return copy.deepcopy(value)


def _merge(target: dict, data: dict) -> None:
    for key, value in data.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        elif isinstance(value, dict):
            target[key] = {}
            _merge(target[key], value)
        else:
            target[key] = _apply(target.get(key), value)


class FakeSnapshot:
    def __init__(self, reference, data):
        self.reference = reference
        self.id = reference.id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocumentRef:
    def __init__(self, docs: dict, doc_id: str):
        self._docs = docs
        self.id = doc_id

    def get(self, transaction=None):
        return FakeSnapshot(self, self._docs.get(self.id))

    def set(self, data, merge=False):
        if merge and self.id in self._docs:
            _merge(self._docs[self.id], data)
        else:
            document = {}
            _merge(document, data)
            self._docs[self.id] = document

    def create(self, data):
        if self.id in self._docs:
            raise AlreadyExists(f"Document already exists: {self.id}")
        self.set(data)

    def update(self, data):
        if self.id not in self._docs:
            raise NotFound(f"No document to update: {self.id}")
        document = self._docs[self.id]
        for path, value in data.items():
            target = document
            parts = path.split(".")
            for part in parts[:-1]:
                target = target.setdefault(part, {})
            target[parts[-1]] = _apply(target.get(parts[-1]), value)

    def delete(self):
        self._docs.pop(self.id, None)


class FakeCollection:
    def __init__(self, docs: dict):
        self._docs = docs

    def document(self, doc_id):
        return FakeDocumentRef(self._docs, doc_id)

    def stream(self):
        for doc_id in list(self._docs.keys()):
            yield FakeSnapshot(FakeDocumentRef(self._docs, doc_id), self._docs[doc_id])


class FakeFirestore:
    def __init__(self):
        self.data = {}

    def collection(self, name):
        return FakeCollection(self.data.setdefault(name, {}))


@pytest.fixture(autouse=True)
def fake_db(monkeypatch):
    """Fresh in-memory Firestore for every test, no Redis."""
    db = FakeFirestore()
    firebase_client.set_db(db)
    monkeypatch.setattr(redis_config, "redis_client", None)
    yield db
    firebase_client.set_db(None)


class FakeRedis:
    """Dict-backed stand-in for the redis client."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    def set(self, key, value, ex=None):
        self.store[key] = value
        self.ttls[key] = ex

    def get(self, key):
        return self.store.get(key)

    def delete(self, key):
        self.store.pop(key, None)
        self.ttls.pop(key, None)


@pytest.fixture
def fake_redis(fake_db, monkeypatch):
    """Enable caching against an in-memory redis."""
    client = FakeRedis()
    monkeypatch.setattr(redis_config, "redis_client", client)
    return client


# ============================================
# VOUCHER HELPERS
# ============================================

def future(days=30):
    return datetime.now(timezone.utc) + timedelta(days=days)


def past(days=1):
    return datetime.now(timezone.utc) - timedelta(days=days)


def voucher_fields(voucher_id="v1", **overrides):
    fields = {
        "id": voucher_id,
        "code": voucher_id.upper(),
        "label": f"Voucher {voucher_id}",
        "description": "Test voucher",
        "discount_type": "amount",
        "discount_value": 50000,
        "min_order": 0,
        "expired": future(),
        "is_active": True,
        "max_usage": None,
        "current_usage": 0,
        "created_at": datetime.now(timezone.utc),
    }
    fields.update(overrides)
    return fields


def make_voucher(voucher_id="v1", **overrides):
    from models import Voucher
    return Voucher(**voucher_fields(voucher_id, **overrides))


class SequenceRandom(random.Random):
    """Random source that returns the given indexes in order."""

    def __init__(self, indexes):
        super().__init__(0)
        self._indexes = list(indexes)
        self.calls = 0

    def randrange(self, *args, **kwargs):
        self.calls += 1
        return self._indexes.pop(0)


@pytest.fixture
def seed_voucher(fake_db):
    """Write a voucher document and return its Voucher model."""
    def _seed(voucher_id="v1", **overrides):
        fields = voucher_fields(voucher_id, **overrides)
        document = {k: v for k, v in fields.items() if k != "id"}
        fake_db.collection("vouchers").document(voucher_id).set(document)
        return make_voucher(voucher_id, **overrides)
    return _seed


@pytest.fixture
def seed_user(fake_db):
    """Write a user document with the given vouchers field."""
    def _seed(uid="user-1", vouchers=None):
        fake_db.collection("users").document(uid).set({
            "uid": uid,
            "email": f"{uid}@greenmart.vn",
            "vouchers": vouchers if vouchers is not None else {},
        })
    return _seed


# ============================================
# API CLIENTS
# ============================================

def _client_for(user):
    from fastapi.testclient import TestClient
    from auth import get_current_user
    from main import app

    app.dependency_overrides[get_current_user] = lambda: user
    return TestClient(app)


@pytest.fixture
def api_client():
    """Test client authenticated as a regular user."""
    from main import app

    yield _client_for({"uid": "user-1", "email": "user-1@greenmart.vn", "is_admin": False})
    app.dependency_overrides.clear()


@pytest.fixture
def admin_client():
    """Test client authenticated as an admin."""
    from main import app

    yield _client_for({"uid": "admin-1", "email": "admin@greenmart.vn", "is_admin": True})
    app.dependency_overrides.clear()
