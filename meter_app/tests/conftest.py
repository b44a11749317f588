import sys
import pathlib

import pytest

# Ensure the project root is importable so `import meter_app` works
ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Prevent pydantic-settings from reading a developer's .env during tests.
try:
    import pydantic_settings.sources as _psources
    _psources.DotEnvSettingsSource._read_env_files = lambda self, *args, **kwargs: {}
except (ImportError, AttributeError):
    pass

import httpx
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

from meter_app.api.auth import create_access_token
from meter_app.core.config import settings
from meter_app.core.database import get_db
from meter_app.main import app
from meter_app.services.image_store import ImageStore, get_image_store
from meter_app.services.recognition_client import RecognitionClient, get_recognition_client

OCR_URL = "https://ocr.test/api/read-meter"


# ---------------------------------------------------------------------------
# In-memory stand-in for the motor collections used by the app
# ---------------------------------------------------------------------------

def _matches(doc, query):
    for key, expected in (query or {}).items():
        if key == "$or":
            if not any(_matches(doc, sub) for sub in expected):
                return False
            continue
        actual = doc.get(key)
        if isinstance(expected, dict) and "$in" in expected:
            if actual not in expected["$in"]:
                return False
        elif actual != expected:
            return False
    return True


def _apply_sort(docs, sort):
    for key, direction in reversed(sort or []):
        docs = sorted(docs, key=lambda d: d.get(key), reverse=direction < 0)
    return docs


class Result:
    def __init__(self, inserted_id=None, matched_count=0, modified_count=0):
        self.inserted_id = inserted_id
        self.matched_count = matched_count
        self.modified_count = modified_count


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs
        self._limit = None

    def sort(self, key_or_list, direction=None):
        sort = key_or_list if isinstance(key_or_list, list) else [(key_or_list, direction)]
        self._docs = _apply_sort(self._docs, sort)
        return self

    def limit(self, n):
        self._limit = n
        return self

    async def to_list(self, length=None):
        docs = self._docs
        for n in (self._limit, length):
            if n:
                docs = docs[:n]
        return [dict(d) for d in docs]


class FakeCollection:
    def __init__(self):
        self.docs = []
        self.fail_writes = False

    async def find_one(self, query=None, sort=None):
        found = _apply_sort([d for d in self.docs if _matches(d, query)], sort)
        return dict(found[0]) if found else None

    def find(self, query=None):
        return FakeCursor([d for d in self.docs if _matches(d, query)])

    async def insert_one(self, doc):
        if self.fail_writes:
            raise ServerSelectionTimeoutError("database unreachable")
        doc_copy = dict(doc)
        doc_copy.setdefault("_id", ObjectId())
        self.docs.append(doc_copy)
        return Result(inserted_id=doc_copy["_id"])

    async def update_one(self, query, update):
        if self.fail_writes:
            raise ServerSelectionTimeoutError("database unreachable")
        for doc in self.docs:
            if _matches(doc, query):
                doc.update(update.get("$set", {}))
                return Result(matched_count=1, modified_count=1)
        return Result()

    async def create_index(self, *args, **kwargs):
        return "ok"


class FakeDB:
    def __init__(self):
        self.users = FakeCollection()
        self.buildings = FakeCollection()
        self.rooms = FakeCollection()
        self.meter_readings = FakeCollection()

    async def command(self, name):
        return {"ok": 1}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_db():
    return FakeDB()


@pytest.fixture
def user(fake_db):
    doc = {
        "_id": ObjectId(),
        "username": "somchai",
        "email": "somchai@example.com",
        "full_name": "Somchai",
        "hashed_password": "",
        "is_active": True,
    }
    fake_db.users.docs.append(doc)
    return {"id": str(doc["_id"]), **doc}


@pytest.fixture
def auth_headers(user):
    token = create_access_token(user_id=user["id"], username=user["username"])
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def location(fake_db, user):
    building = {"_id": ObjectId(), "name": "Building A", "user_id": user["id"]}
    room = {"_id": ObjectId(), "name": "101", "building_id": str(building["_id"]), "user_id": user["id"]}
    fake_db.buildings.docs.append(building)
    fake_db.rooms.docs.append(room)
    return {"buildingId": str(building["_id"]), "roomId": str(room["_id"])}


@pytest.fixture
def image_store(tmp_path):
    return ImageStore(
        upload_dir=str(tmp_path / "uploads"),
        bucket="meter-images",
        public_base_url="http://testserver",
        media_path="/media",
    )


@pytest.fixture
def ocr():
    """
    Programmable OCR endpoint. Tests set ``ocr.handler`` to a function that
    takes an ``httpx.Request`` and returns an ``httpx.Response`` (sync or async).
    """

    class _OCR:
        handler = staticmethod(lambda request: httpx.Response(200, json={"success": True, "result": "1"}))
        calls = 0
        timeout = 1.0

        def client(self):
            async def dispatch(request):
                self.calls += 1
                response = self.handler(request)
                if not isinstance(response, httpx.Response):
                    response = await response
                return response

            return RecognitionClient(
                endpoint=OCR_URL,
                timeout=self.timeout,
                timeout_markers=settings.get_ocr_timeout_markers(),
                transport=httpx.MockTransport(dispatch),
            )

    return _OCR()


@pytest.fixture
def client(fake_db, image_store, ocr):
    app.dependency_overrides[get_db] = lambda: fake_db
    app.dependency_overrides[get_image_store] = lambda: image_store
    app.dependency_overrides[get_recognition_client] = ocr.client
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()
