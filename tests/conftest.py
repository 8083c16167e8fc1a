"""
Shared fixtures.

The gateway talks to three external services (object store, CDN purge
API, image transformation backend); every test swaps them for the
in-memory fakes below so no network or credentials are needed.
"""

from typing import Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from media_gateway.config import Settings
from media_gateway.exceptions import PurgeError, TransformError
from media_gateway.main import create_app
from media_gateway.services.image_service import ImageTransformer, UpstreamImage
from media_gateway.services.purge_service import CachePurger
from media_gateway.services.storage_service import ObjectStore, StoredObject

API_SECRET = "test-secret"
ORIGIN = "https://origin.test"


class InMemoryObjectStore(ObjectStore):
    def __init__(self):
        self.objects: Dict[str, StoredObject] = {}

    async def get(self, key: str) -> Optional[StoredObject]:
        return self.objects.get(key)

    async def exists(self, key: str) -> bool:
        return key in self.objects

    async def put(self, key, body, content_type, cache_control=None) -> None:
        self.objects[key] = StoredObject(key=key, body=body, content_type=content_type, cache_control=cache_control)

    async def delete(self, key: str) -> None:
        self.objects.pop(key, None)


class FakePurger(CachePurger):
    def __init__(self):
        self.purged: List[str] = []
        self.errors: Optional[list] = None

    async def purge(self, url: str) -> dict:
        if self.errors is not None:
            raise PurgeError("Purge rejected by upstream", {"errors": self.errors})
        self.purged.append(url)
        return {"success": True, "errors": [], "messages": [], "result": {"id": "zone-id"}}


class FakeTransformer(ImageTransformer):
    """
    Serves objects from the in-memory store as if it were the origin.
    Transformed responses are prefixed with ``transformed:`` so tests can
    tell them apart from untouched origin bytes.
    """

    def __init__(self, store: InMemoryObjectStore):
        self.store = store
        self.calls: List[tuple] = []
        self.transform_status: Optional[int] = None
        self.transform_unreachable = False
        self.origin_status: Optional[int] = None
        self.origin_unreachable = False
        self.extra_headers: List[Tuple[str, str]] = []

    async def fetch(self, image_url, options, accept) -> UpstreamImage:
        self.calls.append((image_url, options, accept))

        if options is not None:
            if self.transform_unreachable:
                raise TransformError("Image upstream unreachable", {"url": image_url})
            if self.transform_status is not None:
                return UpstreamImage(status_code=self.transform_status, content=b"transform error")
        else:
            if self.origin_unreachable:
                raise TransformError("Image upstream unreachable", {"url": image_url})
            if self.origin_status is not None:
                return UpstreamImage(status_code=self.origin_status, content=b"origin error")

        obj = self.store.objects.get(image_url[len(ORIGIN) + 1:])
        if obj is None:
            return UpstreamImage(status_code=404, headers=[("Content-Type", "text/plain")], content=b"nope")

        body = obj.body if options is None else b"transformed:" + obj.body
        return UpstreamImage(
            status_code=200,
            headers=[("Content-Type", obj.content_type), ("Cache-Control", "private, max-age=5")] + self.extra_headers,
            content=body,
        )


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        IMAGE_API_SECRET=API_SECRET,
        ORIGIN_BASE_URL=ORIGIN,
        LOG_FORMAT="text",
    )


@pytest.fixture
def store():
    return InMemoryObjectStore()


@pytest.fixture
def purger():
    return FakePurger()


@pytest.fixture
def transformer(store):
    return FakeTransformer(store)


@pytest.fixture
def client(settings, store, purger, transformer):
    app = create_app(settings=settings, storage=store, purger=purger, transformer=transformer)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {API_SECRET}"}
