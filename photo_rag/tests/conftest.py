"""Shared fixtures: an in-memory photo store, fake credentials and a manual clock.

No test here talks to Qdrant, Vertex AI or Nominatim.
"""

from __future__ import annotations

import os

os.environ.setdefault("QDRANT_URL", "http://localhost:6333")
os.environ.setdefault("QDRANT_API_KEY", "test-api-key")
os.environ.setdefault("PHOTO_BASE_URL", "https://photos.example.com/photos/")
os.environ.setdefault("DEFAULT_SEARCH_RADIUS_KM", "10")

import pytest
from loguru import logger

from photo_rag.config import settings
from photo_rag.context import AppContext
from photo_rag.embeddings.vertex_embedder import VectorizerConfig
from photo_rag.models import Coordinates, ImageRecord, SearchResult, StoredImage
from photo_rag.query import SimilarityQuery
from photo_rag.store import PAYLOAD_INDEXES


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTokenSource:
    """Hands out token-1, token-2, ... each valid for `lifetime` seconds."""

    def __init__(self, lifetime: float | None = 3600.0):
        self.lifetime = lifetime
        self.calls = 0

    def fetch(self):
        self.calls += 1
        return f"token-{self.calls}", self.lifetime

    def headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}


class FakeGeocoder:
    def __init__(self, places: dict[str, Coordinates] | None = None):
        self.places = places or {}
        self.lookups: list[str] = []

    def geocode(self, place: str) -> Coordinates | None:
        self.lookups.append(place)
        return self.places.get(place)


class FakeBackend:
    """Server-side state shared by every FakePhotoStore built against it."""

    def __init__(self, collection_name: str):
        self.collection_name = collection_name
        self.collections: set[str] = set()
        self.points: dict[str, dict] = {}
        self.insert_errors: dict[str, Exception] = {}
        self.exists_errors: dict[str, Exception] = {}
        self.create_error: Exception | None = None
        self.index_error: Exception | None = None
        self.indexes: set[str] = set()
        self.create_calls = 0
        self.insert_calls = 0
        self.queries: list[SimilarityQuery] = []
        self.search_results: list[SearchResult] | None = None
        self.builds: list[dict] = []
        self.stores: list[FakePhotoStore] = []

    def factory(self, _settings, headers: dict) -> FakePhotoStore:
        self.builds.append(headers)
        store = FakePhotoStore(self)
        self.stores.append(store)
        return store


class FakePhotoStore:
    """Implements the PhotoStore verbs against a FakeBackend."""

    def __init__(self, backend: FakeBackend):
        self.backend = backend
        self.collection_name = backend.collection_name
        self.vectorizer = VectorizerConfig(
            model="multimodalembedding@001",
            project_id="test-project",
            location="us-central1",
            dimension=1408,
            image_weight=1.0,
            title_weight=0.2,
        )
        self.closed = False

    def collection_names(self) -> list[str]:
        return sorted(self.backend.collections)

    def create_collection(self) -> None:
        self.backend.create_calls += 1
        if self.backend.create_error is not None:
            raise self.backend.create_error
        self.backend.collections.add(self.collection_name)
        if self.backend.index_error is not None:
            raise self.backend.index_error
        self.backend.indexes.update(PAYLOAD_INDEXES)

    def ensure_payload_indexes(self) -> list[str]:
        missing = [name for name in PAYLOAD_INDEXES if name not in self.backend.indexes]
        self.backend.indexes.update(missing)
        return missing

    def delete_collection(self) -> bool:
        self.backend.collections.discard(self.collection_name)
        self.backend.indexes.clear()
        self.backend.points.clear()
        return True

    def exists_by_path(self, path: str) -> bool:
        if path in self.backend.exists_errors:
            raise self.backend.exists_errors[path]
        return path in self.backend.points

    def insert(self, image: StoredImage) -> str:
        self.backend.insert_calls += 1
        if image.path in self.backend.insert_errors:
            raise self.backend.insert_errors[image.path]
        self.backend.points[image.path] = image.to_payload()
        return image.path

    def query_near_text(self, query: SimilarityQuery) -> list[SearchResult]:
        self.backend.queries.append(query)
        if self.backend.search_results is not None:
            return self.backend.search_results[: query.limit]
        return [
            SearchResult.from_payload(payload, score=0.9)
            for payload in list(self.backend.points.values())[: query.limit]
        ]

    def fetch_all(self, limit: int) -> list[SearchResult]:
        return [
            SearchResult.from_payload(payload)
            for payload in list(self.backend.points.values())[:limit]
        ]

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def token_source() -> FakeTokenSource:
    return FakeTokenSource()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend(settings.COLLECTION_NAME)


@pytest.fixture
def geocoder() -> FakeGeocoder:
    return FakeGeocoder({"Paris": Coordinates(latitude=48.8566, longitude=2.3522)})


@pytest.fixture
def ctx(backend, token_source, geocoder, clock):
    context = AppContext.from_settings(
        settings,
        token_source=token_source,
        geocoder=geocoder,
        store_factory=backend.factory,
        clock=clock,
    )
    yield context
    context.close()


@pytest.fixture
def log_messages():
    """Capture loguru output as a list of formatted strings."""
    messages: list[str] = []
    handler_id = logger.add(lambda msg: messages.append(str(msg)), level="DEBUG", format="{level} {message}")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def make_record():
    def _make(name: str, coordinates: Coordinates | None = None, extension: str = ".jpg") -> ImageRecord:
        return ImageRecord(
            name=name,
            path=f"/photos/{name}{extension}",
            extension=extension,
            size=2048,
            base64="aGVsbG8=",
            coordinates=coordinates,
        )

    return _make
