"""Connection provider for the photo store.

Builds the PhotoStore handle lazily and rebuilds it on a fixed interval so
the embedding backend's short-lived token is refreshed without restarting
the process.
"""

from __future__ import annotations

import time
from typing import Callable

from loguru import logger
from qdrant_client import QdrantClient

from photo_rag.auth import CredentialManager
from photo_rag.config import Settings
from photo_rag.embeddings.vertex_embedder import VectorizerConfig, VertexEmbedder
from photo_rag.store import PhotoStore

REBUILD_INTERVAL_SECONDS = 60 * 60

StoreFactory = Callable[[Settings, dict], PhotoStore]


def build_photo_store(settings: Settings, headers: dict) -> PhotoStore:
    """Connect to Qdrant and attach an embedder carrying the auth headers.

    Verifies connectivity by listing collections.

    Raises:
        ConnectionError: If the Qdrant cluster is unreachable.
    """
    try:
        client = QdrantClient(
            url=settings.QDRANT_URL,
            api_key=settings.QDRANT_API_KEY,
            timeout=int(settings.HTTP_TIMEOUT),
        )
        collections = client.get_collections()
        logger.info(
            "Connected to Qdrant at {}. Found {} collection(s).",
            settings.QDRANT_URL,
            len(collections.collections),
        )
    except Exception as exc:
        raise ConnectionError(
            f"Failed to connect to Qdrant at {settings.QDRANT_URL}. "
            "Check that QDRANT_END_POINT and QDRANT_API_KEY in .env are correct. "
            f"Original error: {exc}"
        ) from exc

    embedder = VertexEmbedder(
        VectorizerConfig.from_settings(settings),
        headers=headers,
        timeout=settings.HTTP_TIMEOUT,
    )
    return PhotoStore(client, embedder, settings.COLLECTION_NAME)


class ConnectionProvider:
    """Owns the cached PhotoStore and the instant it was built.

    Args:
        settings: Application settings.
        credentials: Supplies the token injected into every embedding request.
        clock: Monotonic clock in seconds. Injectable for tests.
        store_factory: Builds a handle from settings and auth headers.
    """

    def __init__(
        self,
        settings: Settings,
        credentials: CredentialManager,
        clock: Callable[[], float] = time.monotonic,
        store_factory: StoreFactory = build_photo_store,
    ):
        self._settings = settings
        self._credentials = credentials
        self._clock = clock
        self._store_factory = store_factory
        self._store: PhotoStore | None = None
        self._built_at: float | None = None

    @property
    def built_at(self) -> float | None:
        return self._built_at

    def get_client(self) -> PhotoStore:
        """Return the cached handle, rebuilding it if missing or older than an hour.

        Raises:
            AuthError: If a fresh token could not be obtained.
            ConnectionError: If the store could not be reached.
        """
        now = self._clock()
        if self._store is not None and now - self._built_at <= REBUILD_INTERVAL_SECONDS:
            return self._store

        token = self._credentials.get_valid_token()
        store = self._store_factory(self._settings, self._credentials.headers(token))

        if self._store is not None:
            logger.info("Rebuilding photo store connection with a fresh token.")
            self._release(self._store)
        self._store = store
        self._built_at = now
        return store

    def close_client(self) -> None:
        """Release the cached handle. Safe to call when none exists."""
        if self._store is None:
            return
        self._release(self._store)
        self._store = None
        self._built_at = None

    @staticmethod
    def _release(store: PhotoStore) -> None:
        try:
            store.close()
        except Exception as exc:
            logger.warning("Error while closing photo store connection: {}", exc)
