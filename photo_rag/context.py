"""AppContext: owns the credential, the connection and the collaborators.

One context is built per process (CLI run or tool host) and passed to the
components that need it, instead of module-level client singletons.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from photo_rag.auth import CredentialManager, TokenSource, token_source_from_settings
from photo_rag.client import ConnectionProvider, StoreFactory, build_photo_store
from photo_rag.config import Settings
from photo_rag.ingest.upload import IngestionPipeline
from photo_rag.schema import CollectionManager
from photo_rag.tools.geocode import Geocoder
from photo_rag.tools.search_photo_albums import SearchPhotoAlbumsTool
from photo_rag.tools.search_photos import PlaceResolver, QueryService


@dataclass
class AppContext:
    """Everything one process needs: settings, credentials, the store connection
    and the ingestion and query components built on it.

    Build it with from_settings and release it with close.
    """

    settings: Settings
    credentials: CredentialManager
    connections: ConnectionProvider
    collections: CollectionManager
    pipeline: IngestionPipeline
    queries: QueryService
    geocoder: PlaceResolver

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        token_source: TokenSource | None = None,
        geocoder: PlaceResolver | None = None,
        store_factory: StoreFactory = build_photo_store,
        clock: Callable[[], float] = time.monotonic,
    ) -> AppContext:
        """Wire every component from settings; collaborators can be swapped in."""
        credentials = CredentialManager(
            token_source or token_source_from_settings(settings), clock=clock
        )
        connections = ConnectionProvider(
            settings, credentials, clock=clock, store_factory=store_factory
        )
        if geocoder is None:
            geocoder = Geocoder(
                url=settings.GEOCODER_URL,
                user_agent=settings.GEOCODER_USER_AGENT,
                timeout=settings.HTTP_TIMEOUT,
            )
        return cls(
            settings=settings,
            credentials=credentials,
            connections=connections,
            collections=CollectionManager(connections),
            pipeline=IngestionPipeline(connections, settings.PHOTO_BASE_URL),
            queries=QueryService(
                connections,
                geocoder,
                default_radius_km=settings.DEFAULT_SEARCH_RADIUS_KM,
                score_threshold=settings.SEARCH_SCORE_THRESHOLD,
            ),
            geocoder=geocoder,
        )

    def search_tool(self) -> SearchPhotoAlbumsTool:
        return SearchPhotoAlbumsTool(self.queries)

    def close(self) -> None:
        """Release the store connection and the geocoder session."""
        self.connections.close_client()
        close = getattr(self.geocoder, "close", None)
        if close is not None:
            close()
