"""search_photos tool: natural-language photo search with an optional place filter."""

from __future__ import annotations

from typing import Protocol

from loguru import logger

from photo_rag.client import ConnectionProvider
from photo_rag.models import Coordinates, SearchResult
from photo_rag.query import GeoFilter, SimilarityQuery


class PlaceResolver(Protocol):
    def geocode(self, place: str) -> Coordinates | None: ...


class QueryService:
    """Composes similarity queries against the photo collection.

    Args:
        connections: Provides the photo store handle.
        geocoder: Resolves place names to coordinates.
        default_radius_km: Radius used when a location is given without one.
        score_threshold: Optional minimum similarity for search results.
    """

    def __init__(
        self,
        connections: ConnectionProvider,
        geocoder: PlaceResolver,
        default_radius_km: float = 10.0,
        score_threshold: float | None = None,
    ):
        self._connections = connections
        self._geocoder = geocoder
        self.default_radius_km = default_radius_km
        self._score_threshold = score_threshold

    def build_query(
        self,
        query: str,
        limit: int,
        location: str | None = None,
        radius_km: float | None = None,
    ) -> SimilarityQuery:
        """Resolve the location (if any) and build the similarity query.

        A location that cannot be geocoded is logged and dropped; the query
        then runs without a geographic filter.
        """
        geo_filter = None
        if location:
            point = self._geocoder.geocode(location)
            if point is None:
                logger.warning(
                    "Could not geocode location '{}'; searching without a location filter.",
                    location,
                )
            else:
                radius = radius_km if radius_km is not None else self.default_radius_km
                geo_filter = GeoFilter(
                    latitude=point.latitude,
                    longitude=point.longitude,
                    radius_km=radius,
                )
                logger.info(
                    "Filtering to {:.1f}km around '{}' ({:.4f}, {:.4f})",
                    radius,
                    location,
                    point.latitude,
                    point.longitude,
                )

        return SimilarityQuery(
            text=query,
            limit=limit,
            geo_filter=geo_filter,
            score_threshold=self._score_threshold,
        )

    def search(
        self,
        query: str,
        limit: int = 10,
        location: str | None = None,
        radius_km: float | None = None,
    ) -> list[SearchResult]:
        """Search photos by text, optionally near a place.

        Args:
            query: Natural language description of the photos to find.
            limit: Maximum number of results (at least 1).
            location: Optional place name to filter around.
            radius_km: Radius around the place; defaults to default_radius_km.

        Returns:
            SearchResults in the backend's ranking order, best first.
        """
        similarity_query = self.build_query(query, limit, location, radius_km)
        store = self._connections.get_client()
        return store.query_near_text(similarity_query)

    def list_all(self, limit: int = 50) -> list[SearchResult]:
        """List up to limit stored photos, unranked."""
        if limit < 1:
            raise ValueError(f"limit must be at least 1 (got {limit})")
        store = self._connections.get_client()
        return store.fetch_all(limit)
