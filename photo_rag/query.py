"""Typed builders for similarity queries and their geographic filter."""

from __future__ import annotations

from dataclasses import dataclass

from qdrant_client.models import FieldCondition, Filter, GeoPoint, GeoRadius

# Payload fields returned by searches and listings; the image blob is never projected
RESULT_FIELDS = ["title", "url", "extension", "coordinates"]


@dataclass(frozen=True)
class GeoFilter:
    """Restrict results to photos taken within radius_km of a point."""

    latitude: float
    longitude: float
    radius_km: float

    def __post_init__(self):
        if self.radius_km <= 0:
            raise ValueError(f"radius_km must be positive (got {self.radius_km})")

    @property
    def radius_m(self) -> float:
        """Radius in metres, the unit Qdrant's geo_radius condition expects."""
        return self.radius_km * 1000.0

    def to_condition(self) -> FieldCondition:
        return FieldCondition(
            key="coordinates",
            geo_radius=GeoRadius(
                center=GeoPoint(lat=self.latitude, lon=self.longitude),
                radius=self.radius_m,
            ),
        )


@dataclass(frozen=True)
class SimilarityQuery:
    """Parameters of one near-text query against the photo collection."""

    text: str
    limit: int
    geo_filter: GeoFilter | None = None
    score_threshold: float | None = None

    def __post_init__(self):
        if self.limit < 1:
            raise ValueError(f"limit must be at least 1 (got {self.limit})")

    def to_filter(self) -> Filter | None:
        if self.geo_filter is None:
            return None
        return Filter(must=[self.geo_filter.to_condition()])
