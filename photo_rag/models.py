"""Records passed between the reader, the pipeline, the store and the tools."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class Coordinates:
    """A latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float

    def to_geo_payload(self) -> dict:
        """Qdrant geo payload format."""
        return {"lat": self.latitude, "lon": self.longitude}

    @classmethod
    def from_geo_payload(cls, value: dict | None) -> Coordinates | None:
        if not value:
            return None
        return cls(latitude=float(value["lat"]), longitude=float(value["lon"]))


@dataclass(frozen=True)
class ImageRecord:
    """An image file read from disk, ready for ingestion."""

    name: str
    path: str
    extension: str
    size: int
    base64: str
    coordinates: Coordinates | None = None

    @property
    def filename(self) -> str:
        return f"{self.name}{self.extension}"


@dataclass(frozen=True)
class StoredImage:
    """Payload of one point in the photo collection."""

    title: str
    url: str
    extension: str
    image: str
    path: str
    coordinates: Coordinates | None = None

    @classmethod
    def from_record(cls, record: ImageRecord, base_url: str) -> StoredImage:
        return cls(
            title=record.name,
            url=f"{base_url}{record.name}{record.extension}",
            extension=record.extension,
            image=record.base64,
            path=record.path,
            coordinates=record.coordinates,
        )

    def to_payload(self) -> dict:
        """Build the point payload.

        The coordinates key is left out entirely when the image has no GPS data.
        """
        payload = {
            "title": self.title,
            "url": self.url,
            "extension": self.extension,
            "image": self.image,
            "path": self.path,
        }
        if self.coordinates is not None:
            payload["coordinates"] = self.coordinates.to_geo_payload()
        return payload


@dataclass
class SearchResult:
    """A single photo returned by a search or listing."""

    title: str
    url: str
    extension: str
    coordinates: Coordinates | None = None
    score: float | None = None

    @classmethod
    def from_payload(cls, payload: dict, score: float | None = None) -> SearchResult:
        return cls(
            title=payload.get("title", ""),
            url=payload.get("url", ""),
            extension=payload.get("extension", ""),
            coordinates=Coordinates.from_geo_payload(payload.get("coordinates")),
            score=score,
        )


class UploadOutcome(str, Enum):
    UPLOADED = "uploaded"
    SKIPPED_EXISTING = "skipped_existing"
    FAILED = "failed"


@dataclass
class UploadReport:
    """Aggregated outcome of an ingestion run."""

    success: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.success + self.failed + self.skipped

    def record(self, record: ImageRecord, outcome: UploadOutcome, reason: str | None = None) -> None:
        if outcome is UploadOutcome.UPLOADED:
            self.success += 1
        elif outcome is UploadOutcome.SKIPPED_EXISTING:
            self.skipped += 1
        else:
            self.failed += 1
            self.errors.append(f"{record.filename}: {reason or 'Unknown error'}")

    def merge(self, other: UploadReport) -> None:
        self.success += other.success
        self.failed += other.failed
        self.skipped += other.skipped
        self.errors.extend(other.errors)
