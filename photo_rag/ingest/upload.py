"""Ingestion: upload image records into the photo collection in batches.

Batches and the items inside them are processed strictly one after the
other, so only one image payload is in flight and two existence checks for
the same path can never race. A failure on one image is recorded in the
report and the run moves on.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator, Sequence, TypeVar

from loguru import logger

from photo_rag.client import ConnectionProvider
from photo_rag.ingest.reader import format_file_size, iter_images, list_image_files
from photo_rag.models import ImageRecord, StoredImage, UploadOutcome, UploadReport
from photo_rag.schema import CollectionManager
from photo_rag.store import PhotoStore


T = TypeVar("T")


def iter_batches(items: Sequence[T], batch_size: int) -> Iterator[Sequence[T]]:
    """Yield contiguous slices of items; the last may be shorter."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be a positive integer (got {batch_size})")
    for start in range(0, len(items), batch_size):
        yield items[start:start + batch_size]


def _describe(record: ImageRecord) -> str:
    if record.coordinates is None:
        gps = "No GPS data"
    else:
        gps = f"GPS: {record.coordinates.latitude:.6f}, {record.coordinates.longitude:.6f}"
    return f"{record.filename} ({format_file_size(record.size)}) [{gps}]"


class IngestionPipeline:
    """Uploads ImageRecords through the connection provider."""

    def __init__(self, connections: ConnectionProvider, base_url: str):
        self._connections = connections
        self._base_url = base_url

    def upload_one(
        self,
        store: PhotoStore,
        record: ImageRecord,
        skip_existing: bool,
    ) -> tuple[UploadOutcome, str | None]:
        """Check, then insert a single record. Never raises.

        Returns:
            The outcome and, for failures, the reason.
        """
        try:
            if skip_existing and store.exists_by_path(record.path):
                return UploadOutcome.SKIPPED_EXISTING, None
            store.insert(StoredImage.from_record(record, self._base_url))
            return UploadOutcome.UPLOADED, None
        except Exception as exc:
            return UploadOutcome.FAILED, str(exc) or "Unknown error"

    def upload_batch(self, batch: Iterable[ImageRecord], skip_existing: bool) -> UploadReport:
        """Upload one batch sequentially and report its outcomes."""
        result = UploadReport()
        store = self._connections.get_client()
        for record in batch:
            outcome, reason = self.upload_one(store, record, skip_existing)
            result.record(record, outcome, reason)

            if outcome is UploadOutcome.UPLOADED:
                logger.info("Uploaded: {}", _describe(record))
            elif outcome is UploadOutcome.SKIPPED_EXISTING:
                logger.info("Skipped: {} (already exists)", record.filename)
            else:
                logger.error("Failed: {} - {}", record.filename, reason)
        return result

    def ingest(
        self,
        records: Sequence[ImageRecord],
        batch_size: int,
        skip_existing: bool,
    ) -> UploadReport:
        """Upload all records in batches and aggregate the outcomes.

        Args:
            records: Images to upload, in order.
            batch_size: Number of images per batch (positive).
            skip_existing: Skip images whose path is already stored.

        Returns:
            UploadReport whose counts add up to len(records).
        """
        total = UploadReport()
        num_batches = -(-len(records) // batch_size) if batch_size > 0 else 0
        for index, batch in enumerate(iter_batches(records, batch_size), start=1):
            logger.info("Processing batch {}/{} ({} images)", index, num_batches, len(batch))
            total.merge(self.upload_batch(batch, skip_existing))
        return total

    def ingest_files(
        self,
        paths: Sequence[Path],
        batch_size: int,
        skip_existing: bool,
    ) -> UploadReport:
        """Like ingest, but reads each file only when its turn comes.

        At most one file's content is held in memory at a time.
        """
        total = UploadReport()
        num_batches = -(-len(paths) // batch_size) if batch_size > 0 else 0
        for index, batch in enumerate(iter_batches(paths, batch_size), start=1):
            logger.info("Processing batch {}/{} ({} images)", index, num_batches, len(batch))
            total.merge(self.upload_batch(iter_images(batch), skip_existing))
        return total


def upload_directory(
    pipeline: IngestionPipeline,
    collections: CollectionManager,
    directory: str | Path,
    batch_size: int = 10,
    skip_existing: bool = True,
) -> UploadReport:
    """Upload every image in directory, creating the collection first if needed.

    Raises:
        AuthError, ConnectionError, CollectionError: Run-level failures.
    """
    logger.info(
        "Starting image upload from {} (batch size {}, skip existing {})",
        directory,
        batch_size,
        skip_existing,
    )
    paths = list_image_files(directory)
    if not paths:
        logger.warning("No image files found in {}", directory)
        return UploadReport(errors=["No image files found"])

    logger.info("Found {} image files", len(paths))
    collections.ensure_collection_exists()
    return pipeline.ingest_files(paths, batch_size=batch_size, skip_existing=skip_existing)
