"""Collection schema and initialization for the photo collection.

Points carry a single ``multimodal`` vector (image, optionally blended with
the title) and a payload of title, url, extension, image, path and
coordinates. Keyword indexes back the existence check and a geo index backs
radius filtering.
"""

from __future__ import annotations

from loguru import logger

from photo_rag.client import ConnectionProvider
from photo_rag.errors import CollectionError


class CollectionManager:
    """Creates and deletes the photo collection."""

    def __init__(self, connections: ConnectionProvider):
        self._connections = connections

    def ensure_collection_exists(self) -> None:
        """Create the photo collection if it doesn't already exist.

        Idempotent, safe to call on every startup.

        Raises:
            CollectionError: If creating the collection or its payload indexes failed.
        """
        store = self._connections.get_client()
        name = store.collection_name

        if name in store.collection_names():
            # A previous run may have created the collection but not all of its indexes
            try:
                indexed = store.ensure_payload_indexes()
            except Exception as exc:
                raise CollectionError(f"Error indexing collection '{name}': {exc}") from exc
            if indexed:
                logger.warning("Collection '{}' was missing payload indexes {}; created them.", name, indexed)
            logger.info("Collection '{}' already exists, skipping creation.", name)
            return

        vectorizer = store.vectorizer
        try:
            store.create_collection()
        except Exception as exc:
            raise CollectionError(f"Error creating collection '{name}': {exc}") from exc

        logger.info(
            "Created collection '{}' ({}-dim, model {}, image weight {}, title weight {}).",
            name,
            vectorizer.dimension,
            vectorizer.model,
            vectorizer.image_weight,
            vectorizer.title_weight,
        )

    def delete_collection(self) -> bool:
        """Delete the photo collection.

        Returns:
            True if a collection was deleted, False if it did not exist.

        Raises:
            CollectionError: If deletion failed.
        """
        store = self._connections.get_client()
        name = store.collection_name

        if name not in store.collection_names():
            logger.info("Collection '{}' does not exist, nothing to delete.", name)
            return False

        try:
            store.delete_collection()
        except Exception as exc:
            raise CollectionError(f"Error deleting collection '{name}': {exc}") from exc
        logger.info("Deleted collection '{}'.", name)
        return True
