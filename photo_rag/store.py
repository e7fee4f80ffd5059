"""PhotoStore: the connection handle used by every other component.

Wraps a QdrantClient and the multimodal embedder behind the handful of
verbs the pipeline and the query service need. Vectors are computed on
insert and on query, so callers only ever deal in payloads and text.
"""

from __future__ import annotations

import uuid

from loguru import logger
from qdrant_client import QdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    MatchValue,
    PayloadSchemaType,
    PointStruct,
    VectorParams,
)

from photo_rag.embeddings.vertex_embedder import VectorizerConfig, VertexEmbedder
from photo_rag.models import SearchResult, StoredImage
from photo_rag.query import RESULT_FIELDS, SimilarityQuery

VECTOR_NAME = "multimodal"

# Namespace UUID for deterministic point IDs derived from the source path
_NAMESPACE = uuid.UUID("6f1c2b7e-3d4a-5b8c-9e0f-1a2b3c4d5e6f")

PAYLOAD_INDEXES = {
    "title": PayloadSchemaType.KEYWORD,
    "url": PayloadSchemaType.KEYWORD,
    "extension": PayloadSchemaType.KEYWORD,
    "path": PayloadSchemaType.KEYWORD,
    "coordinates": PayloadSchemaType.GEO,
}

_SCROLL_PAGE_SIZE = 100


def point_id_for_path(path: str) -> str:
    """Deterministic UUID5 so re-uploading a path overwrites the same point."""
    return str(uuid.uuid5(_NAMESPACE, path))


class PhotoStore:
    """Connection handle to the photo collection."""

    def __init__(self, client: QdrantClient, embedder: VertexEmbedder, collection_name: str):
        self.client = client
        self.embedder = embedder
        self.collection_name = collection_name

    @property
    def vectorizer(self) -> VectorizerConfig:
        return self.embedder.config

    def collection_names(self) -> list[str]:
        return [c.name for c in self.client.get_collections().collections]

    def create_collection(self) -> None:
        """Create the collection with its vector and payload index schema."""
        self.client.create_collection(
            collection_name=self.collection_name,
            vectors_config={
                VECTOR_NAME: VectorParams(
                    size=self.vectorizer.dimension, distance=Distance.COSINE
                ),
            },
        )
        for field_name, schema in PAYLOAD_INDEXES.items():
            self.client.create_payload_index(
                collection_name=self.collection_name,
                field_name=field_name,
                field_schema=schema,
            )

    def ensure_payload_indexes(self) -> list[str]:
        """Create any payload index the existing collection lacks.

        Returns:
            The field names that were indexed by this call.
        """
        info = self.client.get_collection(collection_name=self.collection_name)
        existing = info.payload_schema or {}
        missing = [name for name in PAYLOAD_INDEXES if name not in existing]
        for field_name in missing:
            self.client.create_payload_index(
                collection_name=self.collection_name,
                field_name=field_name,
                field_schema=PAYLOAD_INDEXES[field_name],
            )
        return missing

    def delete_collection(self) -> bool:
        return bool(self.client.delete_collection(collection_name=self.collection_name))

    def exists_by_path(self, path: str) -> bool:
        """Whether a point with this source path is already stored."""
        points, _ = self.client.scroll(
            collection_name=self.collection_name,
            scroll_filter=Filter(must=[
                FieldCondition(key="path", match=MatchValue(value=path)),
            ]),
            limit=1,
            with_payload=False,
            with_vectors=False,
        )
        return len(points) > 0

    def insert(self, image: StoredImage) -> str:
        """Embed and store one image. Returns the point ID."""
        vector = self.embedder.embed_image(image.image, title=image.title)
        point_id = point_id_for_path(image.path)
        self.client.upsert(
            collection_name=self.collection_name,
            points=[
                PointStruct(
                    id=point_id,
                    vector={VECTOR_NAME: vector},
                    payload=image.to_payload(),
                )
            ],
        )
        return point_id

    def query_near_text(self, query: SimilarityQuery) -> list[SearchResult]:
        """Rank stored images by similarity to the query text."""
        vector = self.embedder.embed_text(query.text)
        results = self.client.query_points(
            collection_name=self.collection_name,
            query=vector,
            using=VECTOR_NAME,
            limit=query.limit,
            with_payload=RESULT_FIELDS,
            query_filter=query.to_filter(),
            score_threshold=query.score_threshold,
        )
        logger.debug(
            "query_near_text returned {} results for query='{}'",
            len(results.points),
            query.text,
        )
        return [SearchResult.from_payload(point.payload, score=point.score) for point in results.points]

    def fetch_all(self, limit: int) -> list[SearchResult]:
        """Fetch up to limit stored images in storage order, without ranking."""
        found: list[SearchResult] = []
        offset = None
        while len(found) < limit:
            points, offset = self.client.scroll(
                collection_name=self.collection_name,
                limit=min(_SCROLL_PAGE_SIZE, limit - len(found)),
                offset=offset,
                with_payload=RESULT_FIELDS,
                with_vectors=False,
            )
            found.extend(SearchResult.from_payload(point.payload) for point in points)
            if offset is None or not points:
                break
        return found

    def close(self) -> None:
        self.embedder.close()
        self.client.close()
