"""Multimodal embeddings via the Vertex AI multimodalembedding model.

Images and text land in the same vector space, so a text query can be
matched against image vectors. Requests go through a requests.Session
that carries the embedding backend credential as a header.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import requests
from loguru import logger

from photo_rag.config import Settings
from photo_rag.errors import ItemError

_PREDICT_URL = (
    "https://{location}-aiplatform.googleapis.com/v1/projects/{project}"
    "/locations/{location}/publishers/google/models/{model}:predict"
)


@dataclass(frozen=True)
class VectorizerConfig:
    """Binds the image field (and optionally the title field) to the embedding model."""

    model: str
    project_id: str
    location: str
    dimension: int
    image_weight: float = 1.0
    title_weight: float = 0.0

    @classmethod
    def from_settings(cls, settings: Settings) -> VectorizerConfig:
        return cls(
            model=settings.EMBEDDING_MODEL,
            project_id=settings.GOOGLE_PROJECT_ID,
            location=settings.GOOGLE_LOCATION,
            dimension=settings.EMBEDDING_DIMENSION,
            image_weight=settings.IMAGE_WEIGHT,
            title_weight=settings.TITLE_WEIGHT,
        )

    @property
    def predict_url(self) -> str:
        return _PREDICT_URL.format(
            location=self.location, project=self.project_id, model=self.model
        )


def _normalize(v: np.ndarray) -> list[float]:
    """Normalize vector to unit length."""
    norm = np.linalg.norm(v)
    if norm > 0:
        v = v / norm
    return v.tolist()


class VertexEmbedder:
    """Thin client for the Vertex AI :predict endpoint."""

    def __init__(
        self,
        config: VectorizerConfig,
        headers: dict[str, str],
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ):
        self.config = config
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(headers)

    def _predict(self, instance: dict) -> dict:
        resp = self._session.post(
            self.config.predict_url,
            json={
                "instances": [instance],
                "parameters": {"dimension": self.config.dimension},
            },
            timeout=self._timeout,
        )
        resp.raise_for_status()
        predictions = resp.json().get("predictions") or []
        if not predictions:
            raise ItemError("Embedding backend returned no predictions")
        return predictions[0]

    def embed_image(self, image_base64: str, title: str | None = None) -> list[float]:
        """Embed an image, blending in the title embedding when title_weight > 0.

        Args:
            image_base64: Base64-encoded image bytes.
            title: Image title; ignored when the vectorizer has no title weight.

        Returns:
            Unit-normalized embedding vector.
        """
        instance: dict = {"image": {"bytesBase64Encoded": image_base64}}
        use_title = bool(title) and self.config.title_weight > 0
        if use_title:
            instance["text"] = title

        prediction = self._predict(instance)
        image_vec = prediction.get("imageEmbedding")
        if not image_vec:
            raise ItemError("Embedding backend returned no image embedding")

        combined = self.config.image_weight * np.asarray(image_vec, dtype=np.float32)
        if use_title:
            text_vec = prediction.get("textEmbedding")
            if text_vec:
                combined = combined + self.config.title_weight * np.asarray(
                    text_vec, dtype=np.float32
                )
            else:
                logger.warning("No title embedding returned for '{}'", title)
        return _normalize(combined)

    def embed_text(self, text: str) -> list[float]:
        """Embed a text query into the shared image/text space."""
        prediction = self._predict({"text": text})
        text_vec = prediction.get("textEmbedding")
        if not text_vec:
            raise ItemError("Embedding backend returned no text embedding")
        return _normalize(np.asarray(text_vec, dtype=np.float32))

    def close(self) -> None:
        self._session.close()
