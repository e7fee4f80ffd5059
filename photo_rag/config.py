"""Centralized configuration loaded from .env file.

All other modules import settings from here; never call os.getenv directly elsewhere.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Walk up from this file to find the project root .env
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

AUTH_MODES = ("service_account", "gcloud", "api_key")


@dataclass(frozen=True)
class Settings:
    """Immutable application settings loaded from environment variables."""

    QDRANT_URL: str
    QDRANT_API_KEY: str
    COLLECTION_NAME: str
    PHOTO_BASE_URL: str
    GOOGLE_PROJECT_ID: str
    GOOGLE_LOCATION: str
    EMBEDDING_MODEL: str
    EMBEDDING_DIMENSION: int
    IMAGE_WEIGHT: float
    TITLE_WEIGHT: float
    EMBEDDING_AUTH_MODE: str
    GOOGLE_SERVICE_ACCOUNT_KEY_BASE64: str | None
    GOOGLE_SERVICE_ACCOUNT_KEY: str | None
    GOOGLE_API_KEY: str | None
    GEOCODER_URL: str
    GEOCODER_USER_AGENT: str
    DEFAULT_SEARCH_RADIUS_KM: float
    SEARCH_SCORE_THRESHOLD: float | None
    TOP_K_DEFAULT: int
    UPLOAD_BATCH_SIZE: int
    HTTP_TIMEOUT: float


def _optional_float(name: str) -> float | None:
    raw = os.getenv(name)
    return float(raw) if raw else None


def _load_settings() -> Settings:
    qdrant_url = os.getenv("QDRANT_END_POINT") or os.getenv("QDRANT_URL")
    qdrant_api_key = os.getenv("QDRANT_API_KEY")

    if not qdrant_url or not qdrant_api_key:
        raise EnvironmentError(
            "Missing required environment variables. "
            "Please set QDRANT_END_POINT (or QDRANT_URL) and QDRANT_API_KEY in your .env file.\n"
            "Get these from https://cloud.qdrant.io → Clusters → your cluster → API Keys."
        )

    auth_mode = os.getenv("EMBEDDING_AUTH_MODE", "service_account").lower()
    if auth_mode not in AUTH_MODES:
        raise EnvironmentError(
            f"EMBEDDING_AUTH_MODE must be one of {', '.join(AUTH_MODES)} (got '{auth_mode}')."
        )

    base_url = os.getenv("PHOTO_BASE_URL", "http://localhost:8000/photos/")
    if not base_url.endswith("/"):
        base_url += "/"

    return Settings(
        QDRANT_URL=qdrant_url,
        QDRANT_API_KEY=qdrant_api_key,
        COLLECTION_NAME=os.getenv("COLLECTION_NAME", "photo_albums"),
        PHOTO_BASE_URL=base_url,
        GOOGLE_PROJECT_ID=os.getenv("GOOGLE_PROJECT_ID", ""),
        GOOGLE_LOCATION=os.getenv("GOOGLE_LOCATION", "us-central1"),
        EMBEDDING_MODEL=os.getenv("EMBEDDING_MODEL", "multimodalembedding@001"),
        EMBEDDING_DIMENSION=int(os.getenv("EMBEDDING_DIMENSION", "1408")),
        IMAGE_WEIGHT=float(os.getenv("IMAGE_WEIGHT", "1.0")),
        TITLE_WEIGHT=float(os.getenv("TITLE_WEIGHT", "0.2")),
        EMBEDDING_AUTH_MODE=auth_mode,
        GOOGLE_SERVICE_ACCOUNT_KEY_BASE64=os.getenv("GOOGLE_SERVICE_ACCOUNT_KEY_BASE64"),
        GOOGLE_SERVICE_ACCOUNT_KEY=os.getenv("GOOGLE_SERVICE_ACCOUNT_KEY"),
        GOOGLE_API_KEY=os.getenv("GOOGLE_API_KEY"),
        GEOCODER_URL=os.getenv(
            "GEOCODER_URL", "https://nominatim.openstreetmap.org/search"
        ),
        GEOCODER_USER_AGENT=os.getenv("GEOCODER_USER_AGENT", "photo-album-rag/0.1"),
        DEFAULT_SEARCH_RADIUS_KM=float(os.getenv("DEFAULT_SEARCH_RADIUS_KM", "10")),
        SEARCH_SCORE_THRESHOLD=_optional_float("SEARCH_SCORE_THRESHOLD"),
        TOP_K_DEFAULT=int(os.getenv("TOP_K_DEFAULT", "5")),
        UPLOAD_BATCH_SIZE=int(os.getenv("UPLOAD_BATCH_SIZE", "10")),
        HTTP_TIMEOUT=float(os.getenv("HTTP_TIMEOUT", "30")),
    )


settings = _load_settings()
