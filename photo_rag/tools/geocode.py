"""Forward geocoding of place names with the Nominatim search API."""

from __future__ import annotations

import requests
from loguru import logger

from photo_rag.models import Coordinates


class Geocoder:
    """Resolve a place name to the single best-matching coordinate pair.

    Results (including misses) are cached for the lifetime of the instance.
    """

    def __init__(
        self,
        url: str = "https://nominatim.openstreetmap.org/search",
        user_agent: str = "photo-album-rag/0.1",
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        self.url = url
        self._timeout = timeout
        self._session = session or requests.Session()
        # Nominatim's usage policy requires an identifying User-Agent
        self._session.headers.update({"User-Agent": user_agent})
        self._cache: dict[str, Coordinates | None] = {}

    def geocode(self, place: str) -> Coordinates | None:
        """Look up a place name.

        Args:
            place: Free-text place, e.g. "Paris, France".

        Returns:
            Coordinates of the best match, or None if nothing matched or the
            request failed.
        """
        key = place.strip().lower()
        if key in self._cache:
            return self._cache[key]

        try:
            resp = self._session.get(
                self.url,
                params={"q": place, "format": "json", "limit": 1},
                timeout=self._timeout,
            )
            resp.raise_for_status()
            matches = resp.json()
        except (requests.exceptions.RequestException, ValueError) as exc:
            logger.warning("Geocoding request failed for '{}': {}", place, exc)
            return None

        if not isinstance(matches, list):
            logger.warning("Unexpected geocoding response for '{}': {}", place, matches)
            return None

        if not matches:
            result = None
        else:
            best = matches[0]
            try:
                result = Coordinates(latitude=float(best["lat"]), longitude=float(best["lon"]))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Geocoding match for '{}' has no usable coordinates: {}", place, exc)
                return None
            logger.debug("Geocoded '{}' to {}, {} ({})", place, result.latitude, result.longitude, best.get("display_name", ""))

        self._cache[key] = result
        return result

    def close(self) -> None:
        self._session.close()
