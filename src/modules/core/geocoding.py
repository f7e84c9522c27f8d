"""Reverse geocoding client.

Turns coordinates into a display address through a Nominatim-compatible
endpoint.  Any transport or payload problem degrades to a formatted
coordinate string; checkout never fails because the lookup did.
"""

from __future__ import annotations

from typing import Optional

import httpx
import structlog
from django.conf import settings

from shared.domain.geo import Coordinates

logger = structlog.get_logger(__name__)


class ReverseGeocoder:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._base_url = base_url or settings.REVERSE_GEOCODING_URL
        self._timeout = timeout if timeout is not None else settings.REVERSE_GEOCODING_TIMEOUT
        self._client = client

    def reverse(self, coords: Coordinates) -> str:
        """Return a display address for ``coords`` (never raises)."""
        params = {"format": "json", "lat": coords.lat, "lon": coords.lng}
        headers = {"Accept-Language": settings.REVERSE_GEOCODING_LANGUAGE}
        try:
            if self._client is not None:
                response = self._client.get(self._base_url, params=params, headers=headers)
            else:
                with httpx.Client(timeout=self._timeout) as client:
                    response = client.get(self._base_url, params=params, headers=headers)
            response.raise_for_status()
            display_name = response.json().get("display_name")
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "geocoding.reverse_failed",
                lat=coords.lat,
                lng=coords.lng,
                error=str(exc),
            )
            return coords.display()
        return display_name or coords.display()
