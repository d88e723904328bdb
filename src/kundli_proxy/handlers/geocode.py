"""Place name → coordinates lookup."""
from __future__ import annotations
import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from kundli_proxy.common.errors import ExternalServiceError, NotFoundError, ValidationError
from kundli_proxy.common.schema import GeocodeOut
from kundli_proxy.upstream.nominatim import NominatimClient

LOGGER = logging.getLogger("kundli_proxy.handlers.geocode")

FOUR_PLACES = Decimal("0.0001")


def round_coordinate(value: Any) -> str:
    """
    Round a latitude/longitude to 4 decimals, half away from zero.

    Works on the decimal text as received so no binary float error creeps in;
    always renders exactly 4 fractional digits.
    """
    try:
        d = Decimal(str(value).strip())
        if not d.is_finite():
            raise InvalidOperation(value)
        # quantize traps when the result needs more digits than the context allows
        rounded = d.quantize(FOUR_PLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError) as e:
        raise ExternalServiceError(f"Invalid coordinate in geocoding response: {value!r}") from e
    return str(rounded)


def geocode_place(client: NominatimClient, place: str | None) -> GeocodeOut:
    if not place or not place.strip():
        raise ValidationError("Place parameter is required")

    matches = client.search(place, limit=1)
    if not matches:
        LOGGER.info("No geocoding match for %r", place)
        raise NotFoundError("Place not found")

    first = matches[0]
    if not isinstance(first, dict):
        raise ExternalServiceError("Geocoding API returned an unexpected payload")
    lat = round_coordinate(first.get("lat"))
    lon = round_coordinate(first.get("lon"))
    return GeocodeOut(
        coordinates=f"{lat},{lon}",
        location=first.get("display_name"),
        latitude=lat,
        longitude=lon,
    )
