"""Kundli chart generation: request validation, sandbox date rewrite,
upstream call and response reshaping."""
from __future__ import annotations
import json
import logging
from typing import Any

import pydantic
from dateutil import parser as date_parser

from kundli_proxy.common.errors import ChartGenerationError, ExternalServiceError, ValidationError
from kundli_proxy.common.schema import ChartIn, ChartOut
from kundli_proxy.upstream.prokerala import ChartResponse, ProkeralaClient
from kundli_proxy.upstream.token_cache import TokenCache

LOGGER = logging.getLogger("kundli_proxy.handlers.chart")

DEFAULT_CHART_TYPE = "lagna"
DEFAULT_CHART_STYLE = "north-indian"
# The Prokerala free tier only serves January 1st, in IST.
SANDBOX_OFFSET = "+05:30"


def sandbox_datetime(value: str) -> str:
    """
    Rewrite a datetime onto January 1st of the same year for the sandbox API.

    Keeps the wall-clock time as written and pins the offset to +05:30:
    ``1995-12-25T14:30:00+05:30`` -> ``1995-01-01T14:30:00+05:30``.
    """
    try:
        dt = date_parser.isoparse(value.strip())
    except (ValueError, OverflowError) as e:
        raise ValidationError(f"Invalid datetime: {value}") from e
    return (
        f"{dt.year:04d}-01-01T"
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d}{SANDBOX_OFFSET}"
    )


def extract_planets_from_houses(houses: Any) -> dict[str, Any]:
    """
    Flatten house records into ``{planet name: house_id}``.

    A planet listed in more than one house ends up mapped to the last one.
    """
    planets: dict[str, Any] = {}
    if not isinstance(houses, list):
        return planets
    for house in houses:
        if not isinstance(house, dict):
            continue
        members = house.get("planets")
        if not isinstance(members, list):
            continue
        for planet in members:
            if isinstance(planet, dict) and planet.get("name"):
                planets[str(planet["name"])] = house.get("house_id")
    return planets


def chart_params(body: ChartIn) -> dict[str, str]:
    if not body.datetime or not body.coordinates:
        raise ValidationError("datetime and coordinates are required")
    return {
        "ayanamsa": "1",
        "coordinates": body.coordinates,
        "datetime": sandbox_datetime(body.datetime),
        "chart_type": body.chart_type or DEFAULT_CHART_TYPE,
        "chart_style": body.chart_style or DEFAULT_CHART_STYLE,
        "format": "svg",
    }


def shape_chart_response(resp: ChartResponse) -> ChartOut:
    if not resp.is_json:
        return ChartOut(svg=resp.text, responseType="svg")

    try:
        payload = json.loads(resp.text)
    except ValueError as e:
        raise ExternalServiceError("Prokerala API returned malformed JSON") from e
    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, dict):
        data = {}
    houses = data.get("house") or []
    try:
        return ChartOut(
            svg=data.get("svg") or None,
            houseData=houses if isinstance(houses, list) else [],
            mangalDosha=data.get("mangal_dosha") or {},
            kaalSarpDosha=data.get("kaal_sarp_dosha") or {},
            pitraDosha=data.get("pitra_dosha") or {},
            sadeSati=data.get("sade_sati") or {},
            planets=extract_planets_from_houses(houses),
            responseType="json",
        )
    except pydantic.ValidationError as e:
        LOGGER.error("Unexpected chart payload: %s", e)
        raise ExternalServiceError("Prokerala API returned an unexpected payload") from e


def generate_chart(body: ChartIn, tokens: TokenCache, client: ProkeralaClient) -> ChartOut:
    params = chart_params(body)
    try:
        token = tokens.get_token()
        resp = client.fetch_chart(token, params)
        result = shape_chart_response(resp)
    except ExternalServiceError as e:
        raise ChartGenerationError(e.message) from e
    LOGGER.info(
        "Generated %s chart (%s, %s) as %s",
        params["chart_type"], params["chart_style"], params["datetime"], result.responseType,
    )
    return result
