"""Pydantic models for request/response types."""
from __future__ import annotations
from typing import Any, Literal

from pydantic import BaseModel, Field


class TokenOut(BaseModel):
    access_token: str
    cached: bool = True


class GeocodeOut(BaseModel):
    coordinates: str
    location: str | None = None
    latitude: str
    longitude: str


class ChartIn(BaseModel):
    """Chart request body. Required fields are checked by the handler so that
    missing values produce the proxy's own 400 body."""
    datetime: str | None = None
    coordinates: str | None = None
    chart_type: str | None = None
    chart_style: str | None = None


class ChartOut(BaseModel):
    svg: str | None = None
    houseData: list[Any] = Field(default_factory=list)
    mangalDosha: Any = Field(default_factory=dict)
    kaalSarpDosha: Any = Field(default_factory=dict)
    pitraDosha: Any = Field(default_factory=dict)
    sadeSati: Any = Field(default_factory=dict)
    planets: dict[str, Any] = Field(default_factory=dict)
    success: bool = True
    isSandboxMode: bool = True
    responseType: Literal["json", "svg"]


class HealthOut(BaseModel):
    status: str
