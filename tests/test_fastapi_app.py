from __future__ import annotations

import importlib
import json
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from kundli_proxy.common.errors import ExternalServiceError
from kundli_proxy.common.settings import Settings
from kundli_proxy.serve import fastapi_app
from kundli_proxy.serve.fastapi_app import LIVENESS_TEXT, create_app
from kundli_proxy.upstream.prokerala import ChartResponse
from kundli_proxy.upstream.token_cache import TokenCache


class _FakeProkerala:
    def __init__(self) -> None:
        self.token_body: dict[str, Any] = {"access_token": "tok-1", "expires_in": 3600}
        self.token_calls = 0
        self.chart: ChartResponse | Exception = ChartResponse("text/plain", "<svg/>")
        self.chart_calls: list[dict[str, str]] = []

    def fetch_token(self) -> dict[str, Any]:
        self.token_calls += 1
        return self.token_body

    def fetch_chart(self, token: str, params: dict[str, str]) -> ChartResponse:
        self.chart_calls.append(dict(params, token=token))
        if isinstance(self.chart, Exception):
            raise self.chart
        return self.chart


class _FakeNominatim:
    def __init__(self, matches: list[dict[str, Any]] | Exception) -> None:
        self.matches = matches

    def search(self, place: str, limit: int = 1) -> list[dict[str, Any]]:
        if isinstance(self.matches, Exception):
            raise self.matches
        return self.matches


def _client(
    prokerala: _FakeProkerala | None = None,
    nominatim: _FakeNominatim | None = None,
) -> tuple[TestClient, _FakeProkerala]:
    prokerala = prokerala or _FakeProkerala()
    app = create_app(
        Settings(client_id="cid", client_secret="secret"),
        tokens=TokenCache(prokerala.fetch_token, clock=lambda: 1_000),
        prokerala=prokerala,  # type: ignore[arg-type]
        nominatim=nominatim or _FakeNominatim([]),  # type: ignore[arg-type]
    )
    return TestClient(app), prokerala


def test_root_liveness_text() -> None:
    client, _ = _client()
    r = client.get("/")
    assert r.status_code == 200
    assert r.text == LIVENESS_TEXT
    assert r.headers["content-type"].startswith("text/plain")


def test_health_ok() -> None:
    client, _ = _client()
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_token_is_cached_between_requests() -> None:
    client, prokerala = _client()
    first = client.get("/token")
    second = client.get("/token")

    assert first.status_code == 200
    assert first.json() == {"access_token": "tok-1", "cached": True}
    assert second.json() == first.json()
    assert prokerala.token_calls == 1


def test_token_failure_is_500() -> None:
    prokerala = _FakeProkerala()
    prokerala.token_body = {"error": "invalid_client"}
    client, _ = _client(prokerala)

    r = client.get("/token")
    assert r.status_code == 500
    assert r.json() == {"error": "Internal Server Error", "details": "token missing in response"}


def test_raw_token_passthrough_bypasses_cache() -> None:
    client, prokerala = _client()
    client.get("/token")
    r = client.get("/api/prokerala-token")

    assert r.status_code == 200
    assert r.json() == {"access_token": "tok-1", "expires_in": 3600}
    assert prokerala.token_calls == 2


def test_raw_token_failure() -> None:
    prokerala = _FakeProkerala()

    def broken() -> dict[str, Any]:
        raise ExternalServiceError("Token request failed: timeout")

    prokerala.fetch_token = broken  # type: ignore[method-assign]
    client, _ = _client(prokerala)

    r = client.get("/api/prokerala-token")
    assert r.status_code == 500
    assert r.json() == {"error": "Could not fetch token"}


def test_geocode_ok() -> None:
    client, _ = _client(nominatim=_FakeNominatim([
        {"lat": "28.6139001", "lon": "77.2090212", "display_name": "Delhi, India"},
    ]))
    r = client.get("/geocode", params={"place": "Delhi"})

    assert r.status_code == 200
    assert r.json() == {
        "coordinates": "28.6139,77.2090",
        "location": "Delhi, India",
        "latitude": "28.6139",
        "longitude": "77.2090",
    }


def test_geocode_missing_place_is_400() -> None:
    client, _ = _client()
    r = client.get("/geocode")
    assert r.status_code == 400
    assert r.json() == {"error": "Place parameter is required"}


def test_geocode_not_found_is_404() -> None:
    client, _ = _client(nominatim=_FakeNominatim([]))
    r = client.get("/geocode", params={"place": "Atlantis"})
    assert r.status_code == 404
    assert r.json() == {"error": "Place not found"}


def test_geocode_upstream_error_is_500() -> None:
    client, _ = _client(nominatim=_FakeNominatim(ExternalServiceError("Geocoding API failed")))
    r = client.get("/geocode", params={"place": "Delhi"})
    assert r.status_code == 500
    assert r.json() == {"error": "Internal Server Error", "details": "Geocoding API failed"}


def test_generate_kundli_svg_branch() -> None:
    client, prokerala = _client()
    r = client.post("/generate-kundli", json={
        "datetime": "1995-12-25T14:30:00+05:30",
        "coordinates": "28.6139,77.2090",
    })

    assert r.status_code == 200
    data = r.json()
    assert data["responseType"] == "svg"
    assert data["svg"] == "<svg/>"
    assert data["planets"] == {}
    assert data["houseData"] == []
    assert data["success"] is True
    assert data["isSandboxMode"] is True
    call = prokerala.chart_calls[0]
    assert call["token"] == "tok-1"
    assert call["datetime"] == "1995-01-01T14:30:00+05:30"
    assert call["chart_type"] == "lagna"
    assert call["chart_style"] == "north-indian"


def test_generate_kundli_json_branch() -> None:
    prokerala = _FakeProkerala()
    prokerala.chart = ChartResponse("application/json", json.dumps({
        "data": {
            "svg": "<svg>x</svg>",
            "house": [
                {"house_id": 1, "planets": [{"name": "Mars"}]},
                {"house_id": 5, "planets": [{"name": "Sun"}]},
            ],
            "sade_sati": {"is_in_sade_sati": True},
        }
    }))
    client, _ = _client(prokerala)
    r = client.post("/generate-kundli", json={
        "datetime": "2000-06-10T09:05:07+05:30",
        "coordinates": "10,20",
        "chart_style": "south-indian",
    })

    assert r.status_code == 200
    data = r.json()
    assert data["responseType"] == "json"
    assert data["planets"] == {"Mars": 1, "Sun": 5}
    assert data["sadeSati"] == {"is_in_sade_sati": True}
    assert data["mangalDosha"] == {}
    assert prokerala.chart_calls[0]["chart_style"] == "south-indian"


def test_generate_kundli_missing_fields_is_400() -> None:
    client, prokerala = _client()
    for body in ({"coordinates": "10,20"}, {"datetime": "2000-06-10T09:05:07+05:30"}):
        r = client.post("/generate-kundli", json=body)
        assert r.status_code == 400
        assert r.json() == {"error": "datetime and coordinates are required"}
    assert prokerala.token_calls == 0


def test_generate_kundli_empty_body_is_400() -> None:
    client, _ = _client()
    r = client.post("/generate-kundli")
    assert r.status_code == 400
    assert "error" in r.json()


def test_generate_kundli_malformed_body_is_400() -> None:
    client, _ = _client()
    r = client.post(
        "/generate-kundli",
        content="{not json",
        headers={"Content-Type": "application/json"},
    )
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid request body"


def test_generate_kundli_upstream_error_is_500() -> None:
    prokerala = _FakeProkerala()
    prokerala.chart = ExternalServiceError("Prokerala API failed: 401 - expired")
    client, _ = _client(prokerala)
    r = client.post("/generate-kundli", json={
        "datetime": "2000-06-10T09:05:07+05:30",
        "coordinates": "10,20",
    })

    assert r.status_code == 500
    assert r.json() == {
        "error": "Failed to generate Kundli chart",
        "details": "Prokerala API failed: 401 - expired",
        "success": False,
    }


def test_generate_kundli_odd_upstream_shape_keeps_chart_error_body() -> None:
    prokerala = _FakeProkerala()
    prokerala.chart = ChartResponse("application/json", json.dumps({
        "data": {"svg": {"url": "x"}, "house": [{"house_id": 1, "planets": [{"name": 7}]}]},
    }))
    client, _ = _client(prokerala)
    r = client.post("/generate-kundli", json={
        "datetime": "2000-06-10T09:05:07+05:30",
        "coordinates": "10,20",
    })

    assert r.status_code == 500
    data = r.json()
    assert data["error"] == "Failed to generate Kundli chart"
    assert data["success"] is False


def test_module_app_reads_dotenv_from_working_directory(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
) -> None:
    for var in ("PROKERALA_CLIENT_ID", "PROKERALA_CLIENT_SECRET", "KUNDLI_PROXY_CONFIG"):
        # setenv first so the value loaded from .env is removed again on undo
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)
    (tmp_path / ".env").write_text(
        "PROKERALA_CLIENT_ID=cid\nPROKERALA_CLIENT_SECRET=sec\n", encoding="utf-8",
    )
    monkeypatch.chdir(tmp_path)

    module = importlib.reload(fastapi_app)

    assert module.SETTINGS.has_credentials
    assert module.app.state.settings.client_id == "cid"
