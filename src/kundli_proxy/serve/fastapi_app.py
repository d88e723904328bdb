"""FastAPI proxy for the Prokerala astrology API and Nominatim geocoding.

Endpoints:
- GET /
- GET /health
- GET /token
- GET /api/prokerala-token
- GET /geocode?place=...
- POST /generate-kundli  { "datetime": "...", "coordinates": "lat,lon", ... }
"""
from __future__ import annotations
import logging

from dotenv import find_dotenv, load_dotenv
from fastapi import Body, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from kundli_proxy.common.errors import ExternalServiceError, ProxyError
from kundli_proxy.common.logging_setup import setup_logging
from kundli_proxy.common.schema import ChartIn, ChartOut, GeocodeOut, HealthOut, TokenOut
from kundli_proxy.common.settings import Settings
from kundli_proxy.handlers.chart import generate_chart
from kundli_proxy.handlers.geocode import geocode_place
from kundli_proxy.upstream.nominatim import NominatimClient
from kundli_proxy.upstream.prokerala import ProkeralaClient
from kundli_proxy.upstream.token_cache import TokenCache

LOGGER = logging.getLogger("kundli_proxy.serve.app")

LIVENESS_TEXT = "Kundli Backend is Running"


def _register_errors(app: FastAPI) -> None:
    @app.exception_handler(ProxyError)
    def _proxy_error(request: Request, e: ProxyError) -> JSONResponse:
        if e.status_code >= 500:
            LOGGER.error("%s %s failed: %s", request.method, request.url.path, e.message)
        else:
            LOGGER.warning("%s %s -> %s: %s", request.method, request.url.path, e.status_code, e.message)
        return JSONResponse(e.to_payload(), status_code=e.status_code)

    @app.exception_handler(RequestValidationError)
    def _bad_body(request: Request, e: RequestValidationError) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}"
            for err in e.errors()
        )
        LOGGER.warning("%s %s -> 400: %s", request.method, request.url.path, details)
        return JSONResponse({"error": "Invalid request body", "details": details}, status_code=400)

    @app.exception_handler(Exception)
    def _any(request: Request, e: Exception) -> JSONResponse:
        LOGGER.exception("Unhandled %s at %s %s", type(e).__name__, request.method, request.url.path)
        return JSONResponse({"error": "Internal Server Error", "details": str(e)}, status_code=500)


def create_app(
    settings: Settings | None = None,
    tokens: TokenCache | None = None,
    prokerala: ProkeralaClient | None = None,
    nominatim: NominatimClient | None = None,
) -> FastAPI:
    """
    Build the application and its collaborators.

    Args:
        settings: Runtime settings; read from the environment when omitted.
        tokens: Token cache; built around ``prokerala.fetch_token`` when omitted.
        prokerala: Prokerala API client.
        nominatim: Geocoding client.
    """
    settings = settings or Settings.from_env()
    prokerala = prokerala or ProkeralaClient(settings)
    nominatim = nominatim or NominatimClient(settings)
    tokens = tokens or TokenCache(prokerala.fetch_token)

    app = FastAPI(title="Kundli Proxy")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _register_errors(app)

    app.state.settings = settings
    app.state.tokens = tokens
    app.state.prokerala = prokerala
    app.state.nominatim = nominatim

    @app.on_event("startup")
    def _warn_missing_credentials() -> None:
        if not settings.has_credentials:
            LOGGER.warning(
                "PROKERALA_CLIENT_ID / PROKERALA_CLIENT_SECRET not set; token and chart routes will fail"
            )

    @app.get("/", response_class=PlainTextResponse)
    def root() -> str:
        return LIVENESS_TEXT

    @app.get("/health", response_model=HealthOut)
    def health() -> HealthOut:
        return HealthOut(status="ok")

    @app.get("/token", response_model=TokenOut)
    def token() -> TokenOut:
        return TokenOut(access_token=tokens.get_token(), cached=True)

    @app.get("/api/prokerala-token")
    def raw_token() -> JSONResponse:
        """Fresh token exchange, upstream body returned as-is."""
        try:
            data = prokerala.fetch_token()
        except ExternalServiceError as e:
            LOGGER.error("Token fetch error: %s", e.message)
            return JSONResponse({"error": "Could not fetch token"}, status_code=500)
        return JSONResponse(data)

    @app.get("/geocode", response_model=GeocodeOut)
    def geocode(place: str | None = Query(default=None)) -> GeocodeOut:
        return geocode_place(nominatim, place)

    @app.post("/generate-kundli", response_model=ChartOut)
    def generate_kundli(body: ChartIn | None = Body(default=None)) -> ChartOut:
        return generate_chart(body or ChartIn(), tokens, prokerala)

    return app


# .env is looked up from the working directory, like the process environment
load_dotenv(find_dotenv(usecwd=True))
SETTINGS = Settings.from_env()
setup_logging(SETTINGS.log_level)
app = create_app(SETTINGS)
