"""Runtime settings: optional YAML file, overridden by environment variables."""
from __future__ import annotations
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping

import yaml

CONFIG_ENV = "KUNDLI_PROXY_CONFIG"

# setting name -> environment variable
ENV_VARS: dict[str, str] = {
    "client_id": "PROKERALA_CLIENT_ID",
    "client_secret": "PROKERALA_CLIENT_SECRET",
    "host": "HOST",
    "port": "PORT",
    "token_url": "PROKERALA_TOKEN_URL",
    "chart_url": "PROKERALA_CHART_URL",
    "geocode_url": "NOMINATIM_SEARCH_URL",
    "geocode_user_agent": "GEOCODE_USER_AGENT",
    "http_timeout": "HTTP_TIMEOUT",
    "cors_origins": "CORS_ORIGINS",
    "log_level": "LOG_LEVEL",
}


@dataclass
class Settings:
    client_id: str = ""
    client_secret: str = ""
    host: str = "0.0.0.0"
    port: int = 10000
    token_url: str = "https://api.prokerala.com/token"
    chart_url: str = "https://api.prokerala.com/v2/astrology/chart"
    geocode_url: str = "https://nominatim.openstreetmap.org/search"
    geocode_user_agent: str = "Adhyatmanii-Kundli-App/1.0"
    http_timeout: float = 30.0
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Settings":
        """Build settings from a plain mapping, coercing types and ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            if key not in known or value is None:
                continue
            if key == "port":
                value = int(value)
            elif key == "http_timeout":
                value = float(value)
            elif key == "cors_origins":
                value = _split_origins(value)
            else:
                value = str(value)
            kwargs[key] = value
        return cls(**kwargs)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """
        Load settings.

        Args:
            environ: Environment mapping; defaults to os.environ.

        The YAML file named by KUNDLI_PROXY_CONFIG (if any) provides base
        values; non-empty environment variables win over it.
        """
        env = os.environ if environ is None else environ
        data: dict[str, Any] = {}
        cfg_path = env.get(CONFIG_ENV, "").strip()
        if cfg_path:
            data.update(load_cfg(cfg_path))
        for name, var in ENV_VARS.items():
            raw = env.get(var, "").strip()
            if raw:
                data[name] = raw
        return cls.from_mapping(data)


def load_cfg(path: str) -> dict[str, Any]:
    with open(Path(path), "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return data


def _split_origins(value: Any) -> list[str]:
    if isinstance(value, str):
        return [o.strip() for o in value.split(",") if o.strip()]
    return [str(o) for o in value]
