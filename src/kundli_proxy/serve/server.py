"""Launch the proxy with uvicorn."""
from __future__ import annotations
import logging

import uvicorn

from kundli_proxy.serve.fastapi_app import SETTINGS, app

LOGGER = logging.getLogger("kundli_proxy.serve.server")


def main() -> None:
    LOGGER.info("Server running on port %s", SETTINGS.port)
    uvicorn.run(app, host=SETTINGS.host, port=SETTINGS.port, log_config=None)

if __name__ == "__main__":
    main()
