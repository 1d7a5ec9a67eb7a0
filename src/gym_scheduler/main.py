"""Application entry point: serve the API with uvicorn."""

import logging
import os

import uvicorn

from .logging_setup import setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    setup_logging()
    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8000"))
    logger.info("Starting gym scheduler API on %s:%d", host, port)
    uvicorn.run(
        "gym_scheduler.server.main:app",
        host=host,
        port=port,
        reload=os.getenv("RELOAD", "").lower() in ("1", "true", "yes", "on"),
        log_config=None,
    )


if __name__ == "__main__":
    main()
