"""Entry point for running the API server.

Usage:
    python -m src.main
"""

import structlog
import uvicorn

from src.api.routes import create_app
from src.config import Settings
from src.observability.logging import configure_logging

logger = structlog.get_logger(__name__)


def main() -> None:
    """Configure logging and serve the API until interrupted."""
    settings = Settings.from_env()
    configure_logging(settings.LOG_LEVEL, json_logs=settings.LOG_JSON)

    app = create_app(settings=settings)
    logger.info("server_starting", port=settings.HTTP_PORT)
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=settings.HTTP_PORT,
        log_config=None,
        timeout_graceful_shutdown=10,
    )


if __name__ == "__main__":
    main()
