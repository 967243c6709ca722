"""Main entry point for the trainer."""
import logging

from dailyvocab.app import create_app
from dailyvocab.config import ensure_directories, settings
from dailyvocab.logging_config import setup_logging
from dailyvocab.monitoring import start_monitoring

logger = logging.getLogger(__name__)


def main() -> None:
    """Run the web server."""
    setup_logging("Starting DailyVocab ...")
    if settings.web.progress_storage == "file":
        ensure_directories()
        logger.info(f"Keeping progress in {settings.paths.progress_file}")

    if settings.web.metrics_port:
        start_monitoring(settings.web.metrics_port)
        logger.info(f"Metrics served on port {settings.web.metrics_port}")

    app = create_app()
    try:
        app.run(host=settings.web.host, port=settings.web.port)
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")


if __name__ == "__main__":
    main()
