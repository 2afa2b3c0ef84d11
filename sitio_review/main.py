"""
Application entry point.

Responsibilities:
  1. Configure logging.
  2. Initialize the database (create tables).
  3. Report the current review queue.

Keep this file minimal. All initialization logic belongs in its respective module.
"""

import sys

import structlog

from sitio_review.config.settings import settings
from sitio_review.core.review_controller import ReviewController
from sitio_review.data.database import init_db
from sitio_review.observability.logging import setup_logging


def main() -> int:
    setup_logging(settings.log_level, json=settings.log_json)
    init_db()

    log = structlog.get_logger(component="main")
    summary = ReviewController().get_summary()
    log.info(
        "review_queue",
        app=settings.app_name,
        version=settings.app_version,
        db_path=str(settings.db_path),
        **summary,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
