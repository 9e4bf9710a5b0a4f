"""
Worker Entry Point - Main Layer

Entry point for the Celery worker and beat running the scheduler,
migration and display cycles. Both API and worker are application entry
points that belong to the Main layer.
"""

import os

from assetcast.main.config import get_settings
from assetcast.shared import (
    configure_logging,
    get_logger,
    update_logging_from_settings,
)

configure_logging()

settings = get_settings()

update_logging_from_settings(settings)

logger = get_logger(__name__)

WORKER_QUEUES = "forecasting,history_migration"


def create_worker():
    """Configure and return the Celery application used by the worker."""
    settings = get_settings()

    os.environ.setdefault("CELERY_BROKER_URL", settings.celery.broker_url)
    os.environ.setdefault("CELERY_RESULT_BACKEND", settings.celery.result_backend_url)

    from assetcast.infrastructure.services.celery_config import create_celery_app

    worker_app = create_celery_app(
        broker_url=settings.celery.broker_url,
        backend_url=settings.celery.result_backend_url,
    )

    logger.info(
        "Configuring Celery worker",
        broker_url=settings.celery.broker_url,
        backend_url=settings.celery.result_backend_url,
        app_name=worker_app.main,
        sync_mode=settings.forecasting.sync_mode.value,
    )

    return worker_app


def main():
    """Run a worker with an embedded beat scheduler."""

    logger.info("Starting Celery worker")

    worker_app = create_worker()

    worker_app.worker_main(
        [
            "worker",
            "--beat",
            "--loglevel=info",
            f"--queues={WORKER_QUEUES}",
            # One process per queue is enough; cycles are guarded against overlap.
            "--concurrency=2",
            "--max-tasks-per-child=10",
        ]
    )


if __name__ == "__main__":
    main()
