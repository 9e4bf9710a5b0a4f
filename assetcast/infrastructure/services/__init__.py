"""Infrastructure services: locks, health checks and the Celery workers."""
