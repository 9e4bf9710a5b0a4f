from __future__ import annotations

from datetime import timedelta

from assetcast.infrastructure.services.celery_config import (
    DISPLAY_TASK,
    MIGRATION_TASK,
    SCHEDULER_TASK,
    build_beat_schedule,
    create_celery_app,
)
from assetcast.infrastructure.settings import ForecastingSettings


def test_create_celery_app_uses_env(monkeypatch) -> None:
    monkeypatch.setenv("CELERY_BROKER_URL", "amqp://env")
    monkeypatch.setenv("CELERY_RESULT_BACKEND", "redis://env")

    app = create_celery_app()

    assert app.conf.broker_url == "amqp://env"
    assert app.conf.result_backend == "redis://env"
    assert app.conf.task_routes[SCHEDULER_TASK] == {"queue": "forecasting"}
    assert app.conf.task_routes[DISPLAY_TASK] == {"queue": "forecasting"}
    assert app.conf.task_routes[MIGRATION_TASK] == {"queue": "history_migration"}


def test_create_celery_app_with_explicit_params() -> None:
    app = create_celery_app(
        broker_url="amqp://explicit",
        backend_url="redis://explicit",
    )
    assert app.conf.broker_url == "amqp://explicit"
    assert app.conf.result_backend == "redis://explicit"
    assert set(app.conf.beat_schedule) == {
        "history-migration",
        "forecast-scheduler",
        "prediction-display",
    }


def test_beat_schedule_follows_forecasting_intervals(monkeypatch) -> None:
    monkeypatch.setenv("FORECAST_MIGRATION_INTERVAL_MINUTES", "7")
    monkeypatch.setenv("FORECAST_SCHEDULER_INTERVAL_MINUTES", "3")
    forecasting = ForecastingSettings()

    schedule = build_beat_schedule(forecasting)

    assert schedule["history-migration"]["task"] == MIGRATION_TASK
    assert schedule["history-migration"]["schedule"] == timedelta(minutes=7)
    assert schedule["forecast-scheduler"]["schedule"] == timedelta(minutes=3)
    assert schedule["prediction-display"]["schedule"] == timedelta(minutes=1)
