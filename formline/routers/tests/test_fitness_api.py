"""Tests for the dashboard and health endpoints."""

from __future__ import annotations

from datetime import timedelta

import pytest

from formline.dates import utc_now
from formline.models.fitness import DailyTrainingMetrics


@pytest.fixture
def two_weeks_of_metrics(storage) -> None:
    """Fitness 40 and fatigue 30 last week, 44 and 36 this week."""
    today = utc_now().date()
    for offset in range(14):
        this_week = offset < 7
        storage.metrics[("u1", today - timedelta(days=offset))] = DailyTrainingMetrics(
            user_id="u1",
            date=today - timedelta(days=offset),
            fitness=44.0 if this_week else 40.0,
            fatigue=36.0 if this_week else 30.0,
            form=8.0 if this_week else 10.0,
            acwr=0.82 if this_week else 0.75,
        )


class TestDailyFitness:
    def test_requires_user(self, client) -> None:
        assert client.get("/api/v1/fitness/daily").status_code == 401

    @pytest.mark.usefixtures("two_weeks_of_metrics")
    def test_week_over_week_summary(self, client) -> None:
        response = client.get("/api/v1/fitness/daily", headers={"X-User-Id": "u1"})

        assert response.status_code == 200
        assert response.json() == {
            "fitness": 44,
            "fitness_change": 10.0,
            "fatigue": 36,
            "fatigue_change": 20.0,
            "form": 8,
            "form_change": -20.0,
            "acwr": 0.82,
        }

    def test_no_metrics_is_all_zero(self, client) -> None:
        response = client.get("/api/v1/fitness/daily", headers={"X-User-Id": "u2"})

        assert response.status_code == 200
        assert response.json() == {
            "fitness": 0,
            "fitness_change": 0.0,
            "fatigue": 0,
            "fatigue_change": 0.0,
            "form": 0,
            "form_change": 0.0,
            "acwr": 0.0,
        }


class TestHealth:
    def test_health_with_memory_storage(self, client) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["storage"] == "memory"
        assert body["version"] == "0.1.0"
