"""Dashboard summary of the daily training-load series."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Sequence

from formline.metrics.training_load import round_half_up
from formline.models.fitness import DailyFitnessSummary, DailyTrainingMetrics

# Days in each comparison window (this week vs. the week before)
_WINDOW_DAYS = 7


def average(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def change(current: float, previous: float) -> float:
    """Percentage change, rounded to 2 decimals; 0 when previous is 0."""
    if previous == 0:
        return 0.0
    return round_half_up((current - previous) / previous * 100, 2)


def daily_fitness_summary(
    rows: Sequence[DailyTrainingMetrics], today: date
) -> DailyFitnessSummary:
    """Summarize the last two weeks of metrics for the dashboard.

    Args:
        rows:  Metrics rows covering at least ``today - 13`` .. ``today``.
        today: The UTC day to report on.

    Returns:
        Today's rounded fitness/fatigue/form/ACWR and week-over-week change
        of the 7-day averages.
    """
    current_start = today - timedelta(days=_WINDOW_DAYS - 1)
    previous_start = current_start - timedelta(days=_WINDOW_DAYS)

    current = [r for r in rows if current_start <= r.date <= today]
    previous = [r for r in rows if previous_start <= r.date < current_start]
    todays = next((r for r in rows if r.date == today), None)

    def _form(r: DailyTrainingMetrics) -> float:
        return r.fitness - r.fatigue

    fitness = int(round_half_up(todays.fitness)) if todays else 0
    fatigue = int(round_half_up(todays.fatigue)) if todays else 0

    return DailyFitnessSummary(
        fitness=fitness,
        fitness_change=change(
            average([r.fitness for r in current]), average([r.fitness for r in previous])
        ),
        fatigue=fatigue,
        fatigue_change=change(
            average([r.fatigue for r in current]), average([r.fatigue for r in previous])
        ),
        form=fitness - fatigue,
        form_change=change(
            average([_form(r) for r in current]), average([_form(r) for r in previous])
        ),
        acwr=round_half_up(todays.acwr, 2) if todays and todays.acwr is not None else 0.0,
    )
