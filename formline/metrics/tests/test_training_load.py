"""Tests for the CTL / ATL / TSB model and the continuous series builder."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from formline.metrics.training_load import (
    TrainingLoad,
    TrainingLoadConstants,
    acwr,
    build_continuous_metrics,
    daily_loads,
    round_half_up,
    seed_day,
    step,
    zero_state,
)

UTC = timezone.utc


class TestStep:
    def test_first_day_from_zero(self) -> None:
        state = step(100, zero_state())
        # 100 * (1 - e^(-1/42)) = 2.35, 100 * (1 - e^(-1/7)) = 13.31
        assert state.ctl == 2.4
        assert state.atl == 13.3
        assert state.tsb == -11.0

    def test_rest_day_decays(self) -> None:
        state = step(0, TrainingLoad(ctl=50.0, atl=60.0, tsb=-10.0))
        assert state.ctl < 50.0
        assert state.atl < 60.0
        # Fatigue fades faster than fitness
        assert 60.0 - state.atl > 50.0 - state.ctl

    def test_rest_days_decay_monotonically(self) -> None:
        state = TrainingLoad(ctl=80.0, atl=90.0, tsb=-10.0)
        ctls, atls = [state.ctl], [state.atl]
        for _ in range(30):
            state = step(0, state)
            ctls.append(state.ctl)
            atls.append(state.atl)
        assert all(b <= a for a, b in zip(ctls, ctls[1:]))
        assert all(b <= a for a, b in zip(atls, atls[1:]))
        assert ctls[-1] < ctls[0]
        assert atls[-1] < atls[0]

    def test_rest_days_flip_form_positive(self) -> None:
        state = TrainingLoad(ctl=50.0, atl=80.0, tsb=-30.0)
        for _ in range(21):
            state = step(0, state)
        assert state.tsb > 0

    def test_precision_is_configurable(self) -> None:
        state = step(100, zero_state(), TrainingLoadConstants(precision=3))
        assert state.ctl == pytest.approx(2.353)

    def test_custom_time_constants(self) -> None:
        fast = step(100, zero_state(), TrainingLoadConstants(ctl_days=7, atl_days=7))
        assert fast.ctl == fast.atl
        assert fast.tsb == 0.0


class TestAcwr:
    def test_ratio_is_not_rounded(self) -> None:
        assert acwr(30.0, 20.0) == 1.5
        assert acwr(10.0, 30.0) == pytest.approx(1 / 3)

    @pytest.mark.parametrize("ctl", [0.0, 0.001, -5.0])
    def test_none_when_fitness_negligible(self, ctl) -> None:
        assert acwr(50.0, ctl) is None

    def test_state_property(self) -> None:
        assert TrainingLoad(ctl=40.0, atl=60.0, tsb=-20.0).acwr == 1.5


class TestRoundHalfUp:
    @pytest.mark.parametrize(
        ("value", "precision", "expected"),
        [(42.5, 0, 43.0), (30.5, 0, 31.0), (1.125, 2, 1.13), (-11.5, 0, -11.0)],
    )
    def test_halves_go_up(self, value, precision, expected) -> None:
        assert round_half_up(value, precision) == expected


class TestDailyLoads:
    def test_same_day_loads_summed(self) -> None:
        totals = daily_loads(
            [
                (datetime(2024, 3, 1, 7, tzinfo=UTC), 50),
                (datetime(2024, 3, 1, 18, tzinfo=UTC), 30),
                (datetime(2024, 3, 2, 9, tzinfo=UTC), None),
            ]
        )
        assert totals == {date(2024, 3, 1): 80, date(2024, 3, 2): 0}

    def test_aware_datetimes_use_utc_day(self) -> None:
        # 01:00 at +02:00 is 23:00 UTC the previous day
        plus_two = timezone(timedelta(hours=2))
        totals = daily_loads([(datetime(2024, 3, 2, 1, tzinfo=plus_two), 40)])
        assert totals == {date(2024, 3, 1): 40}


class TestBuildContinuousMetrics:
    def test_one_entry_per_day_inclusive(self) -> None:
        series = build_continuous_metrics([], date(2024, 1, 1), date(2024, 1, 10), zero_state())
        assert [s.day for s in series] == [date(2024, 1, 1) + timedelta(days=i) for i in range(10)]

    def test_end_datetime_covers_its_day(self) -> None:
        series = build_continuous_metrics(
            [],
            datetime(2024, 1, 1, 12, tzinfo=UTC),
            datetime(2024, 1, 3, 0, 0, 1, tzinfo=UTC),
            zero_state(),
        )
        assert len(series) == 3

    def test_same_day_aggregation_matches_single_activity(self) -> None:
        start, end = date(2024, 5, 1), date(2024, 5, 5)
        split = build_continuous_metrics(
            [
                (datetime(2024, 5, 2, 8, tzinfo=UTC), 50),
                (datetime(2024, 5, 2, 17, tzinfo=UTC), 30),
            ],
            start, end, zero_state(),
        )
        single = build_continuous_metrics(
            [(datetime(2024, 5, 2, 12, tzinfo=UTC), 80)], start, end, zero_state()
        )
        assert split == single

    def test_rest_days_stepped_with_zero_load(self) -> None:
        initial = TrainingLoad(ctl=40.0, atl=40.0, tsb=0.0)
        series = build_continuous_metrics(
            [(datetime(2024, 2, 1, 9, tzinfo=UTC), 120)],
            date(2024, 2, 1), date(2024, 2, 4), initial,
        )
        expected = step(120, initial)
        for _ in range(3):
            expected = step(0, expected)
        last = series[-1]
        assert (last.ctl, last.atl, last.tsb) == (expected.ctl, expected.atl, expected.tsb)

    def test_chained_ranges_equal_one_range(self) -> None:
        loads = [(datetime(2024, 4, d, 10, tzinfo=UTC), 60 + d) for d in range(1, 21, 3)]
        full = build_continuous_metrics(loads, date(2024, 4, 1), date(2024, 4, 20), zero_state())
        first = build_continuous_metrics(loads, date(2024, 4, 1), date(2024, 4, 10), zero_state())
        second = build_continuous_metrics(loads, date(2024, 4, 11), date(2024, 4, 20), first[-1])
        assert first + second == full

    def test_empty_when_start_after_end(self) -> None:
        assert build_continuous_metrics([], date(2024, 1, 5), date(2024, 1, 1), zero_state()) == []

    def test_seed_day_is_day_before_start(self) -> None:
        assert seed_day(datetime(2024, 3, 1, 0, 0, tzinfo=UTC)) == date(2024, 2, 29)
