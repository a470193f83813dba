import pytest
from datetime import date

from headoffice.core.exceptions import ValidationError
from headoffice.services import metrics


def test_kpis_from_ratings():
    kpis = metrics.kpis_for({
        "tasks_completed": 8, "work_volume": 7, "problem_solving": 6,
        "communication": 5, "leadership": 9,
    })
    assert kpis["velocity"] == 7.0
    assert kpis["friction"] == 6.0
    assert kpis["cohesion"] == 6.67
    assert kpis["velocity_status"] == "green"
    assert kpis["friction_status"] == "amber"
    assert kpis["cohesion_status"] == "green"


def test_half_up_rounding():
    # (7 + 8 + 8) / 3 = 7.666.. and (1 + 2 + 2) / 3 = 1.666..
    assert metrics.velocity(7, 8, 8) == 7.67
    assert metrics.velocity(1, 2, 2) == 1.67
    assert metrics.round2(2.675) == 2.68
    assert metrics.round2(0.125) == 0.13


def test_missing_rating_nulls_dependent_kpis():
    kpis = metrics.kpis_for({"tasks_completed": 8, "work_volume": None, "problem_solving": 6,
                             "communication": 5, "leadership": 9})
    assert kpis["velocity"] is None
    assert kpis["velocity_status"] is None
    # friction depends on velocity
    assert kpis["friction"] is None
    assert kpis["cohesion"] == 6.67


def test_friction_uses_rounded_velocity():
    # velocity 7.67 (rounded) with communication 6 -> (7.67 + 6) / 2 = 6.835 -> 6.84
    assert metrics.friction(metrics.velocity(7, 8, 8), 6) == 6.84


@pytest.mark.parametrize("value,expected", [
    (4.99, "red"),
    (5.0, "amber"),
    (6.49, "amber"),
    (6.5, "green"),
    (10, "green"),
    (None, None),
])
def test_metric_status_thresholds(value, expected):
    assert metrics.metric_status(value) == expected


@pytest.mark.parametrize("review_date,weeks,expected", [
    (date(2026, 10, 16), 0, "green"),
    (date(2026, 10, 9), 1, "green"),
    (date(2026, 10, 2), 2, "amber"),
    (date(2026, 9, 18), 4, "amber"),
    (date(2026, 9, 11), 5, "red"),
])
def test_staleness(review_date, weeks, expected):
    result = metrics.staleness(review_date, today=date(2026, 10, 18))
    assert result.weeks == weeks
    assert result.status == expected


def test_staleness_without_review_is_red():
    result = metrics.staleness(None, today=date(2026, 10, 18))
    assert result.weeks is None
    assert result.status == "red"


def test_staleness_future_review_counts_as_current():
    assert metrics.staleness(date(2026, 10, 23), today=date(2026, 10, 18)).weeks == 0


def test_trend():
    assert metrics.trend([5, 5, 7, 7]) == "improving"
    assert metrics.trend([8, 8, 6, 6]) == "declining"
    assert metrics.trend([6, 6.2, 6.3, 6.4]) == "stable"
    assert metrics.trend([None, 7]) == "stable"
    assert metrics.trend([]) == "stable"


def test_average_skips_missing_values():
    assert metrics.average([6, None, 7]) == 6.5
    assert metrics.average([None, None]) is None


def test_week_ending_helpers():
    assert metrics.is_week_ending(date(2026, 10, 16))
    assert not metrics.is_week_ending(date(2026, 10, 15))
    # Sunday belongs to the week that ended on the Friday just gone
    assert metrics.current_week_ending(date(2026, 10, 18)) == date(2026, 10, 16)
    assert metrics.current_week_ending(date(2026, 10, 14)) == date(2026, 10, 16)
    assert metrics.current_week_ending(date(2026, 10, 16)) == date(2026, 10, 16)
    assert metrics.previous_week_ending(date(2026, 10, 19)) == date(2026, 10, 16)
    assert metrics.previous_week_ending(date(2026, 10, 16)) == date(2026, 10, 9)


def test_quarter_helpers():
    assert metrics.parse_quarter("2026-Q3") == (2026, 3)
    assert metrics.quarter_bounds(2026, 4) == (date(2026, 10, 1), date(2026, 12, 31))
    assert metrics.quarter_bounds(2026, 1) == (date(2026, 1, 1), date(2026, 3, 31))
    assert metrics.previous_quarter(2026, 1) == (2025, 4)
    assert metrics.quarter_of(date(2026, 8, 14)) == (2026, 3)
    fridays = metrics.week_endings_in_quarter(2026, 4)
    assert fridays[0] == date(2026, 10, 2)
    assert fridays[-1] == date(2026, 12, 25)
    assert all(f.weekday() == 4 for f in fridays)


@pytest.mark.parametrize("value", ["2026-Q5", "2026Q1", "Q1-2026", ""])
def test_invalid_quarter_is_rejected(value):
    with pytest.raises(ValidationError):
        metrics.parse_quarter(value)
