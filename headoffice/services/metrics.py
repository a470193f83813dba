"""
KPI derivation for weekly reviews.

Pure functions only: five raw 1-10 ratings become three composite KPIs
(velocity, friction, cohesion), each with a red/amber/green status, plus
review staleness and trend classification. The quarterly reports feed
averaged ratings through the same formulas.
"""
import math
import re
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Tuple

from headoffice.core.exceptions import ValidationError

FRIDAY = 4

RED = "red"
AMBER = "amber"
GREEN = "green"

TREND_THRESHOLD = 0.5

QUARTER_PATTERN = re.compile(r"^(\d{4})-Q([1-4])$")


class Staleness(NamedTuple):
    weeks: Optional[int]
    status: str


def round2(value: Optional[float]) -> Optional[float]:
    """Half-up rounding to two decimal places."""
    if value is None:
        return None
    scaled = (Decimal(str(value)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return float(scaled / 100)


def _mean(*values: Optional[float]) -> Optional[float]:
    if any(v is None for v in values):
        return None
    return sum(values) / len(values)


def velocity(tasks_completed, work_volume, problem_solving) -> Optional[float]:
    return round2(_mean(tasks_completed, work_volume, problem_solving))


def friction(velocity_value, communication) -> Optional[float]:
    return round2(_mean(velocity_value, communication))


def cohesion(problem_solving, communication, leadership) -> Optional[float]:
    return round2(_mean(problem_solving, communication, leadership))


def metric_status(value: Optional[float]) -> Optional[str]:
    if value is None:
        return None
    if value < 5:
        return RED
    if value < 6.5:
        return AMBER
    return GREEN


def _rating(source: Any, name: str):
    if isinstance(source, dict):
        return source.get(name)
    return getattr(source, name, None)


def kpis_for(source: Any) -> Dict[str, Any]:
    """KPIs and statuses for a review row or a mapping of (possibly averaged) ratings."""
    v = velocity(
        _rating(source, "tasks_completed"),
        _rating(source, "work_volume"),
        _rating(source, "problem_solving"),
    )
    f = friction(v, _rating(source, "communication"))
    c = cohesion(
        _rating(source, "problem_solving"),
        _rating(source, "communication"),
        _rating(source, "leadership"),
    )
    return {
        "velocity": v,
        "velocity_status": metric_status(v),
        "friction": f,
        "friction_status": metric_status(f),
        "cohesion": c,
        "cohesion_status": metric_status(c),
    }


def staleness(review_date: Optional[date], today: Optional[date] = None) -> Staleness:
    # No review at all counts as fully stale
    if review_date is None:
        return Staleness(weeks=None, status=RED)
    today = today or date.today()
    weeks = max(0, math.floor((today - review_date).days / 7))
    if weeks <= 1:
        status = GREEN
    elif weeks <= 4:
        status = AMBER
    else:
        status = RED
    return Staleness(weeks=weeks, status=status)


def average(values: Iterable[Optional[float]]) -> Optional[float]:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return round2(sum(present) / len(present))


def trend(values: Iterable[Optional[float]]) -> str:
    """Compare the mean of the later half of a series against the earlier half."""
    present = [v for v in values if v is not None]
    if len(present) < 2:
        return "stable"
    mid = len(present) // 2
    first, second = present[:mid], present[mid:]
    diff = sum(second) / len(second) - sum(first) / len(first)
    if diff > TREND_THRESHOLD:
        return "improving"
    if diff < -TREND_THRESHOLD:
        return "declining"
    return "stable"


# --- Week and quarter helpers ---

def is_week_ending(value: date) -> bool:
    return value.weekday() == FRIDAY


def current_week_ending(today: Optional[date] = None) -> date:
    """Friday closing the current working week (the just-passed Friday at weekends)."""
    today = today or date.today()
    return today + timedelta(days=FRIDAY - today.weekday())


def previous_week_ending(today: Optional[date] = None) -> date:
    """Most recent Friday strictly before today."""
    today = today or date.today()
    days_back = (today.weekday() - FRIDAY) % 7 or 7
    return today - timedelta(days=days_back)


def parse_quarter(value: str) -> Tuple[int, int]:
    match = QUARTER_PATTERN.match(value or "")
    if not match:
        raise ValidationError("Invalid quarter format. Use YYYY-Q# (e.g., 2024-Q1)")
    return int(match.group(1)), int(match.group(2))


def quarter_bounds(year: int, quarter: int) -> Tuple[date, date]:
    start = date(year, 3 * (quarter - 1) + 1, 1)
    if quarter == 4:
        end = date(year, 12, 31)
    else:
        end = date(year, 3 * quarter + 1, 1) - timedelta(days=1)
    return start, end


def previous_quarter(year: int, quarter: int) -> Tuple[int, int]:
    if quarter == 1:
        return year - 1, 4
    return year, quarter - 1


def quarter_label(year: int, quarter: int) -> str:
    return f"{year}-Q{quarter}"


def quarter_of(value: date) -> Tuple[int, int]:
    return value.year, (value.month - 1) // 3 + 1


def week_endings_in_quarter(year: int, quarter: int) -> List[date]:
    start, end = quarter_bounds(year, quarter)
    first = start + timedelta(days=(FRIDAY - start.weekday()) % 7)
    fridays = []
    current = first
    while current <= end:
        fridays.append(current)
        current += timedelta(days=7)
    return fridays
