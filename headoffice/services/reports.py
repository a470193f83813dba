"""
Quarterly performance reports built from revealed weekly reviews.

A week only contributes once both sides are committed, so reports never
leak numbers the blind protocol is still withholding.
"""
import calendar
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from headoffice.core.permissions import Action, authorize
from headoffice.models.review import Review, RATING_FIELDS
from headoffice.models.user import User
from headoffice.services.base import BaseService
from headoffice.services.directory import Directory
from headoffice.services.metrics import (
    average, kpis_for, parse_quarter, previous_quarter, quarter_bounds, quarter_label,
    quarter_of, round2, trend, week_endings_in_quarter
)
from headoffice.services.review_store import ReviewCycleStore

KPI_NAMES = ("velocity", "friction", "cohesion")


def _averaged_kpis(reviews: List[Review]) -> Dict[str, Any]:
    """Average each raw rating, then derive KPIs from the averages."""
    ratings = {f: average(getattr(r, f) for r in reviews) for f in RATING_FIELDS}
    return kpis_for(ratings)


def _diff(current: Optional[float], previous: Optional[float]) -> Optional[float]:
    if current is None or previous is None:
        return None
    return round2(current - previous)


class ReportService(BaseService):

    def __init__(self, db, tenant_id: int, dispatcher=None, events=None):
        super().__init__(db, tenant_id, dispatcher, events)
        self.store = ReviewCycleStore(db, tenant_id)
        self.directory = Directory(db, tenant_id)

    def _employee_for(self, employee_id: int, viewer: User) -> User:
        employee = self.directory.get_user(employee_id)
        authorize(viewer, Action.REPORT_VIEW, employee)
        return employee

    def revealed_reviews(self, employee_id: int, start: date, end: date) -> Tuple[List[Review], List[Review]]:
        """(self, manager) rows in range whose week has been jointly committed."""
        rows = self.store.for_employee(employee_id, start, end)
        committed = {}
        for r in rows:
            if r.is_committed:
                committed.setdefault(r.review_date, {})[r.is_self_assessment] = r
        revealed_weeks = {week for week, sides in committed.items() if len(sides) == 2}
        self_rows = [committed[w][True] for w in sorted(revealed_weeks)]
        manager_rows = [committed[w][False] for w in sorted(revealed_weeks)]
        return self_rows, manager_rows

    def quarterly_report(self, employee_id: int, quarter: str, viewer: User) -> Dict[str, Any]:
        year, q = parse_quarter(quarter)
        employee = self._employee_for(employee_id, viewer)
        start, end = quarter_bounds(year, q)
        self_rows, manager_rows = self.revealed_reviews(employee.id, start, end)
        by_week = {r.review_date: r for r in manager_rows}

        weekly_trends = []
        for week in week_endings_in_quarter(year, q):
            review = by_week.get(week)
            entry = {"week_ending": week, "has_data": review is not None}
            for field in RATING_FIELDS:
                entry[field] = getattr(review, field) if review else None
            for name in KPI_NAMES:
                entry[name] = None
            entry["reviewer_name"] = None
            if review is not None:
                kpis = kpis_for(review)
                entry.update({name: kpis[name] for name in KPI_NAMES})
                entry["reviewer_name"] = review.reviewer.full_name if review.reviewer else None
            weekly_trends.append(entry)

        monthly = []
        for month in range(3 * (q - 1) + 1, 3 * q + 1):
            month_manager = [r for r in manager_rows if r.review_date.month == month]
            month_self = [r for r in self_rows if r.review_date.month == month]
            monthly.append({
                "month": calendar.month_abbr[month],
                "manager": {
                    **{name: average(kpis_for(r)[name] for r in month_manager) for name in KPI_NAMES},
                    "count": len(month_manager),
                },
                "self": {
                    **{name: average(kpis_for(r)[name] for r in month_self) for name in KPI_NAMES},
                    "count": len(month_self),
                },
            })

        quarter_averages = {
            **_averaged_kpis(manager_rows),
            "reviews_count": len(manager_rows),
            "self_assessments_count": len(self_rows),
            "weeks_with_data": sum(1 for w in weekly_trends if w["has_data"]),
        }

        prev_year, prev_q = previous_quarter(year, q)
        prev_start, prev_end = quarter_bounds(prev_year, prev_q)
        _, prev_manager_rows = self.revealed_reviews(employee.id, prev_start, prev_end)
        previous = None
        comparison = None
        if prev_manager_rows:
            prev_kpis = _averaged_kpis(prev_manager_rows)
            previous = {
                "label": quarter_label(prev_year, prev_q),
                **{name: prev_kpis[name] for name in KPI_NAMES},
                "reviews_count": len(prev_manager_rows),
            }
            comparison = {
                f"{name}_diff": _diff(quarter_averages[name], previous[name]) for name in KPI_NAMES
            }

        return {
            "employee": {
                "id": employee.id,
                "full_name": employee.full_name,
                "email": employee.email,
                "role": employee.role,
                "manager_name": employee.manager.full_name if employee.manager else None,
            },
            "quarter": {
                "year": year,
                "quarter": q,
                "label": quarter_label(year, q),
                "start_date": start,
                "end_date": end,
            },
            "weekly_trends": weekly_trends,
            "monthly_comparison": monthly,
            "quarter_averages": quarter_averages,
            "previous_quarter": previous,
            "quarter_comparison": comparison,
            "trends": {name: trend(w[name] for w in weekly_trends) for name in KPI_NAMES},
            "generated_at": datetime.now(timezone.utc),
        }

    def available_quarters(self, employee_id: int, viewer: User, today: Optional[date] = None) -> List[Dict[str, str]]:
        """Quarters from the first review to now, most recent first."""
        employee = self._employee_for(employee_id, viewer)
        today = today or date.today()
        rows = self.store.for_employee(employee.id)
        current = quarter_of(today)
        first = quarter_of(rows[0].review_date) if rows else current
        last = max(quarter_of(rows[-1].review_date), current) if rows else current

        quarters = []
        year, q = first
        while (year, q) <= last:
            quarters.append({"value": quarter_label(year, q), "label": f"Q{q} {year}"})
            year, q = (year + 1, 1) if q == 4 else (year, q + 1)
        return list(reversed(quarters))
