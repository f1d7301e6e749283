"""
mSRC Reporting - Trend Builder

Series over the last N periods for charting. Periods are fetched newest first
(`ORDER BY year DESC, term DESC LIMIT N`) and the series is reversed so it
always runs oldest -> newest.
"""

from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, List, Sequence

from sqlalchemy.orm import Session

from msrc_reporting.reporting.periods import (
    VIEW_TERMS, VIEW_YEARS, PeriodKey, recent_periods, snapshot_rows_statement
)


def period_label(period: PeriodKey, view_by: str = VIEW_TERMS) -> str:
    if view_by == VIEW_YEARS:
        return str(period.year)
    return f"{period.year} T{period.term}"


def period_key(row, view_by: str = VIEW_TERMS):
    if view_by == VIEW_YEARS:
        return (int(row.year),)
    return (int(row.year), int(row.term))


def trend_from_rows(
    rows_newest_first: Sequence[Any],
    label: Callable[[Any], str],
    metrics: Callable[[Any], Dict[str, Any]],
) -> Dict[str, Any]:
    points = []
    for item in reversed(list(rows_newest_first)):
        point = {"period_label": label(item)}
        point.update(metrics(item))
        points.append(point)
    return {
        "period_labels": [p["period_label"] for p in points],
        "points": points,
    }


def series(trend: Dict[str, Any], metric: str) -> List[Any]:
    """One metric across the trend, in chart order."""
    return [point.get(metric) for point in trend.get("points", [])]


def empty_trend(view_by: str = VIEW_TERMS) -> Dict[str, Any]:
    return {"viewBy": view_by, "period_labels": [], "points": []}


def build_trend(
    db: Session,
    model,
    metrics: Callable[[List[Any]], Dict[str, Any]],
    view_by: str = VIEW_TERMS,
    limit: int = 5,
    scope=None,
) -> Dict[str, Any]:
    """
    Apply `metrics` to each recent period's snapshot rows (latest submission
    per school inside the period), the same aggregation a single-period
    report uses.
    """
    periods = recent_periods(db, model, view_by, limit, scope)
    if not periods:
        return empty_trend(view_by)

    rows = db.execute(snapshot_rows_statement(model, periods, view_by, scope)).scalars().all()
    grouped = group_by_period(rows, view_by)

    def key_of(period: PeriodKey) -> tuple:
        return (period.year,) if view_by == VIEW_YEARS else (period.year, period.term)

    trend = trend_from_rows(
        periods,
        label=lambda period: period_label(period, view_by),
        metrics=lambda period: metrics(grouped.get(key_of(period), [])),
    )
    trend["viewBy"] = view_by
    return trend


def group_by_period(rows: Iterable[Any], view_by: str = VIEW_TERMS) -> Dict[tuple, List[Any]]:
    grouped: Dict[tuple, List[Any]] = defaultdict(list)
    for row in rows:
        grouped[period_key(row, view_by)].append(row)
    return grouped
