"""
mSRC Reporting - Latest-Period Resolver

Every dashboard reads a "snapshot": for each school, the submission with the
highest week inside the requested (year, term). Weekly resubmissions never
double count, and a school with nothing for the period is simply absent.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from fastapi import HTTPException
from sqlalchemy import select, func, and_, or_
from sqlalchemy.orm import Session

from msrc_reporting.hierarchy.filters import apply_school_scope

VIEW_TERMS = "terms"
VIEW_YEARS = "years"

_PERIOD_PATTERN = re.compile(r"^\s*(\d{4})\s*[-/ ]\s*[Tt]?(\d{1,2})\s*$")

# years view: the latest (term, week) of a school inside a year
_TERM_WEIGHT = 1000


@dataclass(frozen=True, order=True)
class PeriodKey:
    year: int
    term: int
    week: Optional[int] = None

    @property
    def label(self) -> str:
        label = f"{self.year} Term {self.term}"
        if self.week is not None:
            label += f" Week {self.week}"
        return label

    @property
    def value(self) -> str:
        return f"{self.year}-{self.term}"

    def as_dict(self) -> Dict:
        data = {"year": self.year, "term": self.term, "label": self.label, "value": self.value}
        if self.week is not None:
            data["week"] = self.week
        return data


def week_column(model):
    """Fact tables name their week column differently; models declare it."""
    return getattr(model, getattr(model, "WEEK_COLUMN", "week_number"))


def parse_period(value: str) -> PeriodKey:
    match = _PERIOD_PATTERN.match(value or "")
    if not match:
        raise HTTPException(
            status_code=400,
            detail={"success": False, "error": "Invalid period. Use YEAR-TERM, e.g. 2024-2"}
        )
    return PeriodKey(int(match.group(1)), int(match.group(2)))


def parse_view_by(value: Optional[str]) -> str:
    view_by = (value or VIEW_TERMS).lower()
    if view_by not in (VIEW_TERMS, VIEW_YEARS):
        raise HTTPException(
            status_code=400,
            detail={"success": False, "error": "Invalid viewBy. Must be: terms or years"}
        )
    return view_by


def latest_period(db: Session, model) -> Optional[PeriodKey]:
    """Global latest (year, term) present in the table."""
    row = db.execute(
        select(model.year, model.term)
        .order_by(model.year.desc(), model.term.desc())
        .limit(1)
    ).first()
    if row is None or row.year is None or row.term is None:
        return None
    return PeriodKey(int(row.year), int(row.term))


def _period_part(value: Optional[str]) -> Optional[int]:
    if value is None or str(value).strip() == "":
        return None
    if not str(value).strip().isdigit():
        raise HTTPException(
            status_code=400,
            detail={"success": False, "error": "Invalid year or term"}
        )
    return int(str(value).strip())


def resolve_period(
    db: Session,
    model,
    period: Optional[str] = None,
    year: Optional[str] = None,
    term: Optional[str] = None,
) -> Optional[PeriodKey]:
    """
    Explicit `period`, else `year` + `term`, else the latest period with data.

    A lone `year` resolves to its latest term with data (term 1 when the year
    has none); a lone `term` to the latest year holding that term.
    """
    if period:
        return parse_period(period)
    year_value = _period_part(year)
    term_value = _period_part(term)
    if year_value is not None and term_value is not None:
        return PeriodKey(year_value, term_value)
    if year_value is not None:
        latest_term = db.execute(
            select(func.max(model.term)).where(model.year == year_value)
        ).scalar()
        return PeriodKey(year_value, int(latest_term) if latest_term is not None else 1)
    if term_value is not None:
        latest_year = db.execute(
            select(func.max(model.year)).where(model.term == term_value)
        ).scalar()
        return PeriodKey(int(latest_year), term_value) if latest_year is not None else None
    return latest_period(db, model)


def latest_rows_statement(model, period: PeriodKey, scope=None, entities: Sequence = ()):
    """
    Rows of each school's latest week in `period`.

    MAX(week) per school inside (year, term), joined back to the fact table on
    (school_id, week, term, year) to recover the full rows.
    """
    week = week_column(model)
    latest = (
        select(model.school_id.label("school_id"), func.max(week).label("max_week"))
        .where(model.year == period.year, model.term == period.term)
    )
    latest = apply_school_scope(latest, model.school_id, scope)
    latest = latest.group_by(model.school_id).subquery("latest_week")

    return (
        select(*(entities or (model,)))
        .select_from(model)
        .join(latest, and_(model.school_id == latest.c.school_id, week == latest.c.max_week))
        .where(model.year == period.year, model.term == period.term)
    )


def latest_rows(db: Session, model, period: PeriodKey, scope=None) -> List:
    return list(db.execute(latest_rows_statement(model, period, scope)).scalars().all())


def recent_periods(db: Session, model, view_by: str = VIEW_TERMS, limit: int = 5, scope=None) -> List[PeriodKey]:
    """The last `limit` periods with data, newest first (the order SQL returns them)."""
    if view_by == VIEW_YEARS:
        stmt = select(model.year).distinct()
        stmt = apply_school_scope(stmt, model.school_id, scope)
        stmt = stmt.order_by(model.year.desc()).limit(limit)
        return [PeriodKey(int(row.year), 0) for row in db.execute(stmt)]

    stmt = select(model.year, model.term).distinct()
    stmt = apply_school_scope(stmt, model.school_id, scope)
    stmt = stmt.order_by(model.year.desc(), model.term.desc()).limit(limit)
    return [PeriodKey(int(row.year), int(row.term)) for row in db.execute(stmt)]


def snapshot_rows_statement(model, periods: Sequence[PeriodKey], view_by: str = VIEW_TERMS, scope=None):
    """
    Latest submission per school for several periods at once.

    terms: one snapshot per (school, year, term), highest week.
    years: one snapshot per (school, year), highest term then week.
    """
    week = week_column(model)
    if view_by == VIEW_YEARS:
        ordinal = model.term * _TERM_WEIGHT + week
        latest = (
            select(
                model.school_id.label("school_id"),
                model.year.label("year"),
                func.max(ordinal).label("max_ordinal"),
            )
            .where(model.year.in_([p.year for p in periods]))
        )
        latest = apply_school_scope(latest, model.school_id, scope)
        latest = latest.group_by(model.school_id, model.year).subquery("latest_snapshot")
        onclause = and_(
            model.school_id == latest.c.school_id,
            model.year == latest.c.year,
            ordinal == latest.c.max_ordinal,
        )
    else:
        period_match = or_(*[and_(model.year == p.year, model.term == p.term) for p in periods])
        latest = (
            select(
                model.school_id.label("school_id"),
                model.year.label("year"),
                model.term.label("term"),
                func.max(week).label("max_week"),
            )
            .where(period_match)
        )
        latest = apply_school_scope(latest, model.school_id, scope)
        latest = latest.group_by(model.school_id, model.year, model.term).subquery("latest_snapshot")
        onclause = and_(
            model.school_id == latest.c.school_id,
            model.year == latest.c.year,
            model.term == latest.c.term,
            week == latest.c.max_week,
        )
    return select(model).join(latest, onclause)


def available_periods(db: Session, model, scope=None, limit: int = 20) -> List[Dict]:
    return [p.as_dict() for p in recent_periods(db, model, VIEW_TERMS, limit, scope)]


def period_tree(db: Session, model, scope=None) -> List[Dict]:
    """Distinct submission weeks grouped year -> term -> weeks, newest year first."""
    week = week_column(model)
    stmt = select(model.year, model.term, week.label("week")).distinct()
    stmt = apply_school_scope(stmt, model.school_id, scope)
    stmt = stmt.order_by(model.year.desc(), model.term.desc(), week.desc())

    grouped: Dict[int, Dict[int, List[int]]] = {}
    for row in db.execute(stmt):
        grouped.setdefault(row.year, {}).setdefault(row.term, []).append(row.week)

    return [
        {
            "year": year,
            "terms": [
                {"term": term, "weeks": sorted(weeks)}
                for term, weeks in terms.items()
            ],
        }
        for year, terms in grouped.items()
    ]
