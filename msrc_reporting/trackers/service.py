"""
mSRC Reporting - Tracker dashboards (re-entry, TVET, WASH)

Each tracker stores one response row per question. A school's submission for
a period is the set of rows at its latest week; those rows are decoded into
Answers, mapped to named indicators, then summarised and trended.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from msrc_reporting.core.config import settings
from msrc_reporting.hierarchy.filters import FilterLevel, HierarchyFilter, school_scope
from msrc_reporting.hierarchy.models import Circuit, District, Region, School
from msrc_reporting.reporting.answers import decode_answer
from msrc_reporting.reporting.assembler import guarded
from msrc_reporting.reporting.calculations import average, percentage, to_fixed, to_float, to_int
from msrc_reporting.reporting.indicators import TrackerMap
from msrc_reporting.reporting.periods import (
    VIEW_TERMS, PeriodKey, available_periods, latest_rows_statement, resolve_period
)
from msrc_reporting.reporting.trends import build_trend, empty_trend, series
from msrc_reporting.trackers.indicators import (
    ACCREDITED, REENTRY_MAP, REENTRY_TOTALS, TVET_MAP, WASH_MAP
)
from msrc_reporting.trackers.models import (
    PregnancyQuestion, PregnancyTrackerResponse,
    TvetQuestion, TvetTrackerResponse,
    WashQuestion, WashTrackerResponse,
)

logger = logging.getLogger(__name__)

LEVEL_LABELS = OrderedDict([
    (FilterLevel.SCHOOL, "School"),
    (FilterLevel.CIRCUIT, "Circuit"),
    (FilterLevel.DISTRICT, "District"),
    (FilterLevel.REGION, "Region"),
])


# Summaries -----------------------------------------------------------------

def reentry_summary(records: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Totals over the schools reporting, and the re-entry rate:
    girls who dropped out and returned over all girls out of school
    (still out plus returned), one decimal.
    """
    summary = {"total_schools": len(records)}
    for total, field in REENTRY_TOTALS.items():
        summary[total] = sum(to_int(r["indicators"][field]) for r in records)

    returned = summary["total_dropped_out_returned"]
    summary["reentry_rate"] = percentage(returned, summary["total_pregnant_not_attending"] + returned)
    return summary


def tvet_summary(records: List[Dict[str, Any]]) -> Dict[str, Any]:
    indicators = [r["indicators"] for r in records]
    accredited = [i for i in indicators if i["accreditation_status"] == ACCREDITED]
    return {
        "total_institutions": len(records),
        "average_enrollment": to_fixed(average(to_int(i["current_enrollment"]) for i in indicators), 0),
        "completion_rate_avg": to_fixed(average(to_float(i["completion_rate"]) for i in indicators), 1),
        "employment_rate_avg": to_fixed(average(to_float(i["employment_rate"]) for i in indicators), 1),
        "accredited_percentage": percentage(len(accredited), len(records)),
    }


def wash_summary(records: List[Dict[str, Any]]) -> Dict[str, Any]:
    indicators = [r["indicators"] for r in records]
    total = len(records)

    def share(test: Callable[[Dict[str, Any]], bool]) -> str:
        return percentage(len([i for i in indicators if test(i)]), total)

    return {
        "total_schools": total,
        "safe_drinking_water_percentage": share(lambda i: i["safe_drinking_water"]),
        "adequate_sanitation_percentage": share(
            lambda i: i["separate_toilets"] and i["toilet_clean_accessible"]
        ),
        "hygiene_education_percentage": share(lambda i: i["health_hygiene_teaching"]),
        "handwashing_facilities_percentage": share(lambda i: i["handwashing_facility"]),
    }


# Trend metrics, applied to each period's school records

def reentry_trend_metrics(records: List[Dict[str, Any]]) -> Dict[str, Any]:
    summary = reentry_summary(records)
    return {
        "schools_reporting": len(records),
        "pregnant_attending": summary["total_pregnant_attending"],
        "pregnant_not_attending": summary["total_pregnant_not_attending"],
        "returned": summary["total_dropped_out_returned"] + summary["total_pregnant_returned"],
        "reentry_rate": summary["reentry_rate"],
    }


def tvet_trend_metrics(records: List[Dict[str, Any]]) -> Dict[str, Any]:
    summary = tvet_summary(records)
    return {
        "schools_reporting": len(records),
        "total_enrollment": sum(to_int(r["indicators"]["current_enrollment"]) for r in records),
        "completion_rate_avg": summary["completion_rate_avg"],
        "employment_rate_avg": summary["employment_rate_avg"],
        "accredited_percentage": summary["accredited_percentage"],
    }


def wash_trend_metrics(records: List[Dict[str, Any]]) -> Dict[str, Any]:
    summary = wash_summary(records)
    return {
        "schools_reporting": len(records),
        "safe_water": summary["safe_drinking_water_percentage"],
        "sanitation": summary["adequate_sanitation_percentage"],
        "hygiene": summary["hygiene_education_percentage"],
        "handwashing": summary["handwashing_facilities_percentage"],
    }


@dataclass(frozen=True)
class Tracker:
    name: str
    label: str
    response_model: Any
    question_model: Any
    indicator_map: TrackerMap
    summarize: Callable[[List[Dict[str, Any]]], Dict[str, Any]]
    trend_metrics: Callable[[List[Dict[str, Any]]], Dict[str, Any]]

    def empty_summary(self) -> Dict[str, Any]:
        return self.summarize([])


REENTRY = Tracker(
    "reentry", "pregnancy/reentry", PregnancyTrackerResponse, PregnancyQuestion,
    REENTRY_MAP, reentry_summary, reentry_trend_metrics,
)
TVET = Tracker(
    "tvet", "TVET", TvetTrackerResponse, TvetQuestion,
    TVET_MAP, tvet_summary, tvet_trend_metrics,
)
WASH = Tracker(
    "wash", "WASH", WashTrackerResponse, WashQuestion,
    WASH_MAP, wash_summary, wash_trend_metrics,
)


# Decoding ------------------------------------------------------------------

def question_types(db: Session, tracker: Tracker) -> Dict[int, Optional[str]]:
    question = tracker.question_model
    rows = db.execute(
        select(question.id, question.question_type)
        .where(question.id.in_(tracker.indicator_map.question_ids))
    ).all()
    return {row.id: row.question_type for row in rows}


def build_records(
    db: Session,
    tracker: Tracker,
    rows: List[Any],
    types: Dict[int, Optional[str]],
) -> List[Dict[str, Any]]:
    """
    Group response rows into one record per school submission and map the
    decoded answers to the tracker's indicators.
    """
    submissions: "OrderedDict[tuple, List[Any]]" = OrderedDict()
    for row in rows:
        key = (row.school_id, row.year, row.term, row.week)
        submissions.setdefault(key, []).append(row)
    if not submissions:
        return []

    school_ids = {key[0] for key in submissions}
    schools = {
        school.id: school
        for school in db.query(School).filter(School.id.in_(school_ids)).all()
    }

    records = []
    for (school_id, year, term, week), answer_rows in submissions.items():
        answers = {}
        for row in answer_rows:
            answer = decode_answer(row, types.get(row.question_id))
            if answer is not None:
                answers[row.question_id] = answer

        school = schools.get(school_id)
        created = [row.created_at for row in answer_rows if row.created_at is not None]
        records.append({
            "id": max(row.id for row in answer_rows),
            "school_id": school_id,
            "school_name": school.name if school else None,
            "circuit_id": school.circuit_id if school else None,
            "district_id": school.district_id if school else None,
            "region_id": school.region_id if school else None,
            "period": PeriodKey(year, term).value,
            "year": year,
            "term": term,
            "week": week,
            "indicators": tracker.indicator_map.extract(answers),
            "created_at": max(created) if created else None,
        })
    return records


def school_records(
    db: Session,
    tracker: Tracker,
    period: Optional[PeriodKey],
    scope=None,
    types: Optional[Dict[int, Optional[str]]] = None,
) -> List[Dict[str, Any]]:
    """One record per school in scope, from its latest week in `period`."""
    if period is None:
        return []
    model = tracker.response_model
    stmt = (
        latest_rows_statement(model, period, scope)
        .where(model.question_id.in_(tracker.indicator_map.question_ids))
        .order_by(model.school_id, model.question_id)
    )
    rows = db.execute(stmt).scalars().all()
    if types is None:
        types = question_types(db, tracker)
    return build_records(db, tracker, rows, types)


def tracker_trend(
    db: Session,
    tracker: Tracker,
    view_by: str = VIEW_TERMS,
    limit: Optional[int] = None,
    scope=None,
    types: Optional[Dict[int, Optional[str]]] = None,
) -> Dict[str, Any]:
    if types is None:
        types = question_types(db, tracker)

    def metrics(rows):
        return tracker.trend_metrics(build_records(db, tracker, rows, types))

    trend = build_trend(
        db,
        tracker.response_model,
        metrics,
        view_by=view_by,
        limit=limit or settings.TREND_PERIOD_LIMIT,
        scope=scope,
    )
    trend["series"] = {
        metric: series(trend, metric)
        for metric in tracker.trend_metrics([]).keys()
    }
    return trend


def empty_tracker_trend(tracker: Tracker, view_by: str = VIEW_TERMS) -> Dict[str, Any]:
    trend = empty_trend(view_by)
    trend["series"] = {metric: [] for metric in tracker.trend_metrics([]).keys()}
    return trend


def available_levels() -> List[Dict[str, str]]:
    return [{"value": level.value, "label": label} for level, label in LEVEL_LABELS.items()]


def tracker_dashboard(
    db: Session,
    tracker: Tracker,
    period: Optional[str] = None,
    level: Optional[str] = None,
    level_id: Optional[str] = None,
    view_by: str = VIEW_TERMS,
    limit: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Full dashboard bundle for one tracker.

    Validation (period, level, levelId) happens before any section runs; the
    sections themselves degrade to empty defaults on failure.
    """
    hierarchy = HierarchyFilter.from_level(level, level_id)
    scope = school_scope(hierarchy)
    resolved = resolve_period(db, tracker.response_model, period=period)

    types = guarded(f"{tracker.name} question types", {}, question_types, tracker, db=db)
    records = guarded(f"{tracker.label} records", [], school_records, tracker, resolved, scope, types, db=db)
    summary = guarded(f"{tracker.label} summary", tracker.empty_summary(), tracker.summarize, records)
    summary["has_data"] = bool(records)
    summary["schools_reporting"] = len(records)

    return {
        "data": records,
        "summary": summary,
        "trends": guarded(
            "trends", empty_tracker_trend(tracker, view_by),
            tracker_trend, tracker, view_by, limit, scope, types, db=db,
        ),
        "availablePeriods": guarded(
            "availablePeriods", [], available_periods,
            tracker.response_model, scope, settings.AVAILABLE_PERIODS_LIMIT, db=db,
        ),
        "availableLevels": available_levels(),
        "level": hierarchy.level.value if hierarchy else (level or FilterLevel.SCHOOL.value),
        "levelId": hierarchy.entity_id if hierarchy else None,
        "period": resolved.as_dict() if resolved else None,
        "indicatorMapVersion": tracker.indicator_map.version,
        "total": len(records),
    }


# Hierarchy browsing -----------------------------------------------------------

# level -> (entity model, school column linking it, parent column)
HIERARCHY_LEVELS = {
    FilterLevel.REGION: (Region, School.region_id, None),
    FilterLevel.DISTRICT: (District, School.district_id, District.region_id),
    FilterLevel.CIRCUIT: (Circuit, School.circuit_id, Circuit.district_id),
    FilterLevel.SCHOOL: (School, School.id, School.circuit_id),
}


def entities_with_data(db: Session, tracker: Tracker, level: Optional[str], parent_id: Optional[int] = None) -> List[Dict]:
    """Entities at `level` with at least one tracker submission, optionally under `parent_id`."""
    try:
        filter_level = FilterLevel((level or FilterLevel.REGION.value).lower())
    except ValueError:
        raise HTTPException(status_code=400, detail={"success": False, "error": "Invalid level specified"})

    entity, school_column, parent_column = HIERARCHY_LEVELS[filter_level]
    responses = tracker.response_model

    query = db.query(entity.id, entity.name).distinct()
    if entity is School:
        query = query.join(responses, responses.school_id == School.id)
    else:
        query = (
            query.join(School, school_column == entity.id)
            .join(responses, responses.school_id == School.id)
        )
    if parent_id is not None and parent_column is not None:
        query = query.filter(parent_column == parent_id)

    return [{"id": row.id, "name": row.name} for row in query.order_by(entity.name).all()]


# Re-entry breakdown and national summary ----------------------------------------

# metric -> value read from a reentry_summary
REENTRY_METRICS = OrderedDict([
    ("in_school", lambda s: s["total_pregnant_attending"]),
    ("out_of_school", lambda s: s["total_pregnant_not_attending"]),
    ("returned", lambda s: s["total_dropped_out_returned"] + s["total_pregnant_returned"]),
    ("reentry_rate", lambda s: to_float(s["reentry_rate"])),
])

# groupBy -> (record key, entity model, parent model, parent id attribute, parent type)
BREAKDOWN_GROUPS = OrderedDict([
    (FilterLevel.SCHOOL, ("school_id", School, Circuit, "circuit_id", "circuit")),
    (FilterLevel.CIRCUIT, ("circuit_id", Circuit, District, "district_id", "district")),
    (FilterLevel.DISTRICT, ("district_id", District, Region, "region_id", "region")),
    (FilterLevel.REGION, ("region_id", Region, None, None, "country")),
])

NATIONAL_PARENT = {"id": None, "name": "Ghana", "type": "country"}


def _names(db: Session, model, ids) -> Dict[int, Any]:
    if not ids:
        return {}
    return {row.id: row for row in db.query(model).filter(model.id.in_(ids)).all()}


def reentry_breakdown(
    db: Session,
    metric: Optional[str],
    group_by: Optional[str] = None,
    period: Optional[str] = None,
) -> Dict[str, Any]:
    """
    One re-entry metric per school, circuit, district or region, from each
    school's latest week in the period, highest value first.
    """
    if not metric:
        raise HTTPException(status_code=400, detail={"success": False, "error": "Missing required parameter: metric"})
    if metric not in REENTRY_METRICS:
        raise HTTPException(
            status_code=400,
            detail={
                "success": False,
                "error": f"Invalid metric: {metric}. Valid options are: {', '.join(REENTRY_METRICS)}",
            }
        )
    try:
        level = FilterLevel((group_by or FilterLevel.SCHOOL.value).lower())
    except ValueError:
        options = ", ".join(option.value for option in BREAKDOWN_GROUPS)
        raise HTTPException(
            status_code=400,
            detail={"success": False, "error": f"Invalid groupBy: {group_by}. Valid options are: {options}"}
        )

    resolved = resolve_period(db, REENTRY.response_model, period=period)
    records = school_records(db, REENTRY, resolved)

    key, entity_model, parent_model, parent_attr, parent_type = BREAKDOWN_GROUPS[level]
    groups: "OrderedDict[int, List[Dict[str, Any]]]" = OrderedDict()
    for record in records:
        if record[key] is not None:
            groups.setdefault(record[key], []).append(record)

    entities = _names(db, entity_model, list(groups))
    parents = {}
    if parent_model is not None:
        parent_ids = {getattr(e, parent_attr) for e in entities.values()}
        parents = _names(db, parent_model, [i for i in parent_ids if i is not None])

    value_of = REENTRY_METRICS[metric]
    results = []
    for entity_id, group in groups.items():
        entity = entities.get(entity_id)
        if parent_model is None:
            parent = dict(NATIONAL_PARENT)
        else:
            parent_id = getattr(entity, parent_attr) if entity else None
            parent_row = parents.get(parent_id)
            parent = {"id": parent_id, "name": parent_row.name if parent_row else None, "type": parent_type}
        results.append({
            "id": entity_id,
            "name": entity.name if entity else None,
            "type": level.value,
            "parent": parent,
            "value": value_of(reentry_summary(group)),
            "schoolCount": len(group),
        })
    results.sort(key=lambda r: (-r["value"], r["name"] or ""))

    return {
        "metric": metric,
        "groupBy": level.value,
        "period": resolved.as_dict() if resolved else None,
        "results": results,
    }


def recent_reentry_submissions(records: List[Dict[str, Any]], limit: int) -> List[Dict[str, Any]]:
    latest = sorted(
        (r for r in records if r["created_at"] is not None),
        key=lambda r: r["created_at"],
        reverse=True,
    )[:limit]
    return [
        {
            "school_id": r["school_id"],
            "school_name": r["school_name"],
            "circuit_id": r["circuit_id"],
            "district_id": r["district_id"],
            "region_id": r["region_id"],
            "year": r["year"],
            "term": r["term"],
            "week": r["week"],
            "submission_date": r["created_at"].isoformat(),
            "in_school": to_int(r["indicators"]["pregnant_girls_attending"]),
            "out_of_school": to_int(r["indicators"]["pregnant_girls_not_attending"]),
            "returned": to_int(r["indicators"]["dropped_out_returned"])
            + to_int(r["indicators"]["pregnant_returned_after_birth"]),
        }
        for r in latest
    ]


# Terms shown on the national summary trend
NATIONAL_TREND_TERMS = 6


def reentry_national_summary(db: Session, period: Optional[str] = None) -> Dict[str, Any]:
    """Nationwide re-entry totals for a period, the recent term trend and the latest submissions."""
    resolved = resolve_period(db, REENTRY.response_model, period=period)
    records = guarded("national reentry records", [], school_records, REENTRY, resolved, db=db)
    summary = guarded("national reentry summary", REENTRY.empty_summary(), reentry_summary, records)
    summary["has_data"] = bool(records)

    return {
        "period": resolved.as_dict() if resolved else None,
        "summary": summary,
        "trends": guarded(
            "national reentry trends", empty_tracker_trend(REENTRY),
            tracker_trend, REENTRY, VIEW_TERMS, NATIONAL_TREND_TERMS, db=db,
        ),
        "recentSubmissions": recent_reentry_submissions(records, settings.LATEST_ITEMS_LIMIT),
    }
