"""
mSRC Reporting - Enrolment, attendance and dashboard statistics

Row-level aggregation for the fixed-column fact tables plus the landing
dashboard bundles (/api/dashboard/stats and /api/dashboard/user-stats).
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from fastapi import HTTPException
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from msrc_reporting.core.config import settings
from msrc_reporting.hierarchy.filters import (
    FilterLevel, HierarchyFilter, apply_school_scope, parse_int_id, school_scope
)
from msrc_reporting.hierarchy.models import (
    ActivityLog, Circuit, District, Region, School, User, UserLog
)
from msrc_reporting.reporting.assembler import guarded, row_dict
from msrc_reporting.reporting.calculations import round_to, safe_rate, to_float, to_int
from msrc_reporting.reporting.periods import PeriodKey, latest_rows_statement, resolve_period
from msrc_reporting.statistics.models import (
    SchoolEnrolmentTotal, SchoolStudentAttendanceTotal, TeacherAttendance, TermlyReport, WeeklyReport
)
from msrc_reporting.trackers.models import PregnancyTrackerResponse

logger = logging.getLogger(__name__)

# user-stats role -> hierarchy level of its entityId
ROLE_LEVELS = {
    "national": None,
    "regional": FilterLevel.REGION,
    "district": FilterLevel.DISTRICT,
    "school": FilterLevel.SCHOOL,
}

EMPTY_ENROLLMENT = {"total_boys": 0, "total_girls": 0, "total_enrollment": 0}
EMPTY_ATTENDANCE = {
    "total_enrolled": 0,
    "total_present": 0,
    "boys_present": 0,
    "girls_present": 0,
    "avg_boys_attendance": 0,
    "avg_girls_attendance": 0,
    "avg_attendance": 0,
}
EMPTY_TEACHER_SUMMARY = {
    "totalTeachers": 0,
    "totalDaysPresent": 0,
    "totalDaysPunctual": 0,
    "totalDaysAbsent": 0,
    "totalExercisesGiven": 0,
    "totalExercisesMarked": 0,
    "avgAttendanceRate": 0,
    "avgPunctualityRate": 0,
    "avgExerciseCompletionRate": 0,
}
EMPTY_FACILITATOR = {"avg_facilitator_attendance": 0, "avg_facilitator_punctuality": 0}


def _value(row: Any, key: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(key)
    return getattr(row, key, None)


def _boys(row) -> int:
    return to_int(_value(row, "normal_boys_total")) + to_int(_value(row, "special_boys_total"))


def _girls(row) -> int:
    return to_int(_value(row, "normal_girls_total")) + to_int(_value(row, "special_girls_total"))


def aggregate_enrollment(rows: Iterable[Any]) -> Dict[str, int]:
    """
    Sum boys and girls over the rows, normal plus special needs.

    The total is boys + girls rather than `total_population`, which some
    schools leave at 0.
    """
    total_boys = 0
    total_girls = 0
    for row in rows:
        total_boys += _boys(row)
        total_girls += _girls(row)
    return {
        "total_boys": total_boys,
        "total_girls": total_girls,
        "total_enrollment": total_boys + total_girls,
    }


def attendance_rate(row) -> float:
    """Learners present over total population, two decimals, 0 when unknown."""
    present = _boys(row) + _girls(row)
    return round_to(safe_rate(present, _value(row, "total_population")), 2)


def aggregate_attendance(rows: Iterable[Any], enrollment: Optional[Dict[str, int]] = None) -> Dict[str, Any]:
    """
    Present counts over the rows and the rates against enrolment.

    `enrollment` (from aggregate_enrollment) supplies the per-gender
    denominators; without it the rows' own total_population is used and the
    per-gender rates are 0. An empty denominator is treated as 1.
    """
    rows = list(rows)
    boys_present = sum(_boys(row) for row in rows)
    girls_present = sum(_girls(row) for row in rows)
    total_present = boys_present + girls_present

    if enrollment is not None:
        total_enrolled = enrollment["total_enrollment"]
        boys_enrolled = enrollment["total_boys"]
        girls_enrolled = enrollment["total_girls"]
    else:
        total_enrolled = sum(to_int(_value(row, "total_population")) for row in rows)
        boys_enrolled = girls_enrolled = 0

    return {
        "total_enrolled": total_enrolled,
        "total_present": total_present,
        "boys_present": boys_present,
        "girls_present": girls_present,
        "avg_boys_attendance": round_to(boys_present / (boys_enrolled or 1) * 100, 2) if boys_enrolled else 0,
        "avg_girls_attendance": round_to(girls_present / (girls_enrolled or 1) * 100, 2) if girls_enrolled else 0,
        "avg_attendance": round_to(total_present / (total_enrolled or 1) * 100, 2),
    }


def summarize_teacher_attendance(rows: Iterable[Any]) -> Dict[str, Any]:
    """
    Totals and per-teacher average rates for teacher attendance rows.

    Rates are averaged over rows (each row is one teacher-week), each row
    using a denominator of 1 where its own is missing.
    """
    rows = list(rows)
    if not rows:
        return dict(EMPTY_TEACHER_SUMMARY)

    count = len(rows)
    attendance = sum(
        to_float(_value(r, "days_present")) / (to_float(_value(r, "school_session_days")) or 1) for r in rows
    )
    punctuality = sum(
        to_float(_value(r, "days_punctual")) / (to_float(_value(r, "days_present")) or 1) for r in rows
    )
    exercises = sum(
        to_float(_value(r, "excises_marked")) / (to_float(_value(r, "excises_given")) or 1) for r in rows
    )
    return {
        "totalTeachers": count,
        "totalDaysPresent": sum(to_int(_value(r, "days_present")) for r in rows),
        "totalDaysPunctual": sum(to_int(_value(r, "days_punctual")) for r in rows),
        "totalDaysAbsent": sum(to_int(_value(r, "days_absent")) for r in rows),
        "totalExercisesGiven": sum(to_int(_value(r, "excises_given")) for r in rows),
        "totalExercisesMarked": sum(to_int(_value(r, "excises_marked")) for r in rows),
        "avgAttendanceRate": round_to(attendance / count * 100, 2),
        "avgPunctualityRate": round_to(punctuality / count * 100, 2),
        "avgExerciseCompletionRate": round_to(exercises / count * 100, 2),
    }


def period_rows(db: Session, model, period: Optional[PeriodKey], scope=None, week: Optional[int] = None) -> List:
    """
    Fact rows for a period: each school's latest week, or exactly `week`
    when one is requested.
    """
    if period is None:
        return []
    if week is None:
        return list(db.execute(latest_rows_statement(model, period, scope)).scalars().all())

    stmt = select(model).where(model.year == period.year, model.term == period.term, model.week_number == week)
    stmt = apply_school_scope(stmt, model.school_id, scope)
    return list(db.execute(stmt).scalars().all())


# Landing dashboard ---------------------------------------------------------

def hierarchy_counts(db: Session) -> Dict[str, int]:
    return {
        "regions": db.query(func.count(Region.id)).scalar() or 0,
        "districts": db.query(func.count(District.id)).scalar() or 0,
        "circuits": db.query(func.count(Circuit.id)).scalar() or 0,
        "schools": db.query(func.count(School.id)).filter(School.deleted_at.is_(None)).scalar() or 0,
    }


def _iso(value):
    return value.isoformat() if hasattr(value, "isoformat") else value


def latest_submissions(db: Session, limit: int) -> List[Dict[str, Any]]:
    """Most recent re-entry tracker submissions, one entry per school week."""
    model = PregnancyTrackerResponse
    submitted_at = func.max(model.created_at).label("submitted_at")
    rows = (
        db.query(
            model.school_id,
            School.name.label("school_name"),
            model.year,
            model.term,
            model.week,
            submitted_at,
        )
        .outerjoin(School, School.id == model.school_id)
        .group_by(model.school_id, School.name, model.year, model.term, model.week)
        .order_by(submitted_at.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "school_id": row.school_id,
            "school_name": row.school_name,
            "year": row.year,
            "term": row.term,
            "week": row.week,
            "submitted_at": _iso(row.submitted_at),
        }
        for row in rows
    ]


def activity_logs(db: Session, limit: int) -> List[Dict[str, Any]]:
    rows = (
        db.query(ActivityLog, User.name, User.role)
        .join(User, ActivityLog.user_id == User.id)
        .order_by(ActivityLog.created_at.desc())
        .limit(limit)
        .all()
    )
    logs = []
    for log, user_name, role in rows:
        entry = row_dict(log)
        entry["user_name"] = user_name
        entry["role"] = role
        logs.append(entry)
    return logs


def period_stats(db: Session, period: Optional[PeriodKey], scope=None) -> Dict[str, Any]:
    """Enrolment, attendance and facilitator figures for the resolved period."""
    enrollment_rows = period_rows(db, SchoolEnrolmentTotal, period, scope)
    attendance_rows = period_rows(db, SchoolStudentAttendanceTotal, period, scope)
    teacher_rows = period_rows(db, TeacherAttendance, period, scope)

    enrollment = aggregate_enrollment(enrollment_rows)
    teachers = summarize_teacher_attendance(teacher_rows)
    return {
        "period": period.as_dict() if period else None,
        "has_data": bool(enrollment_rows or attendance_rows or teacher_rows),
        "schools_reporting": len({row.school_id for row in enrollment_rows}),
        "enrollment": enrollment,
        "attendance": aggregate_attendance(attendance_rows, enrollment),
        "facilitator": {
            "avg_facilitator_attendance": teachers["avgAttendanceRate"],
            "avg_facilitator_punctuality": teachers["avgPunctualityRate"],
        },
    }


def empty_period_stats() -> Dict[str, Any]:
    return {
        "period": None,
        "has_data": False,
        "schools_reporting": 0,
        "enrollment": dict(EMPTY_ENROLLMENT),
        "attendance": dict(EMPTY_ATTENDANCE),
        "facilitator": dict(EMPTY_FACILITATOR),
    }


def dashboard_stats(db: Session, year: Optional[str] = None, term: Optional[str] = None) -> Dict[str, Any]:
    period = resolve_period(db, SchoolEnrolmentTotal, year=year, term=term)
    limit = settings.LATEST_ITEMS_LIMIT
    return {
        "counts": guarded(
            "counts", {"regions": 0, "districts": 0, "circuits": 0, "schools": 0}, hierarchy_counts, db=db
        ),
        "latestSubmissions": guarded("latestSubmissions", [], latest_submissions, limit, db=db),
        "activityLogs": guarded("activityLogs", [], activity_logs, limit, db=db),
        "stats": guarded("stats", empty_period_stats(), period_stats, period, db=db),
    }


# Role-scoped dashboard ------------------------------------------------------

def role_filter(role: Optional[str], entity_id: Optional[str]) -> Optional[HierarchyFilter]:
    if role not in ROLE_LEVELS:
        raise HTTPException(status_code=400, detail={"success": False, "error": "Invalid user role"})
    level = ROLE_LEVELS[role]
    if level is None:
        return None
    hierarchy = HierarchyFilter.from_level(level.value, entity_id)
    if hierarchy is None:
        raise HTTPException(
            status_code=400,
            detail={"success": False, "error": f"entityId is required for the {role} role"}
        )
    return hierarchy


def _scoped(query, school_column, hierarchy: Optional[HierarchyFilter]):
    if hierarchy is None:
        return query
    return query.join(School, School.id == school_column).filter(hierarchy.school_condition())


def _average(value) -> Optional[float]:
    return round_to(value, 2) if value is not None else None


def weekly_stats(db: Session, hierarchy: Optional[HierarchyFilter]) -> Dict[str, Any]:
    query = db.query(
        func.count(WeeklyReport.id).label("total_submissions"),
        func.sum(WeeklyReport.boys_enrollment).label("total_boys"),
        func.sum(WeeklyReport.girls_enrollment).label("total_girls"),
        func.avg(WeeklyReport.boys_attendance_rate).label("avg_boys_attendance"),
        func.avg(WeeklyReport.girls_attendance_rate).label("avg_girls_attendance"),
        func.avg(WeeklyReport.facilitator_attendance_rate).label("avg_facilitator_attendance"),
    )
    row = _scoped(query, WeeklyReport.school_id, hierarchy).one()
    total_boys = to_int(row.total_boys)
    total_girls = to_int(row.total_girls)
    return {
        "total_submissions": to_int(row.total_submissions),
        "total_boys": total_boys,
        "total_girls": total_girls,
        "total_enrollment": total_boys + total_girls,
        "avg_boys_attendance": _average(row.avg_boys_attendance),
        "avg_girls_attendance": _average(row.avg_girls_attendance),
        "avg_facilitator_attendance": _average(row.avg_facilitator_attendance),
    }


def termly_stats(db: Session, hierarchy: Optional[HierarchyFilter]) -> Dict[str, Any]:
    query = db.query(
        func.count(TermlyReport.id).label("total_submissions"),
        func.avg(TermlyReport.school_management_score).label("avg_management_score"),
        func.avg(TermlyReport.school_grounds_score).label("avg_grounds_score"),
        func.avg(TermlyReport.community_involvement_score).label("avg_community_score"),
    )
    row = _scoped(query, TermlyReport.school_id, hierarchy).one()
    return {
        "total_submissions": to_int(row.total_submissions),
        "avg_management_score": _average(row.avg_management_score),
        "avg_grounds_score": _average(row.avg_grounds_score),
        "avg_community_score": _average(row.avg_community_score),
    }


def recent_activities(db: Session, role: str, hierarchy: Optional[HierarchyFilter], limit: int = 5) -> List[Dict]:
    query = (
        db.query(UserLog, User.name, User.role)
        .join(User, UserLog.user_id == User.id)
    )
    if hierarchy is not None:
        query = query.filter(UserLog.scope == role, UserLog.entity_id == hierarchy.entity_id)
    rows = query.order_by(UserLog.created_at.desc()).limit(limit).all()

    activities = []
    for log, user_name, user_role in rows:
        entry = row_dict(log)
        entry["user_name"] = user_name
        entry["role"] = user_role
        activities.append(entry)
    return activities


def user_stats(db: Session, user_id: Optional[str], role: Optional[str], entity_id: Optional[str]) -> Dict[str, Any]:
    if not user_id or not role:
        raise HTTPException(
            status_code=400,
            detail={"success": False, "error": "User ID and role are required"}
        )
    hierarchy = role_filter(role, entity_id)

    empty_weekly = {
        "total_submissions": 0, "total_boys": 0, "total_girls": 0, "total_enrollment": 0,
        "avg_boys_attendance": None, "avg_girls_attendance": None, "avg_facilitator_attendance": None,
    }
    empty_termly = {
        "total_submissions": 0, "avg_management_score": None,
        "avg_grounds_score": None, "avg_community_score": None,
    }
    return {
        "weekly": guarded("weekly", empty_weekly, weekly_stats, hierarchy, db=db),
        "termly": guarded("termly", empty_termly, termly_stats, hierarchy, db=db),
        "activities": guarded("activities", [], recent_activities, role, hierarchy, db=db),
    }


def teacher_attendance_report(rows: List[Any]) -> Dict[str, Any]:
    return {
        "summary": summarize_teacher_attendance(rows),
        "details": [row_dict(row) for row in rows],
    }


def student_attendance_records(rows: List[Any]) -> List[Dict[str, Any]]:
    records = []
    for row in rows:
        record = row_dict(row)
        record["attendance_rate"] = attendance_rate(row)
        records.append(record)
    return records


# Entity pages --------------------------------------------------------------------

# level -> (entity model, label, child counts shown on its page)
ENTITY_LEVELS = {
    FilterLevel.DISTRICT: (District, "District", ("circuits", "schools")),
    FilterLevel.CIRCUIT: (Circuit, "Circuit", ("schools",)),
    FilterLevel.SCHOOL: (School, "School", ()),
}


def child_counts(db: Session, hierarchy: HierarchyFilter, children) -> Dict[str, int]:
    counts = {}
    if "circuits" in children:
        counts["circuitCount"] = to_int(
            db.query(func.count(Circuit.id)).filter(Circuit.district_id == hierarchy.entity_id).scalar()
        )
    if "schools" in children:
        counts["schoolCount"] = to_int(
            db.query(func.count(School.id))
            .filter(School.deleted_at.is_(None), hierarchy.school_condition())
            .scalar()
        )
    return counts


def entity_stats(
    db: Session,
    level: FilterLevel,
    entity_id: Optional[str],
    year: Optional[str] = None,
    term: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Enrolment, attendance and facilitator figures rolled up over one district,
    circuit or school, from each school's latest week in the period.
    """
    model, label, children = ENTITY_LEVELS[level]
    parsed_id = parse_int_id(entity_id, f"{label.lower()} ID")
    if parsed_id is None:
        raise HTTPException(status_code=400, detail={"success": False, "error": f"{label} ID is required"})
    hierarchy = HierarchyFilter(level, parsed_id)
    entity = db.get(model, parsed_id)
    if entity is None:
        raise HTTPException(status_code=404, detail={"success": False, "error": f"{label} not found"})

    period = resolve_period(db, SchoolEnrolmentTotal, year=year, term=term)
    scope = school_scope(hierarchy)
    statistics = guarded(f"{label} statistics", empty_period_stats(), period_stats, period, scope, db=db)
    statistics.update(guarded(f"{label} counts", {}, child_counts, hierarchy, children, db=db))
    return {
        level.value: row_dict(entity),
        "statistics": statistics,
    }
