"""
mSRC Reporting - Dashboard and statistics API routes

Landing dashboard, role-scoped user dashboard, the district/circuit/school
stats pages and the enrolment and attendance statistics they read.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from msrc_reporting.db.database import get_db
from msrc_reporting.hierarchy.filters import FilterLevel, HierarchyFilter, parse_int_id, school_scope
from msrc_reporting.reporting.assembler import row_dict, server_error, success
from msrc_reporting.reporting.periods import period_tree, resolve_period
from msrc_reporting.statistics import service
from msrc_reporting.statistics.models import (
    SchoolEnrolmentTotal, SchoolStudentAttendanceTotal, TeacherAttendance
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _statistics_scope(school_id, circuit_id, district_id, region_id):
    return school_scope(HierarchyFilter.from_params(school_id, circuit_id, district_id, region_id))


@router.get("/api/dashboard/stats")
def get_dashboard_stats(
    term: Optional[str] = Query(None, description="Term number; defaults to the latest with data"),
    year: Optional[str] = Query(None, description="Year; defaults to the latest with data"),
    db: Session = Depends(get_db)
):
    """Hierarchy counts, latest submissions, activity and period statistics"""
    try:
        return success(**service.dashboard_stats(db, year=year, term=term))
    except HTTPException:
        raise
    except Exception as e:
        raise server_error("Dashboard stats error", e)


@router.get("/api/dashboard/user-stats")
def get_user_stats(
    user_id: Optional[str] = Query(None, alias="userId"),
    role: Optional[str] = Query(None, description="national, regional, district or school"),
    entity_id: Optional[str] = Query(None, alias="entityId", description="Region, district or school ID"),
    db: Session = Depends(get_db)
):
    try:
        return success(stats=service.user_stats(db, user_id, role, entity_id))
    except HTTPException:
        raise
    except Exception as e:
        raise server_error("User dashboard stats error", e)


@router.get("/api/statistics/periods")
def get_submission_periods(
    school_id: Optional[str] = Query(None, alias="schoolId"),
    circuit_id: Optional[str] = Query(None, alias="circuitId"),
    district_id: Optional[str] = Query(None, alias="districtId"),
    region_id: Optional[str] = Query(None, alias="regionId"),
    db: Session = Depends(get_db)
):
    """Submission weeks grouped by year and term, from the enrolment totals"""
    try:
        scope = _statistics_scope(school_id, circuit_id, district_id, region_id)
        return success(periods=period_tree(db, SchoolEnrolmentTotal, scope))
    except HTTPException:
        raise
    except Exception as e:
        raise server_error("Error fetching submission periods", e, "Failed to fetch submission periods")


@router.get("/api/statistics/enrolment")
def get_enrolment(
    school_id: Optional[str] = Query(None, alias="schoolId"),
    circuit_id: Optional[str] = Query(None, alias="circuitId"),
    district_id: Optional[str] = Query(None, alias="districtId"),
    region_id: Optional[str] = Query(None, alias="regionId"),
    year: Optional[str] = Query(None),
    term: Optional[str] = Query(None),
    week_number: Optional[str] = Query(None, alias="weekNumber"),
    aggregate: bool = Query(False, description="Sum over the schools in scope"),
    db: Session = Depends(get_db)
):
    """
    Enrolment totals for the period.

    Without `aggregate` the latest week of each school in scope is returned
    (or exactly `weekNumber`); with it the same rows are summed by gender.
    """
    try:
        scope = _statistics_scope(school_id, circuit_id, district_id, region_id)
        week = parse_int_id(week_number, "weekNumber")
        period = resolve_period(db, SchoolEnrolmentTotal, year=year, term=term)
        rows = service.period_rows(db, SchoolEnrolmentTotal, period, scope, week)

        if aggregate:
            data = service.aggregate_enrollment(rows) if rows else None
        else:
            data = [row_dict(row) for row in rows]
        return success(
            data=data,
            period=period.as_dict() if period else None,
            has_data=bool(rows),
            schools_reporting=len({row.school_id for row in rows}),
        )
    except HTTPException:
        raise
    except Exception as e:
        raise server_error("Error fetching enrolment data", e, "Failed to fetch enrolment data")


@router.get("/api/statistics/student-attendance")
def get_student_attendance(
    school_id: Optional[str] = Query(None, alias="schoolId"),
    circuit_id: Optional[str] = Query(None, alias="circuitId"),
    district_id: Optional[str] = Query(None, alias="districtId"),
    region_id: Optional[str] = Query(None, alias="regionId"),
    year: Optional[str] = Query(None),
    term: Optional[str] = Query(None),
    week_number: Optional[str] = Query(None, alias="weekNumber"),
    aggregate: bool = Query(False),
    db: Session = Depends(get_db)
):
    try:
        scope = _statistics_scope(school_id, circuit_id, district_id, region_id)
        week = parse_int_id(week_number, "weekNumber")
        period = resolve_period(db, SchoolStudentAttendanceTotal, year=year, term=term)
        rows = service.period_rows(db, SchoolStudentAttendanceTotal, period, scope, week)

        if aggregate:
            data = service.aggregate_attendance(rows) if rows else None
        else:
            data = service.student_attendance_records(rows)
        return success(
            data=data,
            period=period.as_dict() if period else None,
            has_data=bool(rows),
            schools_reporting=len({row.school_id for row in rows}),
        )
    except HTTPException:
        raise
    except Exception as e:
        raise server_error(
            "Error fetching student attendance data", e, "Failed to fetch student attendance data"
        )


@router.get("/api/statistics/teacher-attendance")
def get_teacher_attendance(
    school_id: Optional[str] = Query(None, alias="schoolId"),
    circuit_id: Optional[str] = Query(None, alias="circuitId"),
    district_id: Optional[str] = Query(None, alias="districtId"),
    region_id: Optional[str] = Query(None, alias="regionId"),
    year: Optional[str] = Query(None),
    term: Optional[str] = Query(None),
    week_number: Optional[str] = Query(None, alias="weekNumber"),
    db: Session = Depends(get_db)
):
    """Teacher attendance summary and the per-teacher rows behind it"""
    try:
        scope = _statistics_scope(school_id, circuit_id, district_id, region_id)
        week = parse_int_id(week_number, "weekNumber")
        period = resolve_period(db, TeacherAttendance, year=year, term=term)
        rows = service.period_rows(db, TeacherAttendance, period, scope, week)

        data = service.teacher_attendance_report(rows)
        data["period"] = period.as_dict() if period else None
        data["has_data"] = bool(rows)
        return success(data=data)
    except HTTPException:
        raise
    except Exception as e:
        raise server_error(
            "Error fetching teacher attendance data", e, "Failed to fetch teacher attendance data"
        )


def _entity_stats(db: Session, level: FilterLevel, entity_id: str, year: Optional[str], term: Optional[str]):
    label = level.value
    try:
        return success(**service.entity_stats(db, level, entity_id, year=year, term=term))
    except HTTPException:
        raise
    except Exception as e:
        raise server_error(f"Error in {label} stats", e, f"Failed to fetch {label} statistics")


@router.get("/api/districts/{district_id}/stats")
def get_district_stats(
    district_id: str,
    year: Optional[str] = Query(None),
    term: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    """District details, circuit and school counts and rolled-up period statistics"""
    return _entity_stats(db, FilterLevel.DISTRICT, district_id, year, term)


@router.get("/api/circuits/{circuit_id}/stats")
def get_circuit_stats(
    circuit_id: str,
    year: Optional[str] = Query(None),
    term: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    return _entity_stats(db, FilterLevel.CIRCUIT, circuit_id, year, term)


@router.get("/api/schools/{school_id}/stats")
def get_school_stats(
    school_id: str,
    year: Optional[str] = Query(None),
    term: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    return _entity_stats(db, FilterLevel.SCHOOL, school_id, year, term)
