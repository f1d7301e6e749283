"""
mSRC Reporting - Tracker dashboard routes

Re-entry (pregnancy), TVET and WASH dashboards. All three share the same
bundle: per-school indicators for the resolved period, summary, trend,
available periods and levels.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from msrc_reporting.db.database import get_db
from msrc_reporting.hierarchy.filters import HierarchyFilter, parse_int_id, school_scope
from msrc_reporting.reporting.assembler import server_error, success
from msrc_reporting.reporting.periods import parse_view_by
from msrc_reporting.trackers import service
from msrc_reporting.trackers.service import REENTRY, TVET, WASH

logger = logging.getLogger(__name__)

router = APIRouter()


def _limit(value: Optional[str]) -> Optional[int]:
    limit = parse_int_id(value, "limit")
    if limit == 0:
        raise HTTPException(status_code=400, detail={"success": False, "error": "Invalid limit format"})
    return limit


@router.get("/api/reentry-dashboard")
def get_reentry_dashboard(
    period: Optional[str] = Query(None, description="YEAR-TERM, e.g. 2024-2; defaults to the latest"),
    level: Optional[str] = Query(None, description="school, circuit, district or region"),
    level_id: Optional[str] = Query(None, alias="levelId"),
    view_by: Optional[str] = Query(None, alias="viewBy", description="terms or years"),
    limit: Optional[str] = Query(None, description="Number of trend periods"),
    db: Session = Depends(get_db)
):
    """Pregnancy and re-entry indicators per school, with summary and trend"""
    try:
        dashboard = service.tracker_dashboard(
            db, REENTRY, period=period, level=level, level_id=level_id,
            view_by=parse_view_by(view_by), limit=_limit(limit),
        )
        return success(**dashboard)
    except HTTPException:
        raise
    except Exception as e:
        raise server_error("Error fetching reentry dashboard", e, "Failed to fetch pregnancy/reentry data")


@router.get("/api/reentry/trends")
def get_reentry_trends(
    view_by: Optional[str] = Query(None, alias="viewBy"),
    limit: Optional[str] = Query(None),
    level: Optional[str] = Query(None),
    level_id: Optional[str] = Query(None, alias="levelId"),
    db: Session = Depends(get_db)
):
    try:
        scope = school_scope(HierarchyFilter.from_level(level, level_id))
        trend = service.tracker_trend(db, REENTRY, parse_view_by(view_by), _limit(limit), scope)
        return success(trends=trend)
    except HTTPException:
        raise
    except Exception as e:
        raise server_error("Error fetching reentry trends", e, "Failed to fetch pregnancy/reentry data")


@router.get("/api/reentry/breakdown")
def get_reentry_breakdown(
    metric: Optional[str] = Query(None, description="in_school, out_of_school, returned or reentry_rate"),
    group_by: Optional[str] = Query(None, alias="groupBy", description="school, circuit, district or region"),
    period: Optional[str] = Query(None, description="YEAR-TERM; defaults to the latest"),
    db: Session = Depends(get_db)
):
    """One re-entry metric per hierarchy entity, highest first"""
    try:
        return success(**service.reentry_breakdown(db, metric, group_by, period))
    except HTTPException:
        raise
    except Exception as e:
        raise server_error("Error fetching reentry breakdown", e, "Failed to fetch breakdown data")


@router.get("/api/reentry/national/summary")
def get_reentry_national_summary(
    period: Optional[str] = Query(None, description="YEAR-TERM; defaults to the latest"),
    db: Session = Depends(get_db)
):
    try:
        return success(**service.reentry_national_summary(db, period))
    except HTTPException:
        raise
    except Exception as e:
        raise server_error("Error fetching national reentry summary", e, "Failed to fetch national summary data")


@router.get("/api/tvet-dashboard")
def get_tvet_dashboard(
    period: Optional[str] = Query(None),
    level: Optional[str] = Query(None),
    level_id: Optional[str] = Query(None, alias="levelId"),
    view_by: Optional[str] = Query(None, alias="viewBy"),
    limit: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    try:
        dashboard = service.tracker_dashboard(
            db, TVET, period=period, level=level, level_id=level_id,
            view_by=parse_view_by(view_by), limit=_limit(limit),
        )
        return success(**dashboard)
    except HTTPException:
        raise
    except Exception as e:
        raise server_error("Error fetching TVET dashboard", e, "Failed to fetch TVET data")


@router.get("/api/tvet-dashboard/hierarchy")
def get_tvet_hierarchy(
    level: Optional[str] = Query(None, description="region, district, circuit or school"),
    parent_id: Optional[str] = Query(None, alias="parentId"),
    db: Session = Depends(get_db)
):
    """Entities at one level that have TVET submissions, for the filter dropdowns"""
    try:
        parent = parse_int_id(parent_id, "parentId")
        entities = service.entities_with_data(db, TVET, level, parent)
        return success(level=(level or "region").lower(), entities=entities)
    except HTTPException:
        raise
    except Exception as e:
        raise server_error("Error fetching TVET hierarchy", e, "Failed to fetch TVET hierarchy data")


@router.get("/api/wash-dashboard")
def get_wash_dashboard(
    period: Optional[str] = Query(None),
    level: Optional[str] = Query(None),
    level_id: Optional[str] = Query(None, alias="levelId"),
    view_by: Optional[str] = Query(None, alias="viewBy"),
    limit: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    try:
        dashboard = service.tracker_dashboard(
            db, WASH, period=period, level=level, level_id=level_id,
            view_by=parse_view_by(view_by), limit=_limit(limit),
        )
        return success(**dashboard)
    except HTTPException:
        raise
    except Exception as e:
        raise server_error("Error fetching WASH dashboard", e, "Failed to fetch WASH data")
