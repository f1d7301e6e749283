"""
mSRC Reporting - Right to Play routes

Itinerary analytics and overview, the historical trend of each outcome
indicator and its per-district breakdown. Analytics errors keep the
`{status, message}` envelope the RTP pages read.
"""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from msrc_reporting.core.config import settings
from msrc_reporting.db.database import get_db, get_session_factory, read_scope
from msrc_reporting.hierarchy.filters import parse_school_type
from msrc_reporting.reporting.assembler import server_error, success
from msrc_reporting.rtp import service
from msrc_reporting.rtp.service import DATA_SOURCES, VIEW_MODES, RtpFilter

logger = logging.getLogger(__name__)

router = APIRouter()


def rtp_error(status_code: int, message: str, details: Optional[str] = None) -> HTTPException:
    detail = {"status": "error", "message": message}
    if details is not None:
        detail["details"] = details
    return HTTPException(status_code=status_code, detail=detail)


def _rtp_int(value: Optional[str], label: str) -> Optional[int]:
    if value is None or value.strip() == "":
        return None
    if not value.strip().isdigit():
        raise rtp_error(400, f"Invalid {label} format")
    return int(value.strip())


def _rtp_date(value: Optional[str], label: str) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        raise rtp_error(400, f"Invalid {label}. Use YYYY-MM-DD")


def _choice(value: Optional[str], allowed, default: str, label: str) -> str:
    choice = (value or default).lower()
    if choice not in allowed:
        raise rtp_error(400, f"Invalid {label}. Must be one of: {', '.join(allowed)}")
    return choice


@router.get("/api/rtp/analytics")
def get_rtp_analytics(
    itinerary_id: Optional[str] = Query(None, alias="itineraryId"),
    school_type: Optional[str] = Query(None, alias="schoolType", description="all, galop or non-galop"),
    view_mode: Optional[str] = Query(None, alias="viewMode", description="combined or gender-disaggregated"),
    district_id: Optional[str] = Query(None, alias="districtId"),
    region_id: Optional[str] = Query(None, alias="regionId"),
    show_calculations: bool = Query(False, alias="showCalculations"),
    data_source: Optional[str] = Query(None, alias="dataSource", description="all, school, district, checklist or pip"),
    question_id: Optional[str] = Query(None, alias="questionId"),
    from_date: Optional[str] = Query(None, alias="fromDate", description="YYYY-MM-DD"),
    to_date: Optional[str] = Query(None, alias="toDate", description="YYYY-MM-DD"),
    db: Session = Depends(get_db)
):
    """
    Analytics bundle for one itinerary.

    All parameters are validated before the first query runs.
    """
    if not itinerary_id:
        raise rtp_error(400, "Missing required parameter: itineraryId")

    try:
        type_filter = parse_school_type(school_type)
    except HTTPException:
        raise rtp_error(400, "Invalid schoolType. Must be: all, galop, or non-galop")

    flt = RtpFilter(
        itinerary_id=_rtp_int(itinerary_id, "itineraryId"),
        school_type=type_filter,
        district_id=_rtp_int(district_id, "districtId"),
        region_id=_rtp_int(region_id, "regionId"),
        from_date=_rtp_date(from_date, "fromDate"),
        to_date=_rtp_date(to_date, "toDate"),
    )
    if flt.from_date and flt.to_date and flt.from_date > flt.to_date:
        raise rtp_error(400, "fromDate must not be after toDate")

    mode = _choice(view_mode, VIEW_MODES, service.VIEW_COMBINED, "viewMode")
    source = _choice(data_source, DATA_SOURCES, service.SOURCE_ALL, "dataSource")
    question = _rtp_int(question_id, "questionId")

    try:
        data = service.rtp_analytics(
            db, flt, view_mode=mode, data_source=source,
            question_id=question, show_calculations=show_calculations,
        )
        return {"status": "success", "data": data}
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("RTP analytics error: %s", e)
        raise rtp_error(500, "Failed to generate analytics", str(e))


@router.get("/api/rtp/historical-trend")
def get_rtp_historical_trend(
    indicator_type: Optional[str] = Query(None, alias="indicatorType"),
    limit: Optional[str] = Query(None, description="Number of itineraries, default 5"),
    session_factory=Depends(get_session_factory)
):
    """One outcome indicator across the most recent itineraries, oldest first"""
    if not indicator_type:
        raise HTTPException(
            status_code=400,
            detail={"success": False, "error": "indicatorType parameter is required"}
        )
    if limit and not limit.strip().isdigit():
        raise HTTPException(status_code=400, detail={"success": False, "error": "Invalid limit format"})
    count = int(limit) if limit else settings.TREND_PERIOD_LIMIT

    try:
        with read_scope(snapshot=settings.REPORT_READ_SNAPSHOT, session_factory=session_factory) as db:
            data = service.historical_trend(db, indicator_type, count)
        return success(indicatorType=indicator_type, data=data)
    except HTTPException:
        raise
    except Exception as e:
        raise server_error("RTP historical trend error", e, "Failed to fetch historical trend data")


def _itinerary_id(value: Optional[str]) -> int:
    if not value.strip().isdigit():
        raise HTTPException(status_code=400, detail={"success": False, "error": "Invalid itineraryId format"})
    return int(value.strip())


@router.get("/api/rtp/overview")
def get_rtp_overview(
    itinerary_id: Optional[str] = Query(None, alias="itineraryId"),
    db: Session = Depends(get_db)
):
    """Submission counts per RTP source and the share of schools complete across all three"""
    if not itinerary_id:
        raise HTTPException(status_code=400, detail={"success": False, "error": "Missing itineraryId"})
    itinerary = _itinerary_id(itinerary_id)

    try:
        return success(data={"stats": service.rtp_overview(db, itinerary)})
    except HTTPException:
        raise
    except Exception as e:
        raise server_error("RTP overview error", e, "Failed to fetch RTP overview")


@router.get("/api/rtp/district-breakdown")
def get_rtp_district_breakdown(
    itinerary_id: Optional[str] = Query(None, alias="itineraryId"),
    indicator_type: Optional[str] = Query(None, alias="indicatorType"),
    db: Session = Depends(get_db)
):
    """One outcome indicator for every district that submitted school surveys in the itinerary"""
    if not itinerary_id or not indicator_type:
        raise HTTPException(
            status_code=400,
            detail={"success": False, "error": "Missing required parameters: itineraryId and indicatorType"}
        )
    itinerary = _itinerary_id(itinerary_id)

    try:
        data = service.district_outcome_breakdown(db, itinerary, indicator_type)
        return success(indicatorType=indicator_type, data=data)
    except HTTPException:
        raise
    except Exception as e:
        raise server_error("RTP district breakdown error", e, "Failed to fetch district breakdown")
