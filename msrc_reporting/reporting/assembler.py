"""
mSRC Reporting - Report assembly

A report is several independent sections. A failure inside one section is
logged and replaced by that section's documented default; only validation
errors (400) and failures outside the sections (500) end the request.
"""

import copy
import logging
from typing import Any, Callable, Dict, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from msrc_reporting.db.database import restart_read

logger = logging.getLogger(__name__)


def guarded(name: str, default: Any, fn: Callable[..., Any], *args, db: Optional[Session] = None, **kwargs) -> Any:
    """
    Run one report section. On error, log it and return a fresh copy of
    `default`. When a session is given it is rolled back so the next section
    starts from a usable connection at the isolation level of its read scope.
    """
    try:
        if db is not None:
            return fn(db, *args, **kwargs)
        return fn(*args, **kwargs)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Report section %s failed; using default", name)
        if db is not None:
            restart_read(db)
        return copy.deepcopy(default)


def row_dict(obj) -> Dict[str, Any]:
    """Column values of an ORM row."""
    return {column.name: getattr(obj, column.key) for column in obj.__table__.columns}


def success(**payload) -> Dict[str, Any]:
    body = {"success": True}
    body.update(payload)
    return body


def server_error(context: str, exc: Exception, error: Optional[str] = None) -> HTTPException:
    """Log an unexpected failure and build the 500 the route re-raises."""
    logger.exception("%s: %s", context, exc)
    detail = {"success": False, "error": error or str(exc)}
    if error:
        detail["details"] = str(exc)
    return HTTPException(status_code=500, detail=detail)
