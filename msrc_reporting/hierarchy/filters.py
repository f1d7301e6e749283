"""
mSRC Reporting - Hierarchy Filters

Query-fragment composition for the region > district > circuit > school
cascade. Exactly one level is active at a time; the statement builders only
ever bind ids as parameters.
"""

import enum
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import select, or_

from msrc_reporting.hierarchy.models import School


class FilterLevel(str, enum.Enum):
    SCHOOL = "school"
    CIRCUIT = "circuit"
    DISTRICT = "district"
    REGION = "region"


class SchoolType(str, enum.Enum):
    ALL = "all"
    GALOP = "galop"
    NON_GALOP = "non-galop"


# Most specific first: when several ids arrive, the narrowest one wins
CASCADE = (FilterLevel.SCHOOL, FilterLevel.CIRCUIT, FilterLevel.DISTRICT, FilterLevel.REGION)

SCHOOL_COLUMNS = {
    FilterLevel.SCHOOL: School.id,
    FilterLevel.CIRCUIT: School.circuit_id,
    FilterLevel.DISTRICT: School.district_id,
    FilterLevel.REGION: School.region_id,
}


def parse_int_id(value: Optional[str], label: str) -> Optional[int]:
    if value is None or str(value).strip() == "":
        return None
    raw = str(value).strip()
    if not raw.isdigit():
        raise HTTPException(
            status_code=400,
            detail={"success": False, "error": f"Invalid {label} format"}
        )
    return int(raw)


@dataclass(frozen=True)
class HierarchyFilter:
    level: FilterLevel
    entity_id: int

    @classmethod
    def from_level(cls, level: Optional[str], level_id: Optional[str]) -> Optional["HierarchyFilter"]:
        """Build from `level` + `levelId` query parameters; no id means no filter."""
        entity_id = parse_int_id(level_id, "levelId")
        if entity_id is None:
            return None
        try:
            filter_level = FilterLevel((level or FilterLevel.SCHOOL.value).lower())
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail={"success": False, "error": f"Invalid level: {level}"}
            )
        return cls(filter_level, entity_id)

    @classmethod
    def from_params(
        cls,
        school_id: Optional[str] = None,
        circuit_id: Optional[str] = None,
        district_id: Optional[str] = None,
        region_id: Optional[str] = None,
    ) -> Optional["HierarchyFilter"]:
        """Build from separate id parameters, keeping only the most specific one."""
        values = {
            FilterLevel.SCHOOL: parse_int_id(school_id, "schoolId"),
            FilterLevel.CIRCUIT: parse_int_id(circuit_id, "circuitId"),
            FilterLevel.DISTRICT: parse_int_id(district_id, "districtId"),
            FilterLevel.REGION: parse_int_id(region_id, "regionId"),
        }
        for level in CASCADE:
            if values[level] is not None:
                return cls(level, values[level])
        return None

    def school_condition(self):
        return SCHOOL_COLUMNS[self.level] == self.entity_id


def parse_school_type(value: Optional[str]) -> SchoolType:
    if not value:
        return SchoolType.ALL
    try:
        return SchoolType(value.lower())
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail={"success": False, "error": "Invalid schoolType. Must be: all, galop, or non-galop"}
        )


def school_scope(
    hierarchy: Optional[HierarchyFilter] = None,
    school_type: SchoolType = SchoolType.ALL,
):
    """
    Subquery of school ids matching the filter, or None when nothing restricts
    the scope. Fact queries apply it as `school_id IN (...)`.
    """
    conditions = []
    if hierarchy is not None:
        conditions.append(hierarchy.school_condition())
    if school_type == SchoolType.GALOP:
        conditions.append(School.is_galop == True)
    elif school_type == SchoolType.NON_GALOP:
        conditions.append(or_(School.is_galop == False, School.is_galop.is_(None)))
    if not conditions:
        return None
    return select(School.id).where(*conditions)


def apply_school_scope(stmt, school_column, scope):
    if scope is None:
        return stmt
    return stmt.where(school_column.in_(scope))
