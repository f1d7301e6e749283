import pytest
from fastapi import HTTPException

from msrc_reporting.hierarchy.filters import FilterLevel, HierarchyFilter, school_scope
from msrc_reporting.reporting.periods import (
    VIEW_YEARS, PeriodKey, latest_rows, parse_period, recent_periods, resolve_period
)
from msrc_reporting.reporting.trends import build_trend, series
from msrc_reporting.statistics.models import SchoolEnrolmentTotal


def enrolment(school_id, year, term, week, boys=10, girls=8):
    return SchoolEnrolmentTotal(
        school_id=school_id,
        year=year,
        term=term,
        week_number=week,
        normal_boys_total=boys,
        normal_girls_total=girls,
        special_boys_total=0,
        special_girls_total=0,
        total_population=boys + girls,
    )


def test_latest_rows_keep_each_schools_highest_week(hierarchy):
    db = hierarchy
    db.add_all([
        enrolment(1, 2024, 1, 1),
        enrolment(1, 2024, 1, 3, boys=12),
        enrolment(1, 2024, 1, 2),
        enrolment(2, 2024, 1, 1),
        enrolment(3, 2023, 3, 5),
    ])
    db.commit()

    rows = latest_rows(db, SchoolEnrolmentTotal, PeriodKey(2024, 1))

    by_school = {row.school_id: row for row in rows}
    assert sorted(by_school) == [1, 2]
    assert by_school[1].week_number == 3
    assert by_school[1].normal_boys_total == 12


def test_latest_rows_respect_scope(hierarchy):
    db = hierarchy
    db.add_all([enrolment(1, 2024, 1, 1), enrolment(3, 2024, 1, 2)])
    db.commit()

    scope = school_scope(HierarchyFilter(FilterLevel.REGION, 2))
    rows = latest_rows(db, SchoolEnrolmentTotal, PeriodKey(2024, 1), scope)

    assert [row.school_id for row in rows] == [3]


def test_resolve_period_defaults_to_latest(hierarchy):
    db = hierarchy
    db.add_all([enrolment(1, 2023, 3, 2), enrolment(1, 2024, 2, 1)])
    db.commit()

    assert resolve_period(db, SchoolEnrolmentTotal) == PeriodKey(2024, 2)
    assert resolve_period(db, SchoolEnrolmentTotal, period="2023-3") == PeriodKey(2023, 3)
    assert resolve_period(db, SchoolEnrolmentTotal, year="2023", term="1") == PeriodKey(2023, 1)


def test_resolve_period_with_only_year_or_term(hierarchy):
    db = hierarchy
    db.add_all([enrolment(1, 2023, 2, 1), enrolment(1, 2023, 3, 2), enrolment(1, 2024, 2, 1)])
    db.commit()

    assert resolve_period(db, SchoolEnrolmentTotal, year="2023") == PeriodKey(2023, 3)
    assert resolve_period(db, SchoolEnrolmentTotal, year="2020") == PeriodKey(2020, 1)
    assert resolve_period(db, SchoolEnrolmentTotal, term="3") == PeriodKey(2023, 3)
    assert resolve_period(db, SchoolEnrolmentTotal, term="1") is None
    with pytest.raises(HTTPException) as exc:
        resolve_period(db, SchoolEnrolmentTotal, year="twenty")
    assert exc.value.status_code == 400


def test_parse_period_rejects_garbage():
    assert parse_period("2024-T2") == PeriodKey(2024, 2)
    with pytest.raises(HTTPException) as exc:
        parse_period("last term")
    assert exc.value.status_code == 400


def test_trend_runs_oldest_to_newest(hierarchy):
    db = hierarchy
    periods = [(2023, 1), (2023, 2), (2023, 3), (2024, 1), (2024, 2)]
    for index, (year, term) in enumerate(periods):
        db.add(enrolment(1, year, term, 4, boys=index))
    db.commit()

    assert recent_periods(db, SchoolEnrolmentTotal, limit=5)[0] == PeriodKey(2024, 2)

    trend = build_trend(
        db, SchoolEnrolmentTotal,
        metrics=lambda rows: {"boys": sum(row.normal_boys_total for row in rows)},
        limit=5,
    )

    assert trend["period_labels"][0] == "2023 T1"
    assert trend["period_labels"][4] == "2024 T2"
    assert series(trend, "boys") == [0, 1, 2, 3, 4]


def test_trend_by_year_uses_latest_term_snapshot(hierarchy):
    db = hierarchy
    db.add_all([
        enrolment(1, 2023, 1, 9, boys=1),
        enrolment(1, 2023, 3, 2, boys=7),
        enrolment(1, 2024, 1, 1, boys=5),
    ])
    db.commit()

    trend = build_trend(
        db, SchoolEnrolmentTotal,
        metrics=lambda rows: {"boys": sum(row.normal_boys_total for row in rows)},
        view_by=VIEW_YEARS,
    )

    assert trend["period_labels"] == ["2023", "2024"]
    assert series(trend, "boys") == [7, 5]


def test_trend_without_data_is_empty(db):
    trend = build_trend(db, SchoolEnrolmentTotal, metrics=lambda rows: {})
    assert trend["points"] == []
