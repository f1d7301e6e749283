from datetime import datetime

from msrc_reporting.hierarchy.models import ActivityLog, User, UserLog
from msrc_reporting.statistics import service
from msrc_reporting.statistics.models import (
    SchoolEnrolmentTotal, SchoolStudentAttendanceTotal, TeacherAttendance, WeeklyReport
)


def headcount(model, school_id, week, boys, girls, special_boys=0, special_girls=0, year=2024, term=1):
    return model(
        school_id=school_id,
        year=year,
        term=term,
        week_number=week,
        normal_boys_total=boys,
        normal_girls_total=girls,
        special_boys_total=special_boys,
        special_girls_total=special_girls,
        total_population=boys + girls + special_boys + special_girls,
    )


def seed_statistics(db):
    db.add_all([
        headcount(SchoolEnrolmentTotal, 1, 1, 9, 7),
        headcount(SchoolEnrolmentTotal, 1, 2, 10, 8, special_boys=2, special_girls=1),
        headcount(SchoolEnrolmentTotal, 3, 1, 5, 5),
        headcount(SchoolStudentAttendanceTotal, 1, 2, 6, 4, special_girls=1),
        TeacherAttendance(
            teacher_id=1, school_id=1, year=2024, term=1, week_number=2, school_session_days=5,
            days_present=4, days_punctual=3, days_absent=1, excises_given=10, excises_marked=5,
        ),
        TeacherAttendance(
            teacher_id=2, school_id=1, year=2024, term=1, week_number=2, school_session_days=5,
            days_present=5, days_punctual=5, days_absent=0, excises_given=4, excises_marked=4,
        ),
    ])
    db.commit()


def test_enrolment_aggregate_for_one_school(client, hierarchy):
    seed_statistics(hierarchy)

    response = client.get("/api/statistics/enrolment", params={"schoolId": 1, "aggregate": "true"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"] == {"total_boys": 12, "total_girls": 9, "total_enrollment": 21}
    assert body["period"]["value"] == "2024-1"
    assert body["schools_reporting"] == 1


def test_enrolment_rows_for_region(client, hierarchy):
    seed_statistics(hierarchy)

    response = client.get("/api/statistics/enrolment", params={"regionId": 1, "year": 2024, "term": 1})

    rows = response.json()["data"]
    assert [row["school_id"] for row in rows] == [1]
    assert rows[0]["week_number"] == 2


def test_enrolment_for_exact_week(client, hierarchy):
    seed_statistics(hierarchy)

    response = client.get("/api/statistics/enrolment", params={"weekNumber": 1, "aggregate": "true"})

    assert response.json()["data"]["total_enrollment"] == 26


def test_enrolment_for_year_without_term_stays_in_that_year(client, hierarchy):
    db = hierarchy
    db.add_all([
        headcount(SchoolEnrolmentTotal, 1, 4, 5, 5, year=2023, term=3),
        headcount(SchoolEnrolmentTotal, 1, 1, 50, 50, year=2024, term=2),
    ])
    db.commit()

    body = client.get("/api/statistics/enrolment", params={"year": 2023, "aggregate": "true"}).json()

    assert body["period"]["value"] == "2023-3"
    assert body["data"]["total_boys"] == 5


def test_enrolment_without_data(client, hierarchy):
    response = client.get("/api/statistics/enrolment", params={"aggregate": "true"})

    body = response.json()
    assert body["data"] is None
    assert body["has_data"] is False


def test_invalid_school_id_is_rejected(client, hierarchy):
    response = client.get("/api/statistics/enrolment", params={"schoolId": "abc"})

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid schoolId format"}


def test_student_attendance_rate_per_row(client, hierarchy):
    seed_statistics(hierarchy)

    response = client.get("/api/statistics/student-attendance", params={"schoolId": 1})

    rows = response.json()["data"]
    assert len(rows) == 1
    assert rows[0]["attendance_rate"] == 100.0


def test_teacher_attendance_summary(client, hierarchy):
    seed_statistics(hierarchy)

    response = client.get("/api/statistics/teacher-attendance", params={"schoolId": 1})

    data = response.json()["data"]
    assert data["summary"]["totalTeachers"] == 2
    assert data["summary"]["totalDaysPresent"] == 9
    assert len(data["details"]) == 2
    assert data["has_data"] is True


def test_submission_periods(client, hierarchy):
    seed_statistics(hierarchy)

    response = client.get("/api/statistics/periods")

    assert response.json()["periods"] == [{"year": 2024, "terms": [{"term": 1, "weeks": [1, 2]}]}]


def test_dashboard_stats(client, hierarchy):
    db = hierarchy
    seed_statistics(db)
    db.add_all([
        User(id=1, name="Esi Asante", role="national"),
        ActivityLog(user_id=1, action="login", description="Signed in", created_at=datetime(2024, 3, 4, 8, 0)),
    ])
    db.commit()

    response = client.get("/api/dashboard/stats")

    assert response.status_code == 200
    body = response.json()
    assert body["counts"] == {"regions": 2, "districts": 2, "circuits": 2, "schools": 3}
    assert body["activityLogs"][0]["user_name"] == "Esi Asante"
    assert body["latestSubmissions"] == []
    stats = body["stats"]
    assert stats["enrollment"]["total_enrollment"] == 31
    assert stats["attendance"]["total_present"] == 11
    assert stats["schools_reporting"] == 2


def test_user_stats_rejects_unknown_role(client, hierarchy):
    response = client.get("/api/dashboard/user-stats", params={"userId": 1, "role": "admin"})

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid user role"}


def test_user_stats_requires_user_and_role(client, hierarchy):
    response = client.get("/api/dashboard/user-stats", params={"role": "national"})

    assert response.status_code == 400
    assert response.json()["error"] == "User ID and role are required"


def test_user_stats_scoped_to_district(client, hierarchy):
    db = hierarchy
    db.add_all([
        User(id=7, name="District Officer", role="district"),
        WeeklyReport(school_id=1, boys_enrollment=10, girls_enrollment=12, boys_attendance_rate=80.0),
        WeeklyReport(school_id=3, boys_enrollment=50, girls_enrollment=50),
        UserLog(user_id=7, scope="district", entity_id=1, action="submitted weekly report"),
        UserLog(user_id=7, scope="district", entity_id=2, action="viewed dashboard"),
    ])
    db.commit()

    response = client.get(
        "/api/dashboard/user-stats", params={"userId": 7, "role": "district", "entityId": 1}
    )

    stats = response.json()["stats"]
    assert stats["weekly"]["total_submissions"] == 1
    assert stats["weekly"]["total_enrollment"] == 22
    assert stats["weekly"]["avg_boys_attendance"] == 80.0
    assert stats["termly"]["total_submissions"] == 0
    assert [a["action"] for a in stats["activities"]] == ["submitted weekly report"]


def test_unexpected_enrolment_failure_returns_error_details(client, hierarchy, monkeypatch):
    def fail(*args, **kwargs):
        raise RuntimeError("relation does not exist")

    monkeypatch.setattr(service, "period_rows", fail)

    response = client.get("/api/statistics/enrolment")

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "error": "Failed to fetch enrolment data",
        "details": "relation does not exist",
    }


def test_district_stats(client, hierarchy):
    seed_statistics(hierarchy)

    response = client.get("/api/districts/1/stats")

    assert response.status_code == 200
    body = response.json()
    assert body["district"]["name"] == "Accra Metro"
    statistics = body["statistics"]
    assert statistics["period"]["value"] == "2024-1"
    assert statistics["enrollment"]["total_enrollment"] == 21
    assert statistics["attendance"]["total_present"] == 11
    assert statistics["schools_reporting"] == 1
    assert (statistics["circuitCount"], statistics["schoolCount"]) == (1, 2)


def test_circuit_and_school_stats(client, hierarchy):
    seed_statistics(hierarchy)

    circuit = client.get("/api/circuits/2/stats").json()
    school = client.get("/api/schools/3/stats", params={"year": 2024, "term": 1}).json()

    assert circuit["circuit"]["name"] == "Asokwa Circuit"
    assert circuit["statistics"]["schoolCount"] == 1
    assert "circuitCount" not in circuit["statistics"]
    assert school["school"]["name"] == "Asokwa Basic"
    assert school["statistics"]["enrollment"] == {"total_boys": 5, "total_girls": 5, "total_enrollment": 10}
    assert "schoolCount" not in school["statistics"]


def test_entity_stats_unknown_or_invalid_id(client, hierarchy):
    unknown = client.get("/api/districts/9/stats")
    invalid = client.get("/api/schools/abc/stats")

    assert unknown.status_code == 404
    assert unknown.json() == {"success": False, "error": "District not found"}
    assert invalid.status_code == 400
    assert invalid.json() == {"success": False, "error": "Invalid school ID format"}
