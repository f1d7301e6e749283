from datetime import datetime

from msrc_reporting.trackers.models import (
    PregnancyQuestion, PregnancyTrackerResponse, TvetQuestion, TvetTrackerResponse
)


def pregnancy_answers(school_id, year, term, week, answers, day=1):
    rows = []
    for question_id, value in answers.items():
        column = "text_response" if isinstance(value, str) else "numeric_response"
        rows.append(PregnancyTrackerResponse(
            school_id=school_id, year=year, term=term, week=week, question_id=question_id,
            created_at=datetime(year, 3, day, 10, 0), **{column: value}
        ))
    return rows


def seed_reentry(db):
    db.add_all([
        PregnancyQuestion(id=1, question="Pregnant girls attending school", question_type="numeric"),
        PregnancyQuestion(id=2, question="Pregnant girls not attending school", question_type="numeric"),
        PregnancyQuestion(id=3, question="Girls who dropped out and returned", question_type="numeric"),
        PregnancyQuestion(id=4, question="Girls who returned after giving birth", question_type="numeric"),
        PregnancyQuestion(id=5, question="Support activities", question_type="text"),
        PregnancyQuestion(id=6, question="Follow-up activities", question_type="text"),
    ])
    db.add_all(pregnancy_answers(1, 2024, 1, 1, {1: 9, 2: 9}, day=1))
    db.add_all(pregnancy_answers(1, 2024, 1, 2, {1: 3, 2: 2, 3: 1, 4: 1, 5: "Counselling"}, day=8))
    db.add_all(pregnancy_answers(2, 2024, 1, 1, {1: 1, 2: 1, 3: 3, 4: 0}, day=2))
    db.add_all(pregnancy_answers(1, 2023, 3, 4, {2: 4, 3: 1}, day=5))
    db.commit()


def seed_tvet(db):
    db.add_all([
        TvetQuestion(id=1, question="Programs offered", question_type="multiple_choice"),
        TvetQuestion(id=3, question="Current enrollment", question_type="numeric"),
        TvetQuestion(id=4, question="Workshops available", question_type="single_choice"),
        TvetQuestion(id=9, question="Completion rate", question_type="numeric"),
        TvetQuestion(id=10, question="Employment rate", question_type="numeric"),
        TvetQuestion(id=17, question="Accreditation status", question_type="text"),
    ])
    answers = [
        (1, 1, {"multiple_choice_response": '["Welding", "Catering"]'}),
        (1, 3, {"numeric_response": 40}),
        (1, 4, {"single_choice_response": "Yes"}),
        (1, 9, {"numeric_response": 80}),
        (1, 10, {"numeric_response": 60}),
        (1, 17, {"text_response": "Accredited"}),
        (3, 3, {"numeric_response": 21}),
        (3, 9, {"numeric_response": 70}),
        (3, 10, {"numeric_response": 50}),
    ]
    db.add_all([
        TvetTrackerResponse(school_id=school_id, year=2024, term=2, week=3, question_id=question_id, **value)
        for school_id, question_id, value in answers
    ])
    db.commit()


def test_reentry_dashboard_uses_latest_week(client, hierarchy):
    seed_reentry(hierarchy)

    response = client.get("/api/reentry-dashboard")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["period"]["value"] == "2024-1"
    assert [record["school_id"] for record in body["data"]] == [1, 2]

    osu = body["data"][0]
    assert osu["week"] == 2
    assert osu["school_name"] == "Osu Primary"
    assert osu["indicators"]["pregnant_girls_attending"] == 3
    assert osu["indicators"]["support_activities"] == "Counselling"
    assert osu["indicators"]["followup_activities"] == ""

    summary = body["summary"]
    assert summary["total_schools"] == 2
    assert summary["total_pregnant_attending"] == 4
    assert summary["total_pregnant_not_attending"] == 3
    assert summary["total_dropped_out_returned"] == 4
    assert summary["reentry_rate"] == "57.1"
    assert summary["has_data"] is True
    assert body["indicatorMapVersion"] == "reentry-2024.1"


def test_reentry_dashboard_trend_and_periods(client, hierarchy):
    seed_reentry(hierarchy)

    body = client.get("/api/reentry-dashboard").json()

    assert body["trends"]["period_labels"] == ["2023 T3", "2024 T1"]
    assert body["trends"]["series"]["reentry_rate"] == ["20.0", "57.1"]
    assert [p["value"] for p in body["availablePeriods"]] == ["2024-1", "2023-3"]
    assert [level["value"] for level in body["availableLevels"]] == ["school", "circuit", "district", "region"]


def test_reentry_dashboard_for_one_school_and_period(client, hierarchy):
    seed_reentry(hierarchy)

    body = client.get(
        "/api/reentry-dashboard", params={"period": "2023-3", "level": "school", "levelId": 1}
    ).json()

    assert body["level"] == "school"
    assert body["levelId"] == 1
    assert body["summary"]["total_schools"] == 1
    assert body["summary"]["reentry_rate"] == "20.0"


def test_reentry_dashboard_rejects_bad_period(client, hierarchy):
    response = client.get("/api/reentry-dashboard", params={"period": "term two"})

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_reentry_trends_by_year(client, hierarchy):
    seed_reentry(hierarchy)

    body = client.get("/api/reentry/trends", params={"viewBy": "years"}).json()

    assert body["trends"]["period_labels"] == ["2023", "2024"]
    assert body["trends"]["series"]["schools_reporting"] == [1, 2]


def test_reentry_trends_rejects_bad_view(client, hierarchy):
    response = client.get("/api/reentry/trends", params={"viewBy": "weeks"})

    assert response.status_code == 400


def test_tvet_dashboard_summary(client, hierarchy):
    seed_tvet(hierarchy)

    body = client.get("/api/tvet-dashboard").json()

    summary = body["summary"]
    assert summary["total_institutions"] == 2
    assert summary["average_enrollment"] == "31"
    assert summary["completion_rate_avg"] == "75.0"
    assert summary["employment_rate_avg"] == "55.0"
    assert summary["accredited_percentage"] == "50.0"

    indicators = body["data"][0]["indicators"]
    assert indicators["programs_offered"] == ["Welding", "Catering"]
    assert indicators["workshops_available"] is True
    assert body["data"][1]["indicators"]["accreditation_status"] == "Not Accredited"


def test_tvet_hierarchy_lists_entities_with_data(client, hierarchy):
    seed_tvet(hierarchy)

    regions = client.get("/api/tvet-dashboard/hierarchy").json()
    districts = client.get("/api/tvet-dashboard/hierarchy", params={"level": "district", "parentId": 1}).json()

    assert regions["level"] == "region"
    assert [entity["name"] for entity in regions["entities"]] == ["Ashanti", "Greater Accra"]
    assert districts["entities"] == [{"id": 1, "name": "Accra Metro"}]


def test_tvet_hierarchy_rejects_unknown_level(client, hierarchy):
    response = client.get("/api/tvet-dashboard/hierarchy", params={"level": "planet"})

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid level specified"}


def test_wash_dashboard_without_data(client, hierarchy):
    body = client.get("/api/wash-dashboard").json()

    assert body["data"] == []
    assert body["period"] is None
    assert body["summary"]["total_schools"] == 0
    assert body["summary"]["safe_drinking_water_percentage"] == "0.0"
    assert body["summary"]["has_data"] is False
    assert body["trends"]["points"] == []
    assert body["trends"]["series"]["safe_water"] == []


def test_reentry_breakdown_by_school(client, hierarchy):
    seed_reentry(hierarchy)

    body = client.get("/api/reentry/breakdown", params={"metric": "reentry_rate"}).json()

    assert body["success"] is True
    assert body["groupBy"] == "school"
    assert body["period"]["value"] == "2024-1"
    results = body["results"]
    assert [(r["id"], r["value"]) for r in results] == [(2, 75.0), (1, 33.3)]
    assert results[0]["name"] == "Labone JHS"
    assert results[0]["parent"] == {"id": 1, "name": "Osu Circuit", "type": "circuit"}
    assert results[0]["schoolCount"] == 1


def test_reentry_breakdown_rolls_up_to_district_and_region(client, hierarchy):
    seed_reentry(hierarchy)

    district = client.get(
        "/api/reentry/breakdown", params={"metric": "reentry_rate", "groupBy": "district"}
    ).json()["results"]
    region = client.get(
        "/api/reentry/breakdown", params={"metric": "returned", "groupBy": "region"}
    ).json()["results"]

    assert district == [{
        "id": 1,
        "name": "Accra Metro",
        "type": "district",
        "parent": {"id": 1, "name": "Greater Accra", "type": "region"},
        "value": 57.1,
        "schoolCount": 2,
    }]
    assert region[0]["value"] == 5
    assert region[0]["parent"] == {"id": None, "name": "Ghana", "type": "country"}


def test_reentry_breakdown_rejects_bad_parameters(client, hierarchy):
    missing = client.get("/api/reentry/breakdown")
    bad_metric = client.get("/api/reentry/breakdown", params={"metric": "births"})
    bad_group = client.get("/api/reentry/breakdown", params={"metric": "in_school", "groupBy": "zone"})

    assert missing.status_code == 400
    assert missing.json() == {"success": False, "error": "Missing required parameter: metric"}
    assert bad_metric.json()["error"] == (
        "Invalid metric: births. Valid options are: in_school, out_of_school, returned, reentry_rate"
    )
    assert bad_group.status_code == 400
    assert bad_group.json()["error"] == "Invalid groupBy: zone. Valid options are: school, circuit, district, region"


def test_reentry_national_summary(client, hierarchy):
    seed_reentry(hierarchy)

    body = client.get("/api/reentry/national/summary").json()

    assert body["success"] is True
    assert body["period"]["value"] == "2024-1"
    assert body["summary"]["total_schools"] == 2
    assert body["summary"]["reentry_rate"] == "57.1"
    assert body["summary"]["has_data"] is True
    assert body["trends"]["series"]["reentry_rate"] == ["20.0", "57.1"]

    recent = body["recentSubmissions"]
    assert [r["school_id"] for r in recent] == [1, 2]
    assert (recent[0]["in_school"], recent[0]["out_of_school"], recent[0]["returned"]) == (3, 2, 2)


def test_reentry_national_summary_without_data(client, hierarchy):
    body = client.get("/api/reentry/national/summary").json()

    assert body["period"] is None
    assert body["summary"]["has_data"] is False
    assert body["recentSubmissions"] == []
