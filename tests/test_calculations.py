from decimal import Decimal
from types import SimpleNamespace

from msrc_reporting.reporting.answers import (
    MultipleChoice, Numeric, SingleChoice, Text, as_number, as_text, decode_answer, is_affirmative
)
from msrc_reporting.reporting.calculations import (
    average, gender_gap, gender_triple, js_round, percentage, safe_rate, to_fixed, to_int
)
from msrc_reporting.rtp.indicators import DISTRICT_OUTPUT_MAP, SCHOOL_OUTPUT_MAP
from msrc_reporting.statistics.service import aggregate_attendance, aggregate_enrollment
from msrc_reporting.trackers.indicators import TVET_MAP


def answer_row(**values):
    row = {
        "question_id": 1,
        "numeric_response": None,
        "text_response": None,
        "single_choice_response": None,
        "multiple_choice_response": None,
    }
    row.update(values)
    return SimpleNamespace(**row)


def test_to_fixed_matches_javascript():
    assert to_fixed(1 / 3 * 100) == "33.3"
    assert to_fixed(0.25) == "0.3"
    assert to_fixed(2.5, 0) == "3"
    # 1.005 is stored just below the half
    assert to_fixed(1.005, 2) == "1.00"
    assert to_fixed(-0.04) == "0.0"
    assert to_fixed(None) == "0.0"


def test_percentage_of_empty_total_is_zero():
    assert percentage(1, 3) == "33.3"
    assert percentage(5, 0) == "0.0"
    assert safe_rate(5, None) == 0


def test_js_round_halves_go_up():
    assert js_round(2.5) == 3
    assert js_round(-2.5) == -2
    assert js_round(None) == 0


def test_to_int_coerces_sql_sums():
    assert to_int(None) == 0
    assert to_int(Decimal("7.9")) == 7
    assert to_int("12 pupils") == 12
    assert to_int("n/a") == 0
    assert to_int(float("nan")) == 0


def test_gender_triple_total_is_male_plus_female():
    assert gender_triple(None, "3") == {"total": 3, "male": 0, "female": 3}
    assert gender_triple(Decimal("4"), 6) == {"total": 10, "male": 4, "female": 6}


def test_gender_gap_without_males_has_zero_percentage():
    assert gender_gap(0, 5) == {"male": 0, "female": 5, "gap": 5, "gapPercentage": 0}
    assert gender_gap(10, 12)["gapPercentage"] == 20.0
    assert "gapPercentage" not in gender_gap(3, 1, with_percentage=False)


def test_average():
    assert average([]) == 0
    assert average([1, 2], 1) == 1.5


def test_enrollment_adds_special_needs_learners():
    rows = [{"normal_boys_total": 10, "special_boys_total": 2, "normal_girls_total": 8, "special_girls_total": 1}]
    assert aggregate_enrollment(rows) == {"total_boys": 12, "total_girls": 9, "total_enrollment": 21}


def test_attendance_rates_against_enrollment():
    enrollment = {"total_boys": 12, "total_girls": 9, "total_enrollment": 21}
    rows = [{"normal_boys_total": 6, "special_boys_total": 0, "normal_girls_total": 4, "special_girls_total": 1}]
    stats = aggregate_attendance(rows, enrollment)
    assert stats["total_present"] == 11
    assert stats["avg_boys_attendance"] == 50.0
    assert stats["avg_girls_attendance"] == 55.56
    assert stats["avg_attendance"] == 52.38


def test_attendance_without_enrollment_uses_population():
    rows = [{"normal_boys_total": 5, "normal_girls_total": 5, "total_population": 0}]
    stats = aggregate_attendance(rows)
    assert stats["avg_attendance"] == 1000.0
    assert stats["avg_boys_attendance"] == 0


def test_decode_answer_by_question_type():
    assert decode_answer(answer_row(numeric_response=4.0), "numeric") == Numeric(4.0)
    assert decode_answer(answer_row(text_response="Clubs"), "text") == Text("Clubs")
    assert decode_answer(answer_row(single_choice_response="Yes"), "single_choice") == SingleChoice("Yes")
    assert decode_answer(
        answer_row(multiple_choice_response='["Welding", "Catering"]'), "multiple_choice"
    ) == MultipleChoice(("Welding", "Catering"))
    assert decode_answer(answer_row(), "numeric") is None


def test_decode_answer_falls_back_to_populated_column():
    answer = decode_answer(answer_row(multiple_choice_response="Welding, Catering"), None)
    assert answer == MultipleChoice(("Welding", "Catering"))


def test_answer_coercions():
    assert as_number(Numeric(3.0)) == 3
    assert isinstance(as_number(Numeric(3.0)), int)
    assert as_number(Text("2.5")) == 2.5
    assert as_text(Numeric(12.0)) == "12"
    assert is_affirmative(SingleChoice(" YES "))
    assert is_affirmative(Numeric(1))
    assert not is_affirmative(Text("no"))


def test_sum_map_null_sums_count_as_zero():
    indicators = DISTRICT_OUTPUT_MAP.build({"q_110": None, "q_111": "5", "q_109": 2})
    assert indicators["planningAttendees"] == {"total": 5, "male": 0, "female": 5}
    assert indicators["planningMeetings"] == 2
    assert SCHOOL_OUTPUT_MAP.empty()["teacherChampions"] == {"total": 0, "male": 0, "female": 0}


def test_tracker_map_defaults_for_unanswered_questions():
    indicators = TVET_MAP.extract({3: Numeric(40.0)})
    assert indicators["current_enrollment"] == 40
    assert indicators["accreditation_status"] == "Not Accredited"
    assert indicators["workshops_available"] is False
    assert indicators["programs_offered"] == []
