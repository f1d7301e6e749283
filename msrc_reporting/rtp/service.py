"""
mSRC Reporting - Right to Play analytics

Builds the itinerary dashboard: summary, school and district output
indicators, outcome indicators, trends over previous itineraries, school type
and district submission breakdowns and the gender analysis. Each section runs
under `guarded`, so a failing query degrades that section only.
"""

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, case, distinct, func, or_
from sqlalchemy.orm import Session

from msrc_reporting.core.config import settings
from msrc_reporting.hierarchy.filters import SchoolType
from msrc_reporting.hierarchy.models import District, Region, School, Teacher
from msrc_reporting.reporting.assembler import guarded
from msrc_reporting.reporting.calculations import (
    gender_gap, gender_triple, js_round, percentage, round_to, safe_rate, to_fixed, to_float, to_int
)
from msrc_reporting.reporting.trends import series, trend_from_rows
from msrc_reporting.rtp.indicators import (
    BY_DISTRICT_INDICATORS, DEVELOPMENT_PLAN_QUESTION, DISTRICT_OUTPUT_MAP,
    IMPLEMENTATION_PLAN_QUESTION, LEARNING_ENVIRONMENT_WEIGHTS, LESSON_PLAN_QUESTION,
    LTP_SCORE_THRESHOLD, PIP_MAX_SCORE, SCHOOL_OUTPUT_MAP, TEACHERS_TRAINED_MAP, TRAINED_INDICATORS,
)
from msrc_reporting.rtp.models import (
    ChecklistAnswer, ChecklistResponse, DistrictResponse, DistrictResponseAnswer,
    Itinerary, PipResponse, Question, SchoolResponse, SchoolResponseAnswer,
)

logger = logging.getLogger(__name__)

VIEW_COMBINED = "combined"
VIEW_GENDER = "gender-disaggregated"
VIEW_MODES = (VIEW_COMBINED, VIEW_GENDER)

SOURCE_ALL = "all"
SOURCE_SCHOOL = "school"
SOURCE_DISTRICT = "district"
SOURCE_CHECKLIST = "checklist"
SOURCE_PIP = "pip"
DATA_SOURCES = (SOURCE_ALL, SOURCE_SCHOOL, SOURCE_DISTRICT, SOURCE_CHECKLIST, SOURCE_PIP)

# Answer tables a questionBreakdown can read
ANSWER_SOURCES = {
    SOURCE_SCHOOL: (SchoolResponseAnswer, SchoolResponse),
    SOURCE_DISTRICT: (DistrictResponseAnswer, DistrictResponse),
    SOURCE_CHECKLIST: (ChecklistAnswer, ChecklistResponse),
}


@dataclass(frozen=True)
class RtpFilter:
    itinerary_id: int
    school_type: SchoolType = SchoolType.ALL
    district_id: Optional[int] = None
    region_id: Optional[int] = None
    from_date: Optional[date] = None
    to_date: Optional[date] = None

    def for_itinerary(self, itinerary_id: int) -> "RtpFilter":
        """Same school filters for another itinerary; the date window only applies to this one."""
        if itinerary_id == self.itinerary_id:
            return self
        return replace(self, itinerary_id=itinerary_id, from_date=None, to_date=None)

    def submission_conditions(self, response) -> list:
        """Live submissions of the itinerary, inside the date window (both ends inclusive)."""
        conditions = [response.itinerary_id == self.itinerary_id, response.deleted_at.is_(None)]
        if self.from_date:
            conditions.append(response.submitted_at >= datetime.combine(self.from_date, time.min))
        if self.to_date:
            conditions.append(response.submitted_at < datetime.combine(self.to_date + timedelta(days=1), time.min))
        return conditions

    def school_conditions(self) -> list:
        conditions = []
        if self.school_type == SchoolType.GALOP:
            conditions.append(School.is_galop == True)
        elif self.school_type == SchoolType.NON_GALOP:
            conditions.append(or_(School.is_galop == False, School.is_galop.is_(None)))
        if self.district_id is not None:
            conditions.append(School.district_id == self.district_id)
        if self.region_id is not None:
            conditions.append(School.region_id == self.region_id)
        return conditions

    def district_conditions(self) -> list:
        conditions = []
        if self.district_id is not None:
            conditions.append(District.id == self.district_id)
        if self.region_id is not None:
            conditions.append(District.region_id == self.region_id)
        return conditions


def _school_answers(db: Session, flt: RtpFilter, columns, question_ids):
    return (
        db.query(*columns)
        .select_from(SchoolResponseAnswer)
        .join(SchoolResponse, SchoolResponseAnswer.response_id == SchoolResponse.id)
        .join(School, SchoolResponse.school_id == School.id)
        .filter(*flt.submission_conditions(SchoolResponse), *flt.school_conditions())
        .filter(SchoolResponseAnswer.question_id.in_(question_ids))
    )


def _school_responses(db: Session, flt: RtpFilter, *columns):
    return (
        db.query(*columns)
        .select_from(SchoolResponse)
        .join(School, SchoolResponse.school_id == School.id)
        .filter(*flt.submission_conditions(SchoolResponse), *flt.school_conditions())
    )


def _answer_sums(answer_model, indicator_map):
    return indicator_map.columns(answer_model.question_id, answer_model.answer_value)


def _is_yes(column):
    return func.lower(func.trim(column)) == "yes"


def _is_gender(gender: str):
    return func.lower(Teacher.gender) == gender


# Summary -------------------------------------------------------------------

def participating_schools(db: Session, flt: RtpFilter) -> int:
    return to_int(_school_responses(db, flt, func.count(distinct(SchoolResponse.school_id))).scalar())


def potential_schools(db: Session, flt: RtpFilter) -> int:
    """Schools that could have reported under the same school filters."""
    return to_int(
        db.query(func.count(School.id))
        .filter(School.deleted_at.is_(None), *flt.school_conditions())
        .scalar()
    )


def teachers_trained(db: Session, flt: RtpFilter) -> Dict[str, int]:
    row = _school_answers(
        db, flt, _answer_sums(SchoolResponseAnswer, TEACHERS_TRAINED_MAP), TEACHERS_TRAINED_MAP.question_ids
    ).one()
    return TEACHERS_TRAINED_MAP.build(row)["totalTeachersTrained"]


def summary_data(db: Session, flt: RtpFilter) -> Dict[str, Any]:
    total_schools = participating_schools(db, flt)
    # Avoid division by zero
    total_potential = potential_schools(db, flt) or 1
    districts = _school_responses(db, flt, func.count(distinct(School.district_id))).scalar()
    return {
        "totalSchools": total_schools,
        "responseRate": js_round(total_schools / total_potential * 100),
        "participatingDistricts": to_int(districts),
        "totalTeachersTrained": teachers_trained(db, flt),
        "totalPotentialSchools": total_potential,
        "has_data": total_schools > 0,
        "schools_reporting": total_schools,
    }


def empty_summary() -> Dict[str, Any]:
    return {
        "totalSchools": 0,
        "responseRate": 0,
        "participatingDistricts": 0,
        "totalTeachersTrained": gender_triple(0, 0),
        "totalPotentialSchools": 0,
        "has_data": False,
        "schools_reporting": 0,
    }


# Output indicators ---------------------------------------------------------

def district_breakdown(db: Session, flt: RtpFilter) -> Dict[str, List[Dict[str, Any]]]:
    """Per-district gender triples for the indicators shown broken down by district."""
    columns = [
        District.id.label("district_id"),
        District.name.label("district"),
        *_answer_sums(SchoolResponseAnswer, SCHOOL_OUTPUT_MAP),
    ]
    rows = (
        _school_answers(db, flt, columns, SCHOOL_OUTPUT_MAP.question_ids)
        .join(District, School.district_id == District.id)
        .group_by(District.id, District.name)
        .order_by(District.name.asc())
        .all()
    )
    breakdown = {name: [] for name in BY_DISTRICT_INDICATORS}
    for row in rows:
        indicators = SCHOOL_OUTPUT_MAP.build(row)
        for name in BY_DISTRICT_INDICATORS:
            entry = {"district_id": row.district_id, "district": row.district}
            entry.update(indicators[name])
            breakdown[name].append(entry)
    return breakdown


def school_output_indicators(db: Session, flt: RtpFilter, view_mode: str = VIEW_COMBINED) -> Dict[str, Any]:
    row = _school_answers(
        db, flt, _answer_sums(SchoolResponseAnswer, SCHOOL_OUTPUT_MAP), SCHOOL_OUTPUT_MAP.question_ids
    ).one()
    outputs = SCHOOL_OUTPUT_MAP.build(row)
    if view_mode == VIEW_GENDER:
        breakdown = district_breakdown(db, flt)
        for name in BY_DISTRICT_INDICATORS:
            outputs[name]["byDistrict"] = breakdown[name]
    return outputs


def district_output_indicators(db: Session, flt: RtpFilter) -> Dict[str, Any]:
    row = (
        db.query(*_answer_sums(DistrictResponseAnswer, DISTRICT_OUTPUT_MAP))
        .select_from(DistrictResponseAnswer)
        .join(DistrictResponse, DistrictResponseAnswer.response_id == DistrictResponse.id)
        .join(District, DistrictResponse.district_id == District.id)
        .filter(*flt.submission_conditions(DistrictResponse), *flt.district_conditions())
        .filter(DistrictResponseAnswer.question_id.in_(DISTRICT_OUTPUT_MAP.question_ids))
        .one()
    )
    return DISTRICT_OUTPUT_MAP.build(row)


# Outcome indicators --------------------------------------------------------

def _checklist_answers(db: Session, flt: RtpFilter, question_id: int, *columns):
    return (
        db.query(*columns)
        .select_from(ChecklistAnswer)
        .join(ChecklistResponse, ChecklistAnswer.response_id == ChecklistResponse.id)
        .join(School, ChecklistResponse.school_id == School.id)
        .filter(ChecklistAnswer.question_id == question_id)
        .filter(*flt.submission_conditions(ChecklistResponse), *flt.school_conditions())
    )


def _pip_responses(db: Session, flt: RtpFilter, *columns):
    return (
        db.query(*columns)
        .select_from(PipResponse)
        .join(School, PipResponse.school_id == School.id)
        .filter(*flt.submission_conditions(PipResponse), *flt.school_conditions())
    )


def _rate(part, whole) -> int:
    return js_round(safe_rate(part, whole))


def _score_percentage(average_score) -> int:
    return js_round(to_float(average_score) / PIP_MAX_SCORE * 100)


def empty_outcomes() -> Dict[str, Any]:
    return {
        "schoolsWithImplementationPlans": 0,
        "schoolsWithLTPDevPlans": 0,
        "teachersWithLTPLessonPlans": {"total": 0, "male": 0, "female": 0},
        "learningEnvironmentsWithLTPMethods": 0,
        "teachersWithLTPSkills": {"total": 0, "male": 0, "female": 0},
        "calculationDetails": {},
    }


def checklist_outcomes(db: Session, flt: RtpFilter) -> Dict[str, Any]:
    """Implementation, development and lesson plan rates from the consolidated checklist."""
    plans = _checklist_answers(
        db, flt, IMPLEMENTATION_PLAN_QUESTION,
        func.count(distinct(ChecklistResponse.school_id)).label("total_schools"),
        func.sum(case((_is_yes(ChecklistAnswer.answer_value), 1), else_=0)).label("schools_with_plans"),
    ).one()
    dev_plans = _checklist_answers(
        db, flt, DEVELOPMENT_PLAN_QUESTION,
        func.count(distinct(ChecklistResponse.school_id)).label("total_schools"),
        func.sum(case((ChecklistAnswer.upload_file_path.isnot(None), 1), else_=0)).label("schools_with_ltp_plans"),
    ).one()

    yes = _is_yes(ChecklistAnswer.answer_value)
    male = _is_gender("male")
    female = _is_gender("female")
    lessons = (
        _checklist_answers(
            db, flt, LESSON_PLAN_QUESTION,
            func.count(distinct(ChecklistResponse.id)).label("total_responses"),
            func.sum(case((yes, 1), else_=0)).label("teachers_with_plans"),
            func.sum(case((and_(yes, male), 1), else_=0)).label("male_with_plans"),
            func.sum(case((and_(yes, female), 1), else_=0)).label("female_with_plans"),
            func.sum(case((male, 1), else_=0)).label("total_male"),
            func.sum(case((female, 1), else_=0)).label("total_female"),
        )
        .outerjoin(Teacher, ChecklistResponse.teacher_id == Teacher.id)
        .one()
    )

    outcomes: Dict[str, Any] = {
        "schoolsWithImplementationPlans": _rate(plans.schools_with_plans, plans.total_schools),
        "schoolsWithLTPDevPlans": _rate(dev_plans.schools_with_ltp_plans, dev_plans.total_schools),
        "teachersWithLTPLessonPlans": {
            "total": _rate(lessons.teachers_with_plans, lessons.total_responses),
            "male": _rate(lessons.male_with_plans, lessons.total_male),
            "female": _rate(lessons.female_with_plans, lessons.total_female),
        },
    }
    outcomes["calculationDetails"] = {
        "implementationPlans": {
            "schoolsWithPlans": to_int(plans.schools_with_plans),
            "totalSchools": to_int(plans.total_schools),
            "formula": "schools_with_plans / total_schools * 100",
        },
        "ltpDevPlans": {
            "schoolsWithPlans": to_int(dev_plans.schools_with_ltp_plans),
            "totalSchools": to_int(dev_plans.total_schools),
            "formula": "schools_with_ltp_plans / total_schools * 100",
        },
        "ltpLessonPlans": {
            "teachersWithPlans": to_int(lessons.teachers_with_plans),
            "totalTeachers": to_int(lessons.total_responses),
            "maleTeachersWithPlans": to_int(lessons.male_with_plans),
            "femaleTeachersWithPlans": to_int(lessons.female_with_plans),
            "totalMaleTeachers": to_int(lessons.total_male),
            "totalFemaleTeachers": to_int(lessons.total_female),
            "formula": "teachers_with_plans / total_teachers * 100",
        },
    }
    return outcomes


def skills_averages(db: Session, flt: RtpFilter):
    score = PipResponse.ltp_skills_score
    return (
        _pip_responses(
            db, flt,
            func.avg(score).label("avg_score"),
            func.avg(case((_is_gender("male"), score))).label("male_avg_score"),
            func.avg(case((_is_gender("female"), score))).label("female_avg_score"),
        )
        .outerjoin(Teacher, PipResponse.teacher_id == Teacher.id)
        .filter(score.isnot(None))
        .one()
    )


def pip_outcomes(db: Session, flt: RtpFilter) -> Dict[str, Any]:
    environment = (
        _pip_responses(db, flt, func.avg(PipResponse.learning_environment_score))
        .filter(PipResponse.learning_environment_score.isnot(None))
        .scalar()
    )
    skills = skills_averages(db, flt)

    outcomes: Dict[str, Any] = {
        "learningEnvironmentsWithLTPMethods": _score_percentage(environment),
        "teachersWithLTPSkills": {
            "total": _score_percentage(skills.avg_score),
            "male": _score_percentage(skills.male_avg_score),
            "female": _score_percentage(skills.female_avg_score),
        },
    }
    outcomes["calculationDetails"] = {
        "learningEnvironments": {
            "averageScore": to_fixed(environment, 2),
            "maxPossibleScore": PIP_MAX_SCORE,
            "formula": "average_score / max_possible_score * 100",
        },
        "teacherSkills": {
            "averageScore": to_fixed(skills.avg_score, 2),
            "maleAverageScore": to_fixed(skills.male_avg_score, 2),
            "femaleAverageScore": to_fixed(skills.female_avg_score, 2),
            "maxPossibleScore": PIP_MAX_SCORE,
            "formula": "average_score / max_possible_score * 100",
        },
    }
    return outcomes


def outcome_indicators(
    db: Session,
    flt: RtpFilter,
    include_checklist: bool = True,
    include_pip: bool = True,
) -> Dict[str, Any]:
    """
    Checklist and PIP indicator groups, each guarded on its own: a failing
    group keeps its zero defaults without touching the other.
    """
    outcomes = empty_outcomes()
    groups = []
    if include_checklist:
        groups.append(("checklist outcomes", checklist_outcomes))
    if include_pip:
        groups.append(("pip outcomes", pip_outcomes))

    for name, calculate in groups:
        part = guarded(name, {}, calculate, flt, db=db)
        outcomes["calculationDetails"].update(part.pop("calculationDetails", {}))
        outcomes.update(part)
    return outcomes


# Trends over itineraries ---------------------------------------------------

def empty_trends() -> Dict[str, Any]:
    return {
        "responseRates": [],
        "schoolParticipation": [],
        "teacherTraining": {"total": [], "male": [], "female": []},
        "teachersWithSkills": {"total": [], "male": [], "female": []},
        "itineraries": [],
    }


def trend_itineraries(db: Session, current: Itinerary, limit: int) -> List[Itinerary]:
    """`current` and the itineraries before it, newest first, at most `limit` in all."""
    if current.year is None or current.period is None or limit <= 1:
        return [current]
    previous = (
        db.query(Itinerary)
        .filter(
            Itinerary.deleted_at.is_(None),
            Itinerary.id != current.id,
            or_(
                Itinerary.year < current.year,
                and_(Itinerary.year == current.year, Itinerary.period < current.period),
            ),
        )
        .order_by(Itinerary.year.desc(), Itinerary.period.desc())
        .limit(limit - 1)
        .all()
    )
    return [current] + previous


def participation_metrics(db: Session, flt: RtpFilter, total_potential: int) -> Dict[str, Any]:
    participation = participating_schools(db, flt)
    trained = teachers_trained(db, flt)
    return {
        "responseRate": js_round(participation / total_potential * 100),
        "schoolParticipation": participation,
        "trainedTotal": trained["total"],
        "trainedMale": trained["male"],
        "trainedFemale": trained["female"],
    }


def skills_metrics(db: Session, flt: RtpFilter) -> Dict[str, Any]:
    skills = skills_averages(db, flt)
    return {
        "skillsTotal": _score_percentage(skills.avg_score),
        "skillsMale": _score_percentage(skills.male_avg_score),
        "skillsFemale": _score_percentage(skills.female_avg_score),
    }


def itinerary_metrics(db: Session, flt: RtpFilter, total_potential: int) -> Dict[str, Any]:
    """School survey and PIP figures for one itinerary; either part falls back to zeros alone."""
    metrics = dict.fromkeys(
        ("responseRate", "schoolParticipation", "trainedTotal", "trainedMale", "trainedFemale",
         "skillsTotal", "skillsMale", "skillsFemale"),
        0,
    )
    metrics.update(guarded("trend participation", {}, participation_metrics, flt, total_potential, db=db))
    metrics.update(guarded("trend teacher skills", {}, skills_metrics, flt, db=db))
    return metrics


def trend_data(db: Session, flt: RtpFilter, limit: Optional[int] = None) -> Dict[str, Any]:
    current = db.query(Itinerary).filter(Itinerary.id == flt.itinerary_id).first()
    if current is None:
        logger.warning("Itinerary %s not found; no trend data", flt.itinerary_id)
        return empty_trends()

    itineraries = trend_itineraries(db, current, limit or settings.TREND_PERIOD_LIMIT)
    total_potential = potential_schools(db, flt) or 1
    trend = trend_from_rows(
        itineraries,
        label=lambda itinerary: itinerary.title,
        metrics=lambda itinerary: itinerary_metrics(db, flt.for_itinerary(itinerary.id), total_potential),
    )

    oldest_first = list(reversed(itineraries))
    return {
        "responseRates": series(trend, "responseRate"),
        "schoolParticipation": series(trend, "schoolParticipation"),
        "teacherTraining": {
            "total": series(trend, "trainedTotal"),
            "male": series(trend, "trainedMale"),
            "female": series(trend, "trainedFemale"),
        },
        "teachersWithSkills": {
            "total": series(trend, "skillsTotal"),
            "male": series(trend, "skillsMale"),
            "female": series(trend, "skillsFemale"),
        },
        "itineraries": [
            {"id": it.id, "title": it.title, "period": it.period, "year": it.year}
            for it in oldest_first
        ],
        "period_labels": trend["period_labels"],
    }


# Breakdowns ----------------------------------------------------------------

def school_type_breakdown(db: Session, flt: RtpFilter) -> Dict[str, int]:
    """Reporting schools split by GALOP support"""
    row = _school_responses(
        db, flt,
        func.count(distinct(case((School.is_galop == True, SchoolResponse.school_id)))).label("galop"),
        func.count(distinct(case((or_(School.is_galop == False, School.is_galop.is_(None)), SchoolResponse.school_id)))).label("non_galop"),
    ).one()
    return {"galop": to_int(row.galop), "nonGalop": to_int(row.non_galop)}


def district_submissions(db: Session, flt: RtpFilter) -> List[Dict[str, Any]]:
    """Per district: reporting schools against all live schools, highest share first."""
    totals = (
        db.query(District.id, District.name, func.count(School.id).label("total_schools"))
        .join(School, School.district_id == District.id)
        .filter(School.deleted_at.is_(None), *flt.school_conditions())
        .group_by(District.id, District.name)
        .all()
    )
    submitted = dict(
        _school_responses(db, flt, School.district_id, func.count(distinct(SchoolResponse.school_id)))
        .group_by(School.district_id)
        .all()
    )

    rows = []
    for district_id, name, total_schools in totals:
        submissions = to_int(submitted.get(district_id))
        rows.append({
            "district_id": district_id,
            "district": name,
            "submissions": submissions,
            "total_schools": to_int(total_schools),
            "percentage": _rate(submissions, total_schools),
        })
    rows.sort(key=lambda r: (-r["percentage"], r["district"] or ""))
    return rows


def gender_analysis(
    school_outputs: Dict[str, Any],
    district_outputs: Dict[str, Any],
    outcomes: Dict[str, Any],
) -> Dict[str, Any]:
    """Female-minus-male gaps over the already computed sections."""
    trained_male = sum(school_outputs[name]["male"] for name in TRAINED_INDICATORS)
    trained_female = sum(school_outputs[name]["female"] for name in TRAINED_INDICATORS)

    def gap(indicator: Dict[str, Any], with_percentage: bool) -> Dict[str, Any]:
        return gender_gap(indicator["male"], indicator["female"], with_percentage=with_percentage)

    return {
        "teacherTrainingGap": {
            "totalTeachers": gender_gap(trained_male, trained_female, with_percentage=False),
            "teacherChampions": gap(school_outputs["teacherChampions"], False),
            "teachersPBL": gap(school_outputs["teachersPBL"], False),
            "teachersECE": gap(school_outputs["teachersECE"], False),
            "teachersOther": gap(school_outputs["teachersOther"], False),
            "teachersNoTraining": gap(school_outputs["teachersNoTraining"], False),
        },
        "enrollmentGap": {
            "totalEnrollment": gap(school_outputs["studentsEnrolled"], True),
            "specialNeeds": gap(school_outputs["studentsSpecialNeeds"], True),
        },
        "districtLevelGaps": {
            "teamMembers": gap(district_outputs["districtTeamMembersTrained"], True),
            "planningAttendees": gap(district_outputs["planningAttendees"], True),
            "trainers": gap(district_outputs["trainersFromDST"], True),
        },
        "performanceComparison": {
            "lessonPlans": gap(outcomes["teachersWithLTPLessonPlans"], False),
            "teachingSkills": gap(outcomes["teachersWithLTPSkills"], False),
        },
    }


def question_breakdown(db: Session, flt: RtpFilter, question_id: int, data_source: str) -> Dict[str, Any]:
    """Distribution of answer values for one question within a survey source."""
    source = data_source if data_source in ANSWER_SOURCES else SOURCE_SCHOOL
    answer, response = ANSWER_SOURCES[source]
    answers = func.count(answer.id)

    query = (
        db.query(answer.answer_value.label("value"), answers.label("count"))
        .select_from(answer)
        .join(response, answer.response_id == response.id)
        .filter(answer.question_id == question_id, *flt.submission_conditions(response))
    )
    if source == SOURCE_DISTRICT:
        query = query.join(District, response.district_id == District.id).filter(*flt.district_conditions())
    else:
        query = query.join(School, response.school_id == School.id).filter(*flt.school_conditions())

    rows = query.group_by(answer.answer_value).order_by(answers.desc(), answer.answer_value).all()
    total = sum(to_int(row.count) for row in rows)
    question = db.query(Question.question, Question.category).filter(Question.id == question_id).first()
    return {
        "questionId": question_id,
        "question": question.question if question else None,
        "category": question.category if question else None,
        "source": source,
        "totalAnswers": total,
        "values": [
            {"value": row.value, "count": to_int(row.count), "percentage": percentage(row.count, total)}
            for row in rows
        ],
    }


def rtp_analytics(
    db: Session,
    flt: RtpFilter,
    view_mode: str = VIEW_COMBINED,
    data_source: str = SOURCE_ALL,
    question_id: Optional[int] = None,
    show_calculations: bool = False,
) -> Dict[str, Any]:
    """
    Assemble the dashboard for one itinerary. `data_source` limits the
    sections computed; sections for other sources are left out.
    """
    def wants(*sources: str) -> bool:
        return data_source == SOURCE_ALL or data_source in sources

    data: Dict[str, Any] = {}

    if wants(SOURCE_SCHOOL):
        data["summary"] = guarded("summary", empty_summary(), summary_data, flt, db=db)

    output_indicators = {}
    if wants(SOURCE_SCHOOL):
        output_indicators["schoolLevel"] = guarded(
            "schoolLevel", SCHOOL_OUTPUT_MAP.empty(), school_output_indicators, flt, view_mode, db=db
        )
    if wants(SOURCE_DISTRICT):
        output_indicators["districtLevel"] = guarded(
            "districtLevel", DISTRICT_OUTPUT_MAP.empty(), district_output_indicators, flt, db=db
        )
    if output_indicators:
        data["outputIndicators"] = output_indicators

    if wants(SOURCE_CHECKLIST, SOURCE_PIP):
        outcomes = outcome_indicators(db, flt, wants(SOURCE_CHECKLIST), wants(SOURCE_PIP))
        if not show_calculations:
            outcomes.pop("calculationDetails", None)
        data["outcomeIndicators"] = outcomes

    if wants(SOURCE_SCHOOL):
        data["trends"] = guarded("trends", empty_trends(), trend_data, flt, db=db)
        data["schoolTypeBreakdown"] = guarded(
            "schoolTypeBreakdown", {"galop": 0, "nonGalop": 0}, school_type_breakdown, flt, db=db
        )
        data["districtSubmissions"] = guarded("districtSubmissions", [], district_submissions, flt, db=db)

    if view_mode == VIEW_GENDER and data_source == SOURCE_ALL:
        data["genderAnalysis"] = guarded(
            "genderAnalysis", None, gender_analysis,
            output_indicators["schoolLevel"], output_indicators["districtLevel"], data["outcomeIndicators"],
        )

    if question_id is not None:
        data["questionBreakdown"] = guarded(
            "questionBreakdown", None, question_breakdown, flt, question_id, data_source, db=db
        )
    return data


# Historical trend per outcome indicator --------------------------------------

def _checklist_share(
    db: Session, itinerary_id: int, question_id: int, hit, subject, district_id: Optional[int] = None,
) -> Dict[str, Any]:
    """Distinct `subject` ids with a qualifying answer against all that responded."""
    query = (
        db.query(
            func.count(distinct(case((hit, subject)))).label("hits"),
            func.count(distinct(subject)).label("total"),
        )
        .select_from(ChecklistResponse)
        .outerjoin(
            ChecklistAnswer,
            and_(ChecklistAnswer.response_id == ChecklistResponse.id, ChecklistAnswer.question_id == question_id),
        )
        .filter(ChecklistResponse.itinerary_id == itinerary_id, ChecklistResponse.deleted_at.is_(None))
        .filter(subject.isnot(None))
    )
    if district_id is not None:
        query = query.join(School, ChecklistResponse.school_id == School.id).filter(School.district_id == district_id)
    row = query.one()
    hits, total = to_int(row.hits), to_int(row.total)
    return {"percentage": round_to(safe_rate(hits, total), 2), "hits": hits, "total": total}


def implementation_plans_history(db: Session, itinerary_id: int, district_id: Optional[int] = None) -> Dict[str, Any]:
    share = _checklist_share(
        db, itinerary_id, IMPLEMENTATION_PLAN_QUESTION,
        _is_yes(ChecklistAnswer.answer_value), ChecklistResponse.school_id, district_id,
    )
    return {"percentage": share["percentage"], "schoolsWithPlans": share["hits"], "totalSchools": share["total"]}


def development_plans_history(db: Session, itinerary_id: int, district_id: Optional[int] = None) -> Dict[str, Any]:
    share = _checklist_share(
        db, itinerary_id, DEVELOPMENT_PLAN_QUESTION,
        ChecklistAnswer.upload_file_path.isnot(None), ChecklistResponse.school_id, district_id,
    )
    return {"percentage": share["percentage"], "schoolsWithUploads": share["hits"], "totalSchools": share["total"]}


def lesson_plans_history(db: Session, itinerary_id: int, district_id: Optional[int] = None) -> Dict[str, Any]:
    share = _checklist_share(
        db, itinerary_id, LESSON_PLAN_QUESTION,
        _is_yes(ChecklistAnswer.answer_value), ChecklistResponse.teacher_id, district_id,
    )
    return {"percentage": share["percentage"], "teachersWithPlans": share["hits"], "totalTeachers": share["total"]}


def _pip_rows(db: Session, itinerary_id: int, district_id: Optional[int] = None) -> List[PipResponse]:
    query = db.query(PipResponse).filter(PipResponse.itinerary_id == itinerary_id, PipResponse.deleted_at.is_(None))
    if district_id is not None:
        query = query.join(School, PipResponse.school_id == School.id).filter(School.district_id == district_id)
    return query.all()


def learning_environment_score(response: PipResponse) -> float:
    """Stored score, or the weighted observation scores when none was stored."""
    score = to_float(response.learning_environment_score)
    if score == 0:
        score = sum(
            to_float(getattr(response, column)) * weight
            for column, weight in LEARNING_ENVIRONMENT_WEIGHTS.items()
        )
    return score


def _threshold_share(scores: List[float]) -> Dict[str, Any]:
    passing = len([s for s in scores if s >= LTP_SCORE_THRESHOLD])
    total = len(scores)
    return {
        "percentage": round_to(safe_rate(passing, total), 2),
        "passing": passing,
        "total": total,
        "averageScore": round_to(sum(scores) / total, 2) if total else 0,
    }


def learning_environments_history(db: Session, itinerary_id: int, district_id: Optional[int] = None) -> Dict[str, Any]:
    share = _threshold_share([learning_environment_score(r) for r in _pip_rows(db, itinerary_id, district_id)])
    return {
        "percentage": share["percentage"],
        "environmentsWithLtP": share["passing"],
        "totalEnvironments": share["total"],
        "averageScore": share["averageScore"],
    }


def teacher_skills_history(db: Session, itinerary_id: int, district_id: Optional[int] = None) -> Dict[str, Any]:
    share = _threshold_share([to_float(r.ltp_skills_score) for r in _pip_rows(db, itinerary_id, district_id)])
    return {
        "percentage": share["percentage"],
        "teachersWithSkills": share["passing"],
        "totalTeachers": share["total"],
        "averageScore": share["averageScore"],
    }


def enrollment_history(db: Session, itinerary_id: int, district_id: Optional[int] = None) -> Dict[str, Any]:
    flt = RtpFilter(itinerary_id, district_id=district_id)
    enrolled = SCHOOL_OUTPUT_MAP.get("studentsEnrolled")
    question_ids = enrolled.male + enrolled.female
    row = _school_answers(
        db, flt,
        [*SCHOOL_OUTPUT_MAP.columns(SchoolResponseAnswer.question_id, SchoolResponseAnswer.answer_value)],
        question_ids,
    ).one()
    students = SCHOOL_OUTPUT_MAP.build(row)["studentsEnrolled"]
    return {
        "totalEnrollment": students["total"],
        "boysEnrollment": students["male"],
        "girlsEnrollment": students["female"],
        "schoolCount": participating_schools(db, flt),
    }


def schools_reached_history(db: Session, itinerary_id: int, district_id: Optional[int] = None) -> Dict[str, Any]:
    """Distinct schools with any school survey, checklist or observation."""
    school_ids = set()
    for response in (SchoolResponse, ChecklistResponse, PipResponse):
        query = db.query(response.school_id).filter(response.itinerary_id == itinerary_id, response.deleted_at.is_(None))
        if district_id is not None:
            query = query.join(School, response.school_id == School.id).filter(School.district_id == district_id)
        school_ids.update(row.school_id for row in query.distinct().all())
    return {"schoolsReached": len(school_ids)}


HISTORICAL_INDICATORS = {
    "implementationPlans": implementation_plans_history,
    "developmentPlans": development_plans_history,
    "lessonPlans": lesson_plans_history,
    "learningEnvironments": learning_environments_history,
    "teacherSkills": teacher_skills_history,
    "enrollment": enrollment_history,
    "schoolsReached": schools_reached_history,
}


def zero_indicator() -> Dict[str, Any]:
    return {"percentage": 0, "count": 0, "total": 0}


def historical_trend(db: Session, indicator_type: str, limit: int = 5) -> List[Dict[str, Any]]:
    """
    One point per recent itinerary for an outcome indicator, oldest first.
    Unknown indicator types yield zeroed points.
    """
    calculate = HISTORICAL_INDICATORS.get(indicator_type)
    itineraries = (
        db.query(Itinerary)
        .filter(Itinerary.deleted_at.is_(None))
        .order_by(Itinerary.start_date.desc(), Itinerary.id.desc())
        .limit(limit)
        .all()
    )

    def point(itinerary: Itinerary) -> Dict[str, Any]:
        data = {
            "itineraryId": itinerary.id,
            "itineraryName": itinerary.title,
            "startDate": itinerary.start_date.isoformat() if itinerary.start_date else None,
            "endDate": itinerary.end_date.isoformat() if itinerary.end_date else None,
        }
        if calculate is None:
            data.update(zero_indicator())
        else:
            data.update(calculate(db, itinerary.id))
        return data

    return trend_from_rows(itineraries, label=lambda it: it.title, metrics=point)["points"]


def district_outcome_breakdown(db: Session, itinerary_id: int, indicator_type: str) -> List[Dict[str, Any]]:
    """
    One outcome indicator per district with school survey submissions for the
    itinerary, ordered by region then district. Uses the same calculations as
    the historical trend, restricted to each district's schools.
    """
    calculate = HISTORICAL_INDICATORS.get(indicator_type)
    districts = (
        db.query(District.id, District.name, Region.name.label("region_name"))
        .join(School, School.district_id == District.id)
        .join(SchoolResponse, SchoolResponse.school_id == School.id)
        .outerjoin(Region, District.region_id == Region.id)
        .filter(SchoolResponse.itinerary_id == itinerary_id, SchoolResponse.deleted_at.is_(None))
        .distinct()
        .order_by(Region.name, District.name)
        .all()
    )

    breakdown = []
    for district in districts:
        entry = {
            "districtId": district.id,
            "districtName": district.name,
            "regionName": district.region_name,
        }
        if calculate is None:
            entry.update(zero_indicator())
        else:
            entry.update(calculate(db, itinerary_id, district.id))
        breakdown.append(entry)
    return breakdown


# Itinerary overview ------------------------------------------------------------

def _submitting_schools(db: Session, response, itinerary_id: int) -> set:
    rows = (
        db.query(response.school_id)
        .filter(response.itinerary_id == itinerary_id, response.deleted_at.is_(None))
        .distinct()
        .all()
    )
    return {row.school_id for row in rows if row.school_id is not None}


def rtp_overview(db: Session, itinerary_id: int) -> Dict[str, Any]:
    """
    Submission counts per RTP source for one itinerary. A school is complete
    when it has a school survey, a consolidated checklist and a PIP observation.
    """
    school_output = _submitting_schools(db, SchoolResponse, itinerary_id)
    checklist = _submitting_schools(db, ChecklistResponse, itinerary_id)
    pip = _submitting_schools(db, PipResponse, itinerary_id)
    district_count = to_int(
        db.query(func.count(distinct(DistrictResponse.district_id)))
        .filter(DistrictResponse.itinerary_id == itinerary_id, DistrictResponse.deleted_at.is_(None))
        .scalar()
    )

    total_schools = to_int(db.query(func.count(School.id)).filter(School.deleted_at.is_(None)).scalar())
    total_districts = to_int(
        db.query(func.count(distinct(School.district_id))).filter(School.deleted_at.is_(None)).scalar()
    )
    complete = school_output & checklist & pip

    return {
        "totalSchoolSubmissions": len(school_output),
        "activeSchools": len(school_output),
        "responseRate": round_to(safe_rate(len(school_output), total_schools), 2),
        "completionRate": round_to(safe_rate(len(complete), total_schools), 2),
        "completeSchools": len(complete),
        "totalSchools": total_schools,
        "categorySummary": {
            "schoolOutput": {"total": total_schools, "completed": len(school_output)},
            "districtOutput": {"total": total_districts, "completed": district_count},
            "consolidatedChecklist": {"total": total_schools, "completed": len(checklist)},
            "partnersInPlay": {"total": total_schools, "completed": len(pip)},
        },
        "detailedCounts": {
            "schoolOutputCount": len(school_output),
            "districtOutputCount": district_count,
            "consolidatedChecklistCount": len(checklist),
            "partnersInPlayCount": len(pip),
        },
    }
