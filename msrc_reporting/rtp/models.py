"""
mSRC Reporting - Right to Play tables

Submissions belong to an itinerary (a monitoring round). School and district
output surveys and the consolidated checklist store one answer row per
question with the value as text; Partners in Play observations carry their
scores as columns.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Date, Text, ForeignKey
from sqlalchemy.sql import func
from msrc_reporting.db.database import Base


class Itinerary(Base):
    __tablename__ = "right_to_play_itineraries"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    period = Column(Integer)  # round number within the year
    year = Column(Integer, index=True)
    start_date = Column(Date)
    end_date = Column(Date)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    deleted_at = Column(DateTime(timezone=True))


class Question(Base):
    """Question ids are shared across the surveys: 1-18 school, 101-117 district, 301+ checklist"""
    __tablename__ = "right_to_play_questions"

    id = Column(Integer, primary_key=True, index=True)
    question = Column(Text)
    question_type = Column(String(30))
    category = Column(String(100))


class SubmissionColumns:
    id = Column(Integer, primary_key=True, index=True)
    itinerary_id = Column(Integer, nullable=False, index=True)
    submitted_by = Column(Integer)
    submitted_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    deleted_at = Column(DateTime(timezone=True))


class AnswerColumns:
    id = Column(Integer, primary_key=True, index=True)
    response_id = Column(Integer, nullable=False, index=True)
    question_id = Column(Integer, nullable=False, index=True)
    answer_value = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class SchoolResponse(SubmissionColumns, Base):
    __tablename__ = "right_to_play_school_responses"

    school_id = Column(Integer, ForeignKey("schools.id"), nullable=False, index=True)


class SchoolResponseAnswer(AnswerColumns, Base):
    __tablename__ = "right_to_play_school_response_answers"


class DistrictResponse(SubmissionColumns, Base):
    __tablename__ = "right_to_play_district_responses"

    district_id = Column(Integer, ForeignKey("districts.id"), nullable=False, index=True)


class DistrictResponseAnswer(AnswerColumns, Base):
    __tablename__ = "right_to_play_district_response_answers"


class ChecklistResponse(SubmissionColumns, Base):
    __tablename__ = "right_to_play_consolidated_checklist_responses"

    school_id = Column(Integer, ForeignKey("schools.id"), nullable=False, index=True)
    teacher_id = Column(Integer, ForeignKey("teachers.id"), index=True)


class ChecklistAnswer(AnswerColumns, Base):
    __tablename__ = "right_to_play_consolidated_checklist_answers"

    upload_file_path = Column(String(500))


class PipResponse(SubmissionColumns, Base):
    """Partners in Play classroom observation, scores on a 0-5 scale"""
    __tablename__ = "right_to_play_pip_responses"

    school_id = Column(Integer, ForeignKey("schools.id"), nullable=False, index=True)
    teacher_id = Column(Integer, ForeignKey("teachers.id"), index=True)
    friendly_tone_score = Column(Float)
    acknowledging_effort_score = Column(Float)
    pupil_participation_score = Column(Float)
    learning_environment_score = Column(Float)
    ltp_skills_score = Column(Float)
