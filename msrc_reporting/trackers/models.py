"""
mSRC Reporting - Tracker question/answer tables

Pregnancy re-entry, TVET and WASH trackers share one layout: a question table
carrying each question's type, and a response table with one row per
(school, year, term, week, question).
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Text, JSON
from sqlalchemy.sql import func
from msrc_reporting.db.database import Base


class QuestionColumns:
    id = Column(Integer, primary_key=True, index=True)
    question = Column(Text)
    question_type = Column(String(30), nullable=False)  # 'numeric', 'text', 'single_choice', 'multiple_choice'
    options = Column(JSON)  # choice labels for single/multiple choice questions


class ResponseColumns:
    WEEK_COLUMN = "week"

    id = Column(Integer, primary_key=True, index=True)
    school_id = Column(Integer, nullable=False, index=True)
    year = Column(Integer, nullable=False, index=True)
    term = Column(Integer, nullable=False, index=True)
    week = Column(Integer, nullable=False, index=True)
    question_id = Column(Integer, nullable=False, index=True)
    numeric_response = Column(Float)
    text_response = Column(Text)
    single_choice_response = Column(String(255))
    multiple_choice_response = Column(Text)  # JSON array of selected options
    submitted_by = Column(Integer)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)


class PregnancyQuestion(QuestionColumns, Base):
    __tablename__ = "pregnancy_questions"


class PregnancyTrackerResponse(ResponseColumns, Base):
    __tablename__ = "pregnancy_tracker_responses"


class TvetQuestion(QuestionColumns, Base):
    __tablename__ = "tvet_questions"


class TvetTrackerResponse(ResponseColumns, Base):
    __tablename__ = "tvet_tracker_responses"


class WashQuestion(QuestionColumns, Base):
    __tablename__ = "wash_questions"


class WashTrackerResponse(ResponseColumns, Base):
    __tablename__ = "wash_tracker_responses"
