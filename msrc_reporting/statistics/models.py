"""
mSRC Reporting - Weekly/termly fact tables with fixed columns

Each row is stamped with (school_id, year, term, week_number) and written by
the field submission forms; the reporting layer only reads them.
"""

from sqlalchemy import Column, Integer, Float, DateTime, ForeignKey
from sqlalchemy.sql import func
from msrc_reporting.db.database import Base


class HeadcountColumns:
    """Boys/girls headcounts shared by the enrolment and attendance totals"""
    id = Column(Integer, primary_key=True, index=True)
    school_id = Column(Integer, nullable=False, index=True)
    circuit_id = Column(Integer, index=True)
    district_id = Column(Integer, index=True)
    region_id = Column(Integer, index=True)
    normal_boys_total = Column(Integer, default=0)
    normal_girls_total = Column(Integer, default=0)
    special_boys_total = Column(Integer, default=0)  # special needs learners
    special_girls_total = Column(Integer, default=0)
    total_population = Column(Integer, default=0)
    year = Column(Integer, nullable=False, index=True)
    term = Column(Integer, nullable=False, index=True)
    week_number = Column(Integer, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class SchoolEnrolmentTotal(HeadcountColumns, Base):
    __tablename__ = "school_enrolment_totals"


class SchoolStudentAttendanceTotal(HeadcountColumns, Base):
    """Headcounts here are learners present during the week"""
    __tablename__ = "school_student_attendance_totals"


class TeacherAttendance(Base):
    """Weekly attendance and exercise record per teacher"""
    __tablename__ = "teacher_attendances"

    id = Column(Integer, primary_key=True, index=True)
    teacher_id = Column(Integer, ForeignKey("teachers.id"), index=True)
    school_id = Column(Integer, nullable=False, index=True)
    circuit_id = Column(Integer, index=True)
    district_id = Column(Integer, index=True)
    region_id = Column(Integer, index=True)
    school_session_days = Column(Integer, default=0)
    days_present = Column(Integer, default=0)
    days_punctual = Column(Integer, default=0)
    days_absent = Column(Integer, default=0)
    excises_given = Column(Integer, default=0)  # column names kept from the field forms
    excises_marked = Column(Integer, default=0)
    year = Column(Integer, nullable=False, index=True)
    term = Column(Integer, nullable=False, index=True)
    week_number = Column(Integer, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class WeeklyReport(Base):
    __tablename__ = "weekly_reports"

    id = Column(Integer, primary_key=True, index=True)
    school_id = Column(Integer, ForeignKey("schools.id"), nullable=False, index=True)
    boys_enrollment = Column(Integer, default=0)
    girls_enrollment = Column(Integer, default=0)
    boys_attendance_rate = Column(Float)
    girls_attendance_rate = Column(Float)
    facilitator_attendance_rate = Column(Float)
    year = Column(Integer, index=True)
    term = Column(Integer, index=True)
    week_number = Column(Integer, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class TermlyReport(Base):
    __tablename__ = "termly_reports"

    id = Column(Integer, primary_key=True, index=True)
    school_id = Column(Integer, ForeignKey("schools.id"), nullable=False, index=True)
    school_management_score = Column(Float)
    school_grounds_score = Column(Float)
    community_involvement_score = Column(Float)
    year = Column(Integer, index=True)
    term = Column(Integer, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
