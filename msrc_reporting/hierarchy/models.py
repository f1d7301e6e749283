"""
mSRC Reporting - Hierarchy Models

Regions -> districts -> circuits -> schools, plus the users and activity logs
shown on the landing dashboard. Read-only from the reporting layer.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from msrc_reporting.db.database import Base


class Region(Base):
    """Top level of the hierarchy"""
    __tablename__ = "regions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)

    districts = relationship("District", back_populates="region")


class District(Base):
    """Districts within a region"""
    __tablename__ = "districts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    region_id = Column(Integer, ForeignKey("regions.id"), nullable=False, index=True)

    region = relationship("Region", back_populates="districts")
    circuits = relationship("Circuit", back_populates="district")


class Circuit(Base):
    """Circuits within a district"""
    __tablename__ = "circuits"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    district_id = Column(Integer, ForeignKey("districts.id"), nullable=False, index=True)

    district = relationship("District", back_populates="circuits")
    schools = relationship("School", back_populates="circuit")


class School(Base):
    """Schools; parent ids are denormalised so filters never need a join chain"""
    __tablename__ = "schools"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    circuit_id = Column(Integer, ForeignKey("circuits.id"), nullable=False, index=True)
    district_id = Column(Integer, ForeignKey("districts.id"), nullable=False, index=True)
    region_id = Column(Integer, ForeignKey("regions.id"), nullable=False, index=True)
    is_galop = Column(Boolean, default=False)  # GALOP-supported school
    deleted_at = Column(DateTime(timezone=True))

    circuit = relationship("Circuit", back_populates="schools")


class Teacher(Base):
    __tablename__ = "teachers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255))
    gender = Column(String(10))  # 'male', 'female'
    school_id = Column(Integer, ForeignKey("schools.id"), index=True)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    role = Column(String(50))  # 'national', 'regional', 'district', 'school'


class ActivityLog(Base):
    """System-wide activity feed"""
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    action = Column(String(100))
    description = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)


class UserLog(Base):
    """Activity scoped to a level of the hierarchy"""
    __tablename__ = "user_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    scope = Column(String(20), index=True)  # 'regional', 'district', 'school'
    entity_id = Column(Integer, index=True)
    action = Column(String(100))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
