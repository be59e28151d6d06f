"""Batch, Course, CourseSection and ClassSession models."""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from campus_pulse.database import Base


class Batch(Base):
    __tablename__ = "batches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    batch_name = Column(String(255), nullable=False)

    sections = relationship("CourseSection", back_populates="batch")


class Course(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_name = Column(String(255), nullable=False)

    sections = relationship("CourseSection", back_populates="course")


class CourseSection(Base):
    __tablename__ = "course_sections"

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False)
    batch_id = Column(Integer, ForeignKey("batches.id"), nullable=False, index=True)

    # Relationships
    course = relationship("Course", back_populates="sections")
    batch = relationship("Batch", back_populates="sections")
    sessions = relationship("ClassSession", back_populates="section")


class ClassSession(Base):
    __tablename__ = "class_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_datetime = Column(DateTime, nullable=False, index=True)  # UTC
    section_id = Column(Integer, ForeignKey("course_sections.id"), nullable=False)
    actual_faculty_id = Column(Integer, ForeignKey("profiles.id"), nullable=True)

    # Relationships
    section = relationship("CourseSection", back_populates="sessions")
    faculty = relationship("Profile")
