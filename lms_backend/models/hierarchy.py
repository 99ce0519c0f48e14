"""Ownership-edge models: admin -> tutor and tutor -> student."""

from sqlalchemy import Column, Integer, DateTime, ForeignKey, func
from lms_backend.db.base import Base


class TutorAdminMapping(Base):
    """Edge from the admin who created a tutor to that tutor.

    ``tutor_id`` is unique: a tutor has at most one admin owner.
    """
    __tablename__ = "tutor_admin_mapping"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tutor_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    admin_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)


class StudentTutorMapping(Base):
    """Edge from the tutor who created a student to that student."""
    __tablename__ = "student_tutor_mapping"

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    tutor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
