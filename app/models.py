"""
SQLAlchemy ORM models for database tables.

This module contains database table definitions using SQLAlchemy.
For Pydantic request/response schemas, see schemas.py.
"""

from sqlalchemy import JSON, Column, DateTime, Float, Integer, String

from app.storage import Base


class Submission(Base):
    """
    A single membership registration.

    Table: submissions
    Primary Key: id (assigned by the database on insert)
    """
    __tablename__ = "submissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=False, index=True)
    business_title = Column(String, nullable=False)
    address = Column(JSON, nullable=False, default=dict)
    address_version = Column(Integer, nullable=False, default=1)
    rating = Column(Float, nullable=True)  # null when not supplied
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    sms_status = Column(JSON(none_as_null=True), nullable=True)  # {ok, response, sentAt}, set once
