from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Float, Integer, String

from .database import Base


class BOMRecord(Base):
    """One BOM tree; the full arena lives in payload, version is the concurrency token."""

    __tablename__ = "boms"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    version = Column(Integer, nullable=False, default=0)
    currency = Column(String, nullable=False, default="INR")
    template_id = Column(String, nullable=True)
    payload = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class MaterialRecord(Base):
    __tablename__ = "materials"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    category = Column(String, nullable=False, default="")
    density_kg_m3 = Column(Float, nullable=False)
    price = Column(Float, nullable=False)
    currency = Column(String, nullable=False, default="INR")
    unit = Column(String, nullable=False, default="kg")  # price is per this unit
    notes = Column(String)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ShapeRecord(Base):
    """User-published shape versions. Built-in shapes are never stored."""

    __tablename__ = "shapes"

    id = Column(String, primary_key=True)
    version = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    payload = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
