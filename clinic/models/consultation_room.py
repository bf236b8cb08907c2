"""Consultation room model definitions."""

from sqlalchemy import Boolean, Column, Integer, String
from clinic.database import Base


class ConsultationRoom(Base):
    """Represents a room an appointment can be held in."""
    __tablename__ = "consultation_rooms"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(20), unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    location = Column(String(200))
    active = Column(Boolean, default=True, nullable=False)
