"""Appointment model definitions."""

from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text, Time
from clinic.database import Base


class Appointment(Base):
    """Represents a booked appointment on a calendar date."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=False)
    appointment_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    status = Column(String(20), default="pending", nullable=False)
    consultation_type = Column(String(50))
    notes = Column(Text)
    consultation_room_id = Column(Integer, ForeignKey("consultation_rooms.id"))
    created_at = Column(DateTime, default=datetime.now)
