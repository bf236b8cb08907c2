"""Schedule model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, Time
from clinic.database import Base


class Schedule(Base):
    """Represents a recurring weekly availability window for a staff member."""
    __tablename__ = "schedules"

    id = Column(Integer, primary_key=True)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday .. 6 = Saturday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    available = Column(Boolean, default=True, nullable=False)
