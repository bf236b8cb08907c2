"""Staff model definitions."""

from sqlalchemy import Boolean, Column, Integer, String
from clinic.database import Base


class Staff(Base):
    """Represents a psychologist or other bookable staff member."""
    __tablename__ = "staff"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String(30))
    specialty = Column(String(100))
    active = Column(Boolean, default=True, nullable=False)
