"""Patient model definitions."""

from sqlalchemy import Boolean, Column, Integer, String
from clinic.database import Base


class Patient(Base):
    """Represents a clinic patient."""
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String(30))
    active = Column(Boolean, default=True, nullable=False)
