"""Center model definitions."""

from sqlalchemy import Column, Integer, String
from slotbook.database import Base


class Center(Base):
    """Represents a facility that slots are scoped to."""
    __tablename__ = "centers"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
