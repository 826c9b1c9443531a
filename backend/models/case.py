"""Case model definitions."""

from sqlalchemy import Column, Integer, ForeignKey, String
from backend.database import Base


class Case(Base):
    """Read model of a legal case and its participants."""
    __tablename__ = "cases"

    id = Column(Integer, primary_key=True)
    case_number = Column(String, index=True)
    petitioner_id = Column(Integer, ForeignKey("users.id"))
    petitioner_attorney_id = Column(Integer, ForeignKey("users.id"))
    legal_assistant_id = Column(Integer, ForeignKey("users.id"))
