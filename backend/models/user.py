"""User model definitions."""

from enum import Enum

from sqlalchemy import Column, Integer, String
from backend.database import Base


class Role(str, Enum):
    PETITIONER = "petitioner"
    STAFF_ATTORNEY = "staff_attorney"
    STAFF_LEGAL_ASSISTANT = "staff_legal_assistant"
    ADMIN = "admin"


STAFF_ROLES = frozenset({Role.STAFF_ATTORNEY, Role.STAFF_LEGAL_ASSISTANT})


class User(Base):
    """Represents an application user. Owned by the user administration service."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    uname = Column(String)
    first_name = Column(String)
    last_name = Column(String)
    role = Column(String)  # petitioner/staff_attorney/staff_legal_assistant/admin

    @property
    def display_name(self) -> str:
        full_name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return full_name or self.uname or ""
