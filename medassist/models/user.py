"""User model definitions."""

import uuid

from sqlalchemy import Column, String
from medassist.database import Base


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String)
    phone = Column(String)
    role = Column(String, default="patient")  # patient/admin

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
