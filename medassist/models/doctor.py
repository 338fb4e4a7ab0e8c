"""Doctor model definitions."""

import uuid

from sqlalchemy import Boolean, Column, String
from medassist.database import Base


class Doctor(Base):
    """A doctor patients can book appointments with."""
    __tablename__ = "doctors"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    specialization = Column(String, nullable=False, index=True)
    phone = Column(String)
    hospital = Column(String)
    is_active = Column(Boolean, default=True, nullable=False)
