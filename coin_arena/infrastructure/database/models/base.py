"""
Base Database Model

Declarative base shared by every table: string UUID primary key plus
creation / update timestamps.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy.orm import declarative_base
from sqlalchemy import Column, DateTime, String

Base = declarative_base()


def new_id() -> str:
    return str(uuid4())


class BaseModel(Base):
    """Base model with common fields."""
    __abstract__ = True

    id = Column(String, primary_key=True, default=new_id)
    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.now,
        onupdate=datetime.now,
        nullable=False,
    )
