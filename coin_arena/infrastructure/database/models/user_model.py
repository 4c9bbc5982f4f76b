"""
User Database Model

Holds the bearer tokens used against the decision source and the
persona settings that shape AI decisions.
"""

from sqlalchemy import Column, String, DateTime, Text

from coin_arena.infrastructure.database.models.base import BaseModel


class UserModel(BaseModel):
    """User database model."""

    __tablename__ = 'users'

    name = Column(String, nullable=False)
    avatar = Column(String, nullable=True)
    bio = Column(Text, nullable=True)

    access_token = Column(Text, nullable=False, default="")
    refresh_token = Column(Text, nullable=False, default="")
    token_expires_at = Column(DateTime, nullable=True)

    trading_style = Column(String, nullable=True)
    custom_persona = Column(Text, nullable=True)
