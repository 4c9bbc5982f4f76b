from typing import List

from pydantic import BaseModel, Field


class TokenDTO(BaseModel):
    access_token: str
    refresh_token: str
    expires_in: int


class PersonalityDTO(BaseModel):
    """Personalization context fetched per account before asking for decisions."""

    shades: List[str] = Field(default_factory=list)
    memories: List[str] = Field(default_factory=list)
    bio: str = ""

    @property
    def is_empty(self) -> bool:
        return not (self.shades or self.memories or self.bio)
