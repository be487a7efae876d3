from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional


# Deck Schemas
class DeckCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[str] = None
    is_public: bool = False


class DeckUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[str] = None
    is_public: Optional[bool] = None


class DeckResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: int
    title: str
    description: Optional[str] = None
    tags: Optional[str] = None
    is_public: bool
    created_at: Optional[datetime] = None
    card_count: int = 0


# Card Schemas
class CardBase(BaseModel):
    question: Optional[str] = None
    answer: Optional[str] = None
    hint: Optional[str] = None


class CardCreate(CardBase):
    pass


class CardUpdate(CardBase):
    pass


class CardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    deck_id: int
    question: str
    answer: str
    hint: Optional[str] = None
    created_at: Optional[datetime] = None
