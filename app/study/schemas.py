from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional


class StudySessionStart(BaseModel):
    """Request to start a study session."""
    model_config = ConfigDict(populate_by_name=True)

    deck_id: Optional[int] = Field(None, alias="deckId")
    mode: Optional[str] = None  # "practice" or "quiz"


class StudySessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    deck_id: int
    mode: str
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None


class AttemptSubmit(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    card_id: Optional[int] = Field(None, alias="cardId")
    is_correct: Optional[bool] = None
    time_spent_ms: Optional[int] = None


class AttemptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    session_id: int
    card_id: int
    is_correct: bool
    time_spent_ms: int
    attempted_at: Optional[datetime] = None


class MasteryUpdate(BaseModel):
    status: Optional[str] = None  # "mastered" or "review"


class MasteryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: int
    card_id: int
    status: str
    last_reviewed_at: Optional[datetime] = None


class ProgressOverview(BaseModel):
    """Per-viewer rollup for one deck."""
    model_config = ConfigDict(populate_by_name=True)

    accuracy_pct: float = Field(alias="accuracyPct")
    attempts: int
    mastered_count: int = Field(alias="masteredCount")
    review_count: int = Field(alias="reviewCount")
