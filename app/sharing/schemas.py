from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional


class ShareCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    permission: Optional[str] = None
    grantee_email: Optional[str] = Field(None, alias="granteeEmail")


class DeckShareResponse(BaseModel):
    """A share row. ``share_token`` is only set while a link share is unredeemed."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    deck_id: int
    grantee_user_id: Optional[int] = None
    permission: str
    share_token: Optional[str] = None
    created_at: Optional[datetime] = None


class TokenResolution(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    deck_id: int = Field(alias="deckId")
    permission: str
