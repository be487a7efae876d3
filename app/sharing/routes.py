from typing import List

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.auth.identity import require_caller
from app.auth.schemas import CallerIdentity
from app.schemas import DataResponse
from app.sharing.registry import ShareRegistry
from app.sharing.schemas import ShareCreate, DeckShareResponse, TokenResolution

router = APIRouter(prefix="/api/sharing", tags=["Sharing"])


@router.post("/decks/{deck_id}", response_model=DataResponse[DeckShareResponse], status_code=status.HTTP_201_CREATED)
def create_share(
    deck_id: int,
    share_in: ShareCreate,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(require_caller)
):
    """
    Share a deck.

    - **permission**: "read" or "collab"
    - **granteeEmail**: optional; a registered user's email gives a direct
      share, anything else gives a link share with a one-time token
    """
    share = ShareRegistry.create_share(db, deck_id, caller.id, share_in.permission, share_in.grantee_email)
    return {"data": share}


@router.get("/decks/{deck_id}", response_model=DataResponse[List[DeckShareResponse]])
def list_shares(
    deck_id: int,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(require_caller)
):
    return {"data": ShareRegistry.list_shares(db, deck_id, caller.id)}


@router.delete("/decks/{deck_id}/{share_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_share(
    deck_id: int,
    share_id: int,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(require_caller)
):
    ShareRegistry.delete_share(db, deck_id, share_id, caller.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/link/{share_token}", response_model=DataResponse[TokenResolution])
def resolve_token(
    share_token: str,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(require_caller)
):
    """Redeem a share link. The token stops working once redeemed."""
    return {"data": ShareRegistry.resolve_token(db, share_token, caller.id)}
