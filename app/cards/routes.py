from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from sqlalchemy import func as sql_func, or_

from app.database import get_db
from app.auth.identity import require_caller
from app.auth.schemas import CallerIdentity
from app.cards.models import Card, Deck
from app.cards.permissions import require_admin, require_read
from app.cards.schemas import CardCreate, CardUpdate, CardResponse, DeckCreate, DeckUpdate, DeckResponse
from app.errors import InvalidArgument, NotFound
from app.schemas import DataResponse
from app.sharing.registry import ShareRegistry

router = APIRouter(prefix="/api/decks", tags=["Decks"])


def normalize_tags(raw: Optional[str]) -> Optional[str]:
    """Strip blanks around comma-separated labels; empty input means no tags."""
    if raw is None:
        return None
    tags = [tag.strip() for tag in raw.split(",") if tag.strip()]
    return ",".join(tags) if tags else None


def _search_filter(q: str):
    pattern = f"%{q.strip()}%"
    return or_(Deck.title.ilike(pattern), Deck.description.ilike(pattern))


def _with_card_counts(db: Session, decks: List[Deck]) -> List[dict]:
    """Attach card counts with one grouped query instead of one per deck."""
    if not decks:
        return []
    counts = dict(
        db.query(Card.deck_id, sql_func.count(Card.id))
        .filter(Card.deck_id.in_([deck.id for deck in decks]))
        .group_by(Card.deck_id)
        .all()
    )
    return [_deck_payload(deck, counts.get(deck.id, 0)) for deck in decks]


def _deck_payload(deck: Deck, card_count: int) -> dict:
    return {
        "id": deck.id,
        "owner_id": deck.owner_id,
        "title": deck.title,
        "description": deck.description,
        "tags": deck.tags,
        "is_public": deck.is_public,
        "created_at": deck.created_at,
        "card_count": card_count
    }


def _get_card_or_404(db: Session, deck_id: int, card_id: int) -> Card:
    card = db.query(Card).filter(Card.id == card_id, Card.deck_id == deck_id).first()
    if not card:
        raise NotFound("Card not found")
    return card


# ============== DECK ENDPOINTS ==============

@router.post("", response_model=DataResponse[DeckResponse], status_code=status.HTTP_201_CREATED)
def create_deck(
    deck: DeckCreate,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(require_caller)
):
    """Create a new empty deck owned by the caller."""
    if not deck.title or not deck.title.strip():
        raise InvalidArgument("title is required")

    db_deck = Deck(
        owner_id=caller.id,
        title=deck.title.strip(),
        description=deck.description,
        tags=normalize_tags(deck.tags),
        is_public=deck.is_public
    )
    db.add(db_deck)
    db.commit()
    db.refresh(db_deck)
    return {"data": _deck_payload(db_deck, 0)}


@router.get("", response_model=DataResponse[List[DeckResponse]])
def get_my_decks(
    q: Optional[str] = Query(None, description="Search in title and description"),
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(require_caller)
):
    """Get all decks owned by the caller."""
    query = db.query(Deck).filter(Deck.owner_id == caller.id)
    if q:
        query = query.filter(_search_filter(q))
    decks = query.order_by(Deck.created_at.desc(), Deck.id.desc()).all()
    return {"data": _with_card_counts(db, decks)}


@router.get("/public", response_model=DataResponse[List[DeckResponse]])
def get_public_decks(
    q: Optional[str] = Query(None, description="Search in title and description"),
    tag: Optional[str] = Query(None, description="Only decks carrying this tag"),
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(require_caller)
):
    query = db.query(Deck).filter(Deck.is_public.is_(True))
    if q:
        query = query.filter(_search_filter(q))
    if tag:
        query = query.filter(Deck.tags.ilike(f"%{tag.strip()}%"))
    decks = query.order_by(Deck.created_at.desc(), Deck.id.desc()).all()

    if tag:
        # LIKE matched substrings; keep whole labels only
        wanted = tag.strip().lower()
        decks = [deck for deck in decks if wanted in (t.lower() for t in deck.tag_list())]
    return {"data": _with_card_counts(db, decks)}


@router.get("/shared", response_model=DataResponse[List[DeckResponse]])
def get_shared_decks(
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(require_caller)
):
    """Decks other users have shared with the caller."""
    decks = ShareRegistry.list_shared_decks(db, caller.id)
    return {"data": _with_card_counts(db, decks)}


@router.get("/{deck_id}", response_model=DataResponse[DeckResponse])
def get_deck(
    deck_id: int,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(require_caller)
):
    deck = require_read(db, deck_id, caller.id)
    return {"data": _with_card_counts(db, [deck])[0]}


@router.put("/{deck_id}", response_model=DataResponse[DeckResponse])
def update_deck(
    deck_id: int,
    deck_update: DeckUpdate,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(require_caller)
):
    """Update deck metadata. Owner only."""
    deck = require_admin(db, deck_id, caller.id)

    update_data = deck_update.model_dump(exclude_unset=True)
    if "title" in update_data:
        if not update_data["title"] or not update_data["title"].strip():
            raise InvalidArgument("title cannot be empty")
        update_data["title"] = update_data["title"].strip()
    if "tags" in update_data:
        update_data["tags"] = normalize_tags(update_data["tags"])
    if "is_public" in update_data and update_data["is_public"] is None:
        del update_data["is_public"]

    for field, value in update_data.items():
        setattr(deck, field, value)

    db.commit()
    db.refresh(deck)
    return {"data": _with_card_counts(db, [deck])[0]}


@router.delete("/{deck_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_deck(
    deck_id: int,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(require_caller)
):
    """Delete a deck with its cards, shares and study history. Owner only."""
    deck = require_admin(db, deck_id, caller.id, message="Only the owner can delete a deck")
    db.delete(deck)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============== CARD ENDPOINTS ==============

@router.post("/{deck_id}/cards", response_model=DataResponse[CardResponse], status_code=status.HTTP_201_CREATED)
def create_card(
    deck_id: int,
    card: CardCreate,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(require_caller)
):
    require_admin(db, deck_id, caller.id)
    if not card.question or not card.answer:
        raise InvalidArgument("question and answer are required")

    db_card = Card(deck_id=deck_id, question=card.question, answer=card.answer, hint=card.hint or None)
    db.add(db_card)
    db.commit()
    db.refresh(db_card)
    return {"data": db_card}


@router.get("/{deck_id}/cards", response_model=DataResponse[List[CardResponse]])
def get_cards(
    deck_id: int,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(require_caller)
):
    require_read(db, deck_id, caller.id)
    cards = db.query(Card).filter(Card.deck_id == deck_id).order_by(Card.id.asc()).all()
    return {"data": cards}


@router.get("/{deck_id}/cards/{card_id}", response_model=DataResponse[CardResponse])
def get_card(
    deck_id: int,
    card_id: int,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(require_caller)
):
    require_read(db, deck_id, caller.id)
    return {"data": _get_card_or_404(db, deck_id, card_id)}


@router.put("/{deck_id}/cards/{card_id}", response_model=DataResponse[CardResponse])
def update_card(
    deck_id: int,
    card_id: int,
    card_update: CardUpdate,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(require_caller)
):
    require_admin(db, deck_id, caller.id)
    card = _get_card_or_404(db, deck_id, card_id)

    if card_update.question is not None:
        if not card_update.question:
            raise InvalidArgument("question cannot be empty")
        card.question = card_update.question
    if card_update.answer is not None:
        if not card_update.answer:
            raise InvalidArgument("answer cannot be empty")
        card.answer = card_update.answer
    if "hint" in card_update.model_fields_set:
        card.hint = card_update.hint or None

    db.commit()
    db.refresh(card)
    return {"data": card}


@router.delete("/{deck_id}/cards/{card_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_card(
    deck_id: int,
    card_id: int,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(require_caller)
):
    require_admin(db, deck_id, caller.id)
    card = _get_card_or_404(db, deck_id, card_id)
    db.delete(card)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
