"""
Who may do what with a deck.

The ``is_owner``/``can_*`` functions are pure decisions over rows that have
already been loaded. The ``require_*`` helpers load what the decision needs
and raise: a missing deck is always reported as ``NotFound`` before any
permission is considered.

Capabilities, from weakest to strongest:

* read        - owner, anyone when the deck is public, or a read/collab share
* collaborate - owner or a collab share; lets the holder see the share list
* administer  - owner only; every mutation of a deck, its cards or its shares
"""
from typing import Optional

from sqlalchemy.orm import Session

from app.cards.models import Deck
from app.errors import Forbidden, NotFound
from app.sharing.models import DeckShare, SharePermission


def is_owner(user_id: int, deck: Deck) -> bool:
    return deck.owner_id == user_id


def can_read(user_id: int, deck: Deck, share: Optional[DeckShare] = None) -> bool:
    if is_owner(user_id, deck) or deck.is_public:
        return True
    return share is not None and share.grantee_user_id == user_id and share.permission in SharePermission.ALL


def can_collaborate(user_id: int, deck: Deck, share: Optional[DeckShare] = None) -> bool:
    if is_owner(user_id, deck):
        return True
    return share is not None and share.grantee_user_id == user_id and share.permission == SharePermission.COLLAB


def can_administer(user_id: int, deck: Deck) -> bool:
    # Collaborators never administer, whatever their share says.
    return is_owner(user_id, deck)


def get_deck_or_404(db: Session, deck_id: int) -> Deck:
    deck = db.query(Deck).filter(Deck.id == deck_id).first()
    if not deck:
        raise NotFound("Deck not found")
    return deck


def get_caller_share(db: Session, deck_id: int, user_id: int) -> Optional[DeckShare]:
    """The share binding ``user_id`` to the deck, if any."""
    return db.query(DeckShare).filter(
        DeckShare.deck_id == deck_id,
        DeckShare.grantee_user_id == user_id
    ).first()


def require_read(db: Session, deck_id: int, user_id: int) -> Deck:
    deck = get_deck_or_404(db, deck_id)
    if is_owner(user_id, deck) or deck.is_public:
        return deck
    if not can_read(user_id, deck, get_caller_share(db, deck_id, user_id)):
        raise Forbidden("Access denied")
    return deck


def require_collaborator(db: Session, deck_id: int, user_id: int) -> Deck:
    deck = get_deck_or_404(db, deck_id)
    if is_owner(user_id, deck):
        return deck
    if not can_collaborate(user_id, deck, get_caller_share(db, deck_id, user_id)):
        raise Forbidden("Access denied")
    return deck


def require_admin(db: Session, deck_id: int, user_id: int, message: str = "Only the owner can modify this deck") -> Deck:
    deck = get_deck_or_404(db, deck_id)
    if not can_administer(user_id, deck):
        raise Forbidden(message)
    return deck
