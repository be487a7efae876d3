import logging
import secrets
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.cards.models import Deck
from app.cards.permissions import require_admin, require_collaborator
from app.errors import Conflict, Forbidden, InvalidArgument, NotFound
from app.sharing.models import DeckShare, SharePermission
from app.sharing.schemas import TokenResolution
from app.sharing.state import Bound
from app.users.models import User

logger = logging.getLogger(__name__)

# 32 random bytes, hex encoded: 256 bits of entropy
SHARE_TOKEN_BYTES = 32


def generate_share_token() -> str:
    return secrets.token_hex(SHARE_TOKEN_BYTES)


class ShareRegistry:
    """Lifecycle of deck shares: direct grants, link tokens, redemption and revocation."""

    @staticmethod
    def create_share(
        db: Session,
        deck_id: int,
        user_id: int,
        permission: Optional[str],
        grantee_email: Optional[str] = None
    ) -> DeckShare:
        """
        Grant access to a deck.

        If ``grantee_email`` belongs to a registered user the share is bound to
        them immediately. Otherwise (no email, or an unknown one) a link share
        is created and its token is returned in the new row; that is the only
        response that ever carries a freshly minted token.
        """
        if permission not in SharePermission.ALL:
            raise InvalidArgument('permission must be either "read" or "collab"')

        require_admin(db, deck_id, user_id, message="Only the owner can share a deck")

        grantee_user_id = None
        share_token = None

        grantee = None
        if grantee_email:
            grantee = db.query(User).filter(User.email == grantee_email).first()

        if grantee is not None:
            grantee_user_id = grantee.id
            existing = db.query(DeckShare.id).filter(
                DeckShare.deck_id == deck_id,
                DeckShare.grantee_user_id == grantee_user_id
            ).first()
            if existing:
                raise Conflict("Deck is already shared with this user")
        else:
            share_token = generate_share_token()

        share = DeckShare(
            deck_id=deck_id,
            grantee_user_id=grantee_user_id,
            permission=permission,
            share_token=share_token
        )
        db.add(share)
        try:
            db.commit()
        except IntegrityError:
            # Lost a race with an identical direct share
            db.rollback()
            raise Conflict("Deck is already shared with this user")
        db.refresh(share)

        kind = "direct" if grantee_user_id is not None else "link"
        logger.info(f"Created {kind} share {share.id} on deck {deck_id} ({permission})")
        return share

    @staticmethod
    def list_shares(db: Session, deck_id: int, user_id: int) -> List[DeckShare]:
        """All shares of a deck, visible to the owner and to collaborators."""
        require_collaborator(db, deck_id, user_id)
        return db.query(DeckShare).filter(DeckShare.deck_id == deck_id).order_by(DeckShare.id.asc()).all()

    @staticmethod
    def delete_share(db: Session, deck_id: int, share_id: int, user_id: int) -> None:
        require_admin(db, deck_id, user_id, message="Only the owner can delete shares")

        share = db.query(DeckShare).filter(DeckShare.id == share_id, DeckShare.deck_id == deck_id).first()
        if not share:
            raise NotFound("Share not found")

        db.delete(share)
        db.commit()
        logger.info(f"Deleted share {share_id} from deck {deck_id}")

    @staticmethod
    def bind_token(db: Session, share_id: int, token: str, user_id: int) -> bool:
        """
        Consume a link token for ``user_id``.

        Single conditional UPDATE: it only matches while the row still holds
        this token and has no grantee, so two concurrent redemptions cannot
        both succeed. Returns whether this call performed the binding.
        """
        stmt = (
            update(DeckShare)
            .where(
                DeckShare.id == share_id,
                DeckShare.share_token == token,
                DeckShare.grantee_user_id.is_(None)
            )
            .values(grantee_user_id=user_id, share_token=None)
            .execution_options(synchronize_session=False)
        )
        try:
            result = db.execute(stmt)
            db.commit()
        except IntegrityError:
            # The redeemer already holds a share on this deck
            db.rollback()
            raise Conflict("Deck is already shared with this user")
        return result.rowcount == 1

    @staticmethod
    def resolve_token(db: Session, token: str, user_id: int) -> TokenResolution:
        """
        Redeem a link token.

        The first caller becomes the grantee and the token is destroyed, so a
        later lookup of the same token string (by anyone, including the user
        who redeemed it) is ``NotFound``.
        """
        share = db.query(DeckShare).filter(DeckShare.share_token == token).first()
        if not share:
            raise NotFound("Share token not found")

        share_id = share.id
        resolution = TokenResolution(deck_id=share.deck_id, permission=share.permission)

        if share.grantee_user_id is None:
            if ShareRegistry.bind_token(db, share_id, token, user_id):
                logger.info(f"Share {share_id} on deck {resolution.deck_id} redeemed by user {user_id}")
                return resolution

            # Someone else bound it between our lookup and our update
            db.expire_all()
            share = db.get(DeckShare, share_id)
            if share is None:
                raise NotFound("Share token not found")

        state = share.state
        if isinstance(state, Bound) and state.user_id == user_id:
            return resolution
        raise Forbidden("This share token is already assigned to another user")

    @staticmethod
    def list_shared_decks(db: Session, user_id: int) -> List[Deck]:
        """Decks other users have shared with ``user_id``, newest first."""
        return (
            db.query(Deck)
            .join(DeckShare, DeckShare.deck_id == Deck.id)
            .filter(DeckShare.grantee_user_id == user_id, Deck.owner_id != user_id)
            .order_by(Deck.created_at.desc(), Deck.id.desc())
            .all()
        )
