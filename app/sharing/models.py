from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base
from app.sharing.state import ShareState, share_state


class SharePermission:
    READ = "read"
    COLLAB = "collab"

    ALL = (READ, COLLAB)


class DeckShare(Base):
    """
    Access grant on a deck.

    Either bound to a user (``grantee_user_id``) or waiting for redemption
    through an unguessable ``share_token``, never both and never neither.
    """
    __tablename__ = "deck_shares"

    id = Column(Integer, primary_key=True, index=True)
    deck_id = Column(Integer, ForeignKey("decks.id", ondelete="CASCADE"), nullable=False, index=True)
    grantee_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    permission = Column(
        String(16),
        CheckConstraint("permission IN ('read', 'collab')", name="ck_deck_share_permission"),
        nullable=False,
    )
    share_token = Column(String(64), nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("deck_id", "grantee_user_id", name="uq_deck_share_grantee"),
        CheckConstraint(
            "(grantee_user_id IS NULL AND share_token IS NOT NULL)"
            " OR (grantee_user_id IS NOT NULL AND share_token IS NULL)",
            name="ck_deck_share_grantee_xor_token",
        ),
    )

    # Relationships
    deck = relationship("Deck", back_populates="shares")
    grantee = relationship("User")

    @property
    def state(self) -> ShareState:
        return share_state(self.grantee_user_id, self.share_token)

    def __repr__(self) -> str:
        return f"<DeckShare id={self.id} deck={self.deck_id} grantee={self.grantee_user_id}>"
