from decimal import Decimal, ROUND_HALF_UP
from typing import Dict

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from app.cards.models import Card
from app.study.models import Mastery, MasteryStatus, StudyAttempt, StudySession


def accuracy_pct(correct: int, total: int) -> float:
    """Percentage of correct attempts rounded half-up to 2 decimals; 0 with no attempts."""
    if total <= 0:
        return 0.0
    pct = Decimal(correct) * 100 / Decimal(total)
    return float(pct.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def empty_rollup() -> Dict[str, float]:
    return {"accuracy_pct": 0.0, "attempts": 0, "mastered_count": 0, "review_count": 0}


def get_progress(db: Session, deck_id: int, user_id: int) -> Dict[str, float]:
    """
    Progress of one viewer on one deck.

    Only attempts made in the viewer's own sessions and the viewer's own
    mastery rows are counted; nobody sees anyone else's progress here.

    Returns:
        {
            "accuracy_pct": percent of attempts answered correctly,
            "attempts": number of attempts on cards of the deck,
            "mastered_count": cards marked mastered,
            "review_count": cards marked for review
        }
    """
    card_ids = [c[0] for c in db.query(Card.id).filter(Card.deck_id == deck_id).all()]
    if not card_ids:
        return empty_rollup()

    total, correct = db.query(
        func.count(StudyAttempt.id),
        func.sum(case((StudyAttempt.is_correct.is_(True), 1), else_=0))
    ).join(StudySession, StudySession.id == StudyAttempt.session_id).filter(
        StudyAttempt.card_id.in_(card_ids),
        StudySession.user_id == user_id
    ).one()
    total = total or 0
    correct = correct or 0

    status_counts = dict(
        db.query(Mastery.status, func.count())
        .filter(Mastery.user_id == user_id, Mastery.card_id.in_(card_ids))
        .group_by(Mastery.status)
        .all()
    )

    return {
        "accuracy_pct": accuracy_pct(correct, total),
        "attempts": total,
        "mastered_count": status_counts.get(MasteryStatus.MASTERED, 0),
        "review_count": status_counts.get(MasteryStatus.REVIEW, 0)
    }
