import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from app.database import get_db
from app.auth.identity import require_caller
from app.auth.schemas import CallerIdentity
from app.cards.models import Card
from app.cards.permissions import require_read
from app.errors import Forbidden, InvalidArgument, NotFound
from app.schemas import DataResponse
from app.study.models import Mastery, MasteryStatus, StudyAttempt, StudyMode, StudySession
from app.study.progress import get_progress
from app.study.schemas import (
    AttemptResponse,
    AttemptSubmit,
    MasteryResponse,
    MasteryUpdate,
    ProgressOverview,
    StudySessionResponse,
    StudySessionStart,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/study", tags=["Study"])


def _get_own_session(db: Session, session_id: int, user_id: int) -> StudySession:
    session = db.query(StudySession).filter(StudySession.id == session_id).first()
    if not session:
        raise NotFound("Session not found")
    if session.user_id != user_id:
        raise Forbidden("Access denied")
    return session


def _get_mastery(db: Session, user_id: int, card_id: int) -> Optional[Mastery]:
    return db.query(Mastery).filter(
        Mastery.user_id == user_id,
        Mastery.card_id == card_id
    ).first()


# ============== SESSION ENDPOINTS ==============

@router.post("/sessions", response_model=DataResponse[StudySessionResponse], status_code=status.HTTP_201_CREATED)
def create_session(
    session_in: StudySessionStart,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(require_caller)
):
    """
    Start studying a deck.

    - **deckId**: a deck the caller can read (own, public or shared)
    - **mode**: "practice" or "quiz"
    """
    if not session_in.deck_id or not session_in.mode:
        raise InvalidArgument("deckId and mode are required")
    if session_in.mode not in StudyMode.ALL:
        raise InvalidArgument('mode must be either "practice" or "quiz"')

    require_read(db, session_in.deck_id, caller.id)

    session = StudySession(user_id=caller.id, deck_id=session_in.deck_id, mode=session_in.mode)
    db.add(session)
    db.commit()
    db.refresh(session)
    return {"data": session}


@router.get("/sessions/{session_id}", response_model=DataResponse[StudySessionResponse])
def get_session(
    session_id: int,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(require_caller)
):
    return {"data": _get_own_session(db, session_id, caller.id)}


@router.post(
    "/sessions/{session_id}/attempts",
    response_model=DataResponse[AttemptResponse],
    status_code=status.HTTP_201_CREATED
)
def create_attempt(
    session_id: int,
    attempt_in: AttemptSubmit,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(require_caller)
):
    """Record one answered card. Only the session's owner may add attempts."""
    if attempt_in.card_id is None or attempt_in.is_correct is None or attempt_in.time_spent_ms is None:
        raise InvalidArgument("cardId, is_correct, and time_spent_ms are required")
    if attempt_in.time_spent_ms < 0:
        raise InvalidArgument("time_spent_ms must not be negative")

    session = _get_own_session(db, session_id, caller.id)

    card_exists = db.query(Card.id).filter(
        Card.id == attempt_in.card_id,
        Card.deck_id == session.deck_id
    ).first()
    if not card_exists:
        raise NotFound("Card not found")

    attempt = StudyAttempt(
        session_id=session_id,
        card_id=attempt_in.card_id,
        is_correct=attempt_in.is_correct,
        time_spent_ms=attempt_in.time_spent_ms
    )
    db.add(attempt)
    db.commit()
    db.refresh(attempt)
    return {"data": attempt}


@router.post("/sessions/{session_id}/end", response_model=DataResponse[StudySessionResponse])
def end_session(
    session_id: int,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(require_caller)
):
    """Mark a session finished. Ending it again keeps the first end time."""
    session = _get_own_session(db, session_id, caller.id)

    if session.ended_at is None:
        session.ended_at = func.now()
        db.commit()
        db.refresh(session)
        logger.info(f"Study session {session_id} ended")
    return {"data": session}


# ============== MASTERY & PROGRESS ==============

@router.put("/mastery/{card_id}", response_model=DataResponse[MasteryResponse])
def update_mastery(
    card_id: int,
    mastery_in: MasteryUpdate,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(require_caller)
):
    if mastery_in.status not in MasteryStatus.ALL:
        raise InvalidArgument('status must be either "mastered" or "review"')

    card_exists = db.query(Card.id).filter(Card.id == card_id).first()
    if not card_exists:
        raise NotFound("Card not found")

    # Get or create Mastery
    mastery = _get_mastery(db, caller.id, card_id)
    if not mastery:
        mastery = Mastery(user_id=caller.id, card_id=card_id)
        db.add(mastery)

    mastery.status = mastery_in.status
    mastery.last_reviewed_at = func.now()

    try:
        db.commit()
    except IntegrityError:
        # A concurrent request inserted the row first; overwrite it.
        db.rollback()
        mastery = _get_mastery(db, caller.id, card_id)
        if not mastery:
            raise
        mastery.status = mastery_in.status
        mastery.last_reviewed_at = func.now()
        db.commit()
    db.refresh(mastery)
    return {"data": mastery}


@router.get("/progress/overview", response_model=DataResponse[ProgressOverview])
def progress_overview(
    deck_id: Optional[int] = Query(None, alias="deckId"),
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(require_caller)
):
    """Accuracy and mastery counts of the caller on one deck."""
    if deck_id is None:
        raise InvalidArgument("deckId query parameter is required")
    return {"data": get_progress(db, deck_id, caller.id)}
