from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base


class StudyMode:
    PRACTICE = "practice"
    QUIZ = "quiz"

    ALL = (PRACTICE, QUIZ)


class MasteryStatus:
    MASTERED = "mastered"
    REVIEW = "review"

    ALL = (MASTERED, REVIEW)


class StudySession(Base):
    __tablename__ = "study_sessions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    deck_id = Column(Integer, ForeignKey("decks.id", ondelete="CASCADE"), nullable=False, index=True)
    mode = Column(String(16), CheckConstraint("mode IN ('practice', 'quiz')", name="ck_study_session_mode"), nullable=False)
    started_at = Column(DateTime(timezone=True), server_default=func.now())
    ended_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    attempts = relationship("StudyAttempt", back_populates="session", cascade="all, delete-orphan", passive_deletes=True)


class StudyAttempt(Base):
    """One answered card inside a study session. Rows are never updated."""
    __tablename__ = "study_attempts"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("study_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    card_id = Column(Integer, ForeignKey("cards.id", ondelete="CASCADE"), nullable=False, index=True)
    is_correct = Column(Boolean, nullable=False)
    time_spent_ms = Column(Integer, CheckConstraint("time_spent_ms >= 0", name="ck_attempt_time_spent"), nullable=False)
    attempted_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    session = relationship("StudySession", back_populates="attempts")


class Mastery(Base):
    """Latest learning status of a card for one user."""
    __tablename__ = "mastery"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    card_id = Column(Integer, ForeignKey("cards.id", ondelete="CASCADE"), primary_key=True)
    status = Column(String(16), CheckConstraint("status IN ('mastered', 'review')", name="ck_mastery_status"), nullable=False)
    last_reviewed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
