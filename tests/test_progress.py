import pytest

from app.study.models import Mastery, StudyAttempt, StudySession
from app.study.progress import accuracy_pct, get_progress

ZERO = {"accuracy_pct": 0.0, "attempts": 0, "mastered_count": 0, "review_count": 0}


def _record(db, user, deck, card_results, mode="quiz"):
    session = StudySession(user_id=user.id, deck_id=deck.id, mode=mode)
    db.add(session)
    db.flush()
    for card, correct in card_results:
        db.add(StudyAttempt(session_id=session.id, card_id=card.id, is_correct=correct, time_spent_ms=1200))
    db.commit()
    return session


class TestAccuracyPct:

    @pytest.mark.parametrize("correct,total,expected", [
        (0, 0, 0.0),
        (0, 3, 0.0),
        (3, 3, 100.0),
        (1, 3, 33.33),
        (2, 3, 66.67),
        (1, 8, 12.5),
        (1, 6, 16.67),
    ])
    def test_values(self, correct, total, expected):
        assert accuracy_pct(correct, total) == expected

    def test_monotone_in_correct_answers(self):
        total = 7
        values = [accuracy_pct(correct, total) for correct in range(total + 1)]
        assert values == sorted(values)


class TestGetProgress:

    def test_deck_without_cards_is_all_zero(self, db, make_user, make_deck):
        user, _ = make_user()
        deck = make_deck(user)
        assert get_progress(db, deck.id, user.id) == ZERO

    def test_unknown_deck_is_all_zero(self, db, make_user):
        user, _ = make_user()
        assert get_progress(db, 12345, user.id) == ZERO

    def test_counts_attempts_and_mastery(self, db, make_user, make_deck):
        user, _ = make_user()
        deck = make_deck(user, cards=3)
        c1, c2, c3 = deck.cards
        _record(db, user, deck, [(c1, True), (c2, False), (c3, True)])
        db.add_all([
            Mastery(user_id=user.id, card_id=c1.id, status="mastered"),
            Mastery(user_id=user.id, card_id=c2.id, status="review"),
            Mastery(user_id=user.id, card_id=c3.id, status="mastered"),
        ])
        db.commit()

        assert get_progress(db, deck.id, user.id) == {
            "accuracy_pct": 66.67,
            "attempts": 3,
            "mastered_count": 2,
            "review_count": 1
        }

    def test_only_the_viewers_data_counts(self, db, make_user, make_deck):
        owner, _ = make_user("owner")
        other, _ = make_user("other")
        deck = make_deck(owner, cards=2, is_public=True)
        c1, c2 = deck.cards
        _record(db, owner, deck, [(c1, True)])
        _record(db, other, deck, [(c1, False), (c2, False)])
        db.add(Mastery(user_id=other.id, card_id=c1.id, status="review"))
        db.commit()

        assert get_progress(db, deck.id, owner.id) == {
            "accuracy_pct": 100.0,
            "attempts": 1,
            "mastered_count": 0,
            "review_count": 0
        }

    def test_attempts_on_other_decks_ignored(self, db, make_user, make_deck):
        user, _ = make_user()
        deck = make_deck(user, title="One", cards=1)
        other_deck = make_deck(user, title="Two", cards=1)
        _record(db, user, other_deck, [(other_deck.cards[0], True)])

        assert get_progress(db, deck.id, user.id)["attempts"] == 0
