"""
Tests for app.sharing.registry.ShareRegistry against a real SQLite file.

Token redemption is exercised both sequentially and under contention: two
sessions (two connections) race to bind the same link token.
"""
import re
import threading

import pytest

from app.errors import Conflict, Forbidden, InvalidArgument, NotFound
from app.sharing.models import DeckShare
from app.sharing.registry import ShareRegistry, generate_share_token
from app.sharing.state import Bound, Unbound


@pytest.fixture
def owner(make_user):
    return make_user("owner")[0]


@pytest.fixture
def deck(make_deck, owner):
    return make_deck(owner, title="Chemistry", cards=2)


# ── Creation ──────────────────────────────────────────────────────────────────

class TestCreateShare:

    def test_token_is_long_random_hex(self):
        token = generate_share_token()
        assert re.fullmatch(r"[0-9a-f]{64}", token)
        assert token != generate_share_token()

    def test_known_email_gives_direct_share(self, db, deck, owner, make_user):
        grantee, _ = make_user("grantee")
        share = ShareRegistry.create_share(db, deck.id, owner.id, "collab", grantee.email)

        assert share.grantee_user_id == grantee.id
        assert share.share_token is None
        assert share.state == Bound(grantee.id)

    def test_no_email_gives_link_share(self, db, deck, owner):
        share = ShareRegistry.create_share(db, deck.id, owner.id, "read")

        assert share.grantee_user_id is None
        assert isinstance(share.state, Unbound)
        assert len(share.share_token) == 64

    def test_unknown_email_gives_link_share(self, db, deck, owner):
        share = ShareRegistry.create_share(db, deck.id, owner.id, "read", "nobody@example.com")

        assert share.grantee_user_id is None
        assert share.share_token

    def test_duplicate_direct_share_conflicts(self, db, deck, owner, make_user):
        grantee, _ = make_user("grantee")
        ShareRegistry.create_share(db, deck.id, owner.id, "read", grantee.email)

        with pytest.raises(Conflict):
            ShareRegistry.create_share(db, deck.id, owner.id, "collab", grantee.email)
        assert db.query(DeckShare).filter(DeckShare.deck_id == deck.id).count() == 1

    @pytest.mark.parametrize("permission", [None, "", "write", "READ", "admin"])
    def test_invalid_permission(self, db, deck, owner, permission):
        with pytest.raises(InvalidArgument):
            ShareRegistry.create_share(db, deck.id, owner.id, permission)

    def test_unknown_deck(self, db, owner):
        with pytest.raises(NotFound):
            ShareRegistry.create_share(db, 4242, owner.id, "read")

    def test_only_owner_may_share(self, db, deck, owner, make_user):
        collab, _ = make_user("collab")
        ShareRegistry.create_share(db, deck.id, owner.id, "collab", collab.email)

        with pytest.raises(Forbidden):
            ShareRegistry.create_share(db, deck.id, collab.id, "read")


# ── Listing and deletion ──────────────────────────────────────────────────────

class TestListAndDelete:

    def test_collaborator_sees_full_list(self, db, deck, owner, make_user):
        collab, _ = make_user("collab")
        ShareRegistry.create_share(db, deck.id, owner.id, "collab", collab.email)
        ShareRegistry.create_share(db, deck.id, owner.id, "read")

        shares = ShareRegistry.list_shares(db, deck.id, collab.id)
        assert len(shares) == 2

    def test_reader_cannot_list(self, db, deck, owner, make_user):
        reader, _ = make_user("reader")
        ShareRegistry.create_share(db, deck.id, owner.id, "read", reader.email)

        with pytest.raises(Forbidden):
            ShareRegistry.list_shares(db, deck.id, reader.id)

    def test_delete_share_from_other_deck_is_not_found(self, db, owner, make_deck):
        first = make_deck(owner, title="First")
        second = make_deck(owner, title="Second")
        share = ShareRegistry.create_share(db, first.id, owner.id, "read")

        with pytest.raises(NotFound):
            ShareRegistry.delete_share(db, second.id, share.id, owner.id)

    def test_collaborator_cannot_delete(self, db, deck, owner, make_user):
        collab, _ = make_user("collab")
        share = ShareRegistry.create_share(db, deck.id, owner.id, "collab", collab.email)

        with pytest.raises(Forbidden):
            ShareRegistry.delete_share(db, deck.id, share.id, collab.id)

    def test_owner_deletes(self, db, deck, owner):
        share = ShareRegistry.create_share(db, deck.id, owner.id, "read")
        ShareRegistry.delete_share(db, deck.id, share.id, owner.id)
        assert db.query(DeckShare).count() == 0


# ── Redemption ────────────────────────────────────────────────────────────────

class TestResolveToken:

    def test_first_redemption_binds(self, db, deck, owner, make_user):
        redeemer, _ = make_user("redeemer")
        share = ShareRegistry.create_share(db, deck.id, owner.id, "collab")
        token = share.share_token

        resolution = ShareRegistry.resolve_token(db, token, redeemer.id)

        assert resolution.deck_id == deck.id
        assert resolution.permission == "collab"
        db.expire_all()
        bound = db.get(DeckShare, share.id)
        assert bound.state == Bound(redeemer.id)

    def test_second_redemption_by_same_user_is_not_found(self, db, deck, owner, make_user):
        redeemer, _ = make_user("redeemer")
        token = ShareRegistry.create_share(db, deck.id, owner.id, "read").share_token

        ShareRegistry.resolve_token(db, token, redeemer.id)
        with pytest.raises(NotFound):
            ShareRegistry.resolve_token(db, token, redeemer.id)

    def test_unknown_token(self, db, make_user):
        user, _ = make_user()
        with pytest.raises(NotFound):
            ShareRegistry.resolve_token(db, "deadbeef", user.id)

    def test_redeemer_with_existing_share_conflicts(self, db, deck, owner, make_user):
        grantee, _ = make_user("grantee")
        ShareRegistry.create_share(db, deck.id, owner.id, "read", grantee.email)
        token = ShareRegistry.create_share(db, deck.id, owner.id, "collab").share_token

        with pytest.raises(Conflict):
            ShareRegistry.resolve_token(db, token, grantee.id)
        # The link is still usable by someone else
        other, _ = make_user("other")
        assert ShareRegistry.resolve_token(db, token, other.id).deck_id == deck.id

    def test_losing_the_race_is_forbidden(self, session_factory, deck, owner, make_user, monkeypatch):
        """Another user binds the token between our lookup and our conditional update."""
        first, _ = make_user("first")
        second, _ = make_user("second")

        setup = session_factory()
        token = ShareRegistry.create_share(setup, deck.id, owner.id, "read").share_token
        setup.close()

        original_bind = ShareRegistry.bind_token
        raced = []

        def bind_after_rival(db, share_id, token_, user_id):
            if not raced:
                raced.append(True)
                rival = session_factory()
                try:
                    ShareRegistry.resolve_token(rival, token_, first.id)
                finally:
                    rival.close()
            return original_bind(db, share_id, token_, user_id)

        monkeypatch.setattr(ShareRegistry, "bind_token", staticmethod(bind_after_rival))

        loser = session_factory()
        try:
            with pytest.raises(Forbidden):
                ShareRegistry.resolve_token(loser, token, second.id)
        finally:
            loser.close()

        check = session_factory()
        shares = check.query(DeckShare).filter(DeckShare.deck_id == deck.id).all()
        assert [s.grantee_user_id for s in shares] == [first.id]
        check.close()

    def test_concurrent_redemptions_bind_once(self, session_factory, deck, owner, make_user):
        users = [make_user(f"racer{i}")[0] for i in range(2)]
        setup = session_factory()
        token = ShareRegistry.create_share(setup, deck.id, owner.id, "read").share_token
        setup.close()

        barrier = threading.Barrier(len(users))
        outcomes = {}

        def redeem(user):
            session = session_factory()
            try:
                barrier.wait()
                ShareRegistry.resolve_token(session, token, user.id)
                outcomes[user.id] = "bound"
            except (Forbidden, NotFound) as exc:
                outcomes[user.id] = type(exc).__name__
            finally:
                session.close()

        threads = [threading.Thread(target=redeem, args=(u,)) for u in users]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert sorted(outcomes.values()).count("bound") == 1
        assert len(outcomes) == 2

        check = session_factory()
        share = check.query(DeckShare).filter(DeckShare.deck_id == deck.id).one()
        assert share.share_token is None
        assert outcomes[share.grantee_user_id] == "bound"
        check.close()


class TestSharedDecks:

    def test_lists_decks_shared_with_user(self, db, owner, make_deck, make_user):
        friend, _ = make_user("friend")
        shared = make_deck(owner, title="Shared")
        make_deck(owner, title="Private")
        ShareRegistry.create_share(db, shared.id, owner.id, "read", friend.email)

        decks = ShareRegistry.list_shared_decks(db, friend.id)
        assert [d.title for d in decks] == ["Shared"]
