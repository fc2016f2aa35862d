"""Tests for ReactionService."""

from uuid import uuid4

import pytest

from livechat.exceptions import ConcurrencyConflict, NotFoundError, ValidationError
from livechat.models.message import MessageReaction
from livechat.services.reaction_service import ReactionService


def _buckets(svc, message_id):
    return {b.emoji: set(b.users) for b in svc.get_reactions(message_id)}


def test_add_reaction_creates_bucket(db, setup_message):
    svc = ReactionService(db)
    user = uuid4()
    buckets = svc.add_reaction(setup_message.id, "👍", user)
    assert len(buckets) == 1
    assert buckets[0].emoji == "👍"
    assert buckets[0].users == [user]
    assert buckets[0].count == 1


def test_user_sits_in_last_chosen_bucket_only(db, setup_message):
    """Several reactions from one user collapse to the last emoji chosen."""
    svc = ReactionService(db)
    user = uuid4()
    for emoji in ("👍", "❤️", "😂"):
        svc.add_reaction(setup_message.id, emoji, user)

    assert _buckets(svc, setup_message.id) == {"😂": {user}}
    assert svc.get_user_reaction(setup_message.id, user) == "😂"
    assert db.query(MessageReaction).count() == 1


def test_counts_match_users_and_no_empty_buckets(db, setup_message):
    svc = ReactionService(db)
    alice, bob, carol = uuid4(), uuid4(), uuid4()
    svc.add_reaction(setup_message.id, "👍", alice)
    svc.add_reaction(setup_message.id, "👍", bob)
    svc.add_reaction(setup_message.id, "🎉", carol)
    svc.add_reaction(setup_message.id, "🎉", alice)
    svc.remove_reaction(setup_message.id, "🎉", carol)

    buckets = svc.get_reactions(setup_message.id)
    for bucket in buckets:
        assert bucket.count == len(bucket.users)
        assert bucket.count > 0
    assert _buckets(svc, setup_message.id) == {"👍": {bob}, "🎉": {alice}}


def test_readding_same_emoji_is_noop(db, setup_message):
    svc = ReactionService(db)
    user = uuid4()
    svc.add_reaction(setup_message.id, "👍", user)
    buckets = svc.add_reaction(setup_message.id, "👍", user)
    assert [(b.emoji, b.count) for b in buckets] == [("👍", 1)]


def test_remove_reaction(db, setup_message):
    svc = ReactionService(db)
    user = uuid4()
    svc.add_reaction(setup_message.id, "👍", user)
    assert svc.remove_reaction(setup_message.id, "👍", user) == []
    assert svc.has_user_reacted(setup_message.id, user) is False


def test_remove_other_emoji_keeps_reaction(db, setup_message):
    svc = ReactionService(db)
    user = uuid4()
    svc.add_reaction(setup_message.id, "👍", user)
    svc.remove_reaction(setup_message.id, "❤️", user)
    assert svc.has_user_reacted(setup_message.id, user, "👍") is True


def test_reaction_counts(db, setup_message):
    svc = ReactionService(db)
    for _ in range(3):
        svc.add_reaction(setup_message.id, "🔥", uuid4())
    assert svc.get_reaction_count(setup_message.id, "🔥") == 3
    assert svc.get_reaction_count(setup_message.id, "👍") == 0


@pytest.mark.parametrize("emoji", ["", "   ", "x" * 11])
def test_invalid_emoji_rejected(db, setup_message, emoji):
    with pytest.raises(ValidationError):
        ReactionService(db).add_reaction(setup_message.id, emoji, uuid4())


def test_reaction_on_unknown_message(db):
    with pytest.raises(NotFoundError):
        ReactionService(db).add_reaction(uuid4(), "👍", uuid4())


def test_concurrent_insert_surfaces_conflict(db, setup_message, monkeypatch):
    """A row inserted behind the service's back trips the unique constraint."""
    svc = ReactionService(db)
    user = uuid4()
    svc.add_reaction(setup_message.id, "👍", user)
    monkeypatch.setattr(ReactionService, "_get_user_row", lambda self, m, u: None)

    with pytest.raises(ConcurrencyConflict):
        svc.add_reaction(setup_message.id, "❤️", user)

    monkeypatch.undo()
    assert svc.get_user_reaction(setup_message.id, user) == "👍"


def test_message_exposes_reaction_buckets(db, setup_message):
    svc = ReactionService(db)
    user = uuid4()
    svc.add_reaction(setup_message.id, "👍", user)
    db.refresh(setup_message)
    buckets = setup_message.reaction_buckets
    assert [(b.emoji, b.users) for b in buckets] == [("👍", [user])]
