"""Tests for ConversationService."""

from uuid import uuid4

import pytest

from livechat.auth.current_user import CurrentUser
from livechat.constants.chat import (
    ConversationPriority,
    ConversationStatus,
    MessageStatus,
    MessageType,
    OwnerKind,
)
from livechat.core.owner import OwnerRef
from livechat.exceptions import AuthorizationError, NotFoundError, ValidationError
from livechat.models.conversation import Conversation
from livechat.schemas.conversation import (
    ConversationCreate,
    ConversationFilters,
    ConversationUpdate,
)
from livechat.services.conversation_service import ConversationService
from livechat.services.message_service import MessageService


# ----------------------------------------------------------------------
# guest conversations
# ----------------------------------------------------------------------


def test_get_or_create_for_guest_defaults(db, setup_guest_session):
    guest = setup_guest_session
    conversation, created = ConversationService(db).get_or_create_for_guest(guest)

    assert created is True
    assert conversation.status == ConversationStatus.ACTIVE.value
    assert conversation.priority == ConversationPriority.NORMAL.value
    assert conversation.participants == []
    assert conversation.created_by is None
    assert conversation.title == f"Guest Chat - {guest.guest_name}"
    assert conversation.owner == OwnerRef.guest(guest.id)
    assert conversation.is_guest_conversation is True
    assert conversation.extra["guest_session_id"] == str(guest.id)
    assert conversation.extra["guest_info"]["email"] == guest.guest_email


def test_get_or_create_for_guest_is_idempotent(db, setup_guest_session):
    svc = ConversationService(db)
    first, _ = svc.get_or_create_for_guest(setup_guest_session)
    second, created = svc.get_or_create_for_guest(setup_guest_session)
    assert created is False
    assert first.id == second.id


def test_get_or_create_for_guest_race_yields_one_row(
    db, setup_guest_session, monkeypatch
):
    """The losing insert trips the partial unique index and reuses the winner."""
    svc = ConversationService(db)
    winner, _ = svc.get_or_create_for_guest(setup_guest_session)

    real_lookup = ConversationService.get_for_guest
    calls = {"n": 0}

    def stale_first_lookup(self, guest_session_id):
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return real_lookup(self, guest_session_id)

    monkeypatch.setattr(ConversationService, "get_for_guest", stale_first_lookup)

    conversation, created = svc.get_or_create_for_guest(setup_guest_session)
    assert created is False
    assert conversation.id == winner.id
    assert (
        db.query(Conversation)
        .filter(Conversation.owner_kind == OwnerKind.GUEST_SESSION.value)
        .count()
        == 1
    )


def test_anonymous_guest_title_uses_short_id(db, setup_anonymous_guest):
    conversation, _ = ConversationService(db).get_or_create_for_guest(
        setup_anonymous_guest
    )
    assert conversation.title == f"Guest Chat - Guest #{setup_anonymous_guest.id.hex[:8]}"


# ----------------------------------------------------------------------
# staff conversations
# ----------------------------------------------------------------------


def test_create_conversation_adds_creator_and_dedupes(db):
    creator, other = uuid4(), uuid4()
    conversation, message = ConversationService(db).create_conversation(
        ConversationCreate(title="Onboarding", participants=[other, creator, other]),
        created_by=creator,
    )
    assert message is None
    assert conversation.participant_ids == [creator, other]
    assert conversation.created_by == creator


def test_create_conversation_with_initial_message(db):
    creator = uuid4()
    conversation, message = ConversationService(db).create_conversation(
        ConversationCreate(
            title="Invoice question",
            owner={"kind": "client", "id": str(uuid4())},
            initial_message="Hello!",
        ),
        created_by=creator,
    )
    assert message is not None
    assert message.body == "Hello!"
    assert message.sender_id == creator
    assert message.sender == conversation.owner
    assert conversation.unread_count == 1


def test_get_or_create_for_owner_reuses_active(db):
    svc = ConversationService(db)
    owner = OwnerRef.of("lead", uuid4())
    first_user, second_user = uuid4(), uuid4()

    created_conv, created = svc.get_or_create_for_owner(owner, first_user, "ACME")
    reused, created_again = svc.get_or_create_for_owner(owner, second_user)

    assert created is True
    assert created_again is False
    assert reused.id == created_conv.id
    assert set(reused.participant_ids) == {first_user, second_user}

    messages = MessageService(db).get_messages(created_conv.id)
    assert len(messages) == 1
    assert messages[0].message_type == MessageType.SYSTEM.value
    assert messages[0].is_internal_note is True
    assert messages[0].body == "Conversation started with ACME"


def test_get_or_create_for_owner_skips_archived(db):
    svc = ConversationService(db)
    owner = OwnerRef.of("client", uuid4())
    first, _ = svc.get_or_create_for_owner(owner, uuid4(), "Client")
    svc.archive(first.id)
    second, created = svc.get_or_create_for_owner(owner, uuid4(), "Client")
    assert created is True
    assert second.id != first.id


def test_get_or_create_for_owner_rejects_guest_kind(db):
    with pytest.raises(ValidationError):
        ConversationService(db).get_or_create_for_owner(
            OwnerRef.guest(uuid4()), uuid4()
        )


def test_require_conversation_not_found(db):
    with pytest.raises(NotFoundError):
        ConversationService(db).require_conversation(uuid4())


# ----------------------------------------------------------------------
# listing
# ----------------------------------------------------------------------


def test_filters(db, setup_conversations):
    svc = ConversationService(db)
    active = svc.get_conversations_query(
        ConversationFilters(status=ConversationStatus.ACTIVE)
    ).all()
    assert [c.status for c in active] == ["active"]

    low = svc.get_conversations_query(
        ConversationFilters(priority=ConversationPriority.LOW)
    ).all()
    assert [c.priority for c in low] == ["low"]

    searched = svc.get_conversations_query(
        ConversationFilters(search="archived")
    ).all()
    assert [c.id for c in searched] == [setup_conversations[1].id]


def test_filter_by_owner_kind_and_participant(db, setup_guest_conversation, setup_conversation):
    svc = ConversationService(db)
    guest_conv, _ = setup_guest_conversation
    guests = svc.get_conversations_query(
        ConversationFilters(owner_kind=OwnerKind.GUEST_SESSION)
    ).all()
    assert [c.id for c in guests] == [guest_conv.id]

    member = setup_conversation.participant_ids[1]
    mine = svc.get_conversations_query(ConversationFilters(participant=member)).all()
    assert [c.id for c in mine] == [setup_conversation.id]


def test_customer_only_sees_own_conversations(db, setup_conversation, setup_conversations):
    svc = ConversationService(db)
    customer = CurrentUser(id=setup_conversation.participant_ids[1], roles=frozenset({"customer"}))
    visible = svc.get_conversations_query(user=customer).all()
    assert [c.id for c in visible] == [setup_conversation.id]


def test_member_scoping_runs_in_sql(db, setup_conversation, setup_conversations):
    svc = ConversationService(db)
    creator = setup_conversations[2].created_by
    member = setup_conversation.participant_ids[1]
    svc.add_participant(setup_conversations[0].id, member)

    query = svc.get_conversations_query(ConversationFilters(participant=member))
    assert " IN (" not in str(query.statement)
    assert {c.id for c in query.all()} == {
        setup_conversation.id,
        setup_conversations[0].id,
    }

    closed_by_creator = svc.get_conversations_query(
        ConversationFilters(participant=creator, status=ConversationStatus.CLOSED)
    ).all()
    assert [c.id for c in closed_by_creator] == [setup_conversations[2].id]
    assert (
        svc.get_conversations_query(
            ConversationFilters(participant=creator, status=ConversationStatus.ACTIVE)
        ).count()
        == 0
    )


# ----------------------------------------------------------------------
# read state
# ----------------------------------------------------------------------


def test_mark_read_for_leaves_own_messages(db, setup_conversation, current_user):
    msg_svc = MessageService(db)
    mine = msg_svc.append(
        setup_conversation.id, sender=None, body="mine", sender_id=current_user.id
    )
    theirs = msg_svc.append(
        setup_conversation.id, sender=None, body="theirs", sender_id=uuid4()
    )
    guest = msg_svc.append(setup_conversation.id, sender=None, body="guest")

    changed = ConversationService(db).mark_read_for(
        setup_conversation.id, current_user.id
    )
    assert changed == 2

    db.refresh(setup_conversation)
    assert setup_conversation.unread_count == 0
    for message in (mine, theirs, guest):
        db.refresh(message)
    assert mine.status == MessageStatus.SENT.value
    assert mine.is_read is False
    assert theirs.status == MessageStatus.READ.value
    assert theirs.read_at is not None
    assert guest.is_read is True


def test_mark_read_for_is_idempotent(db, setup_conversation, setup_message):
    svc = ConversationService(db)
    reader = uuid4()
    assert svc.mark_read_for(setup_conversation.id, reader) == 1
    assert svc.mark_read_for(setup_conversation.id, reader) == 0


def test_mark_read_for_unknown_conversation(db):
    with pytest.raises(NotFoundError):
        ConversationService(db).mark_read_for(uuid4(), uuid4())


def test_mark_read_for_backfills_delivered_at(db, setup_conversation, current_user):
    msg_svc = MessageService(db)
    fresh = msg_svc.append(setup_conversation.id, sender=None, body="fresh")
    delivered = msg_svc.append(setup_conversation.id, sender=None, body="seen")
    delivered = msg_svc.mark_delivered(delivered.id)
    delivered_at = delivered.delivered_at

    ConversationService(db).mark_read_for(setup_conversation.id, current_user.id)
    db.refresh(fresh)
    db.refresh(delivered)
    assert fresh.delivered_at is not None
    assert fresh.read_at is not None
    assert delivered.delivered_at == delivered_at


# ----------------------------------------------------------------------
# participants, assignment, status
# ----------------------------------------------------------------------


def test_participants_have_set_semantics(db, setup_conversation):
    svc = ConversationService(db)
    user = uuid4()
    svc.add_participant(setup_conversation.id, user)
    conversation = svc.add_participant(setup_conversation.id, user)
    assert conversation.participant_ids.count(user) == 1

    conversation = svc.remove_participant(setup_conversation.id, user)
    assert user not in conversation.participant_ids
    conversation = svc.remove_participant(setup_conversation.id, user)
    assert user not in conversation.participant_ids


def test_assign_makes_assignee_participant(db, setup_guest_conversation):
    conversation, _ = setup_guest_conversation
    agent = uuid4()
    assigned = ConversationService(db).assign(conversation.id, agent)
    assert assigned.assigned_to == agent
    assert assigned.participant_ids == [agent]

    cleared = ConversationService(db).assign(conversation.id, None)
    assert cleared.assigned_to is None


def test_status_transitions(db, setup_conversation):
    svc = ConversationService(db)
    assert svc.archive(setup_conversation.id).status == "archived"
    assert svc.restore(setup_conversation.id).status == "active"
    assert svc.close(setup_conversation.id).status == "closed"
    with pytest.raises(ValidationError):
        svc.restore(setup_conversation.id)
    with pytest.raises(ValidationError):
        svc.archive(setup_conversation.id)


def test_archived_cannot_close_directly(db, setup_conversation):
    svc = ConversationService(db)
    svc.archive(setup_conversation.id)
    with pytest.raises(ValidationError):
        svc.close(setup_conversation.id)


def test_set_status_rejects_unknown(db, setup_conversation):
    with pytest.raises(ValidationError):
        ConversationService(db).set_status(setup_conversation.id, "deleted")


def test_set_priority_and_update(db, setup_conversation):
    svc = ConversationService(db)
    assert svc.set_priority(setup_conversation.id, "urgent").priority == "urgent"
    with pytest.raises(ValidationError):
        svc.set_priority(setup_conversation.id, "whenever")

    updated = svc.update_conversation(
        setup_conversation.id,
        ConversationUpdate(title="Renamed", tags=["vip", "vip", "billing"]),
    )
    assert updated.title == "Renamed"
    assert updated.tags == ["vip", "billing"]
    assert updated.priority == "urgent"


# ----------------------------------------------------------------------
# access
# ----------------------------------------------------------------------


def test_ensure_access(db, setup_conversation):
    svc = ConversationService(db)
    staff = CurrentUser(id=uuid4(), roles=frozenset({"staff"}))
    member = CurrentUser(
        id=setup_conversation.participant_ids[1], roles=frozenset({"customer"})
    )
    stranger = CurrentUser(id=uuid4(), roles=frozenset({"customer"}))

    svc.ensure_access(setup_conversation, staff)
    svc.ensure_access(setup_conversation, member)
    with pytest.raises(AuthorizationError):
        svc.ensure_access(setup_conversation, stranger)
