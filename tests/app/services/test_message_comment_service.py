"""Tests for MessageCommentService."""

from uuid import uuid4

import pytest

from livechat.auth.current_user import CurrentUser
from livechat.exceptions import AuthorizationError, NotFoundError, ValidationError
from livechat.services.message_comment_service import MessageCommentService


def test_add_and_list_comments(db, setup_message, faker):
    svc = MessageCommentService(db)
    author = uuid4()
    text = faker.sentence()
    comment = svc.add_comment(setup_message.id, author, f"  {text}  ")
    assert comment.comment == text
    assert comment.user_id == author
    assert [c.id for c in svc.get_comments(setup_message.id)] == [comment.id]


@pytest.mark.parametrize("text", ["", "   ", "x" * 1001])
def test_add_comment_validates_length(db, setup_message, text):
    with pytest.raises(ValidationError):
        MessageCommentService(db).add_comment(setup_message.id, uuid4(), text)


def test_add_comment_unknown_message(db):
    with pytest.raises(NotFoundError):
        MessageCommentService(db).add_comment(uuid4(), uuid4(), "hello")


def test_delete_comment_by_author(db, setup_message):
    svc = MessageCommentService(db)
    author = CurrentUser(id=uuid4(), roles=frozenset({"staff"}))
    comment = svc.add_comment(setup_message.id, author.id, "mine")
    svc.delete_comment(comment.id, author)
    assert svc.get_comments(setup_message.id) == []


def test_delete_comment_by_admin(db, setup_message):
    svc = MessageCommentService(db)
    comment = svc.add_comment(setup_message.id, uuid4(), "theirs")
    admin = CurrentUser(id=uuid4(), roles=frozenset({"admin"}))
    svc.delete_comment(comment.id, admin)
    assert svc.get_comments(setup_message.id) == []


def test_delete_comment_by_other_user_rejected(db, setup_message):
    svc = MessageCommentService(db)
    comment = svc.add_comment(setup_message.id, uuid4(), "theirs")
    other = CurrentUser(id=uuid4(), roles=frozenset({"staff"}))
    with pytest.raises(AuthorizationError):
        svc.delete_comment(comment.id, other)


def test_delete_unknown_comment(db):
    with pytest.raises(NotFoundError):
        MessageCommentService(db).delete_comment(
            uuid4(), CurrentUser(id=uuid4(), roles=frozenset({"admin"}))
        )
