"""Tests for NotificationService and the notify_staff_task Celery task."""

from contextlib import contextmanager
from uuid import uuid4

from livechat.constants.chat import NOTIFICATION_KIND_CHAT
from livechat.models.notification import Notification
from livechat.services.notification_service import NotificationService
from livechat.tasks import notification_task


def test_create_notifications_one_per_recipient(db):
    svc = NotificationService(db)
    a, b = uuid4(), uuid4()
    conversation_id = uuid4()
    rows = svc.create_notifications(
        [a, b, a], "New guest message", link="/crm/livechat/x",
        conversation_id=conversation_id,
    )
    assert len(rows) == 2
    assert {r.user_id for r in rows} == {a, b}
    assert all(r.kind == NOTIFICATION_KIND_CHAT for r in rows)
    assert all(r.conversation_id == conversation_id for r in rows)


def test_create_notifications_without_recipients(db):
    assert NotificationService(db).create_notifications([], "nothing") == []
    assert db.query(Notification).count() == 0


def test_list_and_mark_read(db):
    svc = NotificationService(db)
    user = uuid4()
    svc.create_notifications([user], "first")
    svc.create_notifications([user], "second")
    assert len(svc.list_for_user(user, unread_only=True)) == 2

    assert svc.mark_read(user) == 2
    assert svc.list_for_user(user, unread_only=True) == []
    assert len(svc.list_for_user(user)) == 2


def test_notify_staff_task_persists_rows(db, monkeypatch):
    @contextmanager
    def test_session():
        yield db

    monkeypatch.setattr(notification_task, "db_session", test_session)
    user = uuid4()
    conversation_id = uuid4()

    written = notification_task.notify_staff_task(
        [str(user), "not-a-uuid"], "hello", "/crm/livechat/1", str(conversation_id)
    )

    assert written == 1
    row = db.query(Notification).one()
    assert row.user_id == user
    assert row.conversation_id == conversation_id
    assert row.message == "hello"
