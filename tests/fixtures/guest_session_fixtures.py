"""Fixtures for guest sessions."""

import pytest

from livechat.constants.chat import InquiryType
from livechat.models.guest_session import GuestSession
from livechat.utils.time import utcnow


@pytest.fixture(scope="function")
def setup_guest_session(db, faker):
    """A guest who has already left a name and email."""
    guest = GuestSession(
        session_id=faker.uuid4(),
        guest_name=faker.name(),
        guest_email=faker.email(),
        inquiry_type=InquiryType.SUPPORT.value,
        ip_address=faker.ipv4(),
        user_agent=faker.user_agent(),
        last_activity_at=utcnow(),
        extra={},
    )
    db.add(guest)
    db.commit()
    db.refresh(guest)
    return guest


@pytest.fixture(scope="function")
def setup_anonymous_guest(db, faker):
    """A guest with no contact details yet."""
    guest = GuestSession(
        session_id=faker.uuid4(),
        inquiry_type=InquiryType.GENERAL.value,
        last_activity_at=utcnow(),
        extra={},
    )
    db.add(guest)
    db.commit()
    db.refresh(guest)
    return guest
