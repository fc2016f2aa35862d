"""
Caller identity.

Staff and customer requests arrive from an authenticating gateway that sets
X-User-Id and X-User-Roles. Guests are identified only by their browser
session id (X-Guest-Session header or guest_session cookie).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional
from uuid import UUID

from fastapi import Cookie, Header, HTTPException

from livechat.constants.chat import ADMIN_ROLE, CUSTOMER_ROLE, STAFF_ROLES

GUEST_SESSION_HEADER = "X-Guest-Session"
GUEST_SESSION_COOKIE = "guest_session"


@dataclass(frozen=True)
class CurrentUser:
    id: UUID
    roles: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return ADMIN_ROLE in self.roles

    @property
    def is_staff(self) -> bool:
        return bool(self.roles & STAFF_ROLES)

    @property
    def is_customer(self) -> bool:
        """Customers are scoped to their own conversations; staff roles win."""
        return CUSTOMER_ROLE in self.roles and not self.is_staff


def parse_roles(raw: Optional[str]) -> frozenset[str]:
    if not raw:
        return frozenset()
    return frozenset(r.strip().lower() for r in raw.split(",") if r.strip())


def get_current_user(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_user_roles: Optional[str] = Header(None, alias="X-User-Roles"),
) -> CurrentUser:
    """FastAPI dependency for authenticated (staff or customer) requests."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid user id")
    return CurrentUser(id=user_id, roles=parse_roles(x_user_roles))


def get_guest_session_id(
    x_guest_session: Optional[str] = Header(None, alias=GUEST_SESSION_HEADER),
    guest_session: Optional[str] = Cookie(None, alias=GUEST_SESSION_COOKIE),
) -> str:
    """Browser session id of an anonymous visitor; header wins over cookie."""
    session_id = (x_guest_session or guest_session or "").strip()
    if not session_id:
        raise HTTPException(status_code=400, detail="Guest session id is required")
    return session_id
