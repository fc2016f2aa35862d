"""Owner references: which entity owns a conversation or sent a message."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from livechat.constants.chat import OwnerKind
from livechat.exceptions import ValidationError


@dataclass(frozen=True)
class OwnerRef:
    kind: OwnerKind
    id: UUID

    @classmethod
    def of(cls, kind: str | OwnerKind, id: UUID | str) -> "OwnerRef":
        try:
            owner_kind = OwnerKind(kind)
        except ValueError as e:
            raise ValidationError(f"Unknown owner kind {kind!r}") from e
        return cls(kind=owner_kind, id=id if isinstance(id, UUID) else UUID(str(id)))

    @classmethod
    def from_columns(
        cls, kind: Optional[str], id: Optional[UUID]
    ) -> Optional["OwnerRef"]:
        """Rebuild from a (kind, id) column pair; None when either side is empty."""
        if kind is None or id is None:
            return None
        return cls.of(kind, id)

    @classmethod
    def guest(cls, guest_session_id: UUID) -> "OwnerRef":
        return cls(kind=OwnerKind.GUEST_SESSION, id=guest_session_id)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"
