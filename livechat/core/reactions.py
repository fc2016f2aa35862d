"""Group per-user reaction rows into emoji buckets."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Protocol
from uuid import UUID


class _ReactionRow(Protocol):
    emoji: str
    user_id: UUID


@dataclass
class ReactionBucketData:
    emoji: str
    users: list[UUID] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.users)


def group_reactions(rows: Iterable[_ReactionRow]) -> list[ReactionBucketData]:
    """
    Buckets in order of each emoji's first appearance; users in row order.

    Rows are expected in reaction order (created_at). Empty buckets cannot
    occur since a bucket only exists because a row does.
    """
    buckets: dict[str, ReactionBucketData] = {}
    for row in rows:
        bucket = buckets.setdefault(row.emoji, ReactionBucketData(emoji=row.emoji))
        if row.user_id not in bucket.users:
            bucket.users.append(row.user_id)
    return list(buckets.values())
