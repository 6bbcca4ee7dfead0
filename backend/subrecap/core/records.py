"""Aggregate Records: immutable follow/subscription/recap records and the cache entry.

Invariants:
    - FollowRecord, SubscriptionRecord, RecapRecord are frozen once parsed
    - RecapRecord.minutes_watched is never empty (missing → "0")
    - AggregateCacheEntry.recaps is non-null only if following AND subscriptions are non-null
    - to_dict()/from_dict() round-trip through plain JSON types only

Design Decisions:
    - Parsing lives here (pure) so the HTTP client only decodes JSON and
      hands dicts across the boundary
    - Cache payload shape {"id", "data": {...}} kept stable for existing readers
"""

from dataclasses import dataclass, field
from typing import Any

from subrecap.core.domain_types import ZERO_MINUTES_WATCHED


@dataclass(frozen=True)
class FollowRecord:
    """A broadcaster the user follows (Helix channels/followed item)."""
    broadcaster_id: str
    broadcaster_login: str = ""
    broadcaster_name: str = ""
    followed_at: str | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "FollowRecord":
        return cls(
            broadcaster_id=str(payload["broadcaster_id"]),
            broadcaster_login=payload.get("broadcaster_login") or "",
            broadcaster_name=payload.get("broadcaster_name") or "",
            followed_at=payload.get("followed_at"),
        )

    def to_dict(self) -> dict:
        return {
            "broadcaster_id": self.broadcaster_id,
            "broadcaster_login": self.broadcaster_login,
            "broadcaster_name": self.broadcaster_name,
            "followed_at": self.followed_at,
        }


@dataclass(frozen=True)
class SubscriptionRecord:
    """An active subscription from the user to one followed broadcaster."""
    broadcaster_id: str
    broadcaster_login: str = ""
    broadcaster_name: str = ""
    tier: str = "1000"
    is_gift: bool = False
    gifter_login: str | None = None
    gifter_name: str | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "SubscriptionRecord":
        return cls(
            broadcaster_id=str(payload["broadcaster_id"]),
            broadcaster_login=payload.get("broadcaster_login") or "",
            broadcaster_name=payload.get("broadcaster_name") or "",
            tier=str(payload.get("tier") or "1000"),
            is_gift=bool(payload.get("is_gift", False)),
            gifter_login=payload.get("gifter_login"),
            gifter_name=payload.get("gifter_name"),
        )

    def to_dict(self) -> dict:
        return {
            "broadcaster_id": self.broadcaster_id,
            "broadcaster_login": self.broadcaster_login,
            "broadcaster_name": self.broadcaster_name,
            "tier": self.tier,
            "is_gift": self.is_gift,
            "gifter_login": self.gifter_login,
            "gifter_name": self.gifter_name,
        }


@dataclass(frozen=True)
class RecapRecord:
    """Minutes watched for one subscribed channel over the recap window."""
    channel_id: str
    minutes_watched: str = ZERO_MINUTES_WATCHED
    ends_at: str | None = None
    raw: dict = field(default_factory=dict, compare=False)

    def to_dict(self) -> dict:
        return {
            "channel_id": self.channel_id,
            "minutes_watched": self.minutes_watched,
            "ends_at": self.ends_at,
            "raw": self.raw,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RecapRecord":
        return cls(
            channel_id=str(data["channel_id"]),
            minutes_watched=normalize_minutes_watched(data.get("minutes_watched")),
            ends_at=data.get("ends_at"),
            raw=data.get("raw") or {},
        )


def normalize_minutes_watched(value: Any) -> str:
    """Missing, null, empty or zero → "0"; anything else passes through."""
    if not value:
        return ZERO_MINUTES_WATCHED
    return value


def extract_recap(body: dict) -> dict | None:
    """Walk data.user.self.recap; None when any level is missing."""
    node: Any = body
    for key in ("data", "user", "self", "recap"):
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node if isinstance(node, dict) else None


def parse_recap_body(channel_id: str, ends_at: str, body: dict) -> RecapRecord | None:
    """Build a RecapRecord from one GQL response body.

    Returns None when the body lacks the recap structure entirely; the
    caller decides what that means (an invalid privileged credential).
    """
    recap = extract_recap(body)
    if recap is None:
        return None
    return RecapRecord(
        channel_id=channel_id,
        minutes_watched=normalize_minutes_watched(recap.get("minutesWatched")),
        ends_at=ends_at,
        raw=body,
    )


@dataclass(frozen=True)
class FollowCollection:
    """Merged result of a paginated follows fetch."""
    items: tuple[FollowRecord, ...] = ()
    total: int = 0
    cursor: str | None = None
    pages_fetched: int = 0

    def __len__(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class AggregateCacheEntry:
    """The single persisted record per user."""
    user_id: str
    following: tuple[FollowRecord, ...] | None = None
    subscriptions: tuple[SubscriptionRecord, ...] | None = None
    recaps: tuple[RecapRecord, ...] | None = None

    def __post_init__(self):
        if self.recaps is not None and (
            self.following is None or self.subscriptions is None
        ):
            raise ValueError(
                "recaps require both following and subscriptions to be present",
            )

    def to_dict(self) -> dict:
        return {
            "id": self.user_id,
            "data": {
                "following": _dump(self.following),
                "subscriptions": _dump(self.subscriptions),
                "recaps": _dump(self.recaps),
            },
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "AggregateCacheEntry":
        data = payload.get("data") or {}
        following = data.get("following")
        subscriptions = data.get("subscriptions")
        recaps = data.get("recaps")
        return cls(
            user_id=str(payload.get("id", "")),
            following=(
                None if following is None
                else tuple(FollowRecord.from_payload(f) for f in following)
            ),
            subscriptions=(
                None if subscriptions is None
                else tuple(SubscriptionRecord.from_payload(s) for s in subscriptions)
            ),
            recaps=(
                None if recaps is None
                else tuple(RecapRecord.from_dict(r) for r in recaps)
            ),
        )


def _dump(records) -> list[dict] | None:
    if records is None:
        return None
    return [r.to_dict() for r in records]
