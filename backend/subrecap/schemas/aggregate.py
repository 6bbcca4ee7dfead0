"""Aggregate Schemas: Pydantic response models for the cached aggregate.

Invariants:
    - state mirrors core/cache_decision.classify_entry for the same entry
    - Lists are null (not empty) when the corresponding stage never ran
"""

from pydantic import BaseModel

from subrecap.core.cache_decision import classify_entry
from subrecap.core.domain_types import CacheState
from subrecap.core.records import AggregateCacheEntry


class FollowOut(BaseModel):
    broadcaster_id: str
    broadcaster_login: str
    broadcaster_name: str
    followed_at: str | None = None


class SubscriptionOut(BaseModel):
    broadcaster_id: str
    broadcaster_login: str
    broadcaster_name: str
    tier: str
    is_gift: bool
    gifter_login: str | None = None
    gifter_name: str | None = None


class RecapOut(BaseModel):
    channel_id: str
    minutes_watched: str
    ends_at: str | None = None


class AggregateResponse(BaseModel):
    """Cached aggregate for one user."""
    user_id: str
    state: CacheState
    following: list[FollowOut] | None = None
    subscriptions: list[SubscriptionOut] | None = None
    recaps: list[RecapOut] | None = None

    @classmethod
    def from_entry(cls, entry: AggregateCacheEntry) -> "AggregateResponse":
        return cls(
            user_id=entry.user_id,
            state=classify_entry(entry),
            following=_dump(entry.following),
            subscriptions=_dump(entry.subscriptions),
            recaps=(
                None if entry.recaps is None
                else [
                    RecapOut(
                        channel_id=r.channel_id,
                        minutes_watched=str(r.minutes_watched),
                        ends_at=r.ends_at,
                    )
                    for r in entry.recaps
                ]
            ),
        )


def _dump(records):
    if records is None:
        return None
    return [r.to_dict() for r in records]
