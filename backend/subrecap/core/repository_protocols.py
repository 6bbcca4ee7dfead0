"""Boundary Protocols: contracts between the pipeline and its IO collaborators.

Invariants:
    - Services NEVER import concrete adapters: dependency arrows point inward only
    - All IO operations accessed through Protocol types
    - A store handle is only valid inside the scope opened by its factory

Design Decisions:
    - Protocol over ABC: structural subtyping, fakes need no inheritance
    - Store factory returns an async context manager: acquisition and release
      are one construct, so every exit path releases the handle
"""

from contextlib import AbstractAsyncContextManager
from typing import Protocol

from subrecap.core.lookup_results import SubscriptionLookup
from subrecap.core.records import AggregateCacheEntry


class AggregateCacheStore(Protocol):
    """Key-value access to aggregate entries, keyed by user id."""
    async def read(self, key: str) -> AggregateCacheEntry | None: ...
    async def write(self, key: str, entry: AggregateCacheEntry) -> None: ...
    async def delete(self, key: str) -> None: ...


class AggregateCacheStoreFactory(Protocol):
    """Opens a scoped store handle: ``async with factory() as store: ...``."""
    def __call__(self) -> AbstractAsyncContextManager[AggregateCacheStore]: ...


class FollowsApi(Protocol):
    """Cursor-paginated listing of channels a user follows."""
    async def get_followed_page(
        self, twitch_id: str, access_token: str,
        after: str | None = None, first: int = 100,
    ) -> dict: ...


class SubscriptionsApi(Protocol):
    """Single subscription lookup for (broadcaster, user)."""
    async def lookup_subscription(
        self, twitch_id: str, broadcaster_id: str, access_token: str,
    ) -> SubscriptionLookup: ...


class RecapsApi(Protocol):
    """Persisted-query POST returning the decoded GQL response list."""
    async def post_recaps_query(
        self, operation: list[dict], global_token: str,
    ) -> list[dict]: ...


class TwitchApi(FollowsApi, SubscriptionsApi, RecapsApi, Protocol):
    """Everything the aggregate pipeline needs from the upstream platform."""
