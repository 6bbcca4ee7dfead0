"""Subscription Resolver: one Helix lookup per followed broadcaster, bounded fan-out.

Invariants:
    - NotSubscribed results are dropped silently (expected, not an error)
    - At most one SubscriptionRecord per followed broadcaster
    - Any transport/status failure fails the whole join and propagates
"""

import logging
from typing import Iterable

from subrecap.core.credentials import ViewerCredentials
from subrecap.core.lookup_results import Subscribed, SubscriptionLookup
from subrecap.core.records import FollowRecord, SubscriptionRecord
from subrecap.core.repository_protocols import SubscriptionsApi
from subrecap.services.fanout import gather_bounded

logger = logging.getLogger(__name__)


async def resolve_subscriptions(
    client: SubscriptionsApi,
    credentials: ViewerCredentials,
    follows: Iterable[FollowRecord],
    concurrency: int = 8,
) -> list[SubscriptionRecord]:
    broadcaster_ids = list(dict.fromkeys(f.broadcaster_id for f in follows))

    async def _lookup(broadcaster_id: str) -> SubscriptionLookup:
        return await client.lookup_subscription(
            credentials.twitch_id, broadcaster_id, credentials.access_token,
        )

    results = await gather_bounded(broadcaster_ids, _lookup, concurrency)
    subscriptions = [r.record for r in results if isinstance(r, Subscribed)]
    logger.info(
        "Resolved subscriptions",
        extra={"user_id": credentials.user_id, "items": len(subscriptions),
               "total": len(broadcaster_ids)},
    )
    return subscriptions
