"""Recap Resolver: one persisted GQL query per subscription, bounded fan-out.

Invariants:
    - endsAt computed once per run from the injected clock (see core/recap_query.py)
    - Missing minutesWatched normalized to "0"; present values pass through
    - A body without data.user.self.recap is a transport failure (the privileged
      credential did not resolve a user), and fails the whole join
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable

from subrecap.core.domain_types import GQL_ENDPOINT
from subrecap.core.errors import ErrorContext, UpstreamTransportError
from subrecap.core.recap_query import build_recaps_operation, compute_window_end
from subrecap.core.records import RecapRecord, SubscriptionRecord, parse_recap_body
from subrecap.core.repository_protocols import RecapsApi
from subrecap.services.fanout import gather_bounded

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


async def resolve_recaps(
    client: RecapsApi,
    subscriptions: Iterable[SubscriptionRecord],
    global_token: str,
    persisted_query_hash: str,
    concurrency: int = 8,
    clock: Callable[[], datetime] = utc_now,
) -> list[RecapRecord]:
    ends_at = compute_window_end(clock())

    async def _query(subscription: SubscriptionRecord) -> RecapRecord:
        channel_id = subscription.broadcaster_id
        operation = build_recaps_operation(channel_id, ends_at, persisted_query_hash)
        bodies = await client.post_recaps_query(operation, global_token)
        record = parse_recap_body(channel_id, ends_at, bodies[0]) if bodies else None
        if record is None:
            raise UpstreamTransportError(
                "recap missing from response", GQL_ENDPOINT,
                ErrorContext(broadcaster_id=channel_id, stage="recaps"),
            )
        return record

    recaps = await gather_bounded(list(subscriptions), _query, concurrency)
    logger.info(
        "Resolved recaps", extra={"items": len(recaps), "stage": "recaps"},
    )
    return recaps
