"""Subscription Lookup Results: explicit two-variant result for one Helix lookup.

Invariants:
    - Every lookup yields exactly one of Subscribed | NotSubscribed
    - Transport failures are exceptions (UpstreamTransportError), never a variant
    - Decided once, where the Helix response is parsed (classify_subscription_response)
"""

from dataclasses import dataclass

from subrecap.core.records import SubscriptionRecord


@dataclass(frozen=True)
class Subscribed:
    """The user holds a subscription to the broadcaster."""
    record: SubscriptionRecord


@dataclass(frozen=True)
class NotSubscribed:
    """No subscription: an expected answer, not a failure."""
    broadcaster_id: str
    status_code: int | None = None
    message: str | None = None


SubscriptionLookup = Subscribed | NotSubscribed


def classify_subscription_response(
    broadcaster_id: str, status_code: int, body: dict,
) -> SubscriptionLookup:
    """Turn a decoded Helix subscriptions/user response into a lookup variant.

    A success payload carries a non-empty ``data`` list; anything else
    (404 "has no subscription", an error envelope, an empty list) means
    not subscribed.
    """
    data = body.get("data") if isinstance(body, dict) else None
    if 200 <= status_code < 300 and isinstance(data, list) and data:
        return Subscribed(SubscriptionRecord.from_payload(data[0]))
    message = body.get("message") if isinstance(body, dict) else None
    return NotSubscribed(
        broadcaster_id=broadcaster_id, status_code=status_code, message=message,
    )
