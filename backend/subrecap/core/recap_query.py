"""Recap Query: window-end computation and the persisted GQL operation body.

Invariants:
    - endsAt is "<YYYY-MM- of now in UTC>02T00:00:00.000Z", always the 2nd of
      the CURRENT month regardless of the day of invocation
    - The operation is a one-element list carrying the persisted query hash,
      never the query text
"""

from datetime import datetime, timezone

from subrecap.core.domain_types import PERSISTED_QUERY_VERSION, RECAPS_OPERATION_NAME


def compute_window_end(now: datetime) -> str:
    """2024-03-15T10:00:00Z → "2024-03-02T00:00:00.000Z"."""
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return f"{now:%Y-%m-}02T00:00:00.000Z"


def build_recaps_operation(
    channel_id: str, ends_at: str, sha256_hash: str,
) -> list[dict]:
    return [
        {
            "operationName": RECAPS_OPERATION_NAME,
            "variables": {
                "channelId": f"{channel_id}",
                "endsAt": ends_at,
            },
            "extensions": {
                "persistedQuery": {
                    "version": PERSISTED_QUERY_VERSION,
                    "sha256Hash": sha256_hash,
                },
            },
        },
    ]
