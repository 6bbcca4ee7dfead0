"""Integration Tests: AggregatePipeline cache gating, write-through, failures.

Invariants:
    - COMPLETE + wants_recap and PARTIAL/COMPLETE + !wants_recap short-circuit with zero upstream calls
    - FETCH runs follows → subscriptions → (recaps) and writes exactly once
    - Any failure writes nothing and leaves a prior entry untouched
    - The store handle is released on every path
    - Concurrent runs for one user: last writer wins (documented, not prevented)
"""

import asyncio

from subrecap.core.credentials import ViewerCredentials
from subrecap.core.domain_types import CacheDecision, OutcomeKind, OutcomeReason
from subrecap.core.errors import (
    CacheStoreError, UpstreamStatusError, UpstreamTransportError,
)
from subrecap.core.records import (
    AggregateCacheEntry, FollowRecord, RecapRecord, SubscriptionRecord,
)
from subrecap.services.aggregate_pipeline import AggregatePipeline

from tests.services.fake_twitch import FIXED_NOW, QUERY_HASH, FakeTwitchApi


# -- Helpers -------------------------------------------------------------------

def _partial(user_id="user-1"):
    return AggregateCacheEntry(
        user_id,
        following=(FollowRecord("9"),),
        subscriptions=(SubscriptionRecord("9"),),
    )


def _complete(user_id="user-1"):
    return AggregateCacheEntry(
        user_id,
        following=(FollowRecord("9"),),
        subscriptions=(SubscriptionRecord("9"),),
        recaps=(RecapRecord("9", "42"),),
    )


def _upstream_calls(api):
    return sum(len(v) for v in api.calls.values())


async def _seed(store_factory, entry):
    async with store_factory() as store:
        await store.write(entry.user_id, entry)
    store_factory.store.writes.clear()


# ==============================================================================
# Short-circuits
# ==============================================================================


async def test_complete_and_wants_recap_short_circuits_to_final(
    pipeline, store_factory, fake_twitch, credentials,
):
    await _seed(store_factory, _complete())

    outcome = await pipeline.run(credentials, wants_recap=True)

    assert outcome.kind == OutcomeKind.READY_FINAL
    assert outcome.decision == CacheDecision.READY_FINAL
    assert outcome.wrote_cache is False
    assert _upstream_calls(fake_twitch) == 0
    assert store_factory.store.writes == []
    assert store_factory.open_handles == 0


async def test_partial_and_no_recap_short_circuits_to_intermediate(
    pipeline, store_factory, fake_twitch, credentials,
):
    await _seed(store_factory, _partial())

    outcome = await pipeline.run(credentials, wants_recap=False)

    assert outcome.kind == OutcomeKind.READY_INTERMEDIATE
    assert _upstream_calls(fake_twitch) == 0
    assert store_factory.store.writes == []
    assert store_factory.open_handles == 0


async def test_complete_and_no_recap_short_circuits_to_intermediate(
    pipeline, store_factory, fake_twitch, credentials,
):
    await _seed(store_factory, _complete())

    outcome = await pipeline.run(credentials, wants_recap=False)

    assert outcome.kind == OutcomeKind.READY_INTERMEDIATE
    assert _upstream_calls(fake_twitch) == 0


# ==============================================================================
# Fetch chain
# ==============================================================================


async def test_empty_without_recap_writes_null_recaps(
    pipeline, store_factory, fake_twitch, credentials,
):
    outcome = await pipeline.run(credentials, wants_recap=False)

    assert outcome.kind == OutcomeKind.READY_INTERMEDIATE
    assert outcome.decision == CacheDecision.FETCH
    assert outcome.wrote_cache is True
    assert store_factory.store.writes == ["user-1"]
    assert fake_twitch.calls["recaps"] == []

    entry = await pipeline.read_cached("user-1")
    assert [f.broadcaster_id for f in entry.following] == ["1", "2", "3", "4"]
    assert sorted(s.broadcaster_id for s in entry.subscriptions) == ["2", "4"]
    assert entry.recaps is None


async def test_empty_with_recap_writes_complete_entry(
    pipeline, store_factory, fake_twitch, credentials,
):
    outcome = await pipeline.run(credentials, wants_recap=True)

    assert outcome.kind == OutcomeKind.READY_FINAL
    assert store_factory.store.writes == ["user-1"]
    entry = await pipeline.read_cached("user-1")
    minutes = {r.channel_id: r.minutes_watched for r in entry.recaps}
    assert minutes == {"2": "300", "4": "0"}
    assert all(r.ends_at == "2024-03-02T00:00:00.000Z" for r in entry.recaps)


async def test_partial_with_recap_refetches_everything(
    pipeline, store_factory, fake_twitch, credentials,
):
    await _seed(store_factory, _partial())

    outcome = await pipeline.run(credentials, wants_recap=True)

    assert outcome.kind == OutcomeKind.READY_FINAL
    assert outcome.decision == CacheDecision.FETCH
    assert len(fake_twitch.calls["follows"]) == 1
    assert len(fake_twitch.calls["subscriptions"]) == 4
    assert len(fake_twitch.calls["recaps"]) == 2
    entry = await pipeline.read_cached("user-1")
    # full replacement: the stale broadcaster "9" is gone
    assert "9" not in {f.broadcaster_id for f in entry.following}
    assert store_factory.store.writes == ["user-1"]


async def test_user_with_no_follows_still_caches(store_factory, credentials):
    api = FakeTwitchApi(follows=[], total=0)
    pipeline = AggregatePipeline(api, store_factory, QUERY_HASH, clock=lambda: FIXED_NOW)

    outcome = await pipeline.run(credentials, wants_recap=True)

    assert outcome.kind == OutcomeKind.READY_FINAL
    entry = await pipeline.read_cached("user-1")
    assert entry.following == ()
    assert entry.subscriptions == ()
    assert entry.recaps == ()


# ==============================================================================
# Failures
# ==============================================================================


async def test_recap_transport_failure_is_bad_global_token(
    pipeline, store_factory, fake_twitch, credentials,
):
    await _seed(store_factory, _partial())
    fake_twitch.failures["recaps"] = UpstreamTransportError("boom", "gql.recaps")

    outcome = await pipeline.run(credentials, wants_recap=True)

    assert outcome.kind == OutcomeKind.ERROR
    assert outcome.reason == OutcomeReason.BAD_GLOBAL_TOKEN
    assert store_factory.store.writes == []
    # prior entry untouched
    assert await pipeline.read_cached("user-1") == _partial()
    assert store_factory.open_handles == 0


async def test_recap_body_without_user_is_bad_global_token(store_factory, credentials):
    api = FakeTwitchApi(follows=["1"], subscribed=["1"], self_missing=True)
    pipeline = AggregatePipeline(api, store_factory, QUERY_HASH, clock=lambda: FIXED_NOW)

    outcome = await pipeline.run(credentials, wants_recap=True)

    assert outcome.reason == OutcomeReason.BAD_GLOBAL_TOKEN
    assert store_factory.store.writes == []


async def test_follows_auth_failure_is_bad_user_token(
    pipeline, store_factory, fake_twitch, credentials,
):
    fake_twitch.failures["follows"] = UpstreamStatusError(401, "helix.channels.followed")

    outcome = await pipeline.run(credentials, wants_recap=False)

    assert outcome.reason == OutcomeReason.BAD_USER_TOKEN
    assert "user-1" not in store_factory.store


async def test_subscription_transport_failure_is_upstream_failure(
    pipeline, store_factory, fake_twitch, credentials,
):
    fake_twitch.failures["subscriptions"] = UpstreamTransportError(
        "reset", "helix.subscriptions.user",
    )

    outcome = await pipeline.run(credentials, wants_recap=True)

    assert outcome.kind == OutcomeKind.ERROR
    assert outcome.reason == OutcomeReason.UPSTREAM_FAILURE
    assert store_factory.store.writes == []


async def test_unexpected_exception_is_internal_error(
    pipeline, store_factory, fake_twitch, credentials,
):
    fake_twitch.failures["follows"] = KeyError("total")

    outcome = await pipeline.run(credentials, wants_recap=False)

    assert outcome.reason == OutcomeReason.INTERNAL_ERROR
    assert store_factory.store.writes == []
    assert store_factory.open_handles == 0


async def test_missing_global_token_fails_before_upstream_calls(
    pipeline, store_factory, fake_twitch,
):
    creds = ViewerCredentials("user-1", "tw-1", "user-token", global_token=None)

    outcome = await pipeline.run(creds, wants_recap=True)

    assert outcome.reason == OutcomeReason.MISSING_GLOBAL_TOKEN
    assert _upstream_calls(fake_twitch) == 0


async def test_missing_global_token_irrelevant_when_complete(
    pipeline, store_factory,
):
    await _seed(store_factory, _complete())
    creds = ViewerCredentials("user-1", "tw-1", "user-token", global_token=None)

    outcome = await pipeline.run(creds, wants_recap=True)

    assert outcome.kind == OutcomeKind.READY_FINAL


async def test_cache_write_failure_is_cache_unavailable(
    fake_twitch, store_factory, credentials,
):
    async def broken_write(key, entry):
        raise CacheStoreError("connection refused", "write")

    store_factory.store.write = broken_write
    pipeline = AggregatePipeline(
        fake_twitch, store_factory, QUERY_HASH, clock=lambda: FIXED_NOW,
    )

    outcome = await pipeline.run(credentials, wants_recap=False)

    assert outcome.reason == OutcomeReason.CACHE_UNAVAILABLE
    assert store_factory.open_handles == 0


# ==============================================================================
# Races (last writer wins)
# ==============================================================================


class SlowFollowsApi(FakeTwitchApi):
    async def get_followed_page(self, twitch_id, access_token, after=None, first=100):
        await asyncio.sleep(0.01)
        return await super().get_followed_page(twitch_id, access_token, after, first)


async def test_refetch_after_invalidate_replaces_entry(store_factory, credentials):
    first = AggregatePipeline(
        FakeTwitchApi(follows=["a"]), store_factory, QUERY_HASH,
    )
    second = AggregatePipeline(
        FakeTwitchApi(follows=["b", "c"]), store_factory, QUERY_HASH,
    )

    await first.run(credentials, wants_recap=False)
    await first.invalidate("user-1")
    await second.run(credentials, wants_recap=False)

    entry = await first.read_cached("user-1")
    assert [f.broadcaster_id for f in entry.following] == ["b", "c"]


async def test_concurrent_runs_both_write_and_last_write_is_kept(store_factory, credentials):
    slow = SlowFollowsApi(follows=[str(i) for i in range(3)], page_limit=1)
    fast = FakeTwitchApi(follows=["x"])
    slow_pipeline = AggregatePipeline(slow, store_factory, QUERY_HASH)
    fast_pipeline = AggregatePipeline(fast, store_factory, QUERY_HASH)

    await asyncio.gather(
        slow_pipeline.run(credentials, wants_recap=False),
        fast_pipeline.run(credentials, wants_recap=False),
    )

    # both read EMPTY, both fetched, both wrote; nothing serializes them
    assert store_factory.store.writes == ["user-1", "user-1"]
    entry = await slow_pipeline.read_cached("user-1")
    assert [f.broadcaster_id for f in entry.following] == ["0", "1", "2"]
    assert store_factory.open_handles == 0
