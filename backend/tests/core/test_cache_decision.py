"""Cache Decision: classification of cached entries and the decision table.

Tests cover:
    - EMPTY / PARTIAL / COMPLETE classification from field presence
    - All (state, wants_recap) combinations
    - Short-circuit decisions map to outcome kinds; FETCH does not
"""

import pytest

from subrecap.core.cache_decision import (
    classify_entry, completed_kind, decide, decision_outcome_kind,
)
from subrecap.core.domain_types import CacheDecision, CacheState, OutcomeKind
from subrecap.core.records import (
    AggregateCacheEntry, FollowRecord, RecapRecord, SubscriptionRecord,
)

FOLLOWS = (FollowRecord("1"), FollowRecord("2"))
SUBS = (SubscriptionRecord("2"),)
RECAPS = (RecapRecord("2", "120"),)


def test_missing_entry_is_empty():
    assert classify_entry(None) == CacheState.EMPTY


def test_entry_without_following_is_empty():
    entry = AggregateCacheEntry("u1", following=None, subscriptions=SUBS)
    assert classify_entry(entry) == CacheState.EMPTY


def test_entry_without_subscriptions_is_empty():
    entry = AggregateCacheEntry("u1", following=FOLLOWS, subscriptions=None)
    assert classify_entry(entry) == CacheState.EMPTY


def test_follows_and_subscriptions_without_recaps_is_partial():
    entry = AggregateCacheEntry("u1", FOLLOWS, SUBS, None)
    assert classify_entry(entry) == CacheState.PARTIAL


def test_empty_lists_still_count_as_present():
    entry = AggregateCacheEntry("u1", (), (), ())
    assert classify_entry(entry) == CacheState.COMPLETE


def test_all_fields_present_is_complete():
    entry = AggregateCacheEntry("u1", FOLLOWS, SUBS, RECAPS)
    assert classify_entry(entry) == CacheState.COMPLETE


@pytest.mark.parametrize(
    "state, wants_recap, expected",
    [
        (CacheState.COMPLETE, True, CacheDecision.READY_FINAL),
        (CacheState.COMPLETE, False, CacheDecision.READY_INTERMEDIATE),
        (CacheState.PARTIAL, False, CacheDecision.READY_INTERMEDIATE),
        (CacheState.PARTIAL, True, CacheDecision.FETCH),
        (CacheState.EMPTY, True, CacheDecision.FETCH),
        (CacheState.EMPTY, False, CacheDecision.FETCH),
    ],
)
def test_decision_table(state, wants_recap, expected):
    assert decide(state, wants_recap) == expected


def test_short_circuit_decisions_map_to_outcome_kinds():
    assert decision_outcome_kind(CacheDecision.READY_FINAL) == OutcomeKind.READY_FINAL
    assert (
        decision_outcome_kind(CacheDecision.READY_INTERMEDIATE)
        == OutcomeKind.READY_INTERMEDIATE
    )


def test_fetch_is_not_a_short_circuit():
    with pytest.raises(ValueError):
        decision_outcome_kind(CacheDecision.FETCH)


def test_completed_kind_follows_wants_recap():
    assert completed_kind(True) == OutcomeKind.READY_FINAL
    assert completed_kind(False) == OutcomeKind.READY_INTERMEDIATE
