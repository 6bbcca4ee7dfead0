"""Cache Decision: classify a cached aggregate and pick the pipeline action.

Invariants:
    - COMPLETE requires following, subscriptions AND recaps
    - PARTIAL requires following AND subscriptions, recaps absent
    - Anything else (no entry, half-written entry) is EMPTY
    - FETCH always re-fetches everything; a PARTIAL entry is never merged

Decision table:

    | state    | wants_recap | decision           |
    |----------|-------------|--------------------|
    | COMPLETE | True        | READY_FINAL        |
    | COMPLETE | False       | READY_INTERMEDIATE |
    | PARTIAL  | False       | READY_INTERMEDIATE |
    | PARTIAL  | True        | FETCH              |
    | EMPTY    | either      | FETCH              |
"""

from subrecap.core.domain_types import CacheDecision, CacheState, OutcomeKind
from subrecap.core.records import AggregateCacheEntry


def classify_entry(entry: AggregateCacheEntry | None) -> CacheState:
    if entry is None:
        return CacheState.EMPTY
    if entry.following is None or entry.subscriptions is None:
        return CacheState.EMPTY
    if entry.recaps is None:
        return CacheState.PARTIAL
    return CacheState.COMPLETE


def decide(state: CacheState, wants_recap: bool) -> CacheDecision:
    if state == CacheState.COMPLETE:
        return CacheDecision.READY_FINAL if wants_recap else CacheDecision.READY_INTERMEDIATE
    if state == CacheState.PARTIAL and not wants_recap:
        return CacheDecision.READY_INTERMEDIATE
    return CacheDecision.FETCH


def decision_outcome_kind(decision: CacheDecision) -> OutcomeKind:
    """Map a short-circuit decision to its outcome kind."""
    if decision == CacheDecision.READY_FINAL:
        return OutcomeKind.READY_FINAL
    if decision == CacheDecision.READY_INTERMEDIATE:
        return OutcomeKind.READY_INTERMEDIATE
    raise ValueError(f"{decision.value} is not a short-circuit decision")


def completed_kind(wants_recap: bool) -> OutcomeKind:
    """Outcome kind after a successful fetch chain."""
    return OutcomeKind.READY_FINAL if wants_recap else OutcomeKind.READY_INTERMEDIATE
