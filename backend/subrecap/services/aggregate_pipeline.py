"""Aggregate Pipeline: cache-gated fetch chain producing one tagged outcome per run.

Invariants:
    - The store handle is opened once per run and released on every exit path
    - The cached entry is read once; on FETCH it is written exactly once (full
      replacement); on any failure it is not written at all
    - Every terminal path returns a PipelineOutcome: failures never escape run()
    - No lock around read-then-write: concurrent runs for one user race and the
      last writer wins

Design Decisions:
    - Twitch client and store factory injected (fakes substitute in tests)
    - Clock injected so the recap window is deterministic under test
"""

import logging
from datetime import datetime
from typing import Callable

from subrecap.core.cache_decision import (
    classify_entry, completed_kind, decide, decision_outcome_kind,
)
from subrecap.core.credentials import ViewerCredentials
from subrecap.core.domain_types import (
    CacheDecision, FOLLOWS_PAGE_SIZE, OutcomeKind, OutcomeReason, PipelineStage,
)
from subrecap.core.errors import SubRecapError
from subrecap.core.outcomes import (
    PipelineOutcome, failed, ready_final, ready_intermediate, reason_for_failure,
)
from subrecap.core.records import AggregateCacheEntry
from subrecap.core.repository_protocols import AggregateCacheStoreFactory, TwitchApi
from subrecap.services.fetch_follows import fetch_all_follows
from subrecap.services.resolve_recaps import resolve_recaps, utc_now
from subrecap.services.resolve_subscriptions import resolve_subscriptions

logger = logging.getLogger(__name__)


class AggregatePipeline:
    """Follows → subscriptions → (recaps) behind a per-user aggregate cache."""

    def __init__(
        self,
        twitch: TwitchApi,
        store_factory: AggregateCacheStoreFactory,
        persisted_query_hash: str,
        page_size: int = FOLLOWS_PAGE_SIZE,
        concurrency: int = 8,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.twitch = twitch
        self.store_factory = store_factory
        self.persisted_query_hash = persisted_query_hash
        self.page_size = page_size
        self.concurrency = concurrency
        self.clock = clock

    async def run(
        self, credentials: ViewerCredentials, wants_recap: bool,
    ) -> PipelineOutcome:
        user_id = credentials.user_id
        stage = PipelineStage.CACHE_READ
        decision: CacheDecision | None = None

        try:
            async with self.store_factory() as store:
                cached = await store.read(user_id)
                state = classify_entry(cached)
                decision = decide(state, wants_recap)
                logger.info(
                    f"Cache {state.value}, wants_recap={wants_recap}",
                    extra={"user_id": user_id, "decision": decision.value},
                )
                if decision != CacheDecision.FETCH:
                    return _short_circuit(decision)

                if wants_recap and not credentials.global_token:
                    return failed(OutcomeReason.MISSING_GLOBAL_TOKEN, decision)

                stage = PipelineStage.FOLLOWS
                follows = await fetch_all_follows(
                    self.twitch, credentials, self.page_size,
                )

                stage = PipelineStage.SUBSCRIPTIONS
                subscriptions = await resolve_subscriptions(
                    self.twitch, credentials, follows.items, self.concurrency,
                )

                recaps = None
                if wants_recap:
                    stage = PipelineStage.RECAPS
                    recaps = await resolve_recaps(
                        self.twitch, subscriptions, credentials.global_token,
                        self.persisted_query_hash, self.concurrency, self.clock,
                    )

                stage = PipelineStage.CACHE_WRITE
                await store.write(user_id, AggregateCacheEntry(
                    user_id=user_id,
                    following=follows.items,
                    subscriptions=tuple(subscriptions),
                    recaps=None if recaps is None else tuple(recaps),
                ))
        except SubRecapError as e:
            reason = reason_for_failure(e, stage)
            logger.error(
                f"Aggregate pipeline failed: {e.message}",
                extra={"user_id": user_id, "stage": stage.value,
                       "error_code": e.code},
            )
            return failed(reason, decision)
        except Exception as e:
            logger.error(
                f"Unexpected error in aggregate pipeline: {e}",
                extra={"user_id": user_id, "stage": stage.value},
                exc_info=True,
            )
            return failed(reason_for_failure(e, stage), decision)

        logger.info(
            "Aggregate cached",
            extra={"user_id": user_id, "decision": decision.value,
                   "items": len(subscriptions)},
        )
        if completed_kind(wants_recap) == OutcomeKind.READY_FINAL:
            return ready_final(decision, wrote_cache=True)
        return ready_intermediate(decision, wrote_cache=True)

    async def read_cached(self, user_id: str) -> AggregateCacheEntry | None:
        async with self.store_factory() as store:
            return await store.read(user_id)

    async def invalidate(self, user_id: str) -> None:
        """Drop the cached aggregate (e.g. after the user's token is refreshed)."""
        async with self.store_factory() as store:
            await store.delete(user_id)
        logger.info("Aggregate invalidated", extra={"user_id": user_id})


def _short_circuit(decision: CacheDecision) -> PipelineOutcome:
    if decision_outcome_kind(decision) == OutcomeKind.READY_FINAL:
        return ready_final(decision)
    return ready_intermediate(decision)
