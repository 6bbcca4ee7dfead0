"""Pipeline Outcomes: the tagged result every pipeline run returns.

Invariants:
    - ERROR outcomes always carry a reason; READY outcomes never do
    - Every terminal path of the pipeline produces exactly one outcome
    - HTTP framing (status, Location) is NOT decided here; see redirect_target()
      for the path mapping consumed by the API layer
"""

from dataclasses import dataclass

from subrecap.core.domain_types import (
    CacheDecision, OutcomeKind, OutcomeReason, PipelineStage,
)
from subrecap.core.errors import (
    CacheStoreError, UpstreamStatusError, UpstreamTransportError,
)

FINAL_STAGE_PATH = "/generate"
INTERMEDIATE_STAGE_PATH = "/follows"
ERROR_PATH = "/"


@dataclass(frozen=True)
class PipelineOutcome:
    kind: OutcomeKind
    reason: OutcomeReason | None = None
    decision: CacheDecision | None = None
    wrote_cache: bool = False

    def __post_init__(self):
        if (self.kind == OutcomeKind.ERROR) != (self.reason is not None):
            raise ValueError("reason is required for ERROR outcomes only")

    @property
    def is_error(self) -> bool:
        return self.kind == OutcomeKind.ERROR


def ready_final(decision: CacheDecision, wrote_cache: bool = False) -> PipelineOutcome:
    return PipelineOutcome(OutcomeKind.READY_FINAL, decision=decision, wrote_cache=wrote_cache)


def ready_intermediate(decision: CacheDecision, wrote_cache: bool = False) -> PipelineOutcome:
    return PipelineOutcome(
        OutcomeKind.READY_INTERMEDIATE, decision=decision, wrote_cache=wrote_cache,
    )


def failed(reason: OutcomeReason, decision: CacheDecision | None = None) -> PipelineOutcome:
    return PipelineOutcome(OutcomeKind.ERROR, reason=reason, decision=decision)


def redirect_target(outcome: PipelineOutcome) -> str:
    if outcome.kind == OutcomeKind.READY_FINAL:
        return FINAL_STAGE_PATH
    if outcome.kind == OutcomeKind.READY_INTERMEDIATE:
        return INTERMEDIATE_STAGE_PATH
    return f"{ERROR_PATH}?e={outcome.reason.value}"


def reason_for_failure(error: Exception, stage: PipelineStage) -> OutcomeReason:
    """Map a fetch chain failure to the reason code surfaced to the caller.

    In the recap stage a transport failure or an auth rejection means the
    privileged (global) credential is unusable.
    """
    if isinstance(error, CacheStoreError):
        return OutcomeReason.CACHE_UNAVAILABLE
    if stage == PipelineStage.RECAPS:
        if isinstance(error, UpstreamTransportError):
            return OutcomeReason.BAD_GLOBAL_TOKEN
        if isinstance(error, UpstreamStatusError) and error.is_auth_failure:
            return OutcomeReason.BAD_GLOBAL_TOKEN
    if isinstance(error, UpstreamStatusError) and error.is_auth_failure:
        return OutcomeReason.BAD_USER_TOKEN
    if isinstance(error, (UpstreamTransportError, UpstreamStatusError)):
        return OutcomeReason.UPSTREAM_FAILURE
    return OutcomeReason.INTERNAL_ERROR
