"""Domain Types: rich types that replace bare primitives across the codebase.

Invariants:
    - UserId is the cache key owner (application user); TwitchId is the Helix user_id
    - All valid states encoded as Enums: no raw string matching
    - OutcomeReason values are the wire codes placed in error redirects

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON and query strings without custom encoders
"""

from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

UserId = NewType("UserId", str)
TwitchId = NewType("TwitchId", str)
BroadcasterId = NewType("BroadcasterId", str)


# ─── Upstream Constants ──────────────────────────────────────────

FOLLOWS_PAGE_SIZE = 100
RECAPS_OPERATION_NAME = "RecapsQuery"
PERSISTED_QUERY_VERSION = 1
ZERO_MINUTES_WATCHED = "0"

# Endpoint labels used in errors and logs
FOLLOWED_ENDPOINT = "helix.channels.followed"
SUBSCRIPTIONS_ENDPOINT = "helix.subscriptions.user"
GQL_ENDPOINT = "gql.recaps"


# ─── Enums ───────────────────────────────────────────────────────

class CacheState(str, Enum):
    """Completion state of a cached aggregate, derived from field presence."""
    EMPTY = "empty"
    PARTIAL = "partial"
    COMPLETE = "complete"


class CacheDecision(str, Enum):
    """What the pipeline does after inspecting the cache."""
    READY_FINAL = "ready_final"
    READY_INTERMEDIATE = "ready_intermediate"
    FETCH = "fetch"


class PipelineStage(str, Enum):
    """Fetch chain stages: used for logging and error-to-outcome mapping."""
    CACHE_READ = "cache_read"
    FOLLOWS = "follows"
    SUBSCRIPTIONS = "subscriptions"
    RECAPS = "recaps"
    CACHE_WRITE = "cache_write"


class OutcomeKind(str, Enum):
    """Tagged outcome of one pipeline run."""
    READY_FINAL = "ready_final"
    READY_INTERMEDIATE = "ready_intermediate"
    ERROR = "error"


class OutcomeReason(str, Enum):
    """Reason code carried by an ERROR outcome."""
    BAD_GLOBAL_TOKEN = "bad_global_token"
    BAD_USER_TOKEN = "bad_user_token"
    MISSING_GLOBAL_TOKEN = "missing_global_token"
    UPSTREAM_FAILURE = "upstream_failure"
    CACHE_UNAVAILABLE = "cache_unavailable"
    INTERNAL_ERROR = "internal_error"


class CacheBackend(str, Enum):
    """Concrete cache store selected by configuration."""
    REDIS = "redis"
    MEMORY = "memory"
