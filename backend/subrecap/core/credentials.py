"""Caller Credentials: pre-validated tokens handed to the pipeline.

Invariants:
    - Tokens are never logged; __repr__ masks them
    - global_token is only required when a recap is requested
"""

from dataclasses import dataclass, field


def _mask(token: str | None) -> str:
    if not token:
        return "None"
    return f"{token[:4]}…"


@dataclass(frozen=True)
class ViewerCredentials:
    """Identity and tokens of the user the aggregate is built for."""
    user_id: str
    twitch_id: str
    access_token: str = field(repr=False)
    global_token: str | None = field(default=None, repr=False)

    def __repr__(self) -> str:
        return (
            f"ViewerCredentials(user_id={self.user_id!r}, twitch_id={self.twitch_id!r}, "
            f"access_token={_mask(self.access_token)}, global_token={_mask(self.global_token)})"
        )
