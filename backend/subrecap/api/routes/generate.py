"""Generate Route: runs the aggregate pipeline and answers with a redirect.

Invariants:
    - Every pipeline outcome becomes a 302 (final stage, intermediate stage,
      or "/?e=<reason>" for errors)
    - The route never inspects the cache itself
"""

import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import RedirectResponse

from subrecap.api.dependencies import get_pipeline, get_viewer_credentials
from subrecap.core.credentials import ViewerCredentials
from subrecap.core.outcomes import redirect_target
from subrecap.services.aggregate_pipeline import AggregatePipeline

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/generate", tags=["generate"])


@router.get("", status_code=status.HTTP_302_FOUND)
async def generate(
    wants: bool = Query(False, description="Resolve recaps (final stage)"),
    credentials: ViewerCredentials = Depends(get_viewer_credentials),
    pipeline: AggregatePipeline = Depends(get_pipeline),
):
    """Build (or reuse) the user's aggregate and redirect to the next stage."""
    outcome = await pipeline.run(credentials, wants)
    target = redirect_target(outcome)
    if outcome.is_error:
        logger.warning(
            f"Generate failed: {outcome.reason.value}",
            extra={"user_id": credentials.user_id, "error_code": outcome.reason.value},
        )
    return RedirectResponse(target, status_code=status.HTTP_302_FOUND)
