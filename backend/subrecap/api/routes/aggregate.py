"""Aggregate Routes: read and invalidate a user's cached aggregate."""

from fastapi import APIRouter, Depends, Response, status

from subrecap.api.dependencies import get_pipeline
from subrecap.core.errors import ResourceNotFoundError
from subrecap.schemas.aggregate import AggregateResponse
from subrecap.services.aggregate_pipeline import AggregatePipeline

router = APIRouter(prefix="/api/v1/aggregate", tags=["aggregate"])


@router.get("/{user_id}", response_model=AggregateResponse)
async def get_aggregate(
    user_id: str, pipeline: AggregatePipeline = Depends(get_pipeline),
):
    entry = await pipeline.read_cached(user_id)
    if entry is None:
        raise ResourceNotFoundError("Aggregate", user_id)
    return AggregateResponse.from_entry(entry)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_aggregate(
    user_id: str, pipeline: AggregatePipeline = Depends(get_pipeline),
):
    await pipeline.invalidate(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
