"""Document counts across all resource collections."""

import asyncio

from fastapi import APIRouter

from src.api.constants import RESOURCE_COLLECTIONS
from src.api.dependencies import DatabaseHandle
from src.api.schemas.results import CollectionStats

router = APIRouter(tags=["stats"])


@router.get("")
async def collection_stats(database: DatabaseHandle) -> CollectionStats:
    """Count the documents of every resource collection."""
    counts = await asyncio.gather(
        *(database.model(name).count() for name in RESOURCE_COLLECTIONS)
    )
    return CollectionStats(counts=dict(zip(RESOURCE_COLLECTIONS, counts, strict=True)))
