"""Performer co-star network endpoint."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.config import get_settings
from catalog.core.cache import CacheService, get_cache
from catalog.db.database import get_db
from catalog.services.pagination import coerce_int
from catalog.services.performer_network import (
    clamp_hops, clamp_limit_per_hop, empty_network, get_performer_network,
)

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter()


@router.get("/{performer_id}/relations")
async def performer_relations(
    performer_id: str,
    hops: str | None = Query(None, description="1 or 2, default 2"),
    limit: str | None = Query(None, description="Co-stars per hop, 1-12, default 8"),
    db: AsyncSession = Depends(get_db),
):
    """Co-star graph around a performer: nodes by hop plus weighted edges."""
    parsed_id = coerce_int(performer_id)
    if parsed_id is None:
        raise HTTPException(status_code=400, detail="Invalid performer ID")

    max_hops = clamp_hops(hops)
    limit_per_hop = clamp_limit_per_hop(limit)

    cache = get_cache()
    cache_key = CacheService.relations_key(parsed_id, max_hops, limit_per_hop)
    cached = await cache.get(cache_key)
    if cached is not None:
        return cached

    try:
        network = await get_performer_network(db, parsed_id, max_hops, limit_per_hop)
    except Exception:
        logger.exception(f"Performer relations failed for {parsed_id}")
        return empty_network()

    if network is None:
        raise HTTPException(status_code=404, detail="Performer not found")

    await cache.set(cache_key, network, ttl=settings.relations_cache_ttl_seconds)
    return network
