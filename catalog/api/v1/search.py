"""Search-box autocomplete endpoint."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.core.cache import CacheService, get_cache
from catalog.db.database import get_db
from catalog.db import schemas
from catalog.services.autocomplete import MIN_QUERY_LENGTH, search_suggestions

logger = logging.getLogger(__name__)

router = APIRouter()

CACHE_AUTOCOMPLETE = 300


@router.get("/autocomplete", response_model=schemas.AutocompleteResponse)
async def autocomplete(
    response: Response,
    q: str = Query("", description="Partial product code, performer, tag or title"),
    db: AsyncSession = Depends(get_db),
):
    """Up to 10 suggestions: product codes, performers, tags, then titles."""
    q = q.strip()
    if len(q) < MIN_QUERY_LENGTH:
        return {"results": []}

    response.headers["Cache-Control"] = f"public, s-maxage={CACHE_AUTOCOMPLETE}"

    cache = get_cache()
    cache_key = CacheService.autocomplete_key(q)
    cached = await cache.get(cache_key)
    if cached is not None:
        return cached

    try:
        results = await search_suggestions(db, q)
    except Exception:
        logger.exception(f"Autocomplete failed for {q!r}")
        raise HTTPException(status_code=500, detail="Failed to fetch suggestions")

    payload = {"results": results}
    await cache.set(cache_key, payload, ttl=CACHE_AUTOCOMPLETE)
    return payload
