"""Performer (actress) listing endpoint."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.core.cache import CacheService, get_cache
from catalog.db.database import get_db
from catalog.services.actress_queries import (
    ACTRESS_SORT_OPTIONS, FEATURED_DEFAULT_LIMIT, FEATURED_MAX_LIMIT,
    ActressFilterOptions, get_actresses, get_featured_actresses,
)
from catalog.services.pagination import parse_bool, parse_int_list, parse_str_list

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_LIMIT = 48
MIN_LIMIT = 12
MAX_LIMIT = 100

CACHE_SEARCH = 300
CACHE_DEFAULT = 3600


@router.get("")
async def list_actresses(
    response: Response,
    query: str | None = Query(None),
    ids: str | None = Query(None, description="Comma-separated performer ids"),
    limit: int | None = Query(None, ge=1, le=MAX_LIMIT),
    offset: int = Query(0, ge=0),
    sort: str | None = Query(None),
    include_tags: str | None = Query(None, alias="includeTags"),
    exclude_tags: str | None = Query(None, alias="excludeTags"),
    include_asps: str | None = Query(None, alias="includeAsps"),
    exclude_asps: str | None = Query(None, alias="excludeAsps"),
    has_video: str | None = Query(None, alias="hasVideo"),
    has_image: str | None = Query(None, alias="hasImage"),
    featured: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """
    Page of performers with at least one credited product.

    ``featured=true`` returns the most prolific performers instead
    (limit defaults to 3, at most 20).
    """
    cache = get_cache()

    if parse_bool(featured):
        featured_limit = min(limit or FEATURED_DEFAULT_LIMIT, FEATURED_MAX_LIMIT)
        response.headers["Cache-Control"] = f"public, s-maxage={CACHE_DEFAULT}"
        cache_key = CacheService.actresses_key({"featured": True, "limit": featured_limit})
        cached = await cache.get(cache_key)
        if cached is not None:
            return cached
        try:
            actresses = await get_featured_actresses(db, featured_limit)
        except Exception:
            logger.exception("Failed to fetch featured actresses")
            raise HTTPException(status_code=500, detail="Failed to fetch actresses")
        payload = {"success": True, "actresses": actresses, "total": len(actresses)}
        await cache.set(cache_key, payload, ttl=CACHE_DEFAULT)
        return payload

    limit = DEFAULT_LIMIT if limit is None else limit
    if limit < MIN_LIMIT:
        raise HTTPException(status_code=400, detail=f"limit must be between {MIN_LIMIT} and {MAX_LIMIT}")

    options = ActressFilterOptions(
        ids=parse_int_list(ids),
        query=(query or "").strip() or None,
        include_tags=parse_str_list(include_tags),
        exclude_tags=parse_str_list(exclude_tags),
        include_asps=parse_str_list(include_asps),
        exclude_asps=parse_str_list(exclude_asps),
        has_video=parse_bool(has_video),
        has_image=parse_bool(has_image),
    )
    sort = sort if sort in ACTRESS_SORT_OPTIONS else None

    ttl = CACHE_SEARCH if options.query else CACHE_DEFAULT
    response.headers["Cache-Control"] = f"public, s-maxage={ttl}"

    cache_key = CacheService.actresses_key({
        "options": options.__dict__, "sort": sort, "limit": limit, "offset": offset,
    })
    cached = await cache.get(cache_key)
    if cached is not None:
        return cached

    try:
        actresses, total = await get_actresses(db, options, sort=sort, limit=limit, offset=offset)
    except Exception:
        logger.exception("Failed to fetch actresses")
        raise HTTPException(status_code=500, detail="Failed to fetch actresses")

    payload = {
        "success": True,
        "actresses": actresses,
        "total": total,
        "limit": limit,
        "offset": offset,
    }
    await cache.set(cache_key, payload, ttl=ttl)
    return payload

