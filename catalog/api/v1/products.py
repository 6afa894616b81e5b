"""Product listing endpoint with faceted filters."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.config import get_settings
from catalog.core.cache import CacheService, get_cache
from catalog.db.database import get_db
from catalog.db import schemas
from catalog.services.pagination import (
    coerce_page, coerce_price, page_to_offset, parse_bool, parse_int_list,
    parse_price_range, parse_str_list,
)
from catalog.services.product_filters import MAX_FILTER_IDS, ProductFilterOptions
from catalog.services.product_queries import get_products, normalize_sort

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter()

DEFAULT_LIMIT = 96
MIN_LIMIT = 12
MAX_LIMIT = 100

# s-maxage per request kind
CACHE_BY_IDS = 3600  # Specific products / one performer's works change rarely
CACHE_SEARCH = 60
CACHE_DEFAULT = 300


def cache_control_for(options: ProductFilterOptions) -> str:
    if options.ids or options.actress_id:
        max_age = CACHE_BY_IDS
    elif options.query:
        max_age = CACHE_SEARCH
    else:
        max_age = CACHE_DEFAULT
    return f"public, s-maxage={max_age}, stale-while-revalidate={max_age * 2}"


def build_filter_options(
    query: str | None = None,
    ids: str | None = None,
    actress_id: str | None = None,
    tags: str | None = None,
    exclude_tags: str | None = None,
    provider: str | None = None,
    providers: str | None = None,
    include_asp: str | None = None,
    exclude_asp: str | None = None,
    min_price: str | None = None,
    max_price: str | None = None,
    price_range: str | None = None,
    has_video: str | None = None,
    has_image: str | None = None,
    on_sale: str | None = None,
    performer_type: str | None = None,
    uncategorized: str | None = None,
    locale: str | None = None,
    site_mode: str | None = None,
) -> ProductFilterOptions:
    """Leniently turn raw query-string values into filter options."""
    low, high = parse_price_range(price_range)
    min_value = coerce_price(min_price)
    max_value = coerce_price(max_price)

    return ProductFilterOptions(
        site_mode=site_mode,
        ids=parse_int_list(ids)[:MAX_FILTER_IDS],
        actress_id=actress_id or None,
        tags=parse_str_list(tags),
        exclude_tags=parse_str_list(exclude_tags),
        provider=(provider or "").strip() or None,
        providers=parse_str_list(providers) or parse_str_list(include_asp),
        exclude_providers=parse_str_list(exclude_asp),
        min_price=min_value if min_value is not None else low,
        max_price=max_value if max_value is not None else high,
        has_video=parse_bool(has_video),
        has_image=parse_bool(has_image),
        on_sale=parse_bool(on_sale),
        performer_type=performer_type if performer_type in ("solo", "multi") else None,
        uncategorized=parse_bool(uncategorized),
        query=(query or "").strip() or None,
        locale=locale,
    )


@router.get("", response_model=schemas.ProductListResponse)
async def list_products(
    response: Response,
    query: str | None = Query(None, description="Title or product code search"),
    limit: int = Query(DEFAULT_LIMIT, ge=MIN_LIMIT, le=MAX_LIMIT),
    offset: int | None = Query(None, ge=0),
    page: str | None = Query(None, description="1-based page; used when offset is absent"),
    sort: str | None = Query(None),
    provider: str | None = Query(None),
    providers: str | None = Query(None, description="Comma-separated ASP names"),
    include_asp: str | None = Query(None, alias="includeAsp"),
    exclude_asp: str | None = Query(None, alias="excludeAsp"),
    ids: str | None = Query(None, description="Comma-separated product ids"),
    actress_id: str | None = Query(None, alias="actressId"),
    tags: str | None = Query(None),
    exclude_tags: str | None = Query(None, alias="excludeTags"),
    min_price: str | None = Query(None, alias="minPrice"),
    max_price: str | None = Query(None, alias="maxPrice"),
    price_range: str | None = Query(None, alias="priceRange", description="'500-2000' or '3000'"),
    has_video: str | None = Query(None, alias="hasVideo"),
    has_image: str | None = Query(None, alias="hasImage"),
    on_sale: str | None = Query(None, alias="onSale"),
    performer_type: str | None = Query(None, alias="performerType"),
    uncategorized: str | None = Query(None),
    locale: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """
    Filtered, sorted page of products.

    Filter categories are ANDed together. When ``ids`` is given the page is
    exactly those products (limit = number of ids, offset 0).
    """
    options = build_filter_options(
        query=query, ids=ids, actress_id=actress_id, tags=tags, exclude_tags=exclude_tags,
        provider=provider, providers=providers, include_asp=include_asp, exclude_asp=exclude_asp,
        min_price=min_price, max_price=max_price, price_range=price_range,
        has_video=has_video, has_image=has_image, on_sale=on_sale,
        performer_type=performer_type, uncategorized=uncategorized, locale=locale,
        site_mode=settings.site_mode,
    )
    sort = normalize_sort(sort)

    if options.ids:
        limit, offset = len(options.ids), 0
    elif offset is None:
        offset = page_to_offset(coerce_page(page), limit) if page else 0

    response.headers["Cache-Control"] = cache_control_for(options)

    cache = get_cache()
    cache_key = CacheService.products_key({
        "options": options.__dict__,
        "sort": sort,
        "limit": limit,
        "offset": offset,
    })
    # Random order is drawn per request
    use_cache = sort != "random"
    if use_cache:
        cached = await cache.get(cache_key)
        if cached is not None:
            return cached

    try:
        result = await get_products(db, options, sort=sort, limit=limit, offset=offset)
    except Exception:
        logger.exception("Failed to fetch products")
        raise HTTPException(status_code=500, detail="Failed to fetch products")

    payload = {
        "success": True,
        "products": result.products,
        "total": result.total,
        "limit": result.limit,
        "offset": result.offset,
    }
    if use_cache:
        await cache.set(cache_key, payload, ttl=settings.cache_ttl_seconds)
    return payload
