"""Personalised sale recommendations."""

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.db.database import get_db
from catalog.db import schemas
from catalog.services.pagination import parse_int_list, parse_str_list
from catalog.services.sale_recommendations import DEFAULT_LIMIT, MAX_LIMIT, get_for_you_sales

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/for-you", response_model=schemas.ForYouResponse)
async def for_you_sales(
    favorite_performer_ids: str | None = Query(None, alias="favoritePerformerIds"),
    recent_product_ids: str | None = Query(None, alias="recentProductIds"),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    db: AsyncSession = Depends(get_db),
):
    """
    Sales picked for the visitor.

    Favourite performers first, then performers from recently viewed
    products, then trending deep discounts. A failure here must not break
    the page, so errors return an empty fallback list.
    """
    try:
        products = await get_for_you_sales(
            db,
            favorite_performer_ids=parse_int_list(favorite_performer_ids),
            recent_product_ids=parse_str_list(recent_product_ids),
            limit=limit,
        )
    except Exception:
        logger.exception("Failed to fetch for-you sales")
        return JSONResponse({"success": False, "fallback": True, "products": []})

    return {"success": True, "products": products}
