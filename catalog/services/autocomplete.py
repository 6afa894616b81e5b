"""Search-box suggestions across product codes, performers, tags and titles."""

import logging
from typing import TypedDict

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.db.models import Product, ProductSource, Performer, ProductPerformer, Tag, ProductTag
from catalog.services.product_filters import escape_like

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2
PER_TYPE_LIMIT = 5
MAX_RESULTS = 10

# Fragments the crawlers have mis-parsed into performer names
INVALID_PERFORMER_NAMES = frozenset({"デ", "ラ", "ゆ", "な", "他"})


class Suggestion(TypedDict, total=False):
    type: str  # product_id, actress, tag, product
    id: int
    name: str
    image: str | None
    category: str | None
    count: int


def is_valid_performer_name(name: str | None) -> bool:
    if not name or len(name) <= 1:
        return False
    if "→" in name:
        return False
    return name not in INVALID_PERFORMER_NAMES


def merge_suggestions(*groups: list[Suggestion], limit: int = MAX_RESULTS) -> list[Suggestion]:
    """Concatenate groups in priority order, dropping repeats of the same type and id."""
    seen: set[tuple[str, int]] = set()
    merged: list[Suggestion] = []
    for group in groups:
        for suggestion in group:
            key = (suggestion["type"], suggestion["id"])
            if key in seen:
                continue
            seen.add(key)
            merged.append(suggestion)
            if len(merged) >= limit:
                return merged
    return merged


async def search_suggestions(db: AsyncSession, query: str) -> list[Suggestion]:
    """Product codes first, then performers, tags and finally title matches."""
    query = query.strip()
    if len(query) < MIN_QUERY_LENGTH:
        return []

    pattern = f"%{escape_like(query)}%"

    code_rows = await db.execute(
        select(
            Product.id,
            Product.normalized_product_id,
            Product.default_thumbnail_url,
            ProductSource.original_product_id,
        )
        .outerjoin(ProductSource, ProductSource.product_id == Product.id)
        .where(or_(
            Product.normalized_product_id.ilike(pattern),
            ProductSource.original_product_id.ilike(pattern),
        ))
        .limit(PER_TYPE_LIMIT)
    )
    product_codes: list[Suggestion] = [
        {
            "type": "product_id",
            "id": row.id,
            "name": row.original_product_id or row.normalized_product_id or str(row.id),
            "image": row.default_thumbnail_url,
            "category": "品番",
        }
        for row in code_rows
    ]

    product_count = func.count(func.distinct(ProductPerformer.product_id)).label("product_count")
    performer_rows = await db.execute(
        select(Performer.id, Performer.name, Performer.profile_image_url, product_count)
        .outerjoin(ProductPerformer, ProductPerformer.performer_id == Performer.id)
        .where(Performer.name.ilike(pattern))
        .group_by(Performer.id, Performer.name, Performer.profile_image_url)
        .order_by(product_count.desc())
        .limit(PER_TYPE_LIMIT)
    )
    performers: list[Suggestion] = [
        {
            "type": "actress",
            "id": row.id,
            "name": row.name,
            "image": row.profile_image_url,
            "count": int(row.product_count or 0),
            "category": "女優",
        }
        for row in performer_rows
        if is_valid_performer_name(row.name)
    ]

    tag_count = func.count(func.distinct(ProductTag.product_id)).label("product_count")
    tag_rows = await db.execute(
        select(Tag.id, Tag.name, Tag.category, tag_count)
        .outerjoin(ProductTag, ProductTag.tag_id == Tag.id)
        .where(Tag.name.ilike(pattern))
        .group_by(Tag.id, Tag.name, Tag.category)
        .order_by(tag_count.desc())
        .limit(PER_TYPE_LIMIT)
    )
    tags: list[Suggestion] = [
        {
            "type": "tag",
            "id": row.id,
            "name": row.name,
            "count": int(row.product_count or 0),
            "category": row.category or "タグ",
        }
        for row in tag_rows
    ]

    title_rows = await db.execute(
        select(Product.id, Product.title, Product.default_thumbnail_url)
        .where(Product.title.ilike(pattern))
        .order_by(Product.release_date.desc().nullslast())
        .limit(PER_TYPE_LIMIT)
    )
    titles: list[Suggestion] = [
        {
            "type": "product",
            "id": row.id,
            "name": row.title or "",
            "image": row.default_thumbnail_url,
            "category": "作品",
        }
        for row in title_rows
    ]

    return merge_suggestions(product_codes, performers, tags, titles)
