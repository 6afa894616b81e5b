"""Performer (actress) listing with tag / ASP / media facets."""

import logging
from dataclasses import dataclass, field
from typing import Literal, get_args

from sqlalchemy import exists, func, not_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.db.models import (
    Performer, PerformerAlias, ProductPerformer, ProductTag, ProductSource,
    ProductImage, ProductVideo,
)
from catalog.services.product_filters import escape_like, provider_clause
from catalog.services.pagination import coerce_int

logger = logging.getLogger(__name__)

ActressSort = Literal["nameAsc", "nameDesc", "productCountDesc", "productCountAsc", "recent"]
ACTRESS_SORT_OPTIONS: tuple[str, ...] = get_args(ActressSort)

FEATURED_DEFAULT_LIMIT = 3
FEATURED_MAX_LIMIT = 20


@dataclass
class ActressFilterOptions:
    ids: list[int] = field(default_factory=list)
    query: str | None = None
    include_tags: list[str] = field(default_factory=list)
    exclude_tags: list[str] = field(default_factory=list)
    include_asps: list[str] = field(default_factory=list)
    exclude_asps: list[str] = field(default_factory=list)
    has_video: bool = False
    has_image: bool = False


def _credited_product_exists(*criteria, via=None):
    """EXISTS a product credited to the performer matching ``criteria`` on ``via``."""
    subquery = (
        select(ProductPerformer.product_id)
        .where(ProductPerformer.performer_id == Performer.id)
    )
    if via is not None:
        subquery = subquery.join(via, via.product_id == ProductPerformer.product_id)
    if criteria:
        subquery = subquery.where(*criteria)
    return subquery.exists()


def build_actress_conditions(options: ActressFilterOptions) -> list:
    conditions = []

    if options.ids:
        conditions.append(Performer.id.in_(options.ids))
    else:
        # Hide performers with no credited products
        conditions.append(exists().where(ProductPerformer.performer_id == Performer.id))

    include_tags = [t for t in (coerce_int(v) for v in options.include_tags) if t is not None]
    if include_tags:
        conditions.append(_credited_product_exists(ProductTag.tag_id.in_(include_tags), via=ProductTag))

    exclude_tags = [t for t in (coerce_int(v) for v in options.exclude_tags) if t is not None]
    if exclude_tags:
        conditions.append(not_(_credited_product_exists(ProductTag.tag_id.in_(exclude_tags), via=ProductTag)))

    if options.include_asps:
        conditions.append(_credited_product_exists(provider_clause(options.include_asps), via=ProductSource))

    if options.exclude_asps:
        conditions.append(not_(_credited_product_exists(provider_clause(options.exclude_asps), via=ProductSource)))

    if options.has_video:
        conditions.append(_credited_product_exists(via=ProductVideo))

    if options.has_image:
        conditions.append(_credited_product_exists(via=ProductImage))

    query = (options.query or "").strip()
    if query:
        # Single character = initial (kana / alphabet index), otherwise substring
        pattern = f"{escape_like(query)}%" if len(query) == 1 else f"%{escape_like(query)}%"
        if len(query) == 1:
            conditions.append(Performer.name_kana.ilike(pattern))
        else:
            conditions.append(or_(
                Performer.name.ilike(pattern),
                Performer.name_kana.ilike(pattern),
                exists().where(
                    PerformerAlias.performer_id == Performer.id,
                    PerformerAlias.alias_name.ilike(pattern),
                ),
            ))

    return conditions


def _order_by(sort: str | None):
    if sort == "productCountDesc":
        return [func.coalesce(Performer.release_count, 0).desc(), Performer.id.desc()]
    if sort == "productCountAsc":
        return [func.coalesce(Performer.release_count, 0).asc(), Performer.id.desc()]
    if sort == "recent":
        return [Performer.latest_release_date.desc().nullslast(), Performer.id.desc()]
    if sort == "nameDesc":
        return [func.coalesce(Performer.name_kana, "").desc(), Performer.id.desc()]
    # Names without a reading sort last
    return [func.coalesce(Performer.name_kana, "龠").asc(), Performer.id.asc()]


def map_actress(performer: Performer) -> dict:
    return {
        "id": performer.id,
        "name": performer.name,
        "name_kana": performer.name_kana,
        "name_en": performer.name_en,
        "profile_image_url": performer.profile_image_url,
        "debut_year": performer.debut_year,
        "release_count": performer.release_count or 0,
    }


async def get_actresses(
    db: AsyncSession,
    options: ActressFilterOptions,
    sort: str | None = None,
    limit: int = 48,
    offset: int = 0,
) -> tuple[list[dict], int]:
    """Page of performers plus the filtered total."""
    conditions = build_actress_conditions(options)

    query = select(Performer)
    count_query = select(func.count(Performer.id))
    for condition in conditions:
        query = query.where(condition)
        count_query = count_query.where(condition)

    query = query.order_by(*_order_by(sort)).offset(offset).limit(limit)

    result = await db.execute(query)
    performers = result.scalars().all()

    count_result = await db.execute(count_query)
    total = count_result.scalar_one_or_none() or 0

    return [map_actress(p) for p in performers], total


async def get_featured_actresses(db: AsyncSession, limit: int = FEATURED_DEFAULT_LIMIT) -> list[dict]:
    """Most prolific performers with a profile image."""
    limit = max(1, min(limit, FEATURED_MAX_LIMIT))
    result = await db.execute(
        select(Performer)
        .where(Performer.profile_image_url.isnot(None))
        .order_by(func.coalesce(Performer.release_count, 0).desc(), Performer.id.asc())
        .limit(limit)
    )
    return [map_actress(p) for p in result.scalars().all()]
