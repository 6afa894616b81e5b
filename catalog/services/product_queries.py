"""Query composer for product listings.

Combines the filter clauses from product_filters with one of a fixed set of
sort orders, applies limit/offset and runs two statements that share the
same WHERE clauses: one for the page of products and one for the total.
The pair is not run in a single snapshot, so a concurrent write can very
occasionally make the total disagree with the page.
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Literal, get_args

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.db.models import (
    Product, ProductSource, ProductSale, ProductPerformer, Performer,
    ProductTag, Tag, ProductImage, ProductVideo, ProductRatingSummary,
)
from catalog.services.product_filters import ProductFilterOptions, build_conditions
from catalog.services.product_mapper import (
    ProductBatchData, group_by_product, map_products_with_batch_data,
)

logger = logging.getLogger(__name__)

SortOption = Literal[
    "releaseDateDesc",
    "releaseDateAsc",
    "priceDesc",
    "priceAsc",
    "ratingDesc",
    "ratingAsc",
    "titleAsc",
    "durationDesc",
    "durationAsc",
    "random",
]
SORT_OPTIONS: tuple[str, ...] = get_args(SortOption)
DEFAULT_SORT: SortOption = "releaseDateDesc"

DEFAULT_LIMIT = 100

# Whitespace (incl. ideographic space) and punctuation ignored when comparing titles
TITLE_NOISE_RE = re.compile(r"[\s\u3000！!？?「」『』【】（）()＆&～~・:：,，。.、\[\]]+")


def normalize_sort(value: str | None) -> SortOption:
    """Unknown sort values fall back to newest first."""
    if value in SORT_OPTIONS:
        return value
    return DEFAULT_SORT


def _min_price_subquery():
    return (
        select(
            ProductSource.product_id.label("product_id"),
            func.min(ProductSource.price).label("min_price"),
        )
        .group_by(ProductSource.product_id)
        .subquery("min_price")
    )


def build_product_queries(
    options: ProductFilterOptions | None,
    sort: str | None = None,
    limit: int = DEFAULT_LIMIT,
    offset: int = 0,
) -> tuple[Select, Select]:
    """
    Compose the data and count statements for a product listing.

    Joins are only added when the sort needs them: price sorts join the
    cheapest source per product, rating sorts outer-join the rating summary.
    Filters are EXISTS subqueries, so neither join duplicates products.
    """
    sort = normalize_sort(sort)
    query = select(Product)
    count_query = select(func.count(Product.id))

    for condition in build_conditions(options):
        query = query.where(condition)
        count_query = count_query.where(condition)

    release_desc = Product.release_date.desc().nullslast()

    if sort in ("priceAsc", "priceDesc"):
        prices = _min_price_subquery()
        query = query.outerjoin(prices, prices.c.product_id == Product.id)
        price_order = prices.c.min_price.asc() if sort == "priceAsc" else prices.c.min_price.desc()
        query = query.order_by(price_order.nullslast(), Product.normalized_product_id.asc())
    elif sort in ("ratingAsc", "ratingDesc"):
        query = query.outerjoin(ProductRatingSummary, ProductRatingSummary.product_id == Product.id)
        rating = func.coalesce(ProductRatingSummary.average_rating, 0)
        rating_order = rating.asc() if sort == "ratingAsc" else rating.desc()
        query = query.order_by(rating_order, release_desc, Product.normalized_product_id.desc())
    elif sort == "releaseDateAsc":
        query = query.order_by(Product.release_date.asc().nullslast(), Product.normalized_product_id.asc())
    elif sort == "titleAsc":
        query = query.order_by(Product.title.asc(), Product.normalized_product_id.asc())
    elif sort in ("durationAsc", "durationDesc"):
        duration = func.coalesce(Product.duration, 0)
        if sort == "durationAsc":
            query = query.order_by(duration.asc(), release_desc, Product.normalized_product_id.asc())
        else:
            query = query.order_by(duration.desc(), release_desc, Product.normalized_product_id.desc())
    elif sort == "random":
        query = query.order_by(func.random())
    else:
        query = query.order_by(release_desc, Product.normalized_product_id.desc())

    query = query.offset(max(offset, 0)).limit(limit)
    return query, count_query


async def fetch_batch_data(db: AsyncSession, product_ids: list[int]) -> ProductBatchData:
    """Load every association needed to render a page of products."""
    if not product_ids:
        return ProductBatchData()

    performer_rows = await db.execute(
        select(
            ProductPerformer.product_id,
            Performer.id,
            Performer.name,
            Performer.name_kana,
            Performer.profile_image_url,
        )
        .join(Performer, Performer.id == ProductPerformer.performer_id)
        .where(ProductPerformer.product_id.in_(product_ids))
        .order_by(ProductPerformer.product_id, Performer.id)
    )
    tag_rows = await db.execute(
        select(ProductTag.product_id, Tag.id, Tag.name, Tag.category)
        .join(Tag, Tag.id == ProductTag.tag_id)
        .where(ProductTag.product_id.in_(product_ids))
        .order_by(ProductTag.product_id, Tag.id)
    )
    image_rows = await db.execute(
        select(
            ProductImage.product_id,
            ProductImage.id,
            ProductImage.image_url,
            ProductImage.image_type,
        )
        .where(ProductImage.product_id.in_(product_ids))
        .order_by(ProductImage.product_id, ProductImage.display_order, ProductImage.id)
    )
    video_rows = await db.execute(
        select(
            ProductVideo.product_id,
            ProductVideo.id,
            ProductVideo.video_url,
            ProductVideo.video_type,
        )
        .where(ProductVideo.product_id.in_(product_ids))
        .order_by(ProductVideo.product_id, ProductVideo.display_order, ProductVideo.id)
    )
    source_rows = await db.execute(
        select(
            ProductSource.product_id,
            ProductSource.id,
            ProductSource.asp_name,
            ProductSource.original_product_id,
            ProductSource.affiliate_url,
            ProductSource.price,
            ProductSource.currency,
        )
        .where(ProductSource.product_id.in_(product_ids))
        .order_by(ProductSource.product_id, ProductSource.price.asc().nullslast(), ProductSource.id)
    )
    sale_rows = await db.execute(
        select(
            ProductSource.product_id,
            ProductSale.id,
            ProductSale.regular_price,
            ProductSale.sale_price,
            ProductSale.discount_percent,
            ProductSale.end_at,
        )
        .select_from(ProductSale)
        .join(ProductSource, ProductSource.id == ProductSale.product_source_id)
        .where(
            ProductSource.product_id.in_(product_ids),
            ProductSale.is_active.is_(True),
            (ProductSale.end_at.is_(None)) | (ProductSale.end_at > func.now()),
        )
        .order_by(ProductSource.product_id, ProductSale.discount_percent.desc().nullslast())
    )

    # Biggest active discount per product
    sales: dict[int, dict] = {}
    for product_id, rows in group_by_product(sale_rows.mappings()).items():
        sales[product_id] = rows[0]

    return ProductBatchData(
        performers=group_by_product(performer_rows.mappings()),
        tags=group_by_product(tag_rows.mappings()),
        images=group_by_product(image_rows.mappings()),
        videos=group_by_product(video_rows.mappings()),
        sources=group_by_product(source_rows.mappings()),
        sales=sales,
    )


def normalize_title(title: str | None) -> str:
    return TITLE_NOISE_RE.sub("", title or "").lower()


def _effective_price(product: dict) -> float:
    return product.get("sale_price") or product.get("price") or math.inf


def deduplicate_by_title(products: list[dict], site_mode: str | None) -> list[dict]:
    """
    Collapse listings of the same work sold by several partners.

    Products sharing a normalized title keep only the cheapest one, which
    stays at its own position in the page. With site mode 'all' the dropped
    listings become alternative sources of the kept one.
    """
    groups: dict[str, list[dict]] = {}
    for product in products:
        key = normalize_title(product["title"]) or f"id:{product['id']}"
        groups.setdefault(key, []).append(product)

    kept = []
    for group in groups.values():
        cheapest = min(group, key=_effective_price)
        if site_mode == "all":
            cheapest["alternative_sources"] = cheapest["alternative_sources"] + [
                {
                    "asp_name": p["provider"] or "unknown",
                    "price": p["sale_price"] or p["price"],
                    "affiliate_url": p["affiliate_url"],
                }
                for p in group
                if p is not cheapest
            ]
        kept.append(cheapest)

    position = {id(p): i for i, p in enumerate(products)}
    kept.sort(key=lambda p: position[id(p)])
    return kept


@dataclass
class ProductPage:
    products: list[dict]
    total: int
    limit: int
    offset: int


async def get_products(
    db: AsyncSession,
    options: ProductFilterOptions | None = None,
    sort: str | None = None,
    limit: int = DEFAULT_LIMIT,
    offset: int = 0,
) -> ProductPage:
    """Run the listing: page of products, total, then batch-loaded associations."""
    query, count_query = build_product_queries(options, sort, limit, offset)

    result = await db.execute(query)
    products = result.scalars().all()

    count_result = await db.execute(count_query)
    total = count_result.scalar_one_or_none() or 0

    batch = await fetch_batch_data(db, [p.id for p in products])
    options = options or ProductFilterOptions()
    preferred = ([options.provider] if options.provider else []) + options.providers
    mapped = map_products_with_batch_data(
        products, batch, locale=options.locale, preferred_providers=preferred,
        direct_fanza_links=options.site_mode == "fanza-only",
    )
    # Explicit id lookups return exactly the requested products
    if options.site_mode and not options.ids:
        mapped = deduplicate_by_title(mapped, options.site_mode)

    return ProductPage(
        products=mapped,
        total=total,
        limit=limit,
        offset=offset,
    )
