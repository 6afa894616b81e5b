"""
"For you" sale picks.

Three passes fill the list in priority order, each skipping products an
earlier pass already picked:
1. Sales on products featuring the user's favourite performers
2. Sales featuring performers from recently viewed products
3. Trending deep discounts (> 30%)

Only active sales fetched within the last 14 days are considered.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.db.models import Product, ProductSource, ProductSale, Performer, ProductPerformer

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 8
MAX_LIMIT = 50
FRESHNESS_WINDOW = timedelta(days=14)
TRENDING_MIN_DISCOUNT = 30
MAX_PERFORMERS_PER_PRODUCT = 3
RECENT_PERFORMER_LIMIT = 10


def _active_sale_conditions(now: datetime) -> list:
    return [
        ProductSale.is_active.is_(True),
        or_(ProductSale.end_at.is_(None), ProductSale.end_at > now),
        ProductSale.fetched_at > now - FRESHNESS_WINDOW,
    ]


def _sale_columns():
    return (
        Product.id,
        Product.normalized_product_id,
        Product.title,
        Product.default_thumbnail_url,
        ProductSale.regular_price,
        ProductSale.sale_price,
        ProductSale.discount_percent,
        ProductSale.end_at,
    )


def performer_sales_query(performer_ids: list[int], now: datetime, limit: int):
    return (
        select(*_sale_columns(), Performer.id.label("performer_id"), Performer.name.label("performer_name"))
        .select_from(ProductSale)
        .join(ProductSource, ProductSale.product_source_id == ProductSource.id)
        .join(Product, ProductSource.product_id == Product.id)
        .join(ProductPerformer, ProductPerformer.product_id == Product.id)
        .join(Performer, ProductPerformer.performer_id == Performer.id)
        .where(and_(Performer.id.in_(performer_ids), *_active_sale_conditions(now)))
        .order_by(ProductSale.discount_percent.desc().nullslast())
        .limit(limit)
    )


def trending_sales_query(now: datetime, limit: int):
    return (
        select(*_sale_columns())
        .select_from(ProductSale)
        .join(ProductSource, ProductSale.product_source_id == ProductSource.id)
        .join(Product, ProductSource.product_id == Product.id)
        .where(and_(ProductSale.discount_percent > TRENDING_MIN_DISCOUNT, *_active_sale_conditions(now)))
        .order_by(ProductSale.discount_percent.desc().nullslast())
        .limit(limit)
    )


def _shape(row, reason: str, performers: list[dict], details: str | None = None) -> dict:
    return {
        "id": row.id,
        "normalized_product_id": row.normalized_product_id,
        "title": row.title,
        "thumbnail_url": row.default_thumbnail_url,
        "regular_price": row.regular_price,
        "sale_price": row.sale_price,
        "discount_percent": row.discount_percent or 0,
        "match_reason": reason,
        "match_details": details,
        "performers": performers,
        "sale_end_at": row.end_at.isoformat() if row.end_at else None,
    }


class SalePicker:
    """Accumulates picks across passes, never picking a product twice."""

    def __init__(self, limit: int):
        self.limit = limit
        self.products: list[dict] = []
        self.seen: set[int] = set()

    @property
    def remaining(self) -> int:
        return max(0, self.limit - len(self.products))

    def add(self, item: dict) -> bool:
        if item["id"] in self.seen or self.remaining == 0:
            return False
        self.seen.add(item["id"])
        self.products.append(item)
        return True


async def get_for_you_sales(
    db: AsyncSession,
    favorite_performer_ids: list[int],
    recent_product_ids: list[str],
    limit: int = DEFAULT_LIMIT,
) -> list[dict]:
    now = datetime.utcnow()
    picker = SalePicker(limit)

    if favorite_performer_ids:
        result = await db.execute(performer_sales_query(favorite_performer_ids, now, limit))
        for row in result.fetchall():
            picker.add(_shape(
                row, "favorite_actress",
                [{"id": row.performer_id, "name": row.performer_name}],
                row.performer_name,
            ))

    if recent_product_ids and picker.remaining:
        performers_result = await db.execute(
            select(ProductPerformer.performer_id)
            .join(Product, ProductPerformer.product_id == Product.id)
            .where(Product.normalized_product_id.in_(recent_product_ids))
            .distinct()
            .limit(RECENT_PERFORMER_LIMIT)
        )
        recent_performer_ids = list(performers_result.scalars().all())

        if recent_performer_ids:
            result = await db.execute(performer_sales_query(recent_performer_ids, now, picker.remaining))
            for row in result.fetchall():
                picker.add(_shape(
                    row, "recently_viewed",
                    [{"id": row.performer_id, "name": row.performer_name}],
                    row.performer_name,
                ))

    if picker.remaining:
        # Over-fetch a little so already-picked products don't leave gaps
        result = await db.execute(trending_sales_query(now, picker.remaining + 5))
        candidates = [row for row in result.fetchall() if row.id not in picker.seen][:picker.remaining]

        performers_by_product: dict[int, list[dict]] = {}
        if candidates:
            performer_rows = await db.execute(
                select(ProductPerformer.product_id, Performer.id, Performer.name)
                .join(Performer, ProductPerformer.performer_id == Performer.id)
                .where(ProductPerformer.product_id.in_([c.id for c in candidates]))
            )
            for product_id, performer_id, name in performer_rows.fetchall():
                bucket = performers_by_product.setdefault(product_id, [])
                if len(bucket) < MAX_PERFORMERS_PER_PRODUCT:
                    bucket.append({"id": performer_id, "name": name})

        for row in candidates:
            picker.add(_shape(row, "trending", performers_by_product.get(row.id, [])))

    return picker.products
