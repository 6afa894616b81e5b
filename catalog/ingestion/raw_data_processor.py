"""
process-raw-data batch job.

Turns unprocessed raw_html_data rows into catalog rows:
1. Parse the page for its partner (html_parsers)
2. Upsert the product by normalized id, keeping existing values where the
   page had nothing
3. Upsert the partner source, the sample video and the performers
4. Stamp processed_at

Each row commits on its own; a failing row is logged, counted and left
unprocessed for the next run.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime

from sqlalchemy import func, literal_column, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.config import get_settings
from catalog.db.models import (
    Product, ProductSource, ProductVideo, Performer, ProductPerformer, RawHtmlData,
)
from catalog.ingestion.html_parsers import ParsedProduct, normalized_id_for_source, parse_raw_html
from catalog.ingestion.timebox import Deadline
from catalog.services.asp import asp_name_from_source

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 500


@dataclass
class ProcessStats:
    total_processed: int = 0
    new_products: int = 0
    updated_products: int = 0
    errors: int = 0
    videos_added: int = 0


def _parse_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return datetime.strptime(value[:10], "%Y-%m-%d").date()
    except ValueError:
        logger.debug(f"Unparseable release date: {value!r}")
        return None


def product_upsert(normalized_id: str, parsed: ParsedProduct):
    """Insert or refresh a product. Returns (id, inserted)."""
    stmt = insert(Product).values(
        normalized_product_id=normalized_id,
        title=parsed.title,
        description=parsed.description,
        release_date=_parse_date(parsed.release_date),
        duration=parsed.duration,
        default_thumbnail_url=parsed.thumbnail_url,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow(),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["normalized_product_id"],
        set_={
            "title": stmt.excluded.title,
            "description": func.coalesce(stmt.excluded.description, Product.description),
            "release_date": func.coalesce(stmt.excluded.release_date, Product.release_date),
            "duration": func.coalesce(stmt.excluded.duration, Product.duration),
            "default_thumbnail_url": func.coalesce(
                stmt.excluded.default_thumbnail_url, Product.default_thumbnail_url
            ),
            "updated_at": datetime.utcnow(),
        },
    )
    # xmax is 0 only for freshly inserted tuples
    return stmt.returning(Product.id, literal_column("(xmax = 0)").label("inserted"))


def source_upsert(product_id: int, asp_name: str, original_product_id: str, url: str | None, price: int | None):
    stmt = insert(ProductSource).values(
        product_id=product_id,
        asp_name=asp_name,
        original_product_id=original_product_id,
        affiliate_url=url or None,
        price=price,
        data_source="HTML",
        last_updated=datetime.utcnow(),
    )
    return stmt.on_conflict_do_update(
        constraint="uq_product_sources_product_asp",
        set_={
            "affiliate_url": func.coalesce(stmt.excluded.affiliate_url, ProductSource.affiliate_url),
            "price": func.coalesce(stmt.excluded.price, ProductSource.price),
            "last_updated": datetime.utcnow(),
        },
    )


async def _upsert_performer(db: AsyncSession, name: str) -> int:
    stmt = insert(Performer).values(name=name, created_at=datetime.utcnow())
    stmt = stmt.on_conflict_do_update(index_elements=["name"], set_={"name": stmt.excluded.name})
    result = await db.execute(stmt.returning(Performer.id))
    return result.scalar_one()


async def process_raw_row(db: AsyncSession, row, stats: ProcessStats) -> None:
    parsed = parse_raw_html(row.source, row.product_id, row.html_content)
    asp_name = asp_name_from_source(row.source)

    result = await db.execute(product_upsert(normalized_id_for_source(row.source, row.product_id), parsed))
    product_id, inserted = result.one()
    if inserted:
        stats.new_products += 1
    else:
        stats.updated_products += 1

    await db.execute(source_upsert(product_id, asp_name, row.product_id, row.url, parsed.price))

    if parsed.sample_video_url:
        video_result = await db.execute(
            insert(ProductVideo)
            .values(
                product_id=product_id,
                asp_name=asp_name,
                video_url=parsed.sample_video_url,
                video_type="sample",
                display_order=0,
            )
            .on_conflict_do_nothing()
            .returning(ProductVideo.id)
        )
        if video_result.first() is not None:
            stats.videos_added += 1

    for name in parsed.performer_names:
        performer_id = await _upsert_performer(db, name)
        await db.execute(
            insert(ProductPerformer)
            .values(product_id=product_id, performer_id=performer_id)
            .on_conflict_do_nothing()
        )

    await db.execute(
        update(RawHtmlData).where(RawHtmlData.id == row.id).values(processed_at=datetime.utcnow())
    )


async def process_raw_data(
    db: AsyncSession,
    limit: int = DEFAULT_LIMIT,
    source: str | None = None,
    time_limit: float | None = None,
) -> dict:
    """Process up to ``limit`` unprocessed pages, newest crawl first."""
    settings = get_settings()
    time_limit = time_limit if time_limit is not None else settings.cron_time_limit_seconds
    deadline = Deadline(time_limit)
    stats = ProcessStats()

    query = select(
        RawHtmlData.id, RawHtmlData.source, RawHtmlData.product_id,
        RawHtmlData.html_content, RawHtmlData.url,
    ).where(RawHtmlData.processed_at.is_(None))
    if source:
        query = query.where(RawHtmlData.source == source)
    query = query.order_by(RawHtmlData.crawled_at.desc()).limit(limit)

    result = await db.execute(query)
    # Plain rows so a rollback cannot expire them mid-loop
    rows = result.all()
    logger.info(f"Processing {len(rows)} raw pages" + (f" from {source}" if source else ""))

    for row in rows:
        if deadline.expired:
            logger.warning(f"Time limit reached after {stats.total_processed} rows, stopping")
            break

        stats.total_processed += 1
        try:
            await process_raw_row(db, row, stats)
            await db.commit()
        except Exception as e:
            await db.rollback()
            stats.errors += 1
            logger.error(f"Error processing raw_html_data id={row.id}: {e}", exc_info=True)

    elapsed = deadline.elapsed
    logger.info(
        f"Raw data processing complete in {elapsed}s: {stats.new_products} new, "
        f"{stats.updated_products} updated, {stats.errors} errors"
    )
    return {
        "success": True,
        "message": "Raw data processing completed",
        "stats": asdict(stats),
        "duration": f"{elapsed}s",
    }
