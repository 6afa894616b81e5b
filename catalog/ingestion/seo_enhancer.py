"""
seo-enhance batch job.

- indexing: ask Google to (re)index product pages that were never requested,
  or whose request has been pending for more than a week
- analytics: fetch a GA4 report, cached in analytics_cache for 24 hours
- sitemap: product URLs with their indexing status
"""

import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta

from sqlalchemy import and_, or_, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.config import Settings, get_settings
from catalog.core.google_client import GoogleApiClient
from catalog.db.models import AnalyticsCache, Product, SeoIndexingStatus
from catalog.ingestion.timebox import Deadline

logger = logging.getLogger(__name__)

SEO_TYPES = ("indexing", "analytics", "sitemap")
DEFAULT_LIMIT = 100
MAX_LIMIT = 500
DEFAULT_REPORT = "top-pages"
MAX_RESULTS_SHOWN = 10
REINDEX_AFTER = timedelta(days=7)
ANALYTICS_CACHE_TTL = timedelta(hours=24)
ANALYTICS_WINDOW_DAYS = 30

OWNERSHIP_WARNING = (
    "Indexing API requires the service account to be a verified owner of the site "
    "in Search Console"
)

# report type -> (dimensions, metrics)
ANALYTICS_REPORTS: dict[str, tuple[list[str], list[str]]] = {
    "top-pages": (["pagePath"], ["screenPageViews", "averageSessionDuration"]),
    "top-performers": (["customEvent:performer_name"], ["eventCount"]),
    "traffic-sources": (["sessionSource", "sessionMedium"], ["sessions", "conversions"]),
}
DEFAULT_ANALYTICS_REPORT = (["pagePath"], ["screenPageViews"])


@dataclass
class SeoStats:
    total_processed: int = 0
    success: int = 0
    errors: int = 0
    skipped: int = 0


def product_url(settings: Settings, normalized_product_id: str) -> str:
    return f"{settings.site_base_url.rstrip('/')}/products/{normalized_product_id}"


def report_definition(report_type: str) -> tuple[list[str], list[str]]:
    return ANALYTICS_REPORTS.get(report_type, DEFAULT_ANALYTICS_REPORT)


def analytics_date_range(today: date | None = None) -> tuple[str, str, str]:
    """(start, end, cache key) covering the trailing 30 days."""
    today = today or date.today()
    start = (today - timedelta(days=ANALYTICS_WINDOW_DAYS)).isoformat()
    end = today.isoformat()
    return start, end, f"{start}_{end}"


def indexing_candidates_query(limit: int, now: datetime):
    return (
        select(Product.id, Product.normalized_product_id)
        .outerjoin(SeoIndexingStatus, SeoIndexingStatus.product_id == Product.id)
        .where(or_(
            SeoIndexingStatus.product_id.is_(None),
            and_(
                SeoIndexingStatus.status == "pending",
                SeoIndexingStatus.last_requested_at < now - REINDEX_AFTER,
            ),
        ))
        .order_by(Product.updated_at.desc().nullslast())
        .limit(limit)
    )


def indexing_status_upsert(url: str, product_id: int, status: str, error_message: str | None = None):
    now = datetime.utcnow()
    stmt = insert(SeoIndexingStatus).values(
        url=url,
        product_id=product_id,
        status=status,
        last_requested_at=now,
        error_message=error_message,
    )
    return stmt.on_conflict_do_update(
        index_elements=["url"],
        set_={
            "status": stmt.excluded.status,
            "last_requested_at": stmt.excluded.last_requested_at,
            "error_message": stmt.excluded.error_message,
        },
    )


async def request_indexing_for_products(
    db: AsyncSession, client: GoogleApiClient, settings: Settings, limit: int, deadline: Deadline,
) -> tuple[SeoStats, list[dict], str | None]:
    stats = SeoStats()
    results: list[dict] = []
    warning = None

    rows = (await db.execute(indexing_candidates_query(limit, datetime.utcnow()))).all()
    for row in rows:
        if deadline.expired:
            logger.warning("Indexing requests hit the time limit")
            break
        stats.total_processed += 1
        url = product_url(settings, row.normalized_product_id)

        try:
            outcome = await client.request_indexing(url, "URL_UPDATED")
            if outcome.success:
                status = "pending"  # Awaiting crawl; re-requested after REINDEX_AFTER
                stats.success += 1
            elif outcome.requires_ownership_verification:
                status = "ownership_required"
                warning = OWNERSHIP_WARNING
                stats.skipped += 1
            else:
                status = "error"
                stats.errors += 1
            await db.execute(indexing_status_upsert(url, row.id, status, outcome.error))
            await db.commit()
            results.append({"product_id": row.id, "url": url, "status": status})
        except Exception as e:
            await db.rollback()
            stats.errors += 1
            logger.error(f"Indexing error for product {row.id}: {e}")
            await db.execute(indexing_status_upsert(url, row.id, "error", str(e)[:500]))
            await db.commit()

        await asyncio.sleep(settings.indexing_request_delay)

    return stats, results, warning


async def fetch_analytics_report(
    db: AsyncSession, client: GoogleApiClient, settings: Settings, report_type: str,
) -> tuple[SeoStats, dict]:
    stats = SeoStats(total_processed=1)

    if not settings.ga4_property_id:
        stats.skipped = 1
        return stats, {"error": "GA4_PROPERTY_ID not configured"}

    start_date, end_date, date_range = analytics_date_range()
    now = datetime.utcnow()

    cached = (await db.execute(
        select(AnalyticsCache.data, AnalyticsCache.cached_at)
        .where(
            AnalyticsCache.report_type == report_type,
            AnalyticsCache.date_range == date_range,
            AnalyticsCache.expires_at > now,
        )
    )).first()
    if cached is not None:
        stats.skipped = 1
        return stats, {"from_cache": True, "cached_at": cached.cached_at.isoformat(), "data": cached.data}

    dimensions, metrics = report_definition(report_type)
    try:
        report = await client.get_analytics_report(
            settings.ga4_property_id, dimensions, metrics, start_date, end_date,
        )
    except Exception as e:
        logger.error(f"Analytics error for {report_type}: {e}")
        stats.errors = 1
        return stats, {"error": str(e)}

    if not report:
        stats.skipped = 1
        return stats, {"error": "Analytics API returned no data"}

    stmt = insert(AnalyticsCache).values(
        report_type=report_type,
        date_range=date_range,
        data=report,
        cached_at=now,
        expires_at=now + ANALYTICS_CACHE_TTL,
    )
    await db.execute(stmt.on_conflict_do_update(
        constraint="uq_analytics_report_range",
        set_={
            "data": stmt.excluded.data,
            "cached_at": stmt.excluded.cached_at,
            "expires_at": stmt.excluded.expires_at,
        },
    ))
    await db.commit()

    stats.success = 1
    return stats, {"from_cache": False, "report_type": report_type, "date_range": date_range, "data": report}


async def get_sitemap_data(db: AsyncSession, settings: Settings, limit: int) -> tuple[SeoStats, list[dict]]:
    rows = (await db.execute(
        select(
            Product.normalized_product_id,
            Product.updated_at,
            SeoIndexingStatus.status,
            SeoIndexingStatus.last_requested_at,
        )
        .outerjoin(SeoIndexingStatus, SeoIndexingStatus.product_id == Product.id)
        .order_by(Product.updated_at.desc().nullslast())
        .limit(limit)
    )).all()

    results = [
        {
            "url": product_url(settings, row.normalized_product_id),
            "lastmod": row.updated_at.isoformat() if row.updated_at else None,
            "indexing_status": row.status or "not_requested",
            "last_requested_at": row.last_requested_at.isoformat() if row.last_requested_at else None,
        }
        for row in rows
    ]
    return SeoStats(total_processed=len(results), success=len(results)), results


async def run_seo_enhancement(
    db: AsyncSession,
    seo_type: str,
    limit: int = DEFAULT_LIMIT,
    report_type: str = DEFAULT_REPORT,
    client: GoogleApiClient | None = None,
) -> dict:
    """Run one SEO branch. Callers validate ``seo_type`` first."""
    settings = get_settings()
    limit = max(1, min(limit, MAX_LIMIT))
    deadline = Deadline(settings.cron_time_limit_seconds)
    warning = None

    if seo_type == "sitemap":
        stats, results = await get_sitemap_data(db, settings, limit)
    else:
        async with client or GoogleApiClient(settings) as api:
            if seo_type == "indexing":
                stats, results, warning = await request_indexing_for_products(db, api, settings, limit, deadline)
            else:
                stats, results = await fetch_analytics_report(db, api, settings, report_type)

    logger.info(f"SEO enhancement ({seo_type}) done: {asdict(stats)}")
    response = {
        "success": True,
        "message": f"SEO enhancement ({seo_type}) completed",
        "type": seo_type,
        "limit": limit,
        "api_config": {
            "indexing": settings.indexing_configured,
            "analytics": settings.analytics_configured,
        },
        "stats": asdict(stats),
        "results": results[:MAX_RESULTS_SHOWN] if isinstance(results, list) else results,
        "duration": f"{deadline.elapsed}s",
    }
    if warning:
        response["warning"] = warning
    return response
