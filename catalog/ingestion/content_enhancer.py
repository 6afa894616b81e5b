"""
enhance-content batch job.

Enriches products with Google APIs, one branch per run:
- vision: face count and labels for products with a thumbnail but no metadata
- translate: en / zh / ko titles for products with no translation row
- youtube: one related video for products with none linked

Products are processed newest id first. Calls are throttled with a fixed
sleep and the run stops at the configured time limit.
"""

import asyncio
import logging
import re
from dataclasses import asdict, dataclass
from datetime import datetime

from sqlalchemy import and_, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.config import Settings, get_settings
from catalog.core.google_client import GoogleApiClient
from catalog.db.models import (
    Product, ProductImageMetadata, ProductTranslation, ProductYoutubeVideo,
)
from catalog.ingestion.timebox import Deadline

logger = logging.getLogger(__name__)

ENHANCEMENT_TYPES = ("vision", "translate", "youtube")
DEFAULT_LIMIT = 50
MAX_LIMIT = 200
SAMPLE_RESULT_COUNT = 5
TARGET_LANGUAGES = ("en", "zh", "ko")

# Runs of 2-8 kanji / hiragana / katakana, typically a performer name
CJK_KEYWORD_RE = re.compile(r"[\u4E00-\u9FAF\u3040-\u309F\u30A0-\u30FF]{2,8}")
GENERIC_KEYWORDS = frozenset({"無料", "動画", "女優", "作品", "収録", "出演"})


@dataclass
class EnhanceStats:
    total_processed: int = 0
    success: int = 0
    errors: int = 0
    skipped: int = 0


def api_config(settings: Settings) -> dict[str, bool]:
    return {
        "vision": settings.vision_configured,
        "translation": settings.translation_configured,
        "youtube": settings.youtube_configured,
    }


def not_configured_error(enhancement_type: str, settings: Settings) -> str | None:
    """Error message when the branch's API is disabled, else None."""
    if enhancement_type == "vision" and not settings.vision_configured:
        return "Vision API not configured"
    if enhancement_type == "translate" and not settings.translation_configured:
        return "Translation API not configured"
    if enhancement_type == "youtube" and not settings.youtube_configured:
        return "YouTube API not configured"
    return None


def youtube_fallback_query(title: str | None) -> str | None:
    """First non-generic CJK keyword of the title, suffixed for search."""
    if not title:
        return None
    keywords = [w for w in CJK_KEYWORD_RE.findall(title) if w not in GENERIC_KEYWORDS]
    if not keywords:
        return None
    return f"{keywords[0]} AV"


def vision_candidates_query(limit: int):
    return (
        select(Product.id, Product.normalized_product_id, Product.default_thumbnail_url)
        .outerjoin(ProductImageMetadata, ProductImageMetadata.product_id == Product.id)
        .where(and_(
            Product.default_thumbnail_url.isnot(None),
            Product.default_thumbnail_url != "",
            ProductImageMetadata.product_id.is_(None),
        ))
        .order_by(Product.id.desc())
        .limit(limit)
    )


def translation_candidates_query(limit: int):
    return (
        select(Product.id, Product.normalized_product_id, Product.title)
        .outerjoin(ProductTranslation, ProductTranslation.product_id == Product.id)
        .where(and_(
            Product.title.isnot(None),
            Product.title != "",
            ProductTranslation.product_id.is_(None),
        ))
        .order_by(Product.id.desc())
        .limit(limit)
    )


def youtube_candidates_query(limit: int):
    linked = select(ProductYoutubeVideo.product_id).where(ProductYoutubeVideo.product_id == Product.id)
    return (
        select(Product.id, Product.normalized_product_id, Product.title)
        .where(~linked.exists())
        .order_by(Product.id.desc())
        .limit(limit)
    )


async def enhance_with_vision(
    db: AsyncSession, client: GoogleApiClient, limit: int, deadline: Deadline, delay: float,
) -> tuple[EnhanceStats, list[dict]]:
    stats = EnhanceStats()
    results: list[dict] = []
    rows = (await db.execute(vision_candidates_query(limit))).all()

    for row in rows:
        if deadline.expired:
            logger.warning("Vision enhancement hit the time limit")
            break
        stats.total_processed += 1
        try:
            analysis = await client.analyze_image(row.default_thumbnail_url)
            stmt = insert(ProductImageMetadata).values(
                product_id=row.id,
                face_count=analysis.face_count,
                labels=analysis.labels,
                analyzed_at=datetime.utcnow(),
            )
            await db.execute(stmt.on_conflict_do_update(
                index_elements=["product_id"],
                set_={
                    "face_count": stmt.excluded.face_count,
                    "labels": stmt.excluded.labels,
                    "analyzed_at": stmt.excluded.analyzed_at,
                },
            ))
            await db.commit()
            stats.success += 1
            results.append({
                "product_id": row.id,
                "normalized_product_id": row.normalized_product_id,
                "face_count": analysis.face_count,
                "labels": analysis.labels[:5],
            })
        except Exception as e:
            await db.rollback()
            stats.errors += 1
            logger.error(f"Vision error for product {row.id}: {e}")
        await asyncio.sleep(delay)

    return stats, results


async def enhance_with_translation(
    db: AsyncSession, client: GoogleApiClient, limit: int, deadline: Deadline, delay: float,
) -> tuple[EnhanceStats, list[dict]]:
    stats = EnhanceStats()
    results: list[dict] = []
    rows = (await db.execute(translation_candidates_query(limit))).all()

    for row in rows:
        if deadline.expired:
            logger.warning("Translation enhancement hit the time limit")
            break
        stats.total_processed += 1
        try:
            translations: dict[str, str] = {}
            for lang in TARGET_LANGUAGES:
                translated = await client.translate_text(row.title, lang, "ja")
                if translated:
                    translations[lang] = translated
                await asyncio.sleep(delay)

            if not translations:
                stats.skipped += 1
                continue

            stmt = insert(ProductTranslation).values(
                product_id=row.id,
                title_en=translations.get("en"),
                title_zh=translations.get("zh"),
                title_ko=translations.get("ko"),
                translated_at=datetime.utcnow(),
            )
            await db.execute(stmt.on_conflict_do_update(
                index_elements=["product_id"],
                set_={
                    "title_en": stmt.excluded.title_en,
                    "title_zh": stmt.excluded.title_zh,
                    "title_ko": stmt.excluded.title_ko,
                    "translated_at": stmt.excluded.translated_at,
                },
            ))
            await db.commit()
            stats.success += 1
            results.append({
                "product_id": row.id,
                "normalized_product_id": row.normalized_product_id,
                "translations": translations,
            })
        except Exception as e:
            await db.rollback()
            stats.errors += 1
            logger.error(f"Translation error for product {row.id}: {e}")

    return stats, results


async def enhance_with_youtube(
    db: AsyncSession, client: GoogleApiClient, limit: int, deadline: Deadline, delay: float,
) -> tuple[EnhanceStats, list[dict]]:
    stats = EnhanceStats()
    results: list[dict] = []
    rows = (await db.execute(youtube_candidates_query(limit))).all()

    for row in rows:
        if deadline.expired:
            logger.warning("YouTube enhancement hit the time limit")
            break
        stats.total_processed += 1
        try:
            videos = await client.search_youtube_videos(row.normalized_product_id, 3)
            if not videos:
                fallback = youtube_fallback_query(row.title)
                if fallback:
                    videos = await client.search_youtube_videos(fallback, 3)

            if videos:
                video = videos[0]
                stmt = insert(ProductYoutubeVideo).values(
                    product_id=row.id,
                    video_id=video.id,
                    video_title=video.title,
                    thumbnail_url=video.thumbnail_url,
                    channel_title=video.channel_title,
                    linked_at=datetime.utcnow(),
                )
                await db.execute(stmt.on_conflict_do_update(
                    index_elements=["product_id", "video_id"],
                    set_={
                        "video_title": stmt.excluded.video_title,
                        "thumbnail_url": stmt.excluded.thumbnail_url,
                        "linked_at": stmt.excluded.linked_at,
                    },
                ))
                await db.commit()
                stats.success += 1
                results.append({
                    "product_id": row.id,
                    "normalized_product_id": row.normalized_product_id,
                    "video": {"id": video.id, "title": video.title},
                })
            else:
                stats.skipped += 1
        except Exception as e:
            await db.rollback()
            stats.errors += 1
            logger.error(f"YouTube error for product {row.id}: {e}")
        await asyncio.sleep(delay)

    return stats, results


async def run_content_enhancement(
    db: AsyncSession,
    enhancement_type: str,
    limit: int = DEFAULT_LIMIT,
    client: GoogleApiClient | None = None,
) -> dict:
    """Run one enhancement branch. Callers check the type and configuration first."""
    settings = get_settings()
    limit = max(1, min(limit, MAX_LIMIT))
    deadline = Deadline(settings.cron_time_limit_seconds)

    branches = {
        "vision": (enhance_with_vision, settings.vision_request_delay),
        "translate": (enhance_with_translation, settings.translation_request_delay),
        "youtube": (enhance_with_youtube, settings.youtube_request_delay),
    }
    branch, delay = branches[enhancement_type]
    logger.info(f"Content enhancement ({enhancement_type}) starting, limit={limit}")

    async with client or GoogleApiClient(settings) as api:
        stats, results = await branch(db, api, limit, deadline, delay)

    logger.info(f"Content enhancement ({enhancement_type}) done: {asdict(stats)}")
    return {
        "success": True,
        "message": f"Content enhancement ({enhancement_type}) completed",
        "type": enhancement_type,
        "limit": limit,
        "stats": asdict(stats),
        "sample_results": results[:SAMPLE_RESULT_COUNT],
        "duration": f"{deadline.elapsed}s",
    }
