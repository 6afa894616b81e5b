"""
Batch job endpoints, called by an external scheduler.

Every route requires the cron secret (Authorization: Bearer or
X-Cron-Secret). The same jobs also run in-process when ENABLE_SCHEDULER is
set, see catalog.ingestion.scheduler.
"""

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.config import get_settings
from catalog.core.auth import require_cron
from catalog.db.database import get_db
from catalog.ingestion import content_enhancer, raw_data_processor, seo_enhancer

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_cron)])


@router.get("/process-raw-data")
async def process_raw_data(
    limit: int = Query(raw_data_processor.DEFAULT_LIMIT, ge=1, le=5000),
    source: str | None = Query(None, description="Only pages crawled from this partner"),
    db: AsyncSession = Depends(get_db),
):
    """Parse unprocessed crawled pages into products."""
    return await raw_data_processor.process_raw_data(db, limit=limit, source=source)


@router.get("/enhance-content")
async def enhance_content(
    type: str = Query("vision", description="vision | translate | youtube"),
    limit: int = Query(content_enhancer.DEFAULT_LIMIT, ge=1),
    db: AsyncSession = Depends(get_db),
):
    """Enrich products through the Google Vision, Translation or YouTube APIs."""
    if type not in content_enhancer.ENHANCEMENT_TYPES:
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": f"Invalid type: {type}",
                "availableTypes": list(content_enhancer.ENHANCEMENT_TYPES),
            },
        )

    settings = get_settings()
    error = content_enhancer.not_configured_error(type, settings)
    if error:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": error, "config": content_enhancer.api_config(settings)},
        )

    return await content_enhancer.run_content_enhancement(db, type, limit=limit)


@router.get("/seo-enhance")
async def seo_enhance(
    type: str = Query("indexing", description="indexing | analytics | sitemap"),
    limit: int = Query(seo_enhancer.DEFAULT_LIMIT, ge=1),
    report: str = Query(seo_enhancer.DEFAULT_REPORT, description="Analytics report type"),
    db: AsyncSession = Depends(get_db),
):
    """Request indexing, cache an analytics report, or list sitemap URLs."""
    if type not in seo_enhancer.SEO_TYPES:
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": f"Invalid type: {type}",
                "availableTypes": list(seo_enhancer.SEO_TYPES),
            },
        )

    return await seo_enhancer.run_seo_enhancement(db, type, limit=limit, report_type=report)
