import asyncio
from datetime import date, datetime
from types import SimpleNamespace

from sqlalchemy import Select
from sqlalchemy.sql.dml import Insert, Update

from catalog.config import Settings
from catalog.ingestion.content_enhancer import api_config, not_configured_error, youtube_fallback_query
from catalog.ingestion.raw_data_processor import process_raw_data, product_upsert, source_upsert
from catalog.ingestion.html_parsers import ParsedProduct
from catalog.ingestion.seo_enhancer import (
    analytics_date_range, indexing_candidates_query, product_url, report_definition,
)
from catalog.ingestion.timebox import Deadline

from helpers import compile_sql


def test_disabled_branches_report_not_configured():
    settings = Settings(google_api_key=None)
    assert not_configured_error("vision", settings) == "Vision API not configured"
    assert not_configured_error("translate", settings) == "Translation API not configured"
    assert not_configured_error("youtube", settings) == "YouTube API not configured"


def test_feature_flag_disables_single_branch():
    settings = Settings(google_api_key="key", google_vision_enabled=False)
    assert not_configured_error("vision", settings) == "Vision API not configured"
    assert not_configured_error("translate", settings) is None
    assert api_config(settings) == {"vision": False, "translation": True, "youtube": True}


def test_youtube_fallback_query_uses_first_specific_keyword():
    assert youtube_fallback_query("人妻 温泉旅行") == "人妻 AV"
    assert youtube_fallback_query("動画 sample") is None
    assert youtube_fallback_query("English only") is None
    assert youtube_fallback_query(None) is None


def test_product_upsert_keeps_existing_values():
    sql = compile_sql(product_upsert("heyzo-1234", ParsedProduct(title="t")))
    assert "ON CONFLICT (normalized_product_id) DO UPDATE" in sql
    assert "coalesce(excluded.description, products.description)" in sql
    assert "(xmax = 0) AS inserted" in sql


def test_source_upsert_targets_product_asp_constraint():
    sql = compile_sql(source_upsert(1, "DTI", "1234", None, None))
    assert "ON CONFLICT ON CONSTRAINT uq_product_sources_product_asp" in sql


def test_analytics_date_range_covers_trailing_30_days():
    start, end, key = analytics_date_range(date(2024, 3, 31))
    assert (start, end) == ("2024-03-01", "2024-03-31")
    assert key == "2024-03-01_2024-03-31"


def test_unknown_report_type_falls_back():
    assert report_definition("top-pages")[0] == ["pagePath"]
    assert report_definition("nonsense") == (["pagePath"], ["screenPageViews"])


def test_product_url_uses_normalized_id():
    settings = Settings(site_base_url="https://catalog.example/")
    assert product_url(settings, "heyzo-1234") == "https://catalog.example/products/heyzo-1234"


def test_indexing_candidates_include_stale_pending():
    sql = compile_sql(indexing_candidates_query(10, datetime(2024, 1, 8)))
    assert "LEFT OUTER JOIN seo_indexing_status" in sql
    assert "seo_indexing_status.product_id IS NULL" in sql
    assert "seo_indexing_status.last_requested_at <" in sql


def test_deadline():
    assert Deadline(-1).expired
    assert not Deadline(60).expired
    assert Deadline(60).elapsed == 0


class _RawDataSession:
    """Session double whose first product upsert fails."""

    def __init__(self, rows):
        self.rows = rows
        self.product_upserts = 0
        self.marked_processed = 0
        self.commits = 0
        self.rollbacks = 0

    async def execute(self, statement):
        if isinstance(statement, Select):
            return SimpleNamespace(all=lambda: self.rows)
        if isinstance(statement, Insert) and statement.table.name == "products":
            self.product_upserts += 1
            if self.product_upserts == 1:
                raise RuntimeError("deadlock detected")
            return SimpleNamespace(one=lambda: (100, True))
        if isinstance(statement, Update) and statement.table.name == "raw_html_data":
            self.marked_processed += 1
        return SimpleNamespace()

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        self.rollbacks += 1


def _raw_row(row_id, product_id):
    return SimpleNamespace(
        id=row_id,
        source="fc2",
        product_id=product_id,
        html_content=f"<html><head><title>Title {product_id}</title></head></html>",
        url=f"https://adult.contents.fc2.com/article/{product_id}/",
    )


def test_failed_row_is_rolled_back_and_loop_continues():
    db = _RawDataSession([_raw_row(1, "111"), _raw_row(2, "222")])

    result = asyncio.run(process_raw_data(db, limit=10, time_limit=60))

    stats = result["stats"]
    assert stats["total_processed"] == 2
    assert stats["errors"] == 1
    assert stats["new_products"] == 1
    assert db.rollbacks == 1
    assert db.product_upserts == 2
    assert db.marked_processed == 1
    assert db.commits == 1
