from datetime import date
from types import SimpleNamespace

from catalog.services.product_mapper import (
    PLACEHOLDER_IMAGE_URL, ProductBatchData, group_by_product, map_products_with_batch_data,
    resolve_image_url, select_primary_source, source_link,
)

FANZA_REDIRECT = "https://al.dmm.co.jp/?lurl=https%3A%2F%2Fwww.dmm.co.jp%2Fdigital%2Fvideoa%2F&af_id=test-001"


def _product(product_id, **overrides):
    values = {
        "id": product_id,
        "normalized_product_id": f"heyzo-{product_id}",
        "maker_product_code": None,
        "title": f"Product {product_id}",
        "title_en": None,
        "description": None,
        "release_date": date(2024, 1, 10),
        "duration": 60,
        "default_thumbnail_url": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def test_group_by_product_keeps_arrival_order_and_drops_fanout():
    rows = [
        {"product_id": 2, "id": 10, "name": "A"},
        {"product_id": 1, "id": 11, "name": "B"},
        {"product_id": 2, "id": 12, "name": "C"},
        {"product_id": 2, "id": 10, "name": "A"},
    ]
    grouped = group_by_product(rows)
    assert list(grouped) == [2, 1]
    assert [r["id"] for r in grouped[2]] == [10, 12]
    assert "product_id" not in grouped[1][0]


def test_source_link_only_exposes_http_links():
    assert source_link({"asp_name": "MGS", "affiliate_url": "https://www.mgstage.com/x"}) == "https://www.mgstage.com/x"
    assert source_link({"asp_name": "MGS", "affiliate_url": "relative"}) is None
    assert source_link({"asp_name": "MGS", "affiliate_url": None}) is None


def test_direct_links_unwrap_fanza_redirects_only():
    fanza = {"asp_name": "FANZA", "affiliate_url": FANZA_REDIRECT}
    other = {"asp_name": "DUGA", "affiliate_url": "https://click.duga.jp/?lurl=https%3A%2F%2Fduga.jp%2F"}

    assert source_link(fanza) == FANZA_REDIRECT
    assert source_link(fanza, direct_fanza=True) == "https://www.dmm.co.jp/digital/videoa/"
    assert source_link(other, direct_fanza=True) == other["affiliate_url"]


def test_mapping_with_direct_fanza_links():
    batch = ProductBatchData(sources={1: [
        {"asp_name": "FANZA", "price": 1500, "affiliate_url": FANZA_REDIRECT},
        {"asp_name": "MGS", "price": 2000, "affiliate_url": "https://www.mgstage.com/x"},
    ]})
    mapped = map_products_with_batch_data([_product(1)], batch, direct_fanza_links=True)

    assert mapped[0]["affiliate_url"] == "https://www.dmm.co.jp/digital/videoa/"
    assert mapped[0]["alternative_sources"][0]["affiliate_url"] == "https://www.mgstage.com/x"


def test_primary_source_prefers_requested_provider_then_cheapest():
    sources = [
        {"asp_name": "FANZA", "price": 1980},
        {"asp_name": "MGS", "price": 980},
    ]
    assert select_primary_source(sources)["asp_name"] == "MGS"
    assert select_primary_source(sources, ["fanza"])["asp_name"] == "FANZA"
    assert select_primary_source([]) is None


def test_image_fallback_chain():
    images = [{"image_url": "/s.jpg", "image_type": "sample"}, {"image_url": "/t.jpg", "image_type": "thumbnail"}]
    assert resolve_image_url("/default.jpg", images) == "/default.jpg"
    assert resolve_image_url(None, images) == "/t.jpg"
    assert resolve_image_url(None, images[:1]) == "/s.jpg"
    assert resolve_image_url(None, []) == PLACEHOLDER_IMAGE_URL


def test_mapping_preserves_query_order_and_attaches_batch_rows():
    batch = ProductBatchData(
        performers={2: [{"id": 7, "name": "佐藤"}]},
        tags={1: [{"id": 3, "name": "tag", "category": "genre"}]},
        sources={
            1: [
                {"asp_name": "FANZA", "price": 1500, "affiliate_url": "https://al.dmm.co.jp/x"},
                {"asp_name": "MGS", "price": 2000, "affiliate_url": "relative"},
            ],
        },
        sales={1: {"regular_price": 2000, "sale_price": 1500, "discount_percent": 25, "end_at": None}},
    )
    mapped = map_products_with_batch_data([_product(2), _product(1)], batch, today=date(2024, 1, 12))

    assert [m["id"] for m in mapped] == [2, 1]
    assert mapped[0]["actress_id"] == 7
    assert mapped[0]["provider"] is None
    assert mapped[0]["image_url"] == PLACEHOLDER_IMAGE_URL

    first = mapped[1]
    assert first["provider"] == "fanza"
    assert first["provider_label"] == "FANZA"
    assert first["tags"] == [{"id": 3, "name": "tag", "category": "genre"}]
    assert first["alternative_sources"] == [{"asp_name": "MGS", "price": 2000, "affiliate_url": None}]
    assert first["discount_percent"] == 25
    assert first["is_new"] is True
    assert first["is_future"] is False


def test_localized_title_used_when_present():
    mapped = map_products_with_batch_data(
        [_product(1, title_en="English title")], ProductBatchData(), locale="en",
    )
    assert mapped[0]["title"] == "English title"
