from catalog.services.product_filters import ProductFilterOptions
from catalog.services.product_queries import (
    DEFAULT_SORT, build_product_queries, deduplicate_by_title, normalize_sort, normalize_title,
)

from helpers import compile_sql


def test_unknown_sort_falls_back_to_newest():
    assert normalize_sort("bogus") == DEFAULT_SORT
    assert normalize_sort(None) == "releaseDateDesc"
    assert normalize_sort("priceAsc") == "priceAsc"


def test_data_and_count_share_where_clauses():
    options = ProductFilterOptions(tags=["7"], has_image=True)
    query, count_query = build_product_queries(options, limit=20, offset=40)
    data_sql = compile_sql(query)
    count_sql = compile_sql(count_query)

    for fragment in ("product_tags.tag_id IN", "product_images.product_id"):
        assert fragment in data_sql
        assert fragment in count_sql

    assert "ORDER BY" not in count_sql
    assert "LIMIT" in data_sql
    assert "OFFSET" in data_sql


def test_default_order_is_release_date_desc_with_tiebreak():
    query, _ = build_product_queries(None)
    sql = compile_sql(query)
    assert "ORDER BY products.release_date DESC NULLS LAST, products.normalized_product_id DESC" in sql


def test_price_sort_joins_cheapest_source():
    query, count_query = build_product_queries(None, sort="priceAsc")
    sql = compile_sql(query)
    assert "min(product_sources.price)" in sql
    assert "min_price.min_price ASC NULLS LAST" in sql
    assert "min_price" not in compile_sql(count_query)


def test_rating_sort_treats_missing_rating_as_zero():
    query, _ = build_product_queries(None, sort="ratingDesc")
    sql = compile_sql(query)
    assert "LEFT OUTER JOIN product_rating_summary" in sql
    assert "coalesce(product_rating_summary.average_rating" in sql


def test_random_sort():
    query, _ = build_product_queries(None, sort="random")
    assert "random()" in compile_sql(query)


def _listing(product_id, title, price, provider, sale_price=None):
    return {
        "id": product_id,
        "title": title,
        "price": price,
        "sale_price": sale_price,
        "provider": provider,
        "affiliate_url": f"https://example.com/{product_id}",
        "alternative_sources": [],
    }


def test_title_normalization_ignores_spacing_and_punctuation():
    assert normalize_title("【独占】 夏の 日！") == normalize_title("独占夏の日")
    assert normalize_title("Summer Day") == "summerday"
    assert normalize_title(None) == ""


def test_dedup_keeps_cheapest_at_its_own_position():
    listings = [
        _listing(1, "夏の日", 2000, "fanza"),
        _listing(2, "Other", 900, "mgs"),
        _listing(3, "夏の 日", 1800, "mgs", sale_price=1200),
    ]
    kept = deduplicate_by_title(listings, "fanza-only")

    assert [p["id"] for p in kept] == [2, 3]
    assert kept[1]["alternative_sources"] == []


def test_dedup_all_site_turns_duplicates_into_alternative_sources():
    listings = [
        _listing(1, "夏の日", 1500, "fanza"),
        _listing(2, "夏の日", 2000, "mgs"),
    ]
    kept = deduplicate_by_title(listings, "all")

    assert [p["id"] for p in kept] == [1]
    assert kept[0]["alternative_sources"] == [
        {"asp_name": "mgs", "price": 2000, "affiliate_url": "https://example.com/2"},
    ]


def test_dedup_never_merges_untitled_products():
    listings = [_listing(1, "", 100, "mgs"), _listing(2, "", 200, "mgs")]
    assert [p["id"] for p in deduplicate_by_title(listings, "all")] == [1, 2]
