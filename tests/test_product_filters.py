from sqlalchemy import select

from catalog.db.models import Product
from catalog.services.product_filters import (
    MAX_FILTER_IDS, ProductFilterOptions, build_conditions, escape_like, price_in_range,
    provider_clause, where_clause,
)

from helpers import compile_sql


def _sql(options: ProductFilterOptions) -> str:
    return compile_sql(select(Product.id).where(where_clause(options)))


def test_no_options_adds_no_conditions():
    assert build_conditions(None) == []
    assert ProductFilterOptions().is_unfiltered()


def test_each_category_contributes_one_clause():
    options = ProductFilterOptions(
        ids=[1, 2],
        providers=["fanza"],
        exclude_providers=["mgs"],
        min_price=500,
        tags=["3"],
        has_video=True,
        on_sale=True,
    )
    assert len(build_conditions(options)) == 7


def test_ids_filter_is_capped():
    options = ProductFilterOptions(ids=list(range(MAX_FILTER_IDS + 50)))
    condition = build_conditions(options)[0]
    assert len(condition.right.value) == MAX_FILTER_IDS


def test_non_numeric_ids_are_dropped_not_errors():
    assert build_conditions(ProductFilterOptions(actress_id="abc")) == []
    assert build_conditions(ProductFilterOptions(tags=["x", "y"])) == []
    assert len(build_conditions(ProductFilterOptions(tags=["x", "7"]))) == 1


def test_association_filters_are_exists_subqueries():
    sql = _sql(ProductFilterOptions(actress_id=42, tags=["7"]))
    assert "EXISTS (SELECT" in sql
    assert "product_performers.performer_id" in sql
    assert "product_tags.tag_id IN" in sql
    # No join on the outer query, so products cannot fan out
    assert "JOIN" not in sql.split("WHERE")[0]


def test_exclusions_are_negated():
    sql = _sql(ProductFilterOptions(exclude_tags=["7"], exclude_providers=["fanza"]))
    assert sql.count("NOT (EXISTS") + sql.count("NOT EXISTS") == 2


def test_provider_names_compared_case_insensitively():
    sql = compile_sql(select(Product.id).where(provider_clause(["FANZA"])))
    assert "lower(product_sources.asp_name) IN" in sql


def test_dti_sub_service_matches_dti_rows_by_url():
    sql = compile_sql(select(Product.id).where(provider_clause(["1pondo"])))
    assert "product_sources.affiliate_url ILIKE" in sql


def test_price_bounds_apply_to_any_source():
    sql = _sql(ProductFilterOptions(min_price=500, max_price=2000))
    assert "product_sources.price >=" in sql
    assert "product_sources.price <=" in sql


def test_performer_type_counts_performers():
    solo = _sql(ProductFilterOptions(performer_type="solo"))
    multi = _sql(ProductFilterOptions(performer_type="multi"))
    assert "count(*)" in solo
    assert "= %(" in solo
    assert ">= %(" in multi


def test_product_code_query_also_searches_codes():
    sql = _sql(ProductFilterOptions(query="SSIS-865"))
    assert "products.title ILIKE" in sql
    assert "products.maker_product_code ILIKE" in sql
    assert "product_sources.original_product_id" in sql


def test_plain_text_query_only_searches_titles():
    sql = _sql(ProductFilterOptions(query="summer vacation"))
    assert "products.title ILIKE" in sql
    assert "maker_product_code" not in sql


def test_escape_like():
    assert escape_like("100%_off") == r"100\%\_off"


def test_price_in_range_closed_interval():
    assert price_in_range(500, 500, 2000)
    assert price_in_range(2000, 500, 2000)
    assert not price_in_range(499, 500, 2000)
    assert not price_in_range(2001, 500, 2000)


def test_price_in_range_unset_bounds_are_infinite():
    assert price_in_range(10**9, 500, None)
    assert price_in_range(0, None, 2000)
    assert price_in_range(123, None, None)


def test_single_provider_and_provider_list_are_anded():
    options = ProductFilterOptions(provider="mgs", providers=["fanza"])
    assert len(build_conditions(options)) == 2
    assert _sql(options).count("EXISTS") == 2


def test_fanza_only_site_requires_a_fanza_source():
    conditions = build_conditions(ProductFilterOptions(site_mode="fanza-only"))
    assert len(conditions) == 1
    sql = _sql(ProductFilterOptions(site_mode="fanza-only"))
    assert sql.count("EXISTS") == 1
    assert "lower(product_sources.asp_name) = " in sql


def test_all_site_hides_fanza_exclusive_products():
    sql = _sql(ProductFilterOptions(site_mode="all"))
    assert sql.count("EXISTS") == 2
    assert "lower(product_sources.asp_name) != " in sql
    assert " OR " in sql


def test_site_mode_is_the_first_condition():
    options = ProductFilterOptions(site_mode="fanza-only", ids=[1])
    conditions = build_conditions(options)
    assert len(conditions) == 2
    assert "product_sources" in compile_sql(select(Product.id).where(conditions[0]))
