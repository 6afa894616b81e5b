from sqlalchemy import select

from catalog.db.models import Performer
from catalog.services.actress_queries import ActressFilterOptions, build_actress_conditions

from helpers import compile_sql


def _sql(options: ActressFilterOptions) -> str:
    return compile_sql(select(Performer.id).where(*build_actress_conditions(options)))


def test_default_hides_performers_without_products():
    conditions = build_actress_conditions(ActressFilterOptions())
    assert len(conditions) == 1
    assert "product_performers.performer_id = performers.id" in _sql(ActressFilterOptions())


def test_explicit_ids_replace_credited_check():
    sql = _sql(ActressFilterOptions(ids=[1, 2]))
    assert "performers.id IN" in sql
    assert "EXISTS" not in sql


def test_single_character_query_is_initial_match():
    sql = _sql(ActressFilterOptions(query="さ"))
    assert "performers.name_kana ILIKE" in sql
    assert "performer_aliases" not in sql


def test_longer_query_searches_aliases():
    sql = _sql(ActressFilterOptions(query="佐藤"))
    assert "performers.name ILIKE" in sql
    assert "performer_aliases.alias_name ILIKE" in sql


def test_tag_and_asp_facets_go_through_credited_products():
    sql = _sql(ActressFilterOptions(include_tags=["3", "x"], exclude_asps=["fanza"]))
    assert "JOIN product_tags ON product_tags.product_id = product_performers.product_id" in sql
    assert "JOIN product_sources ON product_sources.product_id = product_performers.product_id" in sql
    assert "NOT (EXISTS" in sql or "NOT EXISTS" in sql
