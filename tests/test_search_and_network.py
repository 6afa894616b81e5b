from catalog.services.autocomplete import MAX_RESULTS, is_valid_performer_name, merge_suggestions
from catalog.services.performer_network import (
    DEFAULT_HOPS, DEFAULT_LIMIT_PER_HOP, MAX_LIMIT_PER_HOP, clamp_hops, clamp_limit_per_hop,
    empty_network, relation_stats,
)


def test_performer_name_filter():
    assert is_valid_performer_name("佐藤花子")
    assert not is_valid_performer_name("デ")
    assert not is_valid_performer_name("他")
    assert not is_valid_performer_name("A→B")
    assert not is_valid_performer_name("")
    assert not is_valid_performer_name(None)


def test_merge_dedupes_by_type_and_id():
    codes = [{"type": "product_id", "id": 1, "name": "ABC-001"}]
    titles = [{"type": "product", "id": 1, "name": "ABC"}, {"type": "product_id", "id": 1, "name": "ABC-001"}]
    merged = merge_suggestions(codes, titles)
    assert [(s["type"], s["id"]) for s in merged] == [("product_id", 1), ("product", 1)]


def test_merge_caps_results_in_priority_order():
    performers = [{"type": "actress", "id": i, "name": f"p{i}"} for i in range(6)]
    tags = [{"type": "tag", "id": i, "name": f"t{i}"} for i in range(6)]
    merged = merge_suggestions(performers, tags)
    assert len(merged) == MAX_RESULTS
    assert [s["type"] for s in merged[:6]] == ["actress"] * 6


def test_hops_clamped_with_default_for_junk():
    assert clamp_hops(None) == DEFAULT_HOPS
    assert clamp_hops("abc") == DEFAULT_HOPS
    assert clamp_hops("0") == 1
    assert clamp_hops("5") == 2


def test_limit_per_hop_clamped():
    assert clamp_limit_per_hop(None) == DEFAULT_LIMIT_PER_HOP
    assert clamp_limit_per_hop("100") == MAX_LIMIT_PER_HOP
    assert clamp_limit_per_hop("-3") == 1
    assert clamp_limit_per_hop("4") == 4


def test_relation_stats_count_direct_costars_only():
    relations = [
        {"id": 2, "name": "B", "hop": 1, "costar_count": 9},
        {"id": 3, "name": "C", "hop": 1, "costar_count": 4},
        {"id": 4, "name": "D", "hop": 2, "costar_count": 12},
    ]
    assert relation_stats(relations) == {"total_costar_count": 2, "most_frequent_costar": "B"}
    assert relation_stats([]) == {"total_costar_count": 0, "most_frequent_costar": None}


def test_empty_network_is_fallback():
    network = empty_network()
    assert network["fallback"] is True
    assert network["relations"] == [] and network["edges"] == []
