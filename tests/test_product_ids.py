from catalog.services.product_ids import (
    format_product_code_for_display, generate_product_id_variations, looks_like_product_code,
    match_product_id, normalize_mgs_product_id, product_id_to_like_pattern, strip_asp_prefix,
)


def test_normalize_mgs_inserts_hyphen():
    assert normalize_mgs_product_id("ABC123") == "ABC-123"
    assert normalize_mgs_product_id("259LUXU1234") == "259LUXU-1234"


def test_normalize_mgs_is_idempotent():
    assert normalize_mgs_product_id("ABC-123") == "ABC-123"
    assert normalize_mgs_product_id(normalize_mgs_product_id("ABC123")) == "ABC-123"


def test_variations_cover_case_separator_and_padding():
    variations = generate_product_id_variations("MIDE-001")
    for expected in ("MIDE-001", "mide-001", "MIDE001", "mide001", "mide00001", "MIDE-1"):
        assert expected in variations
    assert len(variations) == len(set(variations))


def test_variations_strip_asp_prefix():
    variations = generate_product_id_variations("FANZA-mide00001")
    assert "mide00001" in variations
    assert "MIDE-001" in variations


def test_dti_variations():
    variations = generate_product_id_variations("123456_01")
    assert "123456-01" in variations
    assert "12345601" in variations


def test_strip_asp_prefix_leaves_plain_codes():
    assert strip_asp_prefix("MGS-259LUXU-1234") == "259LUXU-1234"
    assert strip_asp_prefix("SSIS-865") == "SSIS-865"


def test_match_ignores_case_and_separators():
    assert match_product_id("MIDE-001", "mide_001")
    assert not match_product_id("MIDE-001", "MIDE-002")


def test_like_pattern_tolerates_missing_separator():
    assert product_id_to_like_pattern("MIDE-001") == "mide%001"


def test_looks_like_product_code():
    assert looks_like_product_code("SSIS-865")
    assert not looks_like_product_code("ab")
    assert not looks_like_product_code("two words")


def test_display_format():
    assert format_product_code_for_display("ssis00865") == "SSIS-865"
    assert format_product_code_for_display("107START-470") == "START-470"
    assert format_product_code_for_display("300mium01359") == "300MIUM-1359"
    assert format_product_code_for_display("") is None
    assert format_product_code_for_display(None) is None
