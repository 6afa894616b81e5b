"""Product code normalization and search variations.

Partner catalogs spell the same work many ways: MIDE-001, mide001,
mide00001, FANZA-mide00001. These helpers fold those spellings together
for search and render one canonical code for display.

Supported families:
- FANZA: MIDE-001, mide00001, FANZA-mide00001
- MGS: 259LUXU-1234, 259luxu1234
- DTI: 123456_01, CARIBBEAN-123456
- TMP: 4037-PPV2543
"""

import re

# ASP prefixes that may be glued onto a code ("FANZA-mide00001")
ASP_PREFIXES = [
    "FANZA",
    "MGS",
    "DUGA",
    "SOKMIL",
    "B10F",
    "FC2",
    "JAPANSKA",
    "CARIBBEAN",
    "CARIBBEANCOMPR",
    "1PONDO",
    "HEYZO",
    "10MUSUME",
    "PACOPACOMAMA",
    "H4610",
    "H0930",
    "C0930",
    "GACHINCO",
    "KIN8TENGOKU",
    "NYOSHIN",
    "HEYDOUGA",
    "X1X",
    "ENKOU55",
    "UREKKO",
    "XXXURABI",
    "TOKYOHOT",
    "TVDEAV",
]

# A free-text query is treated as a product code when it matches this
PRODUCT_CODE_QUERY_RE = re.compile(r"^[a-zA-Z0-9]+[-_]?[a-zA-Z0-9]+$")

_STANDARD_RE = re.compile(r"^([a-zA-Z]+)[-_]?(\d+)$")
_FANZA_RE = re.compile(r"^([a-zA-Z]+)(\d{5})$")
_MGS_RE = re.compile(r"^(\d+)([a-zA-Z]+)[-_]?(\d+)$")
_TMP_RE = re.compile(r"^(\d+)[-_]?(ppv)(\d+)$", re.IGNORECASE)
_DTI_RE = re.compile(r"^(\d+)_(\d+)$")


def looks_like_product_code(query: str) -> bool:
    """True when a search query should also be matched against product codes."""
    return len(query) >= 4 and bool(PRODUCT_CODE_QUERY_RE.match(query))


def normalize_product_id_for_search(product_id: str) -> str:
    """Lowercase and drop separators: 'MIDE-001' -> 'mide001'."""
    return re.sub(r"[-_\s]", "", product_id.strip().lower())


def strip_asp_prefix(product_id: str) -> str:
    """Remove a leading 'ASP-' prefix: 'FANZA-mide00001' -> 'mide00001'."""
    upper = product_id.upper()
    for prefix in ASP_PREFIXES:
        if upper.startswith(prefix + "-"):
            return product_id[len(prefix) + 1:]
    return product_id


def _case_variants(value: str) -> list[str]:
    return [value, value.lower(), value.upper()]


def _add_padding_variations(variations: set[str], prefix: str, num: int) -> None:
    num_str = str(num)
    padded3 = num_str.zfill(3)
    padded5 = num_str.zfill(5)

    numbers = [num_str]
    if padded3 != num_str:
        numbers.append(padded3)  # DVD standard
    if padded5 != num_str and padded5 != padded3:
        numbers.append(padded5)  # FANZA standard

    for number in numbers:
        for p in _case_variants(prefix):
            variations.add(f"{p}-{number}")
            variations.add(f"{p}{number}")


def generate_product_id_variations(product_id: str) -> list[str]:
    """
    Generate spellings of a product code for exact-match search.

    Covers case, with/without separator, 3- and 5-digit zero padding,
    FANZA-prefixed 5-digit codes, MGS numeric-prefix codes, TMP PPV codes
    and DTI NNNNNN_NN codes. Order is insertion order, without duplicates.
    """
    variations: dict[str, None] = {}
    trimmed = product_id.strip()

    stripped = strip_asp_prefix(trimmed)
    ids_to_process = [trimmed, stripped] if stripped != trimmed else [trimmed]

    def add(value: str) -> None:
        variations.setdefault(value, None)

    for base_id in ids_to_process:
        for value in _case_variants(base_id):
            add(value)

        no_separator = re.sub(r"[-_]", "", base_id)
        for value in _case_variants(no_separator):
            add(value)

        with_hyphen = re.sub(r"([a-zA-Z]+)(\d+)", r"\1-\2", base_id)
        if with_hyphen != base_id:
            for value in _case_variants(with_hyphen):
                add(value)

        padded: set[str] = set()

        match = _STANDARD_RE.match(base_id)
        if match:
            _add_padding_variations(padded, match.group(1), int(match.group(2)))

        match = _FANZA_RE.match(base_id)
        if match:
            prefix, digits = match.group(1), match.group(2)
            _add_padding_variations(padded, prefix, int(digits))
            padded.add(f"FANZA-{prefix.lower()}{digits}")
            padded.add(f"fanza-{prefix.lower()}{digits}")

        for value in sorted(padded):
            add(value)

        match = _MGS_RE.match(base_id)
        if match:
            num_prefix, letters, num_suffix = match.groups()
            add(f"{num_prefix}{letters}-{num_suffix}")
            add(f"{num_prefix}{letters.lower()}-{num_suffix}")
            add(f"{num_prefix}{letters}{num_suffix}")
            add(f"{num_prefix}{letters.lower()}{num_suffix}")

        match = _TMP_RE.match(base_id)
        if match:
            num1, ppv, num2 = match.groups()
            add(f"{num1}-{ppv.upper()}{num2}")
            add(f"{num1}-{ppv.lower()}{num2}")
            add(f"{num1}{ppv.upper()}{num2}")
            add(f"{num1}{ppv.lower()}{num2}")

        match = _DTI_RE.match(base_id)
        if match:
            main_num, sub_num = match.groups()
            add(f"{main_num}_{sub_num}")
            add(f"{main_num}-{sub_num}")
            add(f"{main_num}{sub_num}")

    return list(variations)


def match_product_id(id1: str, id2: str) -> bool:
    """Compare two codes ignoring case and separators."""
    return normalize_product_id_for_search(id1) == normalize_product_id_for_search(id2)


def product_id_to_like_pattern(product_id: str) -> str:
    """LIKE pattern tolerant of a missing separator: 'MIDE-001' -> 'mide%001'."""
    normalized = product_id.strip().lower()
    return re.sub(r"([a-z]+)[-_]?(\d+)", r"\1%\2", normalized, count=1)


def _strip_leading_zeros(number: str) -> str:
    return number.lstrip("0") or "0"


def format_product_code_for_display(code: str | None) -> str | None:
    """
    Render a code as PREFIX-NUMBER.

    '107START-470' -> 'START-470'   (maker number prefix dropped)
    'ssis00865'    -> 'SSIS-865'
    'h_1234abc00123' -> 'ABC-123'
    '300mium01359' -> '300MIUM-1359' (300-series keeps its prefix)
    """
    if not code or not isinstance(code, str):
        return None

    value = code.strip().upper()
    if not value:
        return None

    value = re.sub(r"^H_\d+", "", value)

    if not re.match(r"^300[A-Z]+", value):
        value = re.sub(r"^\d+(?=[A-Z])", "", value)

    for pattern in (r"^(\d*[A-Z]+)-(\d+)$", r"^(\d+[A-Z]+)(\d+)$", r"^([A-Z]+)(\d+)$"):
        match = re.match(pattern, value)
        if match:
            return f"{match.group(1)}-{_strip_leading_zeros(match.group(2))}"

    return code.upper()


def normalize_mgs_product_id(product_id: str) -> str:
    """Insert the hyphen MGS codes are listed with: 'ABC123' -> 'ABC-123'."""
    if "-" in product_id:
        return product_id
    match = re.match(r"^(\d*[A-Za-z]+)(\d+)$", product_id)
    if not match:
        return product_id
    return f"{match.group(1)}-{match.group(2)}"
