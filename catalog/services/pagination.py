"""Paging arithmetic and lenient coercion of query-string numbers.

Filter inputs are coerced best-effort: a value that does not parse is
dropped (or replaced with the default) instead of failing the request.
"""

from typing import Sequence, TypeVar

T = TypeVar("T")


def page_to_offset(page: int, per_page: int) -> int:
    """Offset of the first row on a 1-based page: page 3 of 20 -> 40."""
    return (max(page, 1) - 1) * per_page


def total_pages(total: int, per_page: int) -> int:
    return (total + per_page - 1) // per_page if total > 0 else 1


def paginate(items: Sequence[T], page: int, per_page: int) -> list[T]:
    """Slice one page out of an in-memory sequence."""
    offset = page_to_offset(page, per_page)
    return list(items[offset:offset + per_page])


def coerce_int(value: str | int | None, default: int | None = None) -> int | None:
    """Parse an int, falling back to ``default`` for missing or malformed input."""
    if value is None or value == "":
        return default
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def coerce_page(value: str | int | None) -> int:
    """Pages below 1 (or unparseable) clamp to 1."""
    page = coerce_int(value, 1)
    return page if page and page > 0 else 1


def coerce_price(value: str | int | None) -> int | None:
    """Non-numeric or negative prices are treated as an unset bound."""
    price = coerce_int(value)
    if price is None or price < 0:
        return None
    return price


def parse_int_list(value: str | None) -> list[int]:
    """Comma-separated ints; entries that do not parse are dropped."""
    if not value:
        return []
    ids = []
    for part in value.split(","):
        parsed = coerce_int(part)
        if parsed is not None:
            ids.append(parsed)
    return ids


def parse_str_list(value: str | None) -> list[str]:
    """Comma-separated strings with blanks removed."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def parse_bool(value: str | None) -> bool:
    return value is not None and value.lower() in ("true", "1", "yes")


def parse_price_range(value: str | None) -> tuple[int | None, int | None]:
    """'500-2000' -> (500, 2000); '3000' -> (3000, None); junk -> (None, None)."""
    if not value:
        return None, None
    if "-" in value:
        low, _, high = value.partition("-")
        return coerce_price(low), coerce_price(high)
    return coerce_price(value), None
