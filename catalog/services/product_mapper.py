"""Result shaper: collapse joined rows into one view object per product.

Related rows (performers, tags, images, videos, sources, sales) are loaded
in batch for a page of products and arrive one row per association. They
are grouped by product id here, then merged into the product view in the
order of the outer product query.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

from catalog.services.affiliate import get_affiliate_url, is_linkable_url
from catalog.services.asp import get_asp_display_name, normalize_asp_name
from catalog.services.product_ids import format_product_code_for_display

PLACEHOLDER_IMAGE_URL = "/images/no-image.png"
NEW_RELEASE_DAYS = 7
LOCALIZED_LOCALES = ("en", "zh", "ko")


@dataclass
class ProductBatchData:
    """Related rows for a page of products, keyed by product id."""

    performers: dict[int, list[dict]] = field(default_factory=dict)
    tags: dict[int, list[dict]] = field(default_factory=dict)
    images: dict[int, list[dict]] = field(default_factory=dict)
    videos: dict[int, list[dict]] = field(default_factory=dict)
    sources: dict[int, list[dict]] = field(default_factory=dict)
    sales: dict[int, dict] = field(default_factory=dict)


def group_by_product(
    rows: Iterable[Mapping[str, Any]],
    key: str = "product_id",
    dedupe_on: str | None = "id",
) -> dict[int, list[dict]]:
    """
    Group association rows by product id.

    Products appear in first-seen order and each product's rows keep their
    arrival order. Rows repeating an already-seen ``dedupe_on`` value for the
    same product (fan-out from a one-to-many join) are dropped.
    """
    grouped: dict[int, list[dict]] = {}
    seen: dict[int, set] = {}
    for row in rows:
        item = dict(row)
        product_id = item.pop(key)
        bucket = grouped.setdefault(product_id, [])
        if dedupe_on is not None and dedupe_on in item:
            marker = item[dedupe_on]
            product_seen = seen.setdefault(product_id, set())
            if marker in product_seen:
                continue
            product_seen.add(marker)
        bucket.append(item)
    return grouped


def select_primary_source(sources: list[dict], preferred: list[str] | None = None) -> dict | None:
    """Pick the source shown on a product card: a preferred ASP, else the cheapest."""
    if not sources:
        return None
    if preferred:
        wanted = {normalize_asp_name(p) for p in preferred}
        for source in sources:
            if normalize_asp_name(source.get("asp_name") or "", source.get("affiliate_url")) in wanted:
                return source
    priced = [s for s in sources if s.get("price") is not None]
    if priced:
        return min(priced, key=lambda s: s["price"])
    return sources[0]


def source_link(source: dict, direct_fanza: bool = False) -> str | None:
    """Client-facing affiliate URL of a source row; only http(s) links survive."""
    asp_key = normalize_asp_name(source.get("asp_name") or "", source.get("affiliate_url"))
    url = get_affiliate_url(source.get("affiliate_url"), direct_fanza=direct_fanza and asp_key == "fanza")
    return url if is_linkable_url(url) else None


def resolve_image_url(default_thumbnail_url: str | None, images: list[dict]) -> str:
    """Default thumbnail, else a thumbnail-type image, else the first image, else placeholder."""
    if default_thumbnail_url:
        return default_thumbnail_url
    for image in images:
        if image.get("image_type") == "thumbnail":
            return image["image_url"]
    if images:
        return images[0]["image_url"]
    return PLACEHOLDER_IMAGE_URL


def localized_title(product: Any, locale: str | None) -> str:
    if locale in LOCALIZED_LOCALES:
        value = getattr(product, f"title_{locale}", None)
        if value:
            return value
    return product.title


def _as_date(value: date | datetime | None) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    return value


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value else None


def map_product(
    product: Any,
    batch: ProductBatchData,
    locale: str | None = None,
    preferred_providers: list[str] | None = None,
    today: date | None = None,
    direct_fanza_links: bool = False,
) -> dict:
    """Build the normalized product view consumed by the API."""
    today = today or date.today()
    performers = batch.performers.get(product.id, [])
    tags = batch.tags.get(product.id, [])
    images = batch.images.get(product.id, [])
    videos = batch.videos.get(product.id, [])
    sources = batch.sources.get(product.id, [])
    sale = batch.sales.get(product.id)

    source = select_primary_source(sources, preferred_providers)
    provider = normalize_asp_name(source["asp_name"], source.get("affiliate_url")) if source else None

    release_date = _as_date(product.release_date)
    is_new = bool(release_date and today - timedelta(days=NEW_RELEASE_DAYS) <= release_date <= today)
    is_future = bool(release_date and release_date > today)

    alternative_sources = [
        {
            "asp_name": s["asp_name"],
            "price": s.get("price"),
            "affiliate_url": source_link(s, direct_fanza_links),
        }
        for s in sources
        if s is not source
    ]

    return {
        "id": product.id,
        "normalized_product_id": product.normalized_product_id,
        "product_code": format_product_code_for_display(
            product.maker_product_code or (source or {}).get("original_product_id")
        ),
        "title": localized_title(product, locale),
        "description": product.description,
        "release_date": _iso(release_date),
        "duration": product.duration,
        "image_url": resolve_image_url(product.default_thumbnail_url, images),
        "sample_images": [i["image_url"] for i in images if i.get("image_type") == "sample"],
        "sample_video_url": videos[0]["video_url"] if videos else None,
        "performers": [{"id": p["id"], "name": p["name"]} for p in performers],
        "actress_id": performers[0]["id"] if performers else None,
        "actress_name": performers[0]["name"] if performers else None,
        "tags": [{"id": t["id"], "name": t["name"], "category": t.get("category")} for t in tags],
        "provider": provider,
        "provider_label": get_asp_display_name(provider) if provider else None,
        "price": source.get("price") if source else None,
        "currency": (source.get("currency") if source else None) or "JPY",
        "affiliate_url": source_link(source, direct_fanza_links) if source else None,
        "regular_price": sale["regular_price"] if sale else None,
        "sale_price": sale["sale_price"] if sale else None,
        "discount_percent": sale["discount_percent"] if sale else None,
        "sale_end_at": _iso(sale.get("end_at")) if sale else None,
        "alternative_sources": alternative_sources,
        "is_new": is_new,
        "is_future": is_future,
    }


def map_products_with_batch_data(
    products: Iterable[Any],
    batch: ProductBatchData,
    locale: str | None = None,
    preferred_providers: list[str] | None = None,
    today: date | None = None,
    direct_fanza_links: bool = False,
) -> list[dict]:
    """Map a page of products, preserving the order they were queried in."""
    return [
        map_product(
            product, batch, locale=locale, preferred_providers=preferred_providers,
            today=today, direct_fanza_links=direct_fanza_links,
        )
        for product in products
    ]
