"""Faceted filter condition builder for product listings.

Each active filter contributes exactly one boolean clause; the caller ANDs
them together. Categories are never OR'ed with each other. Association
filters are expressed as correlated EXISTS subqueries against products.id
so the outer query never fans out into duplicate rows.
"""

import logging
from dataclasses import dataclass, field
from typing import Literal

from sqlalchemy import and_, exists, func, not_, or_, select, true
from sqlalchemy.sql.elements import ColumnElement

from catalog.db.models import (
    Product, ProductSource, ProductSale, ProductPerformer, ProductTag,
    ProductImage, ProductVideo,
)
from catalog.services.asp import DTI_URL_PATTERNS, normalize_asp_name
from catalog.services.pagination import coerce_int
from catalog.services.product_ids import (
    generate_product_id_variations, looks_like_product_code,
)

logger = logging.getLogger(__name__)

PerformerType = Literal["solo", "multi"]
SiteMode = Literal["all", "fanza-only"]

# Upper bound on ids accepted by list-valued filters
MAX_FILTER_IDS = 100


@dataclass
class ProductFilterOptions:
    """Optional filter inputs. Unset / empty values contribute no clause."""

    site_mode: SiteMode | None = None
    ids: list[int] = field(default_factory=list)
    actress_id: str | int | None = None
    tags: list[str] = field(default_factory=list)
    exclude_tags: list[str] = field(default_factory=list)
    provider: str | None = None
    providers: list[str] = field(default_factory=list)
    exclude_providers: list[str] = field(default_factory=list)
    min_price: int | None = None
    max_price: int | None = None
    has_video: bool = False
    has_image: bool = False
    performer_type: PerformerType | None = None
    on_sale: bool = False
    uncategorized: bool = False
    query: str | None = None
    locale: str | None = None

    def is_unfiltered(self) -> bool:
        """True when no option would add a clause."""
        return not build_conditions(self)


def escape_like(value: str) -> str:
    """Escape SQL LIKE wildcard characters in user input."""
    return value.replace("\\", "\\\\").replace("%", r"\%").replace("_", r"\_")


def price_in_range(price: int | float | None, min_price: int | None, max_price: int | None) -> bool:
    """Closed-range membership; an unset bound is unbounded on that side."""
    if price is None:
        return min_price is None and max_price is None
    if min_price is not None and price < min_price:
        return False
    if max_price is not None and price > max_price:
        return False
    return True


def _parse_ids(values: list[str] | list[int]) -> list[int]:
    """Coerce ids, silently dropping anything non-numeric."""
    ids = []
    for value in values:
        parsed = coerce_int(value)
        if parsed is not None:
            ids.append(parsed)
    return ids[:MAX_FILTER_IDS]


def _source_exists(*criteria) -> ColumnElement[bool]:
    return exists().where(ProductSource.product_id == Product.id, *criteria)


def provider_clause(providers: list[str]) -> ColumnElement[bool]:
    """
    Match sources from any of the given ASPs.

    Names are compared by canonical key, so 'FANZA' and 'fanza' are the same
    partner. DTI sub-services are stored as 'DTI' rows and resolved by URL.
    """
    keys = {normalize_asp_name(p) for p in providers if p}
    direct = [k for k in keys if k]
    clauses = [func.lower(ProductSource.asp_name).in_(direct)]

    dti_domains = [fragment for fragment, service in DTI_URL_PATTERNS if service in keys]
    if dti_domains:
        clauses.append(and_(
            func.lower(ProductSource.asp_name) == "dti",
            or_(*[ProductSource.affiliate_url.ilike(f"%{escape_like(d)}%") for d in dti_domains]),
        ))
    return or_(*clauses)


def site_mode_clause(site_mode: SiteMode) -> ColumnElement[bool]:
    """
    Tenant scope applied to every listing.

    'fanza-only' keeps products with a FANZA source. 'all' drops products
    whose only sources are FANZA; products with no source rows stay.
    """
    is_fanza = func.lower(ProductSource.asp_name) == "fanza"
    if site_mode == "fanza-only":
        return _source_exists(is_fanza)
    return or_(_source_exists(not_(is_fanza)), not_(_source_exists(is_fanza)))


def _performer_count():
    return (
        select(func.count())
        .select_from(ProductPerformer)
        .where(ProductPerformer.product_id == Product.id)
        .scalar_subquery()
    )


def _active_sale_clause():
    return and_(
        ProductSale.is_active.is_(True),
        or_(ProductSale.end_at.is_(None), ProductSale.end_at > func.now()),
    )


def text_query_clause(query: str) -> ColumnElement[bool]:
    """
    Case-insensitive partial title match.

    When the query looks like a product code the same clause also matches the
    normalized id, the maker code and partner-side ids against the code's
    spelling variations.
    """
    pattern = f"%{escape_like(query)}%"
    title_match = Product.title.ilike(pattern)

    if not looks_like_product_code(query):
        return title_match

    variants = generate_product_id_variations(query)
    variant_patterns = [f"%{escape_like(v)}%" for v in variants]

    return or_(
        Product.normalized_product_id.in_(variants),
        or_(*[Product.normalized_product_id.ilike(p) for p in variant_patterns]),
        or_(*[Product.maker_product_code.ilike(p) for p in variant_patterns]),
        _source_exists(or_(
            ProductSource.original_product_id.in_(variants),
            or_(*[ProductSource.original_product_id.ilike(p) for p in variant_patterns]),
        )),
        title_match,
    )


def build_conditions(options: ProductFilterOptions | None) -> list[ColumnElement[bool]]:
    """Translate filter options into a list of clauses to AND together."""
    conditions: list[ColumnElement[bool]] = []
    if options is None:
        return conditions

    if options.site_mode:
        conditions.append(site_mode_clause(options.site_mode))

    if options.ids:
        conditions.append(Product.id.in_(options.ids[:MAX_FILTER_IDS]))

    if options.provider:
        conditions.append(_source_exists(provider_clause([options.provider])))

    if options.providers:
        conditions.append(_source_exists(provider_clause(options.providers)))

    if options.exclude_providers:
        conditions.append(not_(_source_exists(provider_clause(options.exclude_providers))))

    if options.min_price is not None or options.max_price is not None:
        price_criteria = []
        if options.min_price is not None:
            price_criteria.append(ProductSource.price >= options.min_price)
        if options.max_price is not None:
            price_criteria.append(ProductSource.price <= options.max_price)
        conditions.append(_source_exists(*price_criteria))

    if options.actress_id is not None:
        performer_id = coerce_int(options.actress_id)
        if performer_id is not None:
            conditions.append(exists().where(
                ProductPerformer.product_id == Product.id,
                ProductPerformer.performer_id == performer_id,
            ))

    tag_ids = _parse_ids(options.tags)
    if tag_ids:
        conditions.append(exists().where(
            ProductTag.product_id == Product.id,
            ProductTag.tag_id.in_(tag_ids),
        ))

    exclude_tag_ids = _parse_ids(options.exclude_tags)
    if exclude_tag_ids:
        conditions.append(not_(exists().where(
            ProductTag.product_id == Product.id,
            ProductTag.tag_id.in_(exclude_tag_ids),
        )))

    query = (options.query or "").strip()
    if query:
        conditions.append(text_query_clause(query))

    if options.has_video:
        conditions.append(exists().where(ProductVideo.product_id == Product.id))

    if options.has_image:
        conditions.append(exists().where(ProductImage.product_id == Product.id))

    if options.performer_type == "solo":
        conditions.append(_performer_count() == 1)
    elif options.performer_type == "multi":
        conditions.append(_performer_count() >= 2)

    if options.on_sale:
        conditions.append(
            exists()
            .select_from(ProductSource.__table__.join(
                ProductSale.__table__, ProductSale.product_source_id == ProductSource.id,
            ))
            .where(ProductSource.product_id == Product.id, _active_sale_clause())
        )

    if options.uncategorized:
        conditions.append(not_(exists().where(ProductPerformer.product_id == Product.id)))

    return conditions


def where_clause(options: ProductFilterOptions | None) -> ColumnElement[bool]:
    """AND of every active condition (TRUE when nothing is filtered)."""
    conditions = build_conditions(options)
    if not conditions:
        return true()
    return and_(*conditions)
