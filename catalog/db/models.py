"""
SQLAlchemy ORM models for the product catalog.

============================================================================
CATALOG SCHEMA
============================================================================
- Product: one row per work, keyed by normalized_product_id. Created by the
  ingestion jobs, enriched by the enhancement jobs, never hard-deleted here.
- ProductSource: one row per (product, ASP) pair with price and affiliate URL.
- ProductSale: time-boxed discounts on a source. Expired rows are filtered at
  query time, not deleted.
- Performer / Tag: linked to products through ProductPerformer / ProductTag.
  Tag counts are derived by query, never stored.
- FavoriteList / FavoriteListItem / FavoriteListLike: user-owned ordered
  lists of products. Items and likes cascade with their list.
- RawHtmlData: crawled partner pages waiting for process-raw-data.

Data flow: crawlers → raw_html_data → raw_data_processor → products → API
============================================================================
"""

from datetime import datetime
from sqlalchemy import (
    Column, String, Integer, Float, Boolean, Text, Date, DateTime, Numeric,
    ForeignKey, ARRAY, Index, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import JSONB

from catalog.db.database import Base


class Product(Base):
    """A catalog work, shared across every partner that sells it."""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    normalized_product_id = Column(String(100), nullable=False, unique=True)  # e.g. "fanza-ssis00865"
    maker_product_code = Column(String(100))  # Maker-side code, e.g. "SSIS-865"
    title = Column(String(500), nullable=False)
    title_en = Column(String(500))
    title_zh = Column(String(500))
    title_ko = Column(String(500))
    release_date = Column(Date)
    description = Column(Text)
    duration = Column(Integer)  # Minutes
    default_thumbnail_url = Column(Text)
    embedding = Column(ARRAY(Float))  # Optional content embedding for similarity
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    sources = relationship("ProductSource", back_populates="product", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_products_release_date", release_date.desc().nullslast(), "id"),
        Index("idx_products_title", "title"),
        Index("idx_products_maker_code", "maker_product_code"),
        Index("idx_products_updated_at", "updated_at"),
    )


class ProductSource(Base):
    """Per-ASP listing of a product. At most one row per (product, asp_name)."""

    __tablename__ = "product_sources"

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    asp_name = Column(String(50), nullable=False)  # e.g. "FANZA", "MGS", "DTI"
    original_product_id = Column(String(100), nullable=False)  # Partner-side id
    affiliate_url = Column(Text)
    price = Column(Integer)  # Yen
    currency = Column(String(3), default="JPY")
    product_type = Column(String(20))  # haishin, dvd, monthly
    data_source = Column(String(10))  # API, CSV, HTML
    last_updated = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product", back_populates="sources")
    sales = relationship("ProductSale", back_populates="source", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("product_id", "asp_name", name="uq_product_sources_product_asp"),
        Index("idx_sources_product", "product_id"),
        Index("idx_sources_asp", "asp_name"),
        Index("idx_sources_price", "price"),
        Index("idx_sources_original_id", "original_product_id"),
    )


class ProductSale(Base):
    """A discount window on a product source."""

    __tablename__ = "product_sales"

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_source_id = Column(Integer, ForeignKey("product_sources.id", ondelete="CASCADE"), nullable=False)
    regular_price = Column(Integer, nullable=False)
    sale_price = Column(Integer, nullable=False)
    discount_percent = Column(Integer)
    sale_type = Column(String(50))  # timesale, campaign, ...
    sale_name = Column(String(200))
    start_at = Column(DateTime)
    end_at = Column(DateTime)  # NULL = open-ended
    is_active = Column(Boolean, default=True, nullable=False)
    fetched_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    source = relationship("ProductSource", back_populates="sales")

    __table_args__ = (
        Index("idx_sales_source", "product_source_id"),
        Index("idx_sales_active_end", "is_active", "end_at"),
        Index("idx_sales_discount", discount_percent.desc().nullslast()),
    )


class ProductImage(Base):
    """Package and sample images for a product."""

    __tablename__ = "product_images"

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    asp_name = Column(String(50))
    image_url = Column(Text, nullable=False)
    image_type = Column(String(20), nullable=False)  # thumbnail, package, sample
    display_order = Column(Integer, default=0)

    __table_args__ = (
        Index("idx_images_product", "product_id"),
        Index("idx_images_product_type", "product_id", "image_type"),
    )


class ProductVideo(Base):
    """Sample / trailer videos for a product."""

    __tablename__ = "product_videos"

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    asp_name = Column(String(50))
    video_url = Column(Text, nullable=False)
    video_type = Column(String(20), nullable=False)  # sample, trailer
    quality = Column(String(20))
    duration = Column(Integer)  # Seconds
    display_order = Column(Integer, default=0)

    __table_args__ = (
        UniqueConstraint("product_id", "video_url", name="uq_videos_product_url"),
        Index("idx_videos_product", "product_id"),
    )


class ProductTranslation(Base):
    """Machine-translated titles produced by the translation enrichment job."""

    __tablename__ = "product_translations"

    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True)
    title_en = Column(String(500))
    title_zh = Column(String(500))
    title_ko = Column(String(500))
    translated_at = Column(DateTime, default=datetime.utcnow)


class ProductImageMetadata(Base):
    """Vision API analysis of a product's default thumbnail."""

    __tablename__ = "product_image_metadata"

    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True)
    face_count = Column(Integer, default=0)
    labels = Column(ARRAY(Text))
    analyzed_at = Column(DateTime, default=datetime.utcnow)


class ProductYoutubeVideo(Base):
    """YouTube video linked to a product by the enrichment job."""

    __tablename__ = "product_youtube_videos"

    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True)
    video_id = Column(String(20), primary_key=True)
    video_title = Column(String(500))
    thumbnail_url = Column(Text)
    channel_title = Column(String(200))
    linked_at = Column(DateTime, default=datetime.utcnow)


class ProductRatingSummary(Base):
    """Aggregated user review score per product."""

    __tablename__ = "product_rating_summary"

    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True)
    average_rating = Column(Numeric(3, 2))
    total_reviews = Column(Integer, default=0)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Performer(Base):
    """Performer (actress) profile."""

    __tablename__ = "performers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False, unique=True)
    name_kana = Column(String(200))  # Reading, used for name sorting
    name_en = Column(String(200))
    name_zh = Column(String(200))
    name_ko = Column(String(200))
    profile_image_url = Column(Text)
    debut_year = Column(Integer)
    bio = Column(Text)
    release_count = Column(Integer, default=0)  # Precomputed product count
    latest_release_date = Column(Date)  # Precomputed for "recent" sort
    created_at = Column(DateTime, default=datetime.utcnow)

    aliases = relationship("PerformerAlias", back_populates="performer", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_performers_name_kana", "name_kana"),
        Index("idx_performers_release_count", release_count.desc().nullslast()),
    )


class PerformerAlias(Base):
    """Alternate names a performer is credited under."""

    __tablename__ = "performer_aliases"

    id = Column(Integer, primary_key=True, autoincrement=True)
    performer_id = Column(Integer, ForeignKey("performers.id", ondelete="CASCADE"), nullable=False)
    alias_name = Column(String(200), nullable=False)
    source = Column(String(100))
    is_primary = Column(Boolean, default=False)

    performer = relationship("Performer", back_populates="aliases")

    __table_args__ = (
        UniqueConstraint("performer_id", "alias_name", name="uq_performer_alias"),
        Index("idx_aliases_alias_name", "alias_name"),
    )


class ProductPerformer(Base):
    """Many-to-many link between products and performers."""

    __tablename__ = "product_performers"

    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True)
    performer_id = Column(Integer, ForeignKey("performers.id", ondelete="CASCADE"), primary_key=True)

    __table_args__ = (
        Index("idx_pp_product", "product_id"),
        Index("idx_pp_performer", "performer_id"),
    )


class Tag(Base):
    """Genre / situation / play / body / costume tag."""

    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    category = Column(String(50))  # genre, situation, play, body, costume
    name_en = Column(String(100))
    name_zh = Column(String(100))
    name_ko = Column(String(100))

    __table_args__ = (
        Index("idx_tags_category", "category"),
    )


class ProductTag(Base):
    """Many-to-many link between products and tags."""

    __tablename__ = "product_tags"

    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True)
    tag_id = Column(Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True)

    __table_args__ = (
        Index("idx_pt_product", "product_id"),
        Index("idx_pt_tag", "tag_id"),
    )


class RawHtmlData(Base):
    """Crawled partner product page, processed into catalog rows later."""

    __tablename__ = "raw_html_data"

    id = Column(Integer, primary_key=True, autoincrement=True)
    source = Column(String(50), nullable=False)  # HEYZO, caribbeancom, MGS, FC2, ...
    product_id = Column(String(100), nullable=False)  # Partner-side id
    url = Column(Text)
    html_content = Column(Text, nullable=False)
    crawled_at = Column(DateTime, default=datetime.utcnow)
    processed_at = Column(DateTime)

    __table_args__ = (
        UniqueConstraint("source", "product_id", name="uq_raw_html_source_product"),
        Index("idx_raw_html_unprocessed", "processed_at", crawled_at.desc()),
    )


# ============ User Content ============

class FavoriteList(Base):
    """User-owned, optionally public, ordered collection of products."""

    __tablename__ = "public_favorite_lists"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    is_public = Column(Boolean, default=True, nullable=False)
    view_count = Column(Integer, default=0, nullable=False)
    like_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    items = relationship("FavoriteListItem", back_populates="favorite_list", cascade="all, delete-orphan", passive_deletes=True)
    likes = relationship("FavoriteListLike", cascade="all, delete-orphan", passive_deletes=True)

    __table_args__ = (
        Index("idx_public_lists_user", "user_id"),
        Index("idx_public_lists_public", "is_public"),
        Index("idx_public_lists_likes", like_count.desc()),
    )


class FavoriteListItem(Base):
    """Product entry in a favorite list."""

    __tablename__ = "public_favorite_list_items"

    list_id = Column(Integer, ForeignKey("public_favorite_lists.id", ondelete="CASCADE"), primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True)
    display_order = Column(Integer, default=0, nullable=False)
    note = Column(Text)
    added_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    favorite_list = relationship("FavoriteList", back_populates="items")

    __table_args__ = (
        Index("idx_list_items_list", "list_id"),
        Index("idx_list_items_order", "list_id", "display_order"),
    )


class FavoriteListLike(Base):
    """One user's like of a favorite list."""

    __tablename__ = "public_list_likes"

    list_id = Column(Integer, ForeignKey("public_favorite_lists.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(String(255), primary_key=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_list_likes_user", "user_id"),
    )


# ============ SEO / Analytics ============

class SeoIndexingStatus(Base):
    """Last Indexing API request per product URL."""

    __tablename__ = "seo_indexing_status"

    id = Column(Integer, primary_key=True, autoincrement=True)
    url = Column(Text, nullable=False, unique=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"))
    status = Column(String(30), nullable=False)  # pending, ownership_required, error
    last_requested_at = Column(DateTime)
    error_message = Column(Text)

    __table_args__ = (
        Index("idx_seo_indexing_product", "product_id"),
    )


class AnalyticsCache(Base):
    """Cached GA4 report per report type and date range."""

    __tablename__ = "analytics_cache"

    id = Column(Integer, primary_key=True, autoincrement=True)
    report_type = Column(String(50), nullable=False)
    date_range = Column(String(30), nullable=False)  # "2024-01-01_2024-01-31"
    data = Column(JSONB, nullable=False)
    cached_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("report_type", "date_range", name="uq_analytics_report_range"),
    )
