"""Pydantic schemas for API request/response validation."""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field


# ============ Product Schemas ============

class PerformerRef(BaseModel):
    id: int
    name: str


class TagRef(BaseModel):
    id: int
    name: str
    category: str | None = None


class AlternativeSource(BaseModel):
    asp_name: str
    price: int | None = None
    affiliate_url: str | None = None


class ProductItem(BaseModel):
    """Product card as shown in listings."""
    id: int
    normalized_product_id: str
    product_code: str | None = None
    title: str
    description: str | None = None
    release_date: date | None = None
    duration: int | None = None  # Minutes
    image_url: str
    sample_images: list[str] = []
    sample_video_url: str | None = None
    performers: list[PerformerRef] = []
    actress_id: int | None = None
    actress_name: str | None = None
    tags: list[TagRef] = []
    provider: str | None = None
    provider_label: str | None = None
    price: int | None = None
    currency: str = "JPY"
    affiliate_url: str | None = None
    regular_price: int | None = None
    sale_price: int | None = None
    discount_percent: int | None = None
    sale_end_at: datetime | None = None
    alternative_sources: list[AlternativeSource] = []
    is_new: bool = False
    is_future: bool = False


class ProductListResponse(BaseModel):
    success: bool = True
    products: list[ProductItem]
    total: int
    limit: int
    offset: int


# ============ Search Schemas ============

class AutocompleteResult(BaseModel):
    """Single search-box suggestion."""
    type: Literal["product_id", "actress", "tag", "product"]
    id: int
    name: str
    image: str | None = None
    category: str | None = None
    count: int | None = None


class AutocompleteResponse(BaseModel):
    results: list[AutocompleteResult]


# ============ Favorite List Schemas ============

class FavoriteListCreate(BaseModel):
    """Create a new favorite list."""
    userId: str | None = None
    title: str | None = None
    description: str | None = None
    isPublic: bool = True


class FavoriteListUpdate(BaseModel):
    """Update a favorite list. Omitted fields are left unchanged."""
    userId: str | None = None
    title: str | None = None
    description: str | None = None
    isPublic: bool | None = None


class FavoriteListItemAction(BaseModel):
    userId: str | None = None
    productId: int
    action: str  # "add" or "remove"
    note: str | None = Field(None, max_length=1000)


class FavoriteListLikeAction(BaseModel):
    userId: str | None = None
    action: str | None = None  # "like" or "unlike"; defaults from the HTTP method


class FavoriteListResponse(BaseModel):
    """Favorite list metadata."""
    id: int
    user_id: str
    title: str
    description: str | None = None
    is_public: bool
    view_count: int = 0
    like_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    item_count: int | None = None
    user_liked: bool | None = None


class FavoriteListProduct(BaseModel):
    id: int
    title: str | None = None
    thumbnail_url: str | None = None


class FavoriteListItemResponse(BaseModel):
    list_id: int
    product_id: int
    display_order: int
    note: str | None = None
    added_at: datetime | None = None
    product: FavoriteListProduct


class FavoriteListDetailResponse(BaseModel):
    success: bool = True
    list: FavoriteListResponse
    items: list[FavoriteListItemResponse]


class FavoriteListsResponse(BaseModel):
    success: bool = True
    lists: list[FavoriteListResponse]
    page: int
    limit: int


# ============ Sales Schemas ============

class ForYouProduct(BaseModel):
    id: int
    normalized_product_id: str
    title: str
    thumbnail_url: str | None = None
    regular_price: int
    sale_price: int
    discount_percent: int = 0
    match_reason: Literal["favorite_actress", "recently_viewed", "trending"]
    match_details: str | None = None
    performers: list[PerformerRef] = []
    sale_end_at: str | None = None


class ForYouResponse(BaseModel):
    success: bool = True
    products: list[ForYouProduct]

