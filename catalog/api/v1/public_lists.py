"""
Public favourite list endpoints.

Lists are identified by an anonymous client-generated ``userId``. Reads of
private lists are owner-only (403); mutations look the list up scoped to the
owner, so a non-owner gets 404 and cannot detect private lists.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.db.database import get_db
from catalog.db import schemas
from catalog.services import favorite_lists
from catalog.services.pagination import page_to_offset, parse_bool

logger = logging.getLogger(__name__)

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)

NOT_FOUND_OR_DENIED = "List not found or access denied"


def _require_user(user_id: str | None) -> str:
    if not user_id:
        raise HTTPException(status_code=401, detail="User ID required")
    return user_id


def _require_title(title: str | None) -> None:
    if not favorite_lists.is_valid_title(title):
        raise HTTPException(
            status_code=400,
            detail=f"Title must be at least {favorite_lists.MIN_TITLE_LENGTH} characters",
        )


@router.get("", response_model=schemas.FavoriteListsResponse)
async def list_favorite_lists(
    user_id: str | None = Query(None, alias="userId"),
    my_lists: str | None = Query(None, alias="myLists"),
    page: int = Query(1, ge=1),
    limit: int = Query(favorite_lists.DEFAULT_PAGE_SIZE, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Public lists ordered by likes, or the caller's own lists with ``myLists=true``."""
    lists = await favorite_lists.list_lists(
        db,
        user_id=user_id,
        my_lists=parse_bool(my_lists),
        limit=limit,
        offset=page_to_offset(page, limit),
    )
    return {"success": True, "lists": lists, "page": page, "limit": limit}


@router.get("/{list_id}", response_model=schemas.FavoriteListDetailResponse)
async def get_favorite_list(
    list_id: int,
    user_id: str | None = Query(None, alias="userId"),
    db: AsyncSession = Depends(get_db),
):
    favorite_list = await favorite_lists.get_list(db, list_id)
    if favorite_list is None:
        raise HTTPException(status_code=404, detail="List not found")
    if not favorite_lists.can_view_list(favorite_list, user_id):
        raise HTTPException(status_code=403, detail="Access denied")

    await favorite_lists.record_view(db, favorite_list, user_id)
    items = await favorite_lists.get_list_items(db, list_id)
    liked = await favorite_lists.user_liked(db, list_id, user_id)

    return {
        "success": True,
        "list": favorite_lists.serialize_list(favorite_list, item_count=len(items), user_liked=liked),
        "items": items,
    }


@router.post("", status_code=201)
@limiter.limit("20/minute")
async def create_favorite_list(
    request: Request,
    body: schemas.FavoriteListCreate,
    db: AsyncSession = Depends(get_db),
):
    user_id = _require_user(body.userId)
    _require_title(body.title)

    favorite_list = await favorite_lists.create_list(
        db, user_id, body.title, description=body.description, is_public=body.isPublic,
    )
    return {"success": True, "list": favorite_lists.serialize_list(favorite_list)}


@router.put("/{list_id}")
async def update_favorite_list(
    list_id: int,
    body: schemas.FavoriteListUpdate,
    db: AsyncSession = Depends(get_db),
):
    user_id = _require_user(body.userId)
    favorite_list = await favorite_lists.get_owned_list(db, list_id, user_id)
    if favorite_list is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND_OR_DENIED)
    if body.title is not None:
        _require_title(body.title)

    favorite_list = await favorite_lists.update_list(
        db,
        favorite_list,
        title=body.title,
        description=body.description,
        is_public=body.isPublic,
        # An explicit null clears the description
        clear_description="description" in body.model_fields_set and body.description is None,
    )
    return {"success": True, "list": favorite_lists.serialize_list(favorite_list)}


@router.delete("/{list_id}")
async def delete_favorite_list(
    list_id: int,
    user_id: str | None = Query(None, alias="userId"),
    db: AsyncSession = Depends(get_db),
):
    user_id = _require_user(user_id)
    if not await favorite_lists.delete_list(db, list_id, user_id):
        raise HTTPException(status_code=404, detail=NOT_FOUND_OR_DENIED)
    return {"success": True}


@router.post("/{list_id}/items")
async def change_list_items(
    list_id: int,
    body: schemas.FavoriteListItemAction,
    db: AsyncSession = Depends(get_db),
):
    """Add a product to (or remove it from) an owned list."""
    user_id = _require_user(body.userId)
    if body.action not in ("add", "remove"):
        raise HTTPException(status_code=400, detail="Invalid action")

    favorite_list = await favorite_lists.get_owned_list(db, list_id, user_id)
    if favorite_list is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND_OR_DENIED)

    if body.action == "add":
        await favorite_lists.add_item(db, list_id, body.productId, note=body.note)
    else:
        await favorite_lists.remove_item(db, list_id, body.productId)

    return {"success": True, "action": body.action, "product_id": body.productId}


async def _change_like(db: AsyncSession, list_id: int, body: schemas.FavoriteListLikeAction, default_action: str):
    user_id = _require_user(body.userId)
    action = body.action or default_action
    if action not in ("like", "unlike"):
        raise HTTPException(status_code=400, detail="Invalid action")

    favorite_list = await favorite_lists.get_list(db, list_id)
    if favorite_list is None:
        raise HTTPException(status_code=404, detail="List not found")
    if not favorite_list.is_public:
        raise HTTPException(status_code=403, detail="Cannot like private list")
    if favorite_list.user_id == user_id:
        raise HTTPException(status_code=400, detail="Cannot like own list")

    if action == "like":
        changed = await favorite_lists.like_list(db, list_id, user_id)
    else:
        changed = await favorite_lists.unlike_list(db, list_id, user_id)

    await db.refresh(favorite_list)
    return {
        "success": True,
        "liked": action == "like",
        "changed": changed,
        "like_count": favorite_list.like_count or 0,
    }


@router.post("/{list_id}/like")
async def like_favorite_list(
    list_id: int,
    body: schemas.FavoriteListLikeAction,
    db: AsyncSession = Depends(get_db),
):
    return await _change_like(db, list_id, body, "like")


@router.delete("/{list_id}/like")
async def unlike_favorite_list(
    list_id: int,
    body: schemas.FavoriteListLikeAction,
    db: AsyncSession = Depends(get_db),
):
    return await _change_like(db, list_id, body, "unlike")
