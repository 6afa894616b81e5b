"""
Public favourite lists.

Access rules:
- Anyone may read a public list; a private list is readable by its owner only.
- Only the owner may update, delete or change the items of a list. Lookups
  for mutations are scoped by owner, so a non-owner sees "not found".
- Likes are for other users' public lists only.
"""

import logging
from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.db.models import FavoriteList, FavoriteListItem, FavoriteListLike, Product

logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 2
DEFAULT_PAGE_SIZE = 20


def can_view_list(favorite_list: FavoriteList, user_id: str | None) -> bool:
    if favorite_list.is_public:
        return True
    return user_id is not None and favorite_list.user_id == user_id


def is_valid_title(title: str | None) -> bool:
    return title is not None and len(title.strip()) >= MIN_TITLE_LENGTH


def serialize_list(favorite_list: FavoriteList, **extra) -> dict:
    data = {
        "id": favorite_list.id,
        "user_id": favorite_list.user_id,
        "title": favorite_list.title,
        "description": favorite_list.description,
        "is_public": favorite_list.is_public,
        "view_count": favorite_list.view_count or 0,
        "like_count": favorite_list.like_count or 0,
        "created_at": favorite_list.created_at,
        "updated_at": favorite_list.updated_at,
    }
    data.update(extra)
    return data


def owned_list_query(list_id: int, user_id: str):
    return select(FavoriteList).where(FavoriteList.id == list_id, FavoriteList.user_id == user_id)


def delete_list_statement(list_id: int, user_id: str):
    """Owner-scoped delete. Items and likes go with the list via ON DELETE CASCADE."""
    return (
        delete(FavoriteList)
        .where(FavoriteList.id == list_id, FavoriteList.user_id == user_id)
        .returning(FavoriteList.id)
    )


def remove_item_statement(list_id: int, product_id: int):
    return delete(FavoriteListItem).where(
        FavoriteListItem.list_id == list_id,
        FavoriteListItem.product_id == product_id,
    )


async def get_list(db: AsyncSession, list_id: int) -> FavoriteList | None:
    result = await db.execute(select(FavoriteList).where(FavoriteList.id == list_id))
    return result.scalar_one_or_none()


async def get_owned_list(db: AsyncSession, list_id: int, user_id: str) -> FavoriteList | None:
    result = await db.execute(owned_list_query(list_id, user_id))
    return result.scalar_one_or_none()


async def list_lists(
    db: AsyncSession,
    user_id: str | None = None,
    my_lists: bool = False,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> list[dict]:
    """Public lists by likes, or all of the caller's own lists with ``my_lists``."""
    query = select(FavoriteList)
    if my_lists and user_id:
        query = query.where(FavoriteList.user_id == user_id)
    else:
        query = query.where(FavoriteList.is_public.is_(True))

    query = query.order_by(FavoriteList.like_count.desc(), FavoriteList.id.desc()).limit(limit).offset(offset)
    result = await db.execute(query)
    return [serialize_list(fl) for fl in result.scalars().all()]


async def get_list_items(db: AsyncSession, list_id: int) -> list[dict]:
    result = await db.execute(
        select(FavoriteListItem, Product.title, Product.default_thumbnail_url)
        .outerjoin(Product, FavoriteListItem.product_id == Product.id)
        .where(FavoriteListItem.list_id == list_id)
        .order_by(FavoriteListItem.display_order, FavoriteListItem.added_at)
    )
    return [
        {
            "list_id": item.list_id,
            "product_id": item.product_id,
            "display_order": item.display_order,
            "note": item.note,
            "added_at": item.added_at,
            "product": {"id": item.product_id, "title": title, "thumbnail_url": thumbnail},
        }
        for item, title, thumbnail in result.all()
    ]


async def user_liked(db: AsyncSession, list_id: int, user_id: str | None) -> bool:
    if not user_id:
        return False
    result = await db.execute(
        select(FavoriteListLike.list_id)
        .where(FavoriteListLike.list_id == list_id, FavoriteListLike.user_id == user_id)
    )
    return result.first() is not None


async def record_view(db: AsyncSession, favorite_list: FavoriteList, user_id: str | None) -> None:
    """Count a view unless the owner is looking at their own list."""
    if favorite_list.user_id == user_id:
        return
    result = await db.execute(
        update(FavoriteList)
        .where(FavoriteList.id == favorite_list.id)
        .values(view_count=FavoriteList.view_count + 1)
        .returning(FavoriteList.view_count)
    )
    view_count = result.scalar_one_or_none()
    await db.commit()
    if view_count is not None:
        favorite_list.view_count = view_count


async def create_list(
    db: AsyncSession,
    user_id: str,
    title: str,
    description: str | None = None,
    is_public: bool = True,
) -> FavoriteList:
    favorite_list = FavoriteList(
        user_id=user_id,
        title=title.strip(),
        description=(description or "").strip() or None,
        is_public=is_public,
    )
    db.add(favorite_list)
    await db.commit()
    await db.refresh(favorite_list)
    logger.info(f"Created favorite list {favorite_list.id} for user {user_id}")
    return favorite_list


async def update_list(
    db: AsyncSession,
    favorite_list: FavoriteList,
    title: str | None = None,
    description: str | None = None,
    is_public: bool | None = None,
    clear_description: bool = False,
) -> FavoriteList:
    if title is not None:
        favorite_list.title = title.strip()
    if description is not None or clear_description:
        favorite_list.description = (description or "").strip() or None
    if is_public is not None:
        favorite_list.is_public = is_public
    favorite_list.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(favorite_list)
    return favorite_list


async def delete_list(db: AsyncSession, list_id: int, user_id: str) -> bool:
    """Delete an owned list. False when it does not exist or belongs to someone else."""
    result = await db.execute(delete_list_statement(list_id, user_id))
    deleted = result.first() is not None
    await db.commit()
    if deleted:
        logger.info(f"Deleted favorite list {list_id}")
    return deleted


async def add_item(db: AsyncSession, list_id: int, product_id: int, note: str | None = None) -> None:
    next_order = await db.execute(
        select(func.coalesce(func.max(FavoriteListItem.display_order), -1) + 1)
        .where(FavoriteListItem.list_id == list_id)
    )
    stmt = insert(FavoriteListItem).values(
        list_id=list_id,
        product_id=product_id,
        display_order=next_order.scalar_one(),
        note=(note or "").strip() or None,
        added_at=datetime.utcnow(),
    ).on_conflict_do_nothing(index_elements=["list_id", "product_id"])
    await db.execute(stmt)
    await db.execute(
        update(FavoriteList).where(FavoriteList.id == list_id).values(updated_at=datetime.utcnow())
    )
    await db.commit()


async def remove_item(db: AsyncSession, list_id: int, product_id: int) -> None:
    await db.execute(remove_item_statement(list_id, product_id))
    await db.commit()


async def like_list(db: AsyncSession, list_id: int, user_id: str) -> bool:
    """Like a list. Returns False if the user had already liked it."""
    result = await db.execute(
        insert(FavoriteListLike)
        .values(list_id=list_id, user_id=user_id, created_at=datetime.utcnow())
        .on_conflict_do_nothing(index_elements=["list_id", "user_id"])
        .returning(FavoriteListLike.list_id)
    )
    added = result.first() is not None
    if added:
        await db.execute(
            update(FavoriteList)
            .where(FavoriteList.id == list_id)
            .values(like_count=FavoriteList.like_count + 1)
        )
    await db.commit()
    return added


async def unlike_list(db: AsyncSession, list_id: int, user_id: str) -> bool:
    result = await db.execute(
        delete(FavoriteListLike)
        .where(FavoriteListLike.list_id == list_id, FavoriteListLike.user_id == user_id)
        .returning(FavoriteListLike.list_id)
    )
    removed = result.first() is not None
    if removed:
        await db.execute(
            update(FavoriteList)
            .where(FavoriteList.id == list_id)
            .values(like_count=func.greatest(FavoriteList.like_count - 1, 0))
        )
    await db.commit()
    return removed
