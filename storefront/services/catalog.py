"""
Storefront — Menu catalog

Every write is qualified by the caller's profile id: an owner can only touch
rows of their own store.
"""
import logging

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.errors import ValidationError
from storefront.models.menu import MenuItem
from storefront.models.profile import Profile

logger = logging.getLogger(__name__)


async def list_active_menu(db: AsyncSession, store_id: str) -> list[MenuItem]:
    result = await db.execute(
        select(MenuItem)
        .where(MenuItem.profile_id == store_id, MenuItem.is_active.is_(True))
        .order_by(MenuItem.display_order.asc(), MenuItem.created_at.asc())
    )
    return list(result.scalars().all())


async def list_menu(db: AsyncSession, store_id: str) -> list[MenuItem]:
    result = await db.execute(
        select(MenuItem)
        .where(MenuItem.profile_id == store_id)
        .order_by(MenuItem.display_order.asc(), MenuItem.created_at.asc())
    )
    return list(result.scalars().all())


def categories_of(items: list[MenuItem]) -> list[str]:
    seen: dict[str, None] = {}
    for item in items:
        if item.category:
            seen.setdefault(item.category, None)
    return list(seen)


async def owned_item_ids(db: AsyncSession, store_id: str, item_ids: set[str]) -> set[str]:
    result = await db.execute(
        select(MenuItem.id).where(MenuItem.profile_id == store_id, MenuItem.id.in_(item_ids))
    )
    return set(result.scalars().all())


def _check_price(price: int) -> None:
    if price < 0:
        raise ValidationError("올바른 가격을 입력해주세요.", field="price")


async def add_item(
    db: AsyncSession,
    store_id: str,
    *,
    name: str,
    price: int,
    image: str,
    description: str = "",
    category: str = "",
    is_active: bool = True,
) -> MenuItem:
    if not name.strip():
        raise ValidationError("메뉴명은 필수입니다.", field="name")
    if not image.strip():
        raise ValidationError("이미지는 필수입니다.", field="image")
    _check_price(price)

    count = await db.scalar(
        select(func.count()).select_from(MenuItem).where(MenuItem.profile_id == store_id)
    )
    item = MenuItem(
        profile_id=store_id,
        name=name.strip(),
        description=description.strip(),
        price=price,
        image=image.strip(),
        category=category.strip(),
        is_active=is_active,
        display_order=(count or 0) + 1,
    )
    db.add(item)
    await db.commit()
    return item


async def edit_item(
    db: AsyncSession,
    store_id: str,
    item_id: str,
    *,
    name: str,
    price: int,
    image: str = "",
    description: str = "",
    category: str = "",
    is_active: bool = True,
) -> int:
    if not name.strip():
        raise ValidationError("필수 정보가 누락되었습니다.", field="name")
    _check_price(price)

    result = await db.execute(
        update(MenuItem)
        .where(MenuItem.id == item_id, MenuItem.profile_id == store_id)
        .values(
            name=name.strip(),
            description=description.strip(),
            price=price,
            image=image.strip(),
            category=category.strip(),
            is_active=is_active,
        )
    )
    await db.commit()
    return result.rowcount


async def delete_item(db: AsyncSession, store_id: str, item_id: str) -> int:
    result = await db.execute(
        delete(MenuItem).where(MenuItem.id == item_id, MenuItem.profile_id == store_id)
    )
    await db.commit()
    return result.rowcount


async def reorder(db: AsyncSession, store_id: str, positions: dict[str, int]) -> int:
    changed = 0
    for item_id, display_order in positions.items():
        result = await db.execute(
            update(MenuItem)
            .where(MenuItem.id == item_id, MenuItem.profile_id == store_id)
            .values(display_order=display_order)
        )
        changed += result.rowcount
    await db.commit()
    return changed


async def update_store_profile(
    db: AsyncSession,
    profile: Profile,
    *,
    name: str,
    storename: str,
    storenumber: str | None = None,
    store_image: str | None = None,
) -> Profile:
    if not name.strip():
        raise ValidationError("이름은 필수입니다.", field="name")
    if not storename.strip():
        raise ValidationError("가게명은 필수입니다.", field="storename")

    profile.name = name.strip()
    profile.storename = storename.strip()
    profile.storenumber = (storenumber or "").strip() or None
    profile.store_image = (store_image or "").strip() or None
    await db.commit()
    return profile
