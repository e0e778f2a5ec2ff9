"""
Command dispatch: menu and profile editing, accept, phone, logout.
"""
from typing import get_args

import pytest
from sqlalchemy import select

from conftest import auth_headers, make_menu_item, make_profile, make_store
from storefront.api.commands import HANDLERS
from storefront.db.database import SessionLocal
from storefront.models import MenuItem, Order, OrderStatus, Profile
from storefront.schemas.commands import Command


async def _run(client, profile, **command):
    return await client.post("/commands", json=command, headers=auth_headers(profile))


async def _menu(store) -> list[MenuItem]:
    async with SessionLocal() as s:
        result = await s.execute(
            select(MenuItem).where(MenuItem.profile_id == store.profile_id).order_by(MenuItem.display_order)
        )
        return list(result.scalars().all())


def test_every_command_has_a_handler():
    assert set(get_args(get_args(Command)[0])) == set(HANDLERS)


@pytest.mark.asyncio
async def test_add_edit_delete_menu_item(client, db):
    store = await make_store(db)

    r = await _run(client, store, action="add_menu_item", name=" Burger ", price=8000,
                   image="https://img.example.com/b.png", category="mains")
    assert r.status_code == 200, r.text
    item_id = r.json()["data"]["id"]
    [item] = await _menu(store)
    assert (item.name, item.price, item.display_order) == ("Burger", 8000, 1)

    r = await _run(client, store, action="edit_menu_item", id=item_id, name="Cheese Burger", price=9000,
                   image=item.image, is_active=False)
    assert r.json()["data"]["updated"] == 1
    [item] = await _menu(store)
    assert (item.name, item.price, item.is_active) == ("Cheese Burger", 9000, False)

    r = await _run(client, store, action="delete_menu_item", id=item_id)
    assert r.json()["data"]["deleted"] == 1
    assert await _menu(store) == []


@pytest.mark.asyncio
async def test_menu_validation(client, db):
    store = await make_store(db)

    r = await _run(client, store, action="add_menu_item", name="  ", price=1000, image="x.png")
    assert r.status_code == 400
    assert r.json()["field"] == "name"

    r = await _run(client, store, action="add_menu_item", name="Fries", price=1000, image="")
    assert r.json()["field"] == "image"

    r = await _run(client, store, action="add_menu_item", name="Fries", price=-5, image="x.png")
    assert r.json()["field"] == "price"
    assert await _menu(store) == []


@pytest.mark.asyncio
async def test_owner_cannot_touch_another_stores_menu(client, db):
    store = await make_store(db)
    other = await make_store(db, name="other-store", storename="다른가게")
    item = await make_menu_item(db, store, "Burger", 8000)

    r = await _run(client, other, action="edit_menu_item", id=item.id, name="Hacked", price=1, image="x")
    assert r.json()["data"]["updated"] == 0
    r = await _run(client, other, action="delete_menu_item", id=item.id)
    assert r.json()["data"]["deleted"] == 0
    [unchanged] = await _menu(store)
    assert (unchanged.name, unchanged.price) == ("Burger", 8000)


@pytest.mark.asyncio
async def test_reorder_menu(client, db):
    store = await make_store(db)
    a = await make_menu_item(db, store, "A", 1000, display_order=1)
    b = await make_menu_item(db, store, "B", 1000, display_order=2)

    r = await _run(client, store, action="reorder_menu", positions={a.id: 2, b.id: 1})
    assert r.json()["data"]["updated"] == 2
    assert [m.name for m in await _menu(store)] == ["B", "A"]


@pytest.mark.asyncio
async def test_update_profile(client, db):
    store = await make_store(db)
    r = await _run(client, store, action="update_profile", name="new-burger", storename="새 버거",
                   storenumber="02-000-0000")
    assert r.status_code == 200
    async with SessionLocal() as s:
        profile = await s.get(Profile, store.profile_id)
        assert (profile.name, profile.storename, profile.storenumber) == ("new-burger", "새 버거", "02-000-0000")

    r = await client.get("/stores/new-burger")
    assert r.status_code == 200
    assert r.json()["storename"] == "새 버거"


@pytest.mark.asyncio
async def test_accept_order_command(client, db):
    store = await make_store(db)
    async with SessionLocal() as s:
        order = Order(profile_id=store.profile_id, phone_number="010-1234-5678", total_amount=1000)
        s.add(order)
        await s.commit()

    r = await _run(client, store, action="accept_order", order_id=order.order_id)
    assert r.json()["data"] == {"order_id": order.order_id, "accepted": True}
    async with SessionLocal() as s:
        assert (await s.get(Order, order.order_id)).status == OrderStatus.ACCEPT


@pytest.mark.asyncio
async def test_customer_commands(client, db):
    customer = await make_profile(db)

    r = await _run(client, customer, action="add_menu_item", name="X", price=1, image="x")
    assert r.status_code == 403

    r = await _run(client, customer, action="update_phone", phone_number="010-7777-8888")
    assert r.status_code == 200
    async with SessionLocal() as s:
        assert (await s.get(Profile, customer.profile_id)).customernumber == "010-7777-8888"

    r = await _run(client, customer, action="update_phone", phone_number="abc")
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_logout_command_revokes_session(client, db):
    customer = await make_profile(db)
    headers = auth_headers(customer)
    r = await client.post("/commands", json={"action": "logout"}, headers=headers)
    assert r.status_code == 200
    r = await client.post("/commands", json={"action": "logout"}, headers=headers)
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_unknown_action_rejected(client, db):
    store = await make_store(db)
    r = await _run(client, store, action="drop_tables")
    assert r.status_code == 400
    assert r.json()["success"] is False
    r = await client.post("/commands", json={"action": "logout"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_owner_menu_includes_inactive_items(client, db):
    store = await make_store(db)
    await make_menu_item(db, store, "Burger", 8000, display_order=1)
    await make_menu_item(db, store, "Seasonal", 5000, is_active=False, display_order=2)

    r = await client.get("/owner/menu", headers=auth_headers(store))
    assert r.status_code == 200
    assert [(m["name"], m["is_active"]) for m in r.json()] == [("Burger", True), ("Seasonal", False)]
