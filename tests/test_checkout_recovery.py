"""
Checkout recovery: a cart interrupted by login and phone capture is
submitted exactly once afterwards.

Tests:
  1. Full flow: stage → OAuth callback → phone → automatic order
  2. Abandoned (no draft) and already-completed drafts
  3. Failed automatic submission keeps the draft for a retry
  4. Same draft submitted twice yields one order
  5. Consecutive automatic orders from one browser
"""
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from sqlalchemy import func, select

from conftest import auth_headers, cart_line, make_menu_item, make_profile, make_store
from storefront.api.deps import http_client
from storefront.core.config import get_settings
from storefront.db.database import SessionLocal
from storefront.main import app
from storefront.models import Order, OrderItem, Profile, Role
from storefront.schemas.order import CartLine
from storefront.services.drafts import DRAFT_PREFIX, peek_draft
from storefront.services.orders import submit_order

settings = get_settings()


def _provider(subject: int = 4242, email: str = "guest@example.com"):
    """OAuth provider double: token endpoint + userinfo."""

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if url.startswith(settings.OAUTH_TOKEN_URL):
            assert b"code=good-code" in request.content
            return httpx.Response(200, json={"access_token": "provider-token"})
        if url.startswith(settings.OAUTH_USERINFO_URL):
            assert request.headers["Authorization"] == "Bearer provider-token"
            return httpx.Response(200, json={"id": subject, "kakao_account": {"email": email}})
        return httpx.Response(404)

    async def override():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as c:
            yield c

    return override


async def _order_count() -> int:
    async with SessionLocal() as s:
        return await s.scalar(select(func.count()).select_from(Order))


async def _draft_keys(redis) -> list[str]:
    return [k async for k in redis.scan_iter(f"{DRAFT_PREFIX}*")]


# ─── Test 1: Full recovery flow ────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_login_phone_and_automatic_order(client, db, redis_client):
    store = await make_store(db)
    burger = await make_menu_item(db, store, "Burger", 8000)
    coke = await make_menu_item(db, store, "Coke", 2000)
    app.dependency_overrides[http_client] = _provider()

    # Anonymous customer presses "order": cart is staged, browser goes to the provider
    r = await client.post(
        f"/stores/{store.name}/checkout/login",
        json={"items": [cart_line(burger), cart_line(coke, 2)]},
    )
    assert r.status_code == 303
    location = urlparse(r.headers["location"])
    assert r.headers["location"].startswith(settings.OAUTH_AUTHORIZE_URL)
    state = parse_qs(location.query)["state"][0]
    draft_token = client.cookies.get(settings.DRAFT_COOKIE_NAME)
    assert draft_token
    assert (await peek_draft(redis_client, draft_token)).total_amount == 12000

    # Provider sends the browser back; new customer has no phone yet
    r = await client.get(
        "/auth/callback",
        params={"code": "good-code", "state": state, "next": f"/stores/{store.name}"},
    )
    assert r.status_code == 303
    assert r.headers["location"] == "/customer/phone"
    assert client.cookies.get(settings.SESSION_COOKIE_NAME)

    r = await client.get("/customer/phone")
    assert r.status_code == 200
    assert r.json()["has_draft"] is True
    assert r.json()["store_name"] == store.name

    r = await client.post("/customer/phone", data={"phoneNumber": "010-5555-6666"})
    assert r.status_code == 303
    assert r.headers["location"].startswith("/customer/order-success?orderId=")
    order_id = parse_qs(urlparse(r.headers["location"]).query)["orderId"][0]

    assert await _order_count() == 1
    assert await _draft_keys(redis_client) == []
    async with SessionLocal() as s:
        order = await s.get(Order, order_id)
        assert order.total_amount == 12000
        assert order.phone_number == "010-5555-6666"
        assert order.profile_id == store.profile_id
        items = (await s.execute(select(OrderItem).where(OrderItem.order_id == order_id))).scalars().all()
        assert sorted((i.menu_item_id, i.quantity, i.price) for i in items) == sorted(
            [(burger.id, 1, 8000), (coke.id, 2, 2000)]
        )
        customer = (await s.execute(select(Profile).where(Profile.email == "guest@example.com"))).scalar_one()
        assert customer.customernumber == "010-5555-6666"

    r = await client.get(f"/customer/order-success?orderId={order_id}")
    assert r.json()["order_id"] == order_id

    # Reload after success: no draft left, nothing is submitted again
    r = await client.post("/customer/phone", data={"phoneNumber": "010-5555-6666"})
    assert r.status_code == 303
    assert r.headers["location"] == "/"
    assert await _order_count() == 1

    # Phone now known: the capture page sends the customer home
    r = await client.get("/customer/phone")
    assert r.status_code == 303
    assert r.headers["location"] == "/"


@pytest.mark.asyncio
async def test_callback_without_draft_returns_to_next(client, db):
    store = await make_store(db)
    app.dependency_overrides[http_client] = _provider(subject=99)

    r = await client.get(f"/auth/oauth/{settings.OAUTH_PROVIDER_NAME}", params={"next": f"/stores/{store.name}"})
    assert r.status_code == 303
    state = parse_qs(urlparse(r.headers["location"]).query)["state"][0]

    r = await client.get("/auth/callback",
                         params={"code": "good-code", "state": state, "next": f"/stores/{store.name}"})
    assert r.status_code == 303
    assert r.headers["location"] == f"/stores/{store.name}"


@pytest.mark.asyncio
async def test_callback_with_unknown_state_fails_back_to_next(client, db):
    app.dependency_overrides[http_client] = _provider()
    r = await client.get("/auth/callback", params={"code": "good-code", "state": "forged", "next": "/stores/x"})
    assert r.status_code == 303
    assert r.headers["location"] == "/stores/x?error=auth_failed"
    assert client.cookies.get(settings.SESSION_COOKIE_NAME) is None


# ─── Test 2: Abandoned ─────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_phone_without_draft_is_abandoned(client, db):
    customer = await make_profile(db)
    r = await client.post("/customer/phone", data={"phoneNumber": "010-1234-5678"},
                          headers=auth_headers(customer))
    assert r.status_code == 303
    assert r.headers["location"] == "/"
    assert await _order_count() == 0


@pytest.mark.asyncio
async def test_phone_form_validates_number(client, db):
    customer = await make_profile(db)
    r = await client.post("/customer/phone", data={"phoneNumber": "not a phone"},
                          headers=auth_headers(customer))
    assert r.status_code == 400
    assert r.json()["field"] == "phone_number"


@pytest.mark.asyncio
async def test_owner_saving_phone_keeps_owner_role(client, db):
    store = await make_store(db)
    r = await client.post("/customer/phone", data={"phoneNumber": "010-2222-3333"}, headers=auth_headers(store))
    assert r.status_code == 303

    async with SessionLocal() as s:
        profile = await s.get(Profile, store.profile_id)
        assert (profile.role, profile.customernumber) == (Role.OWNER, "010-2222-3333")
    r = await client.get("/owner/menu", headers=auth_headers(store))
    assert r.status_code == 200


# ─── Test 3: Failed automatic submission ───────────────────────────────────────
@pytest.mark.asyncio
async def test_failed_submission_restores_draft(client, db, redis_client):
    store = await make_store(db)
    customer = await make_profile(db)
    ghost = {"id": "no-such-item", "name": "Ghost", "price": 1000, "quantity": 1}

    r = await client.post(f"/stores/{store.name}/checkout/draft", json={"items": [ghost]},
                          headers=auth_headers(customer))
    assert r.status_code == 200
    token = r.json()["draft_token"]
    assert r.json()["total_amount"] == 1000

    r = await client.post("/customer/phone", data={"phoneNumber": "010-1234-5678"},
                          headers=auth_headers(customer))
    assert r.status_code == 500
    assert r.json()["message"] == "주문 처리 중 오류가 발생했습니다."
    assert await _order_count() == 0

    draft = await peek_draft(redis_client, token)
    assert draft is not None
    assert draft.items[0].id == "no-such-item"


# ─── Test 4: One draft, one order ──────────────────────────────────────────────
@pytest.mark.asyncio
async def test_same_draft_submitted_twice_creates_one_order(db, redis_client):
    store = await make_store(db)
    burger = await make_menu_item(db, store, "Burger", 8000)
    customer = await make_profile(db)
    caller = {"sub": customer.profile_id}
    lines = [CartLine(id=burger.id, name=burger.name, price=8000, quantity=1)]

    first = await submit_order(db, redis_client, store, caller, lines, "010-1234-5678",
                               auto_order=True, draft_token="draft-abc")
    second = await submit_order(db, redis_client, store, caller, lines, "010-1234-5678",
                                auto_order=True, draft_token="draft-abc")
    assert first == second
    assert await _order_count() == 1


# ─── Test 5: Consecutive automatic orders ──────────────────────────────────────
@pytest.mark.asyncio
async def test_consecutive_automatic_orders_in_one_browser(client, db, redis_client):
    store = await make_store(db)
    burger = await make_menu_item(db, store, "Burger", 8000)
    coke = await make_menu_item(db, store, "Coke", 2000)
    customer = await make_profile(db, customernumber="010-1234-5678")
    headers = auth_headers(customer)

    r = await client.post(f"/stores/{store.name}/checkout/draft", json={"items": [cart_line(burger)]},
                          headers=headers)
    first_token = r.json()["draft_token"]
    r = await client.post(f"/stores/{store.name}/orders",
                          json={"items": [cart_line(burger)], "auto_order": True}, headers=headers)
    assert r.status_code == 200, r.text
    first_id = r.json()["order_id"]

    # A completed automatic order consumes its draft and the cookie
    assert await _draft_keys(redis_client) == []
    assert client.cookies.get(settings.DRAFT_COOKIE_NAME) is None

    # A stale cookie from an older tab still gets a fresh token
    stale = {**headers, "Cookie": f"{settings.DRAFT_COOKIE_NAME}={first_token}"}
    r = await client.post(f"/stores/{store.name}/checkout/draft", json={"items": [cart_line(coke, 3)]},
                          headers=stale)
    second_token = r.json()["draft_token"]
    assert second_token != first_token

    r = await client.post(f"/stores/{store.name}/orders",
                          json={"items": [cart_line(coke, 3)], "auto_order": True}, headers=headers)
    assert r.status_code == 200, r.text
    second_id = r.json()["order_id"]

    assert second_id != first_id
    assert await _order_count() == 2
    async with SessionLocal() as s:
        second = await s.get(Order, second_id)
        assert (second.total_amount, second.draft_token) == (6000, second_token)
        [line] = (await s.execute(select(OrderItem).where(OrderItem.order_id == second_id))).scalars().all()
        assert (line.menu_item_id, line.quantity) == (coke.id, 3)
