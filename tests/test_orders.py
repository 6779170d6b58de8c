import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update

from petkoi.domain.models import OrderStatus, progress_step, valid_next_statuses
from petkoi.domain.admin import AdminRole
from petkoi.application.expire_orders import ExpirePendingOrdersUseCase
from petkoi.application.create_order import extract_postal_code
from petkoi.infrastructure.db_schema import orders_tbl
from petkoi.presentation.expiry_worker import expiry_worker


def parse_time(value):
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def payment_payload(order, user_id="user-1", **extra):
    payload = {
        "user_id": user_id,
        "order_no": order["order_no"],
        "method": "BKASH",
        "amount_bdt": order["total_bdt"],
        "trx_id": "8N7A6B5C4D",
        "agent_account": "01700000000",
    }
    payload.update(extra)
    return payload


async def test_checkout_creates_pending_order(place_order):
    order = await place_order(quantity=2, shipping_address="House 12, Road 5, Dhanmondi, Dhaka 1209")

    assert order["order_no"].startswith("ORD-")
    assert order["status"] == "PENDING"
    assert order["progress_step"] == 0
    assert order["currency"] == "BDT"
    assert order["subtotal_bdt"] == 1000
    assert order["shipping_fee_bdt"] == 60
    assert order["total_bdt"] == 1060
    assert order["shipping_postal_code"] == "1209"
    assert order["expires_at"] is not None
    assert order["items"] == [{
        "product_id": order["items"][0]["product_id"],
        "name": "QR Pet Tag",
        "sku": "TAG-QR",
        "quantity": 2,
        "unit_price_bdt": 500,
        "total_bdt": 1000,
    }]


async def test_checkout_is_idempotent(place_order):
    first = await place_order(idempotency_key="checkout-1")
    second = await place_order(idempotency_key="checkout-1")
    assert first["order_no"] == second["order_no"]


async def test_checkout_rejects_unknown_product_and_empty_cart(client, product):
    unknown = await client.post(
        "/api/orders", json={"user_id": "user-1", "items": [{"product_id": "NOPE", "quantity": 1}]}
    )
    assert unknown.status_code == 400
    assert unknown.json()["detail"] == "One or more products are unavailable"

    empty = await client.post("/api/orders", json={"user_id": "user-1", "items": []})
    assert empty.status_code == 400
    assert empty.json()["detail"] == "No items provided"


async def test_products_are_listed(client, product):
    response = await client.get("/api/products")
    assert response.status_code == 200
    assert [p["sku"] for p in response.json()] == ["TAG-QR"]


@pytest.mark.parametrize("status", list(OrderStatus))
async def test_status_update_is_visible_on_read(client, login_as, place_order, status):
    headers = await login_as(AdminRole.ORDER_TRACKER)
    order = await place_order()

    updated = await client.patch(
        f"/api/admin/orders/{order['order_no']}/status", json={"status": status.value}, headers=headers
    )
    assert updated.status_code == 200
    assert updated.json()["status"] == status.value
    assert updated.json()["progress_step"] == progress_step(status)

    fetched = await client.get(f"/api/admin/orders/{order['order_no']}", headers=headers)
    assert fetched.json()["status"] == status.value

    own = await client.get(f"/api/orders/{order['order_no']}", params={"user_id": "user-1"})
    assert own.json()["status"] == status.value


async def test_status_update_refreshes_updated_at(app, client, login_as, place_order):
    headers = await login_as(AdminRole.ORDER_TRACKER)
    order = await place_order()
    async with app.state.session_factory() as session:
        await session.execute(
            update(orders_tbl).values(updated_at=datetime.now(timezone.utc) - timedelta(minutes=5))
        )
        await session.commit()
    before = (await client.get(f"/api/admin/orders/{order['order_no']}", headers=headers)).json()

    await client.patch(f"/api/admin/orders/{order['order_no']}/status", json={"status": "SHIPPED"}, headers=headers)

    after = (await client.get(f"/api/admin/orders/{order['order_no']}", headers=headers)).json()
    assert parse_time(after["updated_at"]) > parse_time(before["updated_at"])
    assert after["created_at"] == before["created_at"]


async def test_status_update_on_unknown_order_creates_nothing(client, login_as):
    headers = await login_as(AdminRole.ORDER_TRACKER)

    response = await client.patch("/api/admin/orders/ORD-0-0/status", json={"status": "SHIPPED"}, headers=headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "Order ORD-0-0 not found"

    listing = await client.get("/api/admin/orders", headers=headers)
    assert listing.json() == []


async def test_status_outside_enumeration_is_rejected(client, login_as, place_order):
    headers = await login_as(AdminRole.ORDER_TRACKER)
    order = await place_order()

    response = await client.patch(
        f"/api/admin/orders/{order['order_no']}/status", json={"status": "LOST_IN_SPACE"}, headers=headers
    )
    assert response.status_code == 422


async def test_admin_order_listing_filters(client, login_as, place_order):
    headers = await login_as(AdminRole.ORDER_TRACKER)
    first = await place_order(user_id="user-1")
    await place_order(user_id="user-2")
    await client.patch(f"/api/admin/orders/{first['order_no']}/status", json={"status": "SHIPPED"}, headers=headers)

    shipped = await client.get("/api/admin/orders", params={"status": "SHIPPED"}, headers=headers)
    assert [o["order_no"] for o in shipped.json()] == [first["order_no"]]

    by_user = await client.get("/api/admin/orders", params={"user_id": "user-2"}, headers=headers)
    assert [o["user_id"] for o in by_user.json()] == ["user-2"]

    limited = await client.get("/api/admin/orders", params={"take": 1}, headers=headers)
    assert len(limited.json()) == 1


async def test_user_cannot_read_foreign_order(client, place_order):
    order = await place_order(user_id="user-1")

    response = await client.get(f"/api/orders/{order['order_no']}", params={"user_id": "user-2"})
    assert response.status_code == 404

    mine = await client.get("/api/orders", params={"user_id": "user-1"})
    assert [o["order_no"] for o in mine.json()] == [order["order_no"]]


async def test_manual_payment_moves_order_to_review(client, login_as, place_order):
    order = await place_order()

    response = await client.post("/api/payments/manual", json=payment_payload(order))
    assert response.status_code == 201
    assert response.json()["status"] == "PENDING"

    again = await client.post("/api/payments/manual", json=payment_payload(order, trx_id="OTHER"))
    assert again.status_code == 400
    assert again.json()["detail"] == "Order not payable. Current status: PAYMENT_UNDER_REVIEW"

    headers = await login_as(AdminRole.ORDER_TRACKER)
    detail = (await client.get(f"/api/admin/orders/{order['order_no']}", headers=headers)).json()
    assert detail["status"] == "PAYMENT_UNDER_REVIEW"
    assert detail["progress_step"] == 1
    assert detail["is_terminal"] is False
    assert "PAYMENT_VERIFIED" in detail["valid_next_statuses"]
    assert [p["trx_id"] for p in detail["manual_payments"]] == ["8N7A6B5C4D"]


async def test_manual_payment_for_foreign_order(client, place_order):
    order = await place_order(user_id="user-1")
    response = await client.post("/api/payments/manual", json=payment_payload(order, user_id="user-2"))
    assert response.status_code == 404


async def test_manual_payment_after_deadline(app, client, place_order):
    order = await place_order()
    async with app.state.session_factory() as session:
        await session.execute(
            update(orders_tbl).values(expires_at=datetime.now(timezone.utc) - timedelta(minutes=1))
        )
        await session.commit()

    response = await client.post("/api/payments/manual", json=payment_payload(order))
    assert response.status_code == 400
    assert response.json()["detail"] == "Order expired"


async def test_expiry_sweep_marks_only_overdue_pending_orders(client, uow, place_order, login_as):
    headers = await login_as(AdminRole.ORDER_TRACKER)
    pending = await place_order()
    shipped = await place_order()
    await client.patch(f"/api/admin/orders/{shipped['order_no']}/status", json={"status": "SHIPPED"}, headers=headers)

    assert await ExpirePendingOrdersUseCase(uow)() == 0

    later = datetime.now(timezone.utc) + timedelta(minutes=31)
    assert await ExpirePendingOrdersUseCase(uow)(now=later) == 1

    expired = (await client.get(f"/api/admin/orders/{pending['order_no']}", headers=headers)).json()
    assert expired["status"] == "EXPIRED"
    assert expired["is_terminal"] is True
    untouched = (await client.get(f"/api/admin/orders/{shipped['order_no']}", headers=headers)).json()
    assert untouched["status"] == "SHIPPED"


def test_progress_step():
    assert progress_step(OrderStatus.ORDER_PLACED) == 0
    assert progress_step(OrderStatus.PAYMENT_UNDER_REVIEW) == 1
    assert progress_step(OrderStatus.PAYMENT_VERIFIED) == 2
    assert progress_step(OrderStatus.SHIPPED) == 3
    assert progress_step(OrderStatus.DELIVERED) == 4
    assert progress_step(OrderStatus.IN_TRANSIT) == 0
    assert progress_step(OrderStatus.CANCELLED) == 0


def test_valid_next_statuses():
    assert valid_next_statuses(OrderStatus.DELIVERED) == []
    assert valid_next_statuses(OrderStatus.OUT_FOR_DELIVERY) == [OrderStatus.DELIVERED]
    assert OrderStatus.EXPIRED in valid_next_statuses(OrderStatus.PENDING)


def test_extract_postal_code():
    assert extract_postal_code("Mirpur 10, Dhaka 1216", None) == "1216"
    assert extract_postal_code("Mirpur, Dhaka", None) is None
    assert extract_postal_code("Dhaka 1216", "1000") == "1000"
    assert extract_postal_code(None, None) is None


async def test_expiry_worker_sweeps_until_cancelled(app, client, place_order, login_as):
    headers = await login_as(AdminRole.ORDER_TRACKER)
    order = await place_order()
    async with app.state.session_factory() as session:
        await session.execute(
            update(orders_tbl).values(expires_at=datetime.now(timezone.utc) - timedelta(minutes=1))
        )
        await session.commit()

    task = asyncio.create_task(expiry_worker(app.state.session_factory, interval_seconds=3600))
    await asyncio.sleep(0.3)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    fetched = (await client.get(f"/api/admin/orders/{order['order_no']}", headers=headers)).json()
    assert fetched["status"] == "EXPIRED"
