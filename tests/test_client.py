import asyncio

import httpx
import pytest

from petkoi.client import PetKoiClient, AdminSession, ApiError, sanitize_otp_input, is_complete_otp
from petkoi.domain.admin import AdminRole, AdminSection
from petkoi.domain.models import OrderStatus
from petkoi.application.update_order_status import UpdateOrderStatusUseCase

ADMIN_PASSWORD = "Str0ng-pass!"


@pytest.mark.parametrize("raw, expected, complete", [
    ("12a456", "12456", False),
    (" 123 456 ", "123456", True),
    ("1234567", "123456", True),
    ("١٢٣٤٥٦", "", False),
    ("", "", False),
])
def test_sanitize_otp_input(raw, expected, complete):
    assert sanitize_otp_input(raw) == expected
    assert is_complete_otp(sanitize_otp_input(raw)) is complete


@pytest.fixture
def api(app):
    return PetKoiClient("http://test", transport=httpx.ASGITransport(app=app))


@pytest.fixture
async def tracker_session(api, mailer, create_admin):
    admin = await create_admin(AdminRole.ORDER_TRACKER)
    session = AdminSession()
    await api.admin_login(session, admin.email, ADMIN_PASSWORD)
    await api.admin_verify(session, mailer.last_code())
    return session


async def test_login_flow(api, mailer, create_admin):
    admin = await create_admin(AdminRole.ORDER_TRACKER)
    session = AdminSession()

    await api.admin_login(session, admin.email, ADMIN_PASSWORD)
    assert session.otp_token is not None
    assert not session.is_authenticated

    await api.admin_resend(session)
    assert len(mailer.sent) == 2

    await api.admin_verify(session, mailer.last_code())
    assert session.is_authenticated
    assert session.otp_token is None
    assert session.role == AdminRole.ORDER_TRACKER

    assert await api.admin_sections(session) == [AdminSection.ORDER_TRACKING]

    await api.admin_logout(session)
    assert session.access_token is None
    with pytest.raises(ApiError) as error:
        await api.admin_sections(session)
    assert error.value.status_code == 401


async def test_incomplete_code_is_never_submitted(api, mailer, create_admin):
    admin = await create_admin()
    session = AdminSession()
    await api.admin_login(session, admin.email, ADMIN_PASSWORD)

    with pytest.raises(ValueError):
        await api.admin_verify(session, "12a456")

    await api.admin_verify(session, mailer.last_code())
    assert session.is_authenticated


async def test_wrong_password_surfaces_api_error(api, create_admin):
    admin = await create_admin()
    with pytest.raises(ApiError) as error:
        await api.admin_login(AdminSession(), admin.email, "wrong")
    assert error.value.status_code == 401
    assert error.value.detail == "Invalid credentials"


async def test_update_and_read_order(api, tracker_session, place_order):
    order = await place_order()

    updated = await api.update_order_status(tracker_session, order["order_no"], OrderStatus.SHIPPED)
    assert updated["status"] == "SHIPPED"

    fetched = await api.get_order(tracker_session, order["order_no"])
    assert fetched["status"] == "SHIPPED"
    assert fetched["progress_step"] == 3


async def test_wait_for_payment_backs_off_and_gives_up(app, tracker_session, place_order):
    order = await place_order()
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    api = PetKoiClient(
        "http://test", transport=httpx.ASGITransport(app=app), poll_max_attempts=7, sleep=fake_sleep
    )
    result = await api.wait_for_payment(tracker_session, order["order_no"])

    assert result["status"] == "PENDING"
    assert delays == [1.0, 2.0, 4.0, 8.0, 8.0, 8.0]


async def test_wait_for_payment_stops_when_status_changes(app, uow, tracker_session, place_order):
    order = await place_order()
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)
        if len(delays) == 2:
            await UpdateOrderStatusUseCase(uow)(order["order_no"], OrderStatus.PAYMENT_UNDER_REVIEW)

    api = PetKoiClient("http://test", transport=httpx.ASGITransport(app=app), sleep=fake_sleep)
    result = await api.wait_for_payment(tracker_session, order["order_no"])

    assert result["status"] == "PAYMENT_UNDER_REVIEW"
    assert delays == [1.0, 2.0]


async def test_wait_for_payment_can_be_cancelled(app, tracker_session, place_order):
    order = await place_order()
    api = PetKoiClient("http://test", transport=httpx.ASGITransport(app=app), poll_initial_delay=30.0)

    task = asyncio.create_task(api.wait_for_payment(tracker_session, order["order_no"]))
    await asyncio.sleep(0.2)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
