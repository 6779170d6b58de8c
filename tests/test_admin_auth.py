import asyncio
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update

from petkoi.domain.admin import AdminRole
from petkoi.domain.exceptions import EmailDeliveryError
from petkoi.infrastructure.db_schema import admin_otps_tbl, admin_sessions_tbl
from petkoi.infrastructure.security import split_token, hash_secret, verify_secret, hash_token, verify_token

WRONG_CODE = "000000"
VERIFY_URL = "/api/admin/login/verify"


async def shift_otp_creation(app, minutes_ago):
    async with app.state.session_factory() as session:
        await session.execute(
            update(admin_otps_tbl).values(created_at=datetime.now(timezone.utc) - timedelta(minutes=minutes_ago))
        )
        await session.commit()


async def test_code_verifies_exactly_once(client, mailer, create_admin, start_login):
    admin = await create_admin()
    otp_token = await start_login(admin.email)
    code = mailer.last_code()

    first = await client.post("/api/admin/login/verify", json={"otp_token": otp_token, "code": code})
    assert first.status_code == 200
    body = first.json()
    assert body["role"] == "SUPER_ADMIN"
    assert body["expires_in"] == 7 * 24 * 3600
    assert split_token(body["access_token"]) is not None

    second = await client.post("/api/admin/login/verify", json={"otp_token": otp_token, "code": code})
    assert second.status_code == 401
    assert second.json()["detail"] == "OTP already used"


async def test_login_sends_code_to_admin_email(client, mailer, create_admin, start_login):
    admin = await create_admin(email="Boss@PetKoi.test")
    await start_login("  BOSS@petkoi.test ")

    assert admin.email == "boss@petkoi.test"
    assert len(mailer.sent) == 1
    assert mailer.sent[0]["to"] == "boss@petkoi.test"
    assert mailer.last_code() in mailer.sent[0]["html"]


async def test_bad_credentials_are_rejected_without_email(client, mailer, create_admin):
    admin = await create_admin()

    wrong_password = await client.post("/api/admin/login", json={"email": admin.email, "password": "nope"})
    unknown_email = await client.post("/api/admin/login", json={"email": "ghost@petkoi.test", "password": "nope"})

    assert wrong_password.status_code == 401
    assert wrong_password.json()["detail"] == "Invalid credentials"
    assert unknown_email.status_code == 401
    assert unknown_email.json()["detail"] == "Invalid credentials"
    assert mailer.sent == []


async def test_wrong_code_then_right_code(client, mailer, create_admin, start_login):
    admin = await create_admin()
    otp_token = await start_login(admin.email)

    wrong = await client.post("/api/admin/login/verify", json={"otp_token": otp_token, "code": WRONG_CODE})
    assert wrong.status_code == 401
    assert wrong.json()["detail"] == "Invalid OTP code"

    right = await client.post("/api/admin/login/verify", json={"otp_token": otp_token, "code": mailer.last_code()})
    assert right.status_code == 200


async def test_three_wrong_codes_lock_the_admin(client, mailer, create_admin, start_login):
    admin = await create_admin()
    otp_token = await start_login(admin.email)
    code = mailer.last_code()

    details = []
    for _ in range(3):
        response = await client.post("/api/admin/login/verify", json={"otp_token": otp_token, "code": WRONG_CODE})
        assert response.status_code == 401
        details.append(response.json()["detail"])

    assert details == ["Invalid OTP code", "Invalid OTP code", "OTP locked. Try again in 1 hour."]

    correct_after_lock = await client.post("/api/admin/login/verify", json={"otp_token": otp_token, "code": code})
    assert correct_after_lock.status_code == 401
    assert correct_after_lock.json()["detail"] == "OTP locked. Try again in 1 hour."

    new_login = await client.post("/api/admin/login", json={"email": admin.email, "password": "Str0ng-pass!"})
    assert new_login.status_code == 401
    assert new_login.json()["detail"] == "OTP locked. Try again in 1 hour."


async def test_malformed_code_counts_as_wrong(client, create_admin, start_login):
    admin = await create_admin()
    otp_token = await start_login(admin.email)

    response = await client.post("/api/admin/login/verify", json={"otp_token": otp_token, "code": "12a456"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid OTP code"


async def test_unknown_or_forged_otp_token(client, create_admin, start_login):
    admin = await create_admin()
    otp_token = await start_login(admin.email)
    otp_id, _ = split_token(otp_token)

    for token in ["garbage", f"{otp_id}.forged-secret", "missing-id.secret"]:
        response = await client.post("/api/admin/login/verify", json={"otp_token": token, "code": "123456"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired OTP token"


async def test_expired_otp_is_rejected(app, client, mailer, create_admin, start_login):
    admin = await create_admin()
    otp_token = await start_login(admin.email)

    async with app.state.session_factory() as session:
        await session.execute(
            update(admin_otps_tbl).values(expires_at=datetime.now(timezone.utc) - timedelta(minutes=1))
        )
        await session.commit()

    response = await client.post("/api/admin/login/verify", json={"otp_token": otp_token, "code": mailer.last_code()})
    assert response.status_code == 401
    assert response.json()["detail"] == "OTP expired"


async def test_resend_keeps_token_and_sends_new_code(client, mailer, create_admin, start_login):
    admin = await create_admin()
    otp_token = await start_login(admin.email)

    resend = await client.post("/api/admin/login/resend", json={"otp_token": otp_token})
    assert resend.status_code == 200
    assert len(mailer.sent) == 2

    response = await client.post("/api/admin/login/verify", json={"otp_token": otp_token, "code": mailer.last_code()})
    assert response.status_code == 200


async def test_resend_after_success_is_rejected(client, mailer, create_admin, start_login):
    admin = await create_admin()
    otp_token = await start_login(admin.email)
    await client.post("/api/admin/login/verify", json={"otp_token": otp_token, "code": mailer.last_code()})

    response = await client.post("/api/admin/login/resend", json={"otp_token": otp_token})
    assert response.status_code == 401
    assert response.json()["detail"] == "OTP already used"


async def test_me_requires_token(client):
    missing = await client.get("/api/admin/me")
    assert missing.status_code == 401

    bogus = await client.get("/api/admin/me", headers={"Authorization": "Bearer nope.nope"})
    assert bogus.status_code == 401
    assert bogus.json()["detail"] == "Invalid or expired admin token"


async def test_logout_revokes_session(client, login_as):
    headers = await login_as(AdminRole.ORDER_TRACKER)

    assert (await client.get("/api/admin/me", headers=headers)).status_code == 200
    assert (await client.post("/api/admin/logout", headers=headers)).status_code == 200
    assert (await client.get("/api/admin/me", headers=headers)).status_code == 401


async def test_refresh_rotates_token(client, login_as):
    old_headers = await login_as()

    response = await client.post("/api/admin/refresh", headers=old_headers)
    assert response.status_code == 200
    new_headers = {"Authorization": f"Bearer {response.json()['access_token']}"}

    assert (await client.get("/api/admin/me", headers=new_headers)).status_code == 200
    assert (await client.get("/api/admin/me", headers=old_headers)).status_code == 401


async def test_mail_failure_is_reported_as_service_unavailable(app, client, mailer, create_admin):
    class BrokenMailer:
        async def send(self, to, subject, text, html=None):
            raise EmailDeliveryError("Resend ошибка: 500")

    admin = await create_admin()
    app.state.email_sender = BrokenMailer()

    response = await client.post("/api/admin/login", json={"email": admin.email, "password": "Str0ng-pass!"})
    assert response.status_code == 503
    assert response.json() == {"detail": "Service unavailable"}

    app.state.email_sender = mailer
    response = await client.post("/api/admin/login", json={"email": admin.email, "password": "Str0ng-pass!"})
    assert response.status_code == 200


def test_secret_hashing():
    hashed = hash_secret("123456", rounds=4)
    assert hashed != "123456"
    assert verify_secret("123456", hashed)
    assert not verify_secret("654321", hashed)
    assert not verify_secret("123456", "not-a-bcrypt-hash")


def test_split_token():
    assert split_token("abc.def.ghi") == ("abc", "def.ghi")
    assert split_token("abc") is None
    assert split_token(".def") is None
    assert split_token("abc.") is None
    assert split_token(None) is None


async def test_parallel_verifies_with_same_code_open_one_session(client, mailer, create_admin, start_login):
    admin = await create_admin()
    otp_token = await start_login(admin.email)
    payload = {"otp_token": otp_token, "code": mailer.last_code()}

    responses = await asyncio.gather(*(client.post(VERIFY_URL, json=payload) for _ in range(2)))

    assert sorted(r.status_code for r in responses) == [200, 401]
    rejected = next(r for r in responses if r.status_code == 401)
    assert rejected.json()["detail"] == "OTP already used"


async def test_parallel_wrong_codes_still_lock_the_admin(client, mailer, create_admin, start_login):
    admin = await create_admin()
    otp_token = await start_login(admin.email)
    code = mailer.last_code()

    responses = await asyncio.gather(
        *(client.post(VERIFY_URL, json={"otp_token": otp_token, "code": WRONG_CODE}) for _ in range(6))
    )
    assert all(r.status_code == 401 for r in responses)
    assert "OTP locked. Try again in 1 hour." in [r.json()["detail"] for r in responses]

    after = await client.post(VERIFY_URL, json={"otp_token": otp_token, "code": code})
    assert after.status_code == 401
    assert after.json()["detail"] == "OTP locked. Try again in 1 hour."


async def test_second_login_within_cooldown_is_throttled(client, mailer, create_admin, start_login):
    admin = await create_admin()
    await start_login(admin.email)

    response = await client.post("/api/admin/login", json={"email": admin.email, "password": "Str0ng-pass!"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Please wait 60 seconds before requesting another code."
    assert len(mailer.sent) == 1


async def test_hourly_otp_limit(app, client, create_admin, start_login):
    admin = await create_admin()
    for _ in range(3):
        await start_login(admin.email)
        await shift_otp_creation(app, minutes_ago=2)

    limited = await client.post("/api/admin/login", json={"email": admin.email, "password": "Str0ng-pass!"})
    assert limited.status_code == 401
    assert limited.json()["detail"] == "OTP throttled (hourly limit). Try again in 1 hour."

    await shift_otp_creation(app, minutes_ago=61)
    await start_login(admin.email)


async def test_tokens_are_stored_as_sha256(app, client, mailer, create_admin, start_login):
    admin = await create_admin()
    otp_token = await start_login(admin.email)
    response = await client.post(VERIFY_URL, json={"otp_token": otp_token, "code": mailer.last_code()})
    session_id, secret = split_token(response.json()["access_token"])

    async with app.state.session_factory() as session:
        stored = (await session.execute(
            select(admin_sessions_tbl.c.token_hash).where(admin_sessions_tbl.c.id == session_id)
        )).scalar_one()
        otp_secret_hash = (await session.execute(select(admin_otps_tbl.c.secret_hash))).scalar_one()

    assert stored == hash_token(secret)
    assert otp_secret_hash == hash_token(split_token(otp_token)[1])


def test_token_hashing():
    hashed = hash_token("a" * 64)
    assert len(hashed) == 64
    assert verify_token("a" * 64, hashed)
    assert not verify_token("b" * 64, hashed)
