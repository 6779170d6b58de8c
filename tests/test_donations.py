from petkoi.domain.admin import AdminRole


def donation_payload(**extra):
    payload = {
        "user_id": "user-1",
        "method": "BKASH",
        "amount_bdt": 500,
        "trx_id": "9XK2L7Q1",
        "agent_account": "01711111111",
    }
    payload.update(extra)
    return payload


async def donate(client, **extra):
    response = await client.post("/api/donations", json=donation_payload(**extra))
    assert response.status_code == 201, response.text
    return response.json()


async def test_verified_donation_is_visible_to_donor(client, login_as):
    headers = await login_as()
    donation = await donate(client)
    assert donation["status"] == "PENDING"
    assert donation["currency"] == "BDT"
    assert donation["verified_at"] is None

    verified = await client.patch(
        f"/api/admin/donations/{donation['id']}/verify",
        json={"status": "VERIFIED", "note": "Checked bKash statement"},
        headers=headers
    )
    assert verified.status_code == 200

    fetched = (await client.get(f"/api/donations/{donation['id']}", params={"user_id": "user-1"})).json()
    assert fetched["status"] == "VERIFIED"
    assert fetched["verified_at"] is not None
    assert fetched["note"] == "[Admin]: Checked bKash statement"

    me = (await client.get("/api/admin/me", headers=headers)).json()
    assert fetched["verified_by"] == me["admin_id"]

    notifications = (await client.get("/api/notifications", params={"user_id": "user-1"})).json()
    assert [n["type"] for n in notifications] == ["DONATION_VERIFIED"]
    assert notifications[0]["reference_id"] == donation["id"]
    assert "500 BDT" in notifications[0]["message"]


async def test_admin_note_is_appended_to_donor_note(client, login_as):
    headers = await login_as()
    donation = await donate(client, note="For the shelter")

    response = await client.patch(
        f"/api/admin/donations/{donation['id']}/verify",
        json={"status": "REJECTED", "note": "No such transaction"},
        headers=headers
    )
    assert response.json()["status"] == "REJECTED"
    assert response.json()["note"] == "For the shelter\n[Admin]: No such transaction"

    notifications = (await client.get("/api/notifications", params={"user_id": "user-1"})).json()
    assert notifications[0]["type"] == "DONATION_REJECTED"
    assert notifications[0]["message"].endswith("Reason: No such transaction")


async def test_donation_can_be_reviewed_once(client, login_as):
    headers = await login_as()
    donation = await donate(client)
    path = f"/api/admin/donations/{donation['id']}/verify"

    assert (await client.patch(path, json={"status": "VERIFIED"}, headers=headers)).status_code == 200

    again = await client.patch(path, json={"status": "REJECTED"}, headers=headers)
    assert again.status_code == 400
    assert again.json()["detail"] == "Donation is already verified"


async def test_review_requires_final_status(client, login_as):
    headers = await login_as()
    donation = await donate(client)

    response = await client.patch(
        f"/api/admin/donations/{donation['id']}/verify", json={"status": "PENDING"}, headers=headers
    )
    assert response.status_code == 400


async def test_unknown_donation(client, login_as):
    headers = await login_as()
    response = await client.patch("/api/admin/donations/missing/verify", json={"status": "VERIFIED"}, headers=headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "Donation not found"


async def test_donor_cannot_read_foreign_donation(client):
    donation = await donate(client)

    response = await client.get(f"/api/donations/{donation['id']}", params={"user_id": "user-2"})
    assert response.status_code == 404

    mine = await client.get("/api/donations", params={"user_id": "user-2"})
    assert mine.json() == []


async def test_amount_must_be_positive(client):
    response = await client.post("/api/donations", json=donation_payload(amount_bdt=0))
    assert response.status_code == 422


async def test_donation_stats_and_filter(client, login_as):
    headers = await login_as()
    await donate(client, amount_bdt=100)
    await donate(client, amount_bdt=200)
    verified = await donate(client, amount_bdt=300)
    rejected = await donate(client, amount_bdt=1000)
    await client.patch(f"/api/admin/donations/{verified['id']}/verify", json={"status": "VERIFIED"}, headers=headers)
    await client.patch(f"/api/admin/donations/{rejected['id']}/verify", json={"status": "REJECTED"}, headers=headers)

    stats = (await client.get("/api/admin/donations/stats", headers=headers)).json()
    assert stats == {
        "total_donations": 4,
        "total_amount": 600,
        "verified_amount": 300,
        "pending_amount": 300,
        "verified_count": 1,
        "pending_count": 2,
    }

    pending = (await client.get("/api/admin/donations", params={"status": "PENDING"}, headers=headers)).json()
    assert sorted(d["amount_bdt"] for d in pending) == [100, 200]


async def test_order_tracker_cannot_review_donations(client, login_as):
    headers = await login_as(AdminRole.ORDER_TRACKER)
    donation = await donate(client)

    response = await client.patch(
        f"/api/admin/donations/{donation['id']}/verify", json={"status": "VERIFIED"}, headers=headers
    )
    assert response.status_code == 403
