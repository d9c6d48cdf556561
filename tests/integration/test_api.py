"""
Integration tests for the HTTP API
"""

import pytest

from tests.conftest import ADMIN_KEY
from tests.fixtures.database import fund_wallet

ADMIN_HEADERS = {"X-Admin-Key": ADMIN_KEY, "X-Admin-Id": "admin-1"}


def user_headers(user_id: str, idempotency_key: str = None) -> dict:
    headers = {"X-User-Id": user_id}
    if idempotency_key:
        headers["Idempotency-Key"] = idempotency_key
    return headers


@pytest.mark.integration
class TestPublicEndpoints:

    async def test_health(self, test_client):
        response = await test_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    async def test_metrics(self, test_client):
        response = await test_client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text

    async def test_wallet_requires_identity(self, test_client):
        response = await test_client.get("/api/v1/wallet/")

        assert response.status_code == 422

    async def test_wallet_balance(self, test_client, services):
        await fund_wallet(services.ledger, "alice", 250)

        response = await test_client.get("/api/v1/wallet/", headers=user_headers("alice"))

        assert response.status_code == 200
        assert response.json() == {"user_id": "alice", "balance": 250, "diamonds": 0}

    async def test_wallet_transactions(self, test_client, services):
        await fund_wallet(services.ledger, "alice", 250)

        response = await test_client.get("/api/v1/wallet/transactions", headers=user_headers("alice"))

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["items"][0]["type"] == "ADMIN_ADJUST"


@pytest.mark.integration
class TestGiftEndpoints:

    async def test_send_and_replay(self, test_client, funded_sender, gift, room):
        payload = {"receiver_id": "receiver", "gift_id": str(gift.id), "quantity": 1, "room_id": str(room.id)}

        first = await test_client.post(
            "/api/v1/gifts/send", json=payload, headers=user_headers("sender", "key-1")
        )
        assert first.status_code == 200
        assert first.json()["new_sender_balance"] == 40
        assert first.json()["receiver_share"] == 18
        assert first.json()["owner_share"] == 18

        replay = await test_client.post(
            "/api/v1/gifts/send", json=payload, headers=user_headers("sender", "key-1")
        )
        assert replay.status_code == 200
        assert replay.json()["replayed"] is True
        assert replay.json()["transaction_id"] == first.json()["transaction_id"]

    async def test_send_requires_idempotency_key(self, test_client, funded_sender, gift):
        response = await test_client.post(
            "/api/v1/gifts/send",
            json={"receiver_id": "receiver", "gift_id": str(gift.id)},
            headers=user_headers("sender"),
        )

        assert response.status_code == 422

    async def test_insufficient_funds_is_402(self, test_client, gift):
        response = await test_client.post(
            "/api/v1/gifts/send",
            json={"receiver_id": "receiver", "gift_id": str(gift.id)},
            headers=user_headers("broke", "key-1"),
        )

        assert response.status_code == 402
        body = response.json()
        assert body["error"] == "insufficient_funds"
        assert body["available"] == 0
        assert body["required"] == 60
        assert body["retryable"] is False

    async def test_self_gift_is_400(self, test_client, funded_sender, gift):
        response = await test_client.post(
            "/api/v1/gifts/send",
            json={"receiver_id": "sender", "gift_id": str(gift.id)},
            headers=user_headers("sender", "key-1"),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "self_gift"

    async def test_key_of_another_sender_is_409(self, test_client, services, funded_sender, gift):
        await fund_wallet(services.ledger, "other", 100)
        payload = {"receiver_id": "receiver", "gift_id": str(gift.id)}
        await test_client.post("/api/v1/gifts/send", json=payload, headers=user_headers("sender", "key-1"))

        response = await test_client.post("/api/v1/gifts/send", json=payload, headers=user_headers("other", "key-1"))

        assert response.status_code == 409
        assert response.json()["error"] == "idempotency_key_conflict"
        assert "transaction_id" not in response.json()

    async def test_unknown_gift_is_404(self, test_client, funded_sender):
        response = await test_client.post(
            "/api/v1/gifts/send",
            json={"receiver_id": "receiver", "gift_id": "00000000-0000-0000-0000-000000000000"},
            headers=user_headers("sender", "key-1"),
        )

        assert response.status_code == 404

    async def test_leaderboard(self, test_client, funded_sender, gift):
        await test_client.post(
            "/api/v1/gifts/send",
            json={"receiver_id": "receiver", "gift_id": str(gift.id)},
            headers=user_headers("sender", "key-1"),
        )

        response = await test_client.get("/api/v1/gifts/leaderboard", params={"by": "receivers"})

        assert response.status_code == 200
        assert response.json()[0]["user_id"] == "receiver"


@pytest.mark.integration
class TestGrantEndpoints:

    async def test_packages(self, test_client):
        response = await test_client.get("/api/v1/grants/packages", params={"kind": "VIP"})

        assert response.status_code == 200
        assert {p["type"] for p in response.json()} == {"vip_weekly", "vip_monthly", "vip_quarterly", "vip_yearly"}

    async def test_purchase_twice_is_409(self, test_client, services):
        await fund_wallet(services.ledger, "buyer", 20000)

        first = await test_client.post(
            "/api/v1/grants/purchase", json={"type": "BLUE"}, headers=user_headers("buyer", "p1")
        )
        second = await test_client.post(
            "/api/v1/grants/purchase", json={"type": "GOLD"}, headers=user_headers("buyer", "p2")
        )

        assert first.status_code == 200
        assert first.json()["is_active"] is True
        assert second.status_code == 409
        assert second.json()["error"] == "already_active"

        mine = await test_client.get("/api/v1/grants/VERIFICATION", headers=user_headers("buyer"))
        assert mine.json()["type"] == "BLUE"

    async def test_unknown_package_is_422(self, test_client, services):
        response = await test_client.post(
            "/api/v1/grants/purchase", json={"type": "PLATINUM"}, headers=user_headers("buyer", "p1")
        )

        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"


@pytest.mark.integration
class TestAdminEndpoints:

    async def test_admin_key_required(self, test_client):
        response = await test_client.get("/api/v1/admin/scheduler/jobs")
        assert response.status_code == 401

        response = await test_client.get("/api/v1/admin/scheduler/jobs", headers={"X-Admin-Key": "wrong"})
        assert response.status_code == 401

    async def test_admin_denied_when_key_unset(self, test_client, monkeypatch):
        from economy.core.config import settings
        monkeypatch.setattr(settings, "admin_api_key", None)

        response = await test_client.get("/api/v1/admin/scheduler/jobs", headers={"X-Admin-Key": ""})

        assert response.status_code == 401

    async def test_grant_and_revoke(self, test_client):
        granted = await test_client.post(
            "/api/v1/admin/grants",
            json={"user_id": "someone", "type": "GOLD", "duration_days": 7, "reason": "promo"},
            headers=ADMIN_HEADERS,
        )
        assert granted.status_code == 200
        assert granted.json()["days_remaining"] == 7

        revoked = await test_client.delete(
            "/api/v1/admin/grants/someone", params={"reason": "abuse"}, headers=ADMIN_HEADERS
        )
        assert revoked.status_code == 204

        again = await test_client.delete("/api/v1/admin/grants/someone", headers=ADMIN_HEADERS)
        assert again.status_code == 404

        logs = await test_client.get(
            "/api/v1/admin/audit-logs", params={"target_id": "someone"}, headers=ADMIN_HEADERS
        )
        assert {log["action"] for log in logs.json()} == {"GRANT_CREATED", "GRANT_REVOKED"}
        assert all(log["actor_id"] == "admin-1" for log in logs.json())

    async def test_adjust_and_reconcile(self, test_client):
        adjusted = await test_client.post(
            "/api/v1/admin/wallets/alice/adjust",
            json={"amount": 300, "reason": "compensation"},
            headers=ADMIN_HEADERS,
        )
        assert adjusted.status_code == 200
        assert adjusted.json()["balance_after"] == 300

        overdraw = await test_client.post(
            "/api/v1/admin/wallets/alice/adjust",
            json={"amount": -500, "reason": "chargeback"},
            headers=ADMIN_HEADERS,
        )
        assert overdraw.status_code == 402

        report = await test_client.get("/api/v1/admin/wallets/alice/reconcile", headers=ADMIN_HEADERS)
        assert report.json()["consistent"] is True
        assert report.json()["balance"] == 300

    async def test_cleanup_and_scheduler_controls(self, test_client):
        preview = await test_client.get("/api/v1/admin/cleanup/preview", headers=ADMIN_HEADERS)
        assert preview.status_code == 200
        assert preview.json()["expired_verifications"] == 0

        triggered = await test_client.post("/api/v1/admin/cleanup/trigger", headers=ADMIN_HEADERS)
        assert triggered.status_code == 200
        assert triggered.json()["job"] == "manual"
        assert triggered.json()["errors"] == {}

        jobs = await test_client.get("/api/v1/admin/scheduler/jobs", headers=ADMIN_HEADERS)
        assert {job["name"] for job in jobs.json()} == {"fast", "hourly", "daily"}

        started = await test_client.post("/api/v1/admin/scheduler/jobs/daily/start", headers=ADMIN_HEADERS)
        assert started.json() == {"name": "daily", "started": True}
        stopped = await test_client.post("/api/v1/admin/scheduler/jobs/daily/stop", headers=ADMIN_HEADERS)
        assert stopped.json() == {"name": "daily", "stopped": True}

        ran = await test_client.post("/api/v1/admin/scheduler/jobs/fast/run", headers=ADMIN_HEADERS)
        assert ran.status_code == 200
        assert ran.json()["counts"] == {"stale_presence": 0}

        unknown = await test_client.post("/api/v1/admin/scheduler/jobs/weekly/start", headers=ADMIN_HEADERS)
        assert unknown.status_code == 422
