"""
HTTP API Tests
==============

Routers and error envelope exercised through FastAPI's TestClient with the
service wired to in-memory storage.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api import install_error_handlers, routers
from credence import InvestmentService

from .fakes import FailingInvestmentRepository


def build_app(service=None) -> FastAPI:
    app = FastAPI()
    install_error_handlers(app)
    for router, tags in routers:
        app.include_router(router, prefix="/api", tags=tags)
    if service is not None:
        app.state.investment_service = service
    return app


@pytest.fixture
def client(service, alice_bob):
    return TestClient(build_app(service))


def assert_envelope(response, status_code):
    assert response.status_code == status_code
    body = response.json()
    assert set(body) == {"error", "details"}
    return body


class TestInvestEndpoint:

    def test_invest_and_dividends(self, client, alice_bob, clock):
        first = client.post("/api/invest", json={"contentId": alice_bob.id, "amount": 1000, "username": "alice"})
        assert first.status_code == 200
        assert first.json()["dividendsDistributed"] == []

        clock.advance(hours=1)
        second = client.post("/api/invest", json={"contentId": alice_bob.id, "amount": 500, "username": "bob"})

        body = second.json()
        assert second.status_code == 200
        assert body["newBalance"] == 9500
        assert body["userCoefficient"] == 1.1
        assert body["effectiveAmount"] == 500.0
        assert body["dividendsDistributed"] == [{"username": "alice", "amount": 50}]
        assert body["message"]

    def test_unknown_user(self, client, alice_bob):
        response = client.post("/api/invest", json={"contentId": alice_bob.id, "amount": 10, "username": "ghost"})
        body = assert_envelope(response, 400)
        assert body["details"] == {"username": "ghost"}

    def test_unknown_content(self, client):
        response = client.post("/api/invest", json={"contentId": 404, "amount": 10, "username": "alice"})
        assert assert_envelope(response, 400)["details"] == {"contentId": 404}

    @pytest.mark.parametrize("amount", [0, -5])
    def test_non_positive_amount(self, client, alice_bob, amount):
        response = client.post("/api/invest", json={"contentId": alice_bob.id, "amount": amount, "username": "alice"})
        assert_envelope(response, 400)

    def test_insufficient_balance(self, client, store, alice_bob):
        store.users["alice"].balance = 5
        response = client.post("/api/invest", json={"contentId": alice_bob.id, "amount": 10, "username": "alice"})
        body = assert_envelope(response, 400)
        assert body["error"] == "Insufficient balance"

    @pytest.mark.parametrize("payload", [
        {"contentId": 1, "amount": "lots", "username": "alice"},
        {"contentId": 1, "amount": 1.5, "username": "alice"},
        {"contentId": 1, "username": "alice"},
        {"contentId": 1, "amount": 10, "username": ""},
    ])
    def test_malformed_body(self, client, payload):
        body = assert_envelope(client.post("/api/invest", json=payload), 400)
        assert body["error"] == "Invalid request"
        assert body["details"]["errors"]

    def test_share_failure_is_500(self, users, contents, store, params, clock, alice_bob):
        failing = FailingInvestmentRepository(store, fail_contents={alice_bob.id})
        client = TestClient(build_app(InvestmentService(users, contents, failing, params=params, clock=clock)))

        response = client.post("/api/invest", json={"contentId": alice_bob.id, "amount": 10, "username": "alice"})

        body = assert_envelope(response, 500)
        assert body["details"]["contentId"] == alice_bob.id

    def test_service_not_initialized(self):
        client = TestClient(build_app())
        response = client.post("/api/invest", json={"contentId": 1, "amount": 10, "username": "alice"})
        assert_envelope(response, 503)


class TestReadEndpoints:

    def test_user_coefficient(self, client, alice_bob):
        client.post("/api/invest", json={"contentId": alice_bob.id, "amount": 1000, "username": "alice"})

        body = client.get("/api/users/alice/coefficient").json()

        assert body["username"] == "alice"
        assert body["currentCoefficient"] == 1.1
        assert body["balance"] == 9000
        assert body["totalInvested"] == 1000
        assert body["totalEffectiveValue"] == pytest.approx(1100.0)
        assert body["coefficientHistory"][0]["reason"] == "investment_made"
        assert body["lastUpdated"]

    def test_user_coefficient_unknown(self, client):
        assert_envelope(client.get("/api/users/ghost/coefficient"), 400)

    def test_user_investments(self, client, alice_bob):
        client.post("/api/invest", json={"contentId": alice_bob.id, "amount": 300, "username": "alice"})

        body = client.get("/api/users/alice/investments").json()

        assert body["username"] == "alice"
        [holding] = body["investments"]
        assert holding["contentId"] == alice_bob.id
        assert holding["totalInvested"] == 300
        assert holding["currentShare"] == 100.0

    def test_content_shares(self, client, alice_bob, clock):
        client.post("/api/invest", json={"contentId": alice_bob.id, "amount": 1000, "username": "alice"})
        clock.advance(hours=1)
        client.post("/api/invest", json={"contentId": alice_bob.id, "amount": 500, "username": "bob"})

        body = client.get(f"/api/contents/{alice_bob.id}/shares").json()

        assert body["contentId"] == alice_bob.id
        assert [s["username"] for s in body["shares"]] == ["alice", "bob"]
        assert body["totalShares"] == pytest.approx(1650.0)
        assert sum(s["share"] for s in body["shares"]) == pytest.approx(1.0, abs=1e-9)
        assert body["shares"][0]["originalAmount"] == 1000
        assert body["lastUpdated"]

    def test_content_shares_unknown(self, client):
        assert_envelope(client.get("/api/contents/999/shares"), 400)

    def test_content_shares_bad_id(self, client):
        assert_envelope(client.get("/api/contents/abc/shares"), 400)


class TestAdminEndpoints:

    def test_batch_update(self, client, store):
        store.users["alice"].coefficient = 2.0

        body = client.post("/api/admin/coefficients/batch").json()

        assert body["failed"] == []
        assert {e["username"] for e in body["succeeded"]} == {"alice", "bob", "carol"}
        assert body["cache"] == {"coefficients": 0, "shares": 0}
        assert store.users["alice"].coefficient == pytest.approx(1.9)

    def test_cache_clear(self, client, service, alice_bob):
        client.get(f"/api/contents/{alice_bob.id}/shares")
        assert service.cache.stats()["shares"] == 1

        body = client.post("/api/admin/cache/clear").json()

        assert body["cleared"] is True
        assert body["cache"] == {"coefficients": 0, "shares": 0}

    def test_manual_override(self, client, store):
        response = client.put("/api/admin/users/bob/coefficient", json={"coefficient": 7})

        body = response.json()
        assert response.status_code == 200
        assert body["newCoefficient"] == 3.0
        assert body["reason"] == "manual"
        assert store.users["bob"].coefficient == 3.0

    def test_manual_override_unknown_user(self, client):
        assert_envelope(client.put("/api/admin/users/ghost/coefficient", json={"coefficient": 1.2}), 400)
