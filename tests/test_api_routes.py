"""API tests for auth, portfolio, tracked coins, conversation, chat and market routes."""
import pytest

from cryptofolio.core.errors import UpstreamError

from conftest import dev_headers

ENTRY = {"coin": "Bitcoin", "coinName": "Bitcoin", "amount": 1, "avgBuyPrice": 50000}


def _bearer(client, email="alice@example.com", password="s3cret-pass"):
    client.post("/api/v1/auth/register", json={"email": email, "password": password})
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


class TestAuth:

    def test_register_and_login(self, client):
        resp = client.post("/api/v1/auth/register",
                           json={"email": "bob@example.com", "password": "hunter22"})
        assert resp.status_code == 201
        assert resp.json()["token_type"] == "bearer"

        resp = client.post("/api/v1/auth/login",
                           json={"email": "BOB@example.com", "password": "hunter22"})
        assert resp.status_code == 200
        assert resp.json()["access_token"]

    def test_duplicate_register_conflict(self, client):
        body = {"email": "dup@example.com", "password": "hunter22"}
        client.post("/api/v1/auth/register", json=body)
        resp = client.post("/api/v1/auth/register", json=body)
        assert resp.status_code == 409

    def test_wrong_password_401_envelope(self, client):
        client.post("/api/v1/auth/register", json={"email": "c@example.com", "password": "hunter22"})
        resp = client.post("/api/v1/auth/login", json={"email": "c@example.com", "password": "nope"})
        assert resp.status_code == 401
        data = resp.json()
        assert data["status"] == "ERROR"
        assert data["error"]["code"] == "HTTP_401"
        assert data["request_id"]

    def test_first_login_seeds_default_coins_once(self, client):
        headers = _bearer(client)
        coins = client.get("/api/v1/tracked-coins", headers=headers).json()
        assert [c["coin_id"] for c in coins] == ["bitcoin", "ethereum", "cardano"]

        client.delete("/api/v1/tracked-coins/cardano", headers=headers)
        client.post("/api/v1/auth/login", json={"email": "alice@example.com", "password": "s3cret-pass"})
        coins = client.get("/api/v1/tracked-coins", headers=headers).json()
        assert [c["coin_id"] for c in coins] == ["bitcoin", "ethereum"]

    def test_missing_credentials_401(self, client):
        resp = client.get("/api/v1/portfolio/entries")
        assert resp.status_code == 401
        assert resp.headers["X-Request-ID"]

    def test_invalid_token_401(self, client):
        resp = client.get("/api/v1/portfolio/entries", headers={"Authorization": "Bearer not.a.jwt"})
        assert resp.status_code == 401


class TestPortfolioRoutes:

    def test_create_list_delete(self, client):
        headers = dev_headers()
        resp = client.post("/api/v1/portfolio/entries", json=ENTRY, headers=headers)
        assert resp.status_code == 201
        created = resp.json()
        assert created["coin_id"] == "bitcoin"
        assert created["total_invested"] == 50000

        listed = client.get("/api/v1/portfolio/entries", headers=headers).json()
        assert [e["entry_id"] for e in listed] == [created["entry_id"]]

        assert client.delete(f"/api/v1/portfolio/entries/{created['entry_id']}",
                             headers=headers).status_code == 204
        assert client.delete(f"/api/v1/portfolio/entries/{created['entry_id']}",
                             headers=headers).status_code == 404

    def test_entries_are_owner_scoped(self, client):
        client.post("/api/v1/portfolio/entries", json=ENTRY, headers=dev_headers("a"))
        assert client.get("/api/v1/portfolio/entries", headers=dev_headers("b")).json() == []

    def test_summary(self, client):
        headers = dev_headers()
        client.post("/api/v1/portfolio/entries", json=ENTRY, headers=headers)
        client.post("/api/v1/portfolio/entries",
                    json={"coin": "ethereum", "amount": 2, "avgBuyPrice": 1500.25}, headers=headers)
        summary = client.get("/api/v1/portfolio/summary", headers=headers).json()
        assert summary["total_invested"] == 53000.5
        assert summary["entry_count"] == 2
        assert summary["by_coin"]["ethereum"] == 3000.5

    @pytest.mark.parametrize("bad", [
        {"coin": "bitcoin", "amount": 0, "avgBuyPrice": 1},
        {"coin": "bitcoin", "amount": 1, "avgBuyPrice": -5},
        {"amount": 1, "avgBuyPrice": 5},
    ])
    def test_invalid_entry_rejected(self, client, bad):
        resp = client.post("/api/v1/portfolio/entries", json=bad, headers=dev_headers())
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


class TestTrackedCoinRoutes:

    def test_add_duplicate_and_remove(self, client):
        headers = dev_headers()
        resp = client.post("/api/v1/tracked-coins",
                           json={"coinId": "Solana", "coinName": "Solana"}, headers=headers)
        assert resp.status_code == 201
        assert resp.json()["coin_id"] == "solana"

        dup = client.post("/api/v1/tracked-coins",
                          json={"coinId": "solana", "coinName": "Solana"}, headers=headers)
        assert dup.status_code == 409
        assert dup.json()["error"]["code"] == "DUPLICATE_ENTRY"

        assert client.delete("/api/v1/tracked-coins/solana", headers=headers).status_code == 204
        assert client.get("/api/v1/tracked-coins", headers=headers).json() == []

    @pytest.mark.parametrize("body", [
        {"coinId": "", "coinName": "Nothing"},
        {"coinId": "my coin!", "coinName": "Bad"},
        {"coinId": "pepe"},
    ])
    def test_malformed_custom_coin_400(self, client, body):
        resp = client.post("/api/v1/tracked-coins", json=body, headers=dev_headers())
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


class TestConversationRoutes:

    def test_append_and_read_back(self, client):
        headers = dev_headers()
        for role, content in [("user", "hello"), ("assistant", "hi there")]:
            resp = client.post("/api/v1/conversation/turns",
                               json={"role": role, "content": content}, headers=headers)
            assert resp.status_code == 201

        turns = client.get("/api/v1/conversation/turns", headers=headers).json()
        assert [(t["role"], t["content"]) for t in turns] == [("user", "hello"), ("assistant", "hi there")]

    def test_invalid_role_rejected(self, client):
        resp = client.post("/api/v1/conversation/turns",
                           json={"role": "system", "content": "x"}, headers=dev_headers())
        assert resp.status_code == 422


class TestChatRoute:

    def test_unauthenticated_gets_sign_in(self, client, fake_gateway):
        resp = client.post("/api/v1/chat/messages", json={"message": "hello"})
        assert resp.status_code == 200
        assert resp.json()["status"] == "SIGN_IN_REQUIRED"
        assert fake_gateway.requests == []

    def test_empty_portfolio_onboarding(self, client, fake_gateway):
        resp = client.post("/api/v1/chat/messages", json={"message": "hello"}, headers=dev_headers())
        assert resp.json()["status"] == "ONBOARDING"
        assert fake_gateway.requests == []

    def test_completed_turn_persisted(self, client, fake_gateway):
        headers = dev_headers()
        client.post("/api/v1/portfolio/entries", json=ENTRY, headers=headers)
        client.post("/api/v1/tracked-coins", json={"coinId": "bitcoin", "coinName": "Bitcoin"}, headers=headers)

        resp = client.post("/api/v1/chat/messages", json={"message": "How am I doing?"}, headers=headers)
        assert resp.json() == {
            "status": "COMPLETED",
            "content": "Your portfolio looks balanced.",
            "notice": None,
            "error_code": None,
        }

        request = fake_gateway.requests[0]
        assert request.portfolio[0].coin_id == "bitcoin"
        assert request.selected_coins == ["bitcoin"]

        turns = client.get("/api/v1/conversation/turns", headers=headers).json()
        assert [t["role"] for t in turns] == ["user", "assistant"]

    def test_second_turn_sees_stored_transcript(self, client, fake_gateway):
        headers = dev_headers()
        client.post("/api/v1/portfolio/entries", json=ENTRY, headers=headers)
        client.post("/api/v1/chat/messages", json={"message": "first"}, headers=headers)
        client.post("/api/v1/chat/messages", json={"message": "second"}, headers=headers)

        history = fake_gateway.requests[1].chat_history
        assert [t.content for t in history] == ["first", "Your portfolio looks balanced."]

    def test_upstream_failure_keeps_user_turn_only(self, client, fake_gateway):
        headers = dev_headers()
        client.post("/api/v1/portfolio/entries", json=ENTRY, headers=headers)
        fake_gateway.error = UpstreamError("Gemini API error: 429", status_code=429)

        resp = client.post("/api/v1/chat/messages", json={"message": "hello"}, headers=headers)
        data = resp.json()
        assert data["status"] == "FAILED"
        assert data["notice"] == "Failed to get AI response. Please try again."

        turns = client.get("/api/v1/conversation/turns", headers=headers).json()
        assert [t["role"] for t in turns] == ["user"]

    def test_blank_message_400(self, client):
        resp = client.post("/api/v1/chat/messages", json={"message": " "}, headers=dev_headers())
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


class TestMarketRoutes:

    def test_stats_known_coin(self, client):
        data = client.get("/api/v1/market/stats", params={"coin_id": "ethereum"}).json()
        assert data["coin_id"] == "ethereum"
        assert data["name"] == "Ethereum"

    def test_stats_fallback_to_bitcoin(self, client):
        assert client.get("/api/v1/market/stats", params={"coin_id": "nope"}).json()["coin_id"] == "bitcoin"

    def test_coin_search_excludes_tracked(self, client):
        headers = dev_headers()
        client.post("/api/v1/tracked-coins", json={"coinId": "bitcoin", "coinName": "Bitcoin"}, headers=headers)
        ids = [c["id"] for c in client.get("/api/v1/market/coins", params={"q": "coin"}, headers=headers).json()]
        assert "bitcoin" not in ids
        assert "dogecoin" in ids
        assert "binancecoin" in ids


def test_health(client):
    data = client.get("/health").json()
    assert data["ok"] is True
    assert data["schema_ok"] is True
    assert data["assistant_configured"] is True
