"""HTTP surface for markets, over ASGITransport with in-memory services."""
import json
from datetime import UTC, datetime, timedelta

import pytest

from tests.fakes import make_pubkey

ISSUER = make_pubkey(1)
ACCOUNT = make_pubkey(2)
MINT = make_pubkey(3)


def _market_body(**kwargs) -> dict:
    body = {
        "issuer": ISSUER,
        "bondName": "US Treasury 2030",
        "bondSymbol": "USTB30",
        "totalSupply": 1000,
        "maturityDate": (datetime.now(UTC) + timedelta(days=365)).isoformat(),
        "couponRate": 8.5,
        "faceValue": 1_000_000,
        "currentPrice": 980_000,
    }
    body.update(kwargs)
    return body


async def _create(client, **kwargs) -> dict:
    resp = await client.post("/api/v1/markets", json=_market_body(**kwargs))
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


class TestCreateMarket:
    async def test_created_market_shape(self, client):
        resp = await client.post("/api/v1/markets", json=_market_body())

        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["requestId"] == resp.headers["X-Request-ID"]
        data = body["data"]
        assert data["totalSupply"] == 1000
        assert data["bondsSold"] == 0
        assert data["totalBondsIssued"] == 0
        assert data["couponRate"] == 8.5
        assert data["couponRateBps"] == 850
        assert data["status"] == "active"
        assert data["tradeable"] is False
        assert data["marketAccount"] is None

    async def test_client_request_id_is_echoed(self, client):
        resp = await client.post(
            "/api/v1/markets", json=_market_body(), headers={"X-Request-ID": "trace-123"}
        )
        assert resp.headers["X-Request-ID"] == "trace-123"
        assert resp.json()["requestId"] == "trace-123"

    async def test_past_maturity_is_400(self, client):
        past = (datetime.now(UTC) - timedelta(days=1)).isoformat()

        resp = await client.post("/api/v1/markets", json=_market_body(maturityDate=past))

        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert body["code"] == 1001
        assert "maturityDate" in body["error"]

    async def test_missing_field_is_400(self, client):
        body = _market_body()
        del body["bondName"]

        resp = await client.post("/api/v1/markets", json=body)

        assert resp.status_code == 400
        assert resp.json()["code"] == 1001

    async def test_nan_coupon_rate_is_400(self, client):
        # httpx refuses to encode NaN, so send the raw JSON the parser accepts
        resp = await client.post(
            "/api/v1/markets",
            content=json.dumps(_market_body(couponRate=float("nan"))),
            headers={"Content-Type": "application/json"},
        )

        assert resp.status_code == 400
        assert resp.json()["code"] == 1001

    @pytest.mark.parametrize("field", ["totalSupply", "faceValue", "currentPrice"])
    async def test_amount_beyond_bigint_is_400(self, client, field):
        resp = await client.post("/api/v1/markets", json=_market_body(**{field: 2**63}))

        assert resp.status_code == 400
        assert resp.json()["code"] == 1001

    async def test_duplicate_symbol_for_issuer_is_409(self, client):
        await _create(client)

        resp = await client.post("/api/v1/markets", json=_market_body(bondSymbol="ustb30"))

        assert resp.status_code == 409
        assert resp.json()["code"] == 3002

    async def test_create_with_live_accounts_links(self, client, ledger_client):
        ledger_client.accounts |= {ACCOUNT, MINT}

        data = await _create(client, marketAccount=ACCOUNT, bondMint=MINT)

        assert data["tradeable"] is True
        assert data["bondMint"] == MINT

    async def test_create_with_missing_account_is_422(self, client, ledger_client):
        ledger_client.accounts.add(ACCOUNT)

        resp = await client.post(
            "/api/v1/markets", json=_market_body(marketAccount=ACCOUNT, bondMint=MINT)
        )

        assert resp.status_code == 422
        assert resp.json()["code"] == 3005

    async def test_ledger_outage_is_503(self, client, ledger_client):
        ledger_client.accounts |= {ACCOUNT, MINT}
        ledger_client.transient_failures = 100

        resp = await client.post(
            "/api/v1/markets", json=_market_body(marketAccount=ACCOUNT, bondMint=MINT)
        )

        assert resp.status_code == 503
        assert resp.json()["code"] == 9004


class TestReadMarkets:
    async def test_get_by_id(self, client):
        created = await _create(client)

        resp = await client.get(f"/api/v1/markets/{created['marketId']}")

        assert resp.status_code == 200
        assert resp.json()["data"]["bondSymbol"] == "USTB30"

    async def test_unknown_market_is_404(self, client):
        resp = await client.get("/api/v1/markets/does-not-exist")

        assert resp.status_code == 404
        assert resp.json()["code"] == 3001

    async def test_pagination(self, client):
        for i in range(3):
            await _create(client, bondSymbol=f"B{i}")

        first = (await client.get("/api/v1/markets?limit=2&offset=0")).json()
        last = (await client.get("/api/v1/markets?limit=2&offset=2")).json()

        assert len(first["data"]) == 2
        assert first["pagination"] == {"total": 3, "limit": 2, "offset": 0, "hasMore": True}
        assert len(last["data"]) == 1
        assert last["pagination"]["hasMore"] is False

    async def test_filters(self, client):
        await _create(client, bondSymbol="A1")
        await _create(client, bondSymbol="A2", issuer=make_pubkey(9))

        resp = await client.get(f"/api/v1/markets?issuer={make_pubkey(9)}&status=active")

        data = resp.json()["data"]
        assert [m["bondSymbol"] for m in data] == ["A2"]

    @pytest.mark.parametrize("query", ["status=bogus", "limit=0", "limit=101", "offset=-1"])
    async def test_bad_query_is_400(self, client, query):
        resp = await client.get(f"/api/v1/markets?{query}")
        assert resp.status_code == 400


class TestLedgerAccounts:
    async def test_attach_is_idempotent(self, client, ledger_client):
        ledger_client.accounts |= {ACCOUNT, MINT}
        market_id = (await _create(client))["marketId"]
        body = {"marketAccount": ACCOUNT, "bondMint": MINT}

        first = await client.put(f"/api/v1/markets/{market_id}/ledger-accounts", json=body)
        again = await client.put(f"/api/v1/markets/{market_id}/ledger-accounts", json=body)

        assert first.status_code == again.status_code == 200
        assert again.json()["data"]["tradeable"] is True

    async def test_rebinding_is_409(self, client, ledger_client):
        other = make_pubkey(4)
        ledger_client.accounts |= {ACCOUNT, MINT, other}
        market_id = (await _create(client))["marketId"]
        await client.put(
            f"/api/v1/markets/{market_id}/ledger-accounts",
            json={"marketAccount": ACCOUNT, "bondMint": MINT},
        )

        resp = await client.put(
            f"/api/v1/markets/{market_id}/ledger-accounts",
            json={"marketAccount": other, "bondMint": MINT},
        )

        assert resp.status_code == 409
        assert resp.json()["code"] == 3003

    async def test_account_missing_on_ledger(self, client):
        market_id = (await _create(client))["marketId"]

        resp = await client.put(
            f"/api/v1/markets/{market_id}/ledger-accounts",
            json={"marketAccount": ACCOUNT, "bondMint": MINT},
        )

        assert resp.status_code == 422


class TestMarketStatus:
    async def test_pause_and_resume(self, client):
        market_id = (await _create(client))["marketId"]

        paused = await client.put(f"/api/v1/markets/{market_id}/status", json={"status": "paused"})
        resumed = await client.put(f"/api/v1/markets/{market_id}/status", json={"status": "active"})

        assert paused.json()["data"]["status"] == "paused"
        assert resumed.json()["data"]["status"] == "active"

    async def test_matured_is_terminal(self, client):
        market_id = (await _create(client))["marketId"]
        await client.put(f"/api/v1/markets/{market_id}/status", json={"status": "matured"})

        resp = await client.put(f"/api/v1/markets/{market_id}/status", json={"status": "active"})

        assert resp.status_code == 409
        assert resp.json()["code"] == 9003

    async def test_unknown_status_value(self, client):
        market_id = (await _create(client))["marketId"]
        resp = await client.put(f"/api/v1/markets/{market_id}/status", json={"status": "closed"})
        assert resp.status_code == 400


class TestMisc:
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["data"]["status"] == "ok"
        assert body["data"]["version"]
        assert body["requestId"] == resp.headers["X-Request-ID"]

    async def test_unknown_route_uses_error_envelope(self, client):
        resp = await client.get("/api/v1/nowhere")
        assert resp.status_code == 404
        assert resp.json()["success"] is False
        assert resp.json()["code"] == 1004
