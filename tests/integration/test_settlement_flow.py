# tests/integration/test_settlement_flow.py
"""End-to-end settlement flow against PostgreSQL.

Requires a database at DATABASE_URL with `alembic upgrade head` applied.
Every test creates its own market (random symbol) so runs do not collide.
"""

import asyncio
import uuid
from datetime import UTC, datetime, timedelta

import pytest

from tests.fakes import make_pubkey

pytestmark = pytest.mark.asyncio(loop_scope="session")

ISSUER = make_pubkey(1)


def _reference() -> str:
    return f"it-{uuid.uuid4().hex}"


async def _create_market(client, total_supply: int = 1000) -> str:
    resp = await client.post("/api/v1/markets", json={
        "issuer": ISSUER,
        "bondName": "Integration Bond",
        "bondSymbol": f"IT{uuid.uuid4().hex[:8]}",
        "totalSupply": total_supply,
        "maturityDate": (datetime.now(UTC) + timedelta(days=30)).isoformat(),
        "couponRate": 5,
        "faceValue": 1000,
        "currentPrice": 990,
    })
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]["marketId"]


async def _record(client, market_id: str, quantity: int, reference: str | None = None) -> str:
    resp = await client.post("/api/v1/transactions", json={
        "marketId": market_id,
        "buyer": make_pubkey(20),
        "transactionType": "buy",
        "bondQuantity": quantity,
        "pricePerBond": 990,
        "settlementReference": reference or _reference(),
    })
    assert resp.status_code in (200, 201), resp.text
    return resp.json()["data"]["transactionId"]


class TestMarketLifecycle:
    async def test_duplicate_symbol_rejected_by_unique_constraint(self, live_client):
        market_id = await _create_market(live_client)
        symbol = (await live_client.get(f"/api/v1/markets/{market_id}")).json()["data"]["bondSymbol"]

        resp = await live_client.post("/api/v1/markets", json={
            "issuer": ISSUER, "bondName": "Again", "bondSymbol": symbol,
            "totalSupply": 1, "couponRate": 1, "faceValue": 1, "currentPrice": 1,
            "maturityDate": (datetime.now(UTC) + timedelta(days=30)).isoformat(),
        })

        assert resp.status_code == 409

    async def test_status_transitions(self, live_client):
        market_id = await _create_market(live_client)
        url = f"/api/v1/markets/{market_id}/status"

        assert (await live_client.put(url, json={"status": "paused"})).status_code == 200
        assert (await live_client.put(url, json={"status": "matured"})).status_code == 409
        assert (await live_client.put(url, json={"status": "active"})).status_code == 200
        assert (await live_client.put(url, json={"status": "matured"})).status_code == 200


class TestSettlement:
    async def test_replay_is_idempotent(self, live_client):
        market_id = await _create_market(live_client)
        reference = _reference()

        first = await _record(live_client, market_id, 10, reference)
        second = await _record(live_client, market_id, 10, reference)

        assert first == second

    async def test_concurrent_confirmations_respect_supply(self, live_client):
        market_id = await _create_market(live_client, total_supply=1000)
        txn_ids = [await _record(live_client, market_id, 60) for _ in range(20)]

        responses = await asyncio.gather(*(
            live_client.put(f"/api/v1/transactions/{t}/status", json={"status": "confirmed"})
            for t in txn_ids
        ))

        codes = sorted(r.status_code for r in responses)
        assert codes.count(200) == 16
        assert codes.count(409) == 4
        market = (await live_client.get(f"/api/v1/markets/{market_id}")).json()["data"]
        assert market["bondsSold"] == 960

        # rejected confirmations rolled back: those trades are still pending
        pending = (await live_client.get(
            f"/api/v1/transactions?marketId={market_id}&status=pending"
        )).json()
        assert pending["pagination"]["total"] == 4

    async def test_double_confirm(self, live_client):
        market_id = await _create_market(live_client)
        txn_id = await _record(live_client, market_id, 100)
        url = f"/api/v1/transactions/{txn_id}/status"

        assert (await live_client.put(url, json={"status": "confirmed", "blockNumber": 1})).status_code == 200
        assert (await live_client.put(url, json={"status": "confirmed", "blockNumber": 2})).status_code == 409
        market = (await live_client.get(f"/api/v1/markets/{market_id}")).json()["data"]
        assert market["bondsSold"] == 100
