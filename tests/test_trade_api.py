"""Tests for trade, holdings and transaction endpoints."""

from datetime import timedelta
from decimal import Decimal

import pytest

from tests.conftest import last_weekday_before, utc_today


class TestBuySell:
    @pytest.mark.asyncio
    async def test_buy(self, test_client, auth_headers):
        response = await test_client.post(
            "/api/v1/trade/buy",
            json={"symbol": "aapl", "quantity": 10},
            headers=auth_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert data["balance"] == "8500.00"
        assert Decimal(data["quote"]["price"]) == Decimal("150")
        assert data["transaction"]["type"] == "BUY"
        assert data["transaction"]["symbol"] == "AAPL"
        assert data["transaction"]["total"] == "1500.00"

    @pytest.mark.asyncio
    async def test_buy_insufficient_funds(self, test_client, auth_headers):
        response = await test_client.post(
            "/api/v1/trade/buy",
            json={"symbol": "MSFT", "quantity": 100},
            headers=auth_headers,
        )

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"].startswith("Insufficient balance")

    @pytest.mark.asyncio
    async def test_buy_unknown_symbol(self, test_client, auth_headers):
        response = await test_client.post(
            "/api/v1/trade/buy",
            json={"symbol": "ZZZZ", "quantity": 1},
            headers=auth_headers,
        )
        assert response.status_code == 404
        assert response.json()["error"] == "Invalid stock symbol or stock not found."

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"symbol": "AAPL", "quantity": 0},
            {"symbol": "AAPL", "quantity": 10_001},
            {"symbol": "AAPL1", "quantity": 1},
            {"symbol": "AAPL", "quantity": 1.5},
        ],
    )
    async def test_buy_validation(self, test_client, auth_headers, payload):
        response = await test_client.post("/api/v1/trade/buy", json=payload, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_provider_outage(self, test_client, auth_headers, provider):
        provider.failing.add("AAPL")
        response = await test_client.post(
            "/api/v1/trade/buy",
            json={"symbol": "AAPL", "quantity": 1},
            headers=auth_headers,
        )
        assert response.status_code == 503
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_sell(self, test_client, auth_headers):
        await test_client.post(
            "/api/v1/trade/buy", json={"symbol": "AAPL", "quantity": 10}, headers=auth_headers
        )
        response = await test_client.post(
            "/api/v1/trade/sell", json={"symbol": "AAPL", "quantity": 3}, headers=auth_headers
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["balance"] == "8950.00"
        assert data["transaction"]["type"] == "SELL"

    @pytest.mark.asyncio
    async def test_sell_without_position(self, test_client, auth_headers):
        response = await test_client.post(
            "/api/v1/trade/sell", json={"symbol": "AAPL", "quantity": 1}, headers=auth_headers
        )
        assert response.status_code == 404
        assert response.json()["error"] == "You do not own any shares of this stock"

    @pytest.mark.asyncio
    async def test_sell_too_many(self, test_client, auth_headers):
        await test_client.post(
            "/api/v1/trade/buy", json={"symbol": "AAPL", "quantity": 2}, headers=auth_headers
        )
        response = await test_client.post(
            "/api/v1/trade/sell", json={"symbol": "AAPL", "quantity": 3}, headers=auth_headers
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Insufficient shares. You own 2 shares."

    @pytest.mark.asyncio
    async def test_requires_authentication(self, test_client):
        response = await test_client.post(
            "/api/v1/trade/buy", json={"symbol": "AAPL", "quantity": 1}
        )
        assert response.status_code == 401


class TestBackdated:
    @pytest.mark.asyncio
    async def test_backdated_purchase(self, test_client, auth_headers):
        day = last_weekday_before(utc_today() - timedelta(days=30))
        response = await test_client.post(
            "/api/v1/trade/backdated",
            json={
                "symbol": "AAPL",
                "amount": "1000",
                "date": day.isoformat(),
                "historical_price": "500",
                "company_name": "Apple Inc.",
            },
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert Decimal(data["shares"]) == Decimal("2")
        assert data["balance"] == "9000.00"
        assert data["purchase_date"] == day.isoformat()
        assert data["transaction"]["timestamp"] == f"{day.isoformat()}T16:00:00"

    @pytest.mark.asyncio
    async def test_amount_too_small(self, test_client, auth_headers):
        response = await test_client.post(
            "/api/v1/trade/backdated",
            json={
                "symbol": "AAPL",
                "amount": "1",
                "date": (utc_today() - timedelta(days=3)).isoformat(),
                "historical_price": "20000",
                "company_name": "Apple Inc.",
            },
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert "Minimum 0.0001 shares" in response.json()["error"]

    @pytest.mark.asyncio
    async def test_future_date(self, test_client, auth_headers):
        response = await test_client.post(
            "/api/v1/trade/backdated",
            json={
                "symbol": "AAPL",
                "amount": "100",
                "date": (utc_today() + timedelta(days=1)).isoformat(),
                "historical_price": "100",
                "company_name": "Apple Inc.",
            },
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Date must be in the past."


class TestHistory:
    @pytest.mark.asyncio
    async def test_holdings(self, test_client, auth_headers):
        for symbol, quantity in [("MSFT", 1), ("AAPL", 2)]:
            await test_client.post(
                "/api/v1/trade/buy",
                json={"symbol": symbol, "quantity": quantity},
                headers=auth_headers,
            )

        response = await test_client.get("/api/v1/holdings", headers=auth_headers)

        holdings = response.json()["data"]["holdings"]
        assert [h["symbol"] for h in holdings] == ["AAPL", "MSFT"]
        assert Decimal(holdings[0]["quantity"]) == Decimal("2")
        assert Decimal(holdings[0]["cost_basis"]) == Decimal("300")

    @pytest.mark.asyncio
    async def test_transactions_with_filters(self, test_client, auth_headers):
        await test_client.post(
            "/api/v1/trade/buy", json={"symbol": "AAPL", "quantity": 2}, headers=auth_headers
        )
        await test_client.post(
            "/api/v1/trade/buy", json={"symbol": "MSFT", "quantity": 1}, headers=auth_headers
        )
        await test_client.post(
            "/api/v1/trade/sell", json={"symbol": "AAPL", "quantity": 1}, headers=auth_headers
        )

        response = await test_client.get("/api/v1/transactions", headers=auth_headers)
        transactions = response.json()["data"]["transactions"]
        assert [t["type"] for t in transactions] == ["SELL", "BUY", "BUY"]

        response = await test_client.get(
            "/api/v1/transactions", params={"type": "BUY"}, headers=auth_headers
        )
        assert len(response.json()["data"]["transactions"]) == 2

        response = await test_client.get(
            "/api/v1/transactions", params={"symbol": "aapl", "limit": 1}, headers=auth_headers
        )
        transactions = response.json()["data"]["transactions"]
        assert [(t["symbol"], t["type"]) for t in transactions] == [("AAPL", "SELL")]

        response = await test_client.get(
            "/api/v1/transactions",
            params={"date_to": (utc_today() - timedelta(days=1)).isoformat()},
            headers=auth_headers,
        )
        assert response.json()["data"]["transactions"] == []

    @pytest.mark.asyncio
    async def test_invalid_type_filter(self, test_client, auth_headers):
        response = await test_client.get(
            "/api/v1/transactions", params={"type": "HOLD"}, headers=auth_headers
        )
        assert response.status_code == 400
