"""Integration tests for the quick-purchase catalog."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from httpx import AsyncClient

from tipster.config import get_settings
from tipster.db.models import Country, PackageCountryPrice, QuickPurchase
from tipster.quick_purchases.service import tip_price

KENYA = Country(id=2, code="KE", name="Kenya", currency_code="KES", currency_symbol="KSh")


def _rows(items):
    result = MagicMock()
    result.scalars.return_value.all.return_value = items
    return result


def _item(id_, type_, price, **kw):
    return QuickPurchase(
        id=id_,
        name=f"Item {id_}",
        type=type_,
        price=Decimal(price),
        original_price=kw.pop("original_price", None),
        country_id=2,
        display_order=kw.pop("display_order", id_),
        is_active=True,
        is_prediction_active=True,
        **kw,
    )


@pytest.fixture
def tip_prices(monkeypatch):
    get_settings.cache_clear()
    monkeypatch.setenv("TIPSTER_PREDICTION_PRICES", '{"KE": 250}')
    monkeypatch.setenv("TIPSTER_PREDICTION_ORIGINAL_PRICES", '{"KE": 400}')
    yield
    get_settings.cache_clear()


@pytest.mark.asyncio
class TestQuickPurchases:
    """GET /api/v1/quick-purchases"""

    async def test_requires_auth(self, client: AsyncClient):
        response = await client.get("/api/v1/quick-purchases")
        assert response.status_code == 401

    async def test_country_required(self, client: AsyncClient, login_as, make_user):
        login_as(make_user(country_id=None))
        response = await client.get("/api/v1/quick-purchases")
        assert response.status_code == 400
        assert response.json()["detail"] == "User country not set"

    async def test_empty_catalog(self, client: AsyncClient, login_as, make_user, fake_db):
        fake_db.execute.return_value = _rows([])
        login_as(make_user(country_id=2, country=KENYA))
        response = await client.get("/api/v1/quick-purchases")
        assert response.status_code == 200
        assert response.json() == []

    async def test_prices_by_type(self, client: AsyncClient, login_as, make_user, fake_db, tip_prices):
        items = [_item(1, "prediction", "9.99"), _item(2, "vip", "50.00"), _item(3, "bundle", "20.00")]
        prices = [PackageCountryPrice(country_id=2, package_type="vip", price=Decimal("1500.00"), is_active=True)]
        fake_db.execute.side_effect = [_rows(items), _rows(prices)]
        login_as(make_user(country_id=2, country=KENYA))

        response = await client.get("/api/v1/quick-purchases")
        assert response.status_code == 200
        by_id = {row["id"]: row for row in response.json()}
        assert (by_id[1]["price"], by_id[1]["original_price"]) == (250.0, 400.0)
        assert by_id[2]["price"] == 1500.0
        assert by_id[3]["price"] == 20.0
        assert by_id[1]["currency_code"] == "KES"
        assert [row["id"] for row in response.json()] == [1, 2, 3]


class TestTipPrice:
    def test_defaults_without_configured_market(self):
        settings = get_settings().model_copy(update={"prediction_prices": {}, "prediction_original_prices": {}})
        assert tip_price(KENYA, settings) == (Decimal("2.99"), Decimal("4.99"))

    def test_currency_code_key(self):
        settings = get_settings().model_copy(
            update={"prediction_prices": {"kes": 199}, "prediction_original_prices": {"KES": 299}}
        )
        assert tip_price(KENYA, settings) == (Decimal("199.00"), Decimal("299.00"))

    def test_price_without_original_uses_defaults(self):
        settings = get_settings().model_copy(
            update={"prediction_prices": {"KE": 250}, "prediction_original_prices": {}}
        )
        assert tip_price(KENYA, settings).price == Decimal("2.99")
