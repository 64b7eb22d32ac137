import logging
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from inventory.models import Order
from inventory.schemas import DashboardStats


def _stats(**overrides):
    values = dict(
        total_materials=10,
        low_stock_count=3,
        critical_stock_count=1,
        total_orders=4,
        pending_orders=1,
        confirmed_orders=2,
        total_revenue=1000.0,
        monthly_revenue=250.0,
    )
    values.update(overrides)
    return DashboardStats(**values)


def _material(**overrides):
    values = dict(
        id=uuid4(), name="Deri", unit_price_try=None, stock_quantity=5, stock_unit="m2",
        min_stock_quantity=10, min_stock_unit="m2", lead_time_days=None, supplier_id=None,
        price_date=None, notes=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture
def mock_stats():
    with patch(
        "inventory.routes.dashboard.load_dashboard_stats", new_callable=AsyncMock
    ) as mock_load:
        mock_load.return_value = _stats()
        yield mock_load


def test_health(app_client):
    assert app_client.get("/health").json() == {"status": "ok"}


def test_api_key_required(app_client, mock_stats):
    response = app_client.get("/api/dashboard/stats")
    assert response.status_code == 401
    response = app_client.get("/api/dashboard/stats", headers={"X-API-Key": "wrong"})
    assert response.status_code == 401
    assert mock_stats.call_count == 0


def test_rejected_key_logged_at_debug(app_client, caplog):
    with caplog.at_level(logging.DEBUG, logger="inventory.auth"):
        app_client.get("/api/dashboard/stats", headers={"X-API-Key": "wrong"})
    levels = [r.levelno for r in caplog.records if r.name == "inventory.auth"]
    assert levels == [logging.DEBUG]


class TestDashboardCaching:
    def test_stats_are_memoized(self, app_client, auth_headers, mock_stats):
        first = app_client.get("/api/dashboard/stats", headers=auth_headers)
        second = app_client.get("/api/dashboard/stats", headers=auth_headers)

        assert first.status_code == second.status_code == 200
        assert first.json() == second.json()
        assert first.json()["total_revenue"] == 1000.0
        assert mock_stats.call_count == 1

    def test_stats_refetched_after_stale_time(self, app_client, auth_headers, mock_stats, clock):
        app_client.get("/api/dashboard/stats", headers=auth_headers)
        clock.advance(59)
        app_client.get("/api/dashboard/stats", headers=auth_headers)
        assert mock_stats.call_count == 1

        clock.advance(2)
        app_client.get("/api/dashboard/stats", headers=auth_headers)
        assert mock_stats.call_count == 2

    def test_metrics_share_cached_stats(self, app_client, auth_headers, mock_stats):
        app_client.get("/api/dashboard/stats", headers=auth_headers)
        response = app_client.get("/api/dashboard/metrics", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["low_stock_percentage"] == 30
        assert body["critical_stock_percentage"] == 10
        assert body["completion_rate"] == 75
        assert body["average_order_value"] == 250.0
        assert [a["type"] for a in body["alerts"]] == ["critical", "warning", "info"]
        assert mock_stats.call_count == 1

    def test_failed_fetch_is_not_cached(self, app_client, auth_headers, mock_stats):
        mock_stats.side_effect = [RuntimeError("database unavailable"), _stats()]

        with pytest.raises(RuntimeError, match="database unavailable"):
            app_client.get("/api/dashboard/stats", headers=auth_headers)

        response = app_client.get("/api/dashboard/stats", headers=auth_headers)
        assert response.status_code == 200
        assert mock_stats.call_count == 2

    def test_admin_cache_clear_forces_refetch(self, app_client, auth_headers, mock_stats):
        app_client.get("/api/dashboard/stats", headers=auth_headers)
        response = app_client.post("/api/admin/cache-clear", headers=auth_headers)
        assert response.json() == {"status": "cache cleared"}

        app_client.get("/api/dashboard/stats", headers=auth_headers)
        assert mock_stats.call_count == 2


def test_admin_cache_stats_purges_expired(app_client, auth_headers, mock_stats, clock):
    app_client.get("/api/dashboard/stats", headers=auth_headers)
    stats = app_client.get("/api/admin/cache", headers=auth_headers).json()
    assert stats == {"size": 1, "purged": 0, "default_ttl": 300, "single_flight": False}

    clock.advance(120)
    stats = app_client.get("/api/admin/cache", headers=auth_headers).json()
    assert stats["purged"] == 1
    assert stats["size"] == 0


def test_reports_summary_is_memoized(app_client, auth_headers):
    summary = {"total_sales": 10.0, "total_orders": 1}
    with patch("inventory.routes.reports.load_summary", new_callable=AsyncMock) as mock_load:
        mock_load.return_value = summary
        assert app_client.get("/api/reports/summary", headers=auth_headers).json() == summary
        download = app_client.get("/api/reports/summary.json", headers=auth_headers)

    assert download.headers["content-disposition"].startswith("attachment; filename=summary-report-")
    assert download.json() == summary
    assert mock_load.call_count == 1


def test_reports_reject_unknown_format(app_client, auth_headers):
    response = app_client.get("/api/reports/materials.pdf", headers=auth_headers)
    assert response.status_code == 400


def test_missing_product_is_not_cached(app_client, auth_headers):
    with patch("inventory.routes.products.load_product_detail", new_callable=AsyncMock) as mock_load:
        mock_load.return_value = None
        product_id = uuid4()
        for _ in range(2):
            response = app_client.get(f"/api/products/{product_id}", headers=auth_headers)
            assert response.status_code == 404
    assert mock_load.call_count == 2


class TestStockUpdates:
    def test_negative_quantity_rejected(self, app_client, auth_headers, db_session):
        response = app_client.patch(
            f"/api/materials/{uuid4()}/stock", json={"quantity": -1}, headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["detail"] == ["Stock quantity cannot be negative"]
        db_session.commit.assert_not_called()

    def test_unknown_material(self, app_client, auth_headers, db_session):
        db_session.get.return_value = None
        response = app_client.patch(
            f"/api/materials/{uuid4()}/stock", json={"quantity": 3}, headers=auth_headers,
        )
        assert response.status_code == 404

    def test_update_records_adjustment_and_invalidates_dashboard(
        self, app_client, auth_headers, db_session, mock_stats,
    ):
        material = _material()
        db_session.get.return_value = material

        app_client.get("/api/dashboard/stats", headers=auth_headers)
        response = app_client.patch(
            f"/api/materials/{material.id}/stock",
            json={"quantity": 12, "reason": "Stock count"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["stock_quantity"] == 12
        assert body["stock_status"] == "LOW"

        movement = db_session.add.call_args.args[0]
        assert movement.movement_type == "ADJUSTMENT"
        assert movement.reason == "Stock count"
        db_session.commit.assert_awaited_once()

        app_client.get("/api/dashboard/stats", headers=auth_headers)
        assert mock_stats.call_count == 2

    def test_movement_cannot_overdraw(self, app_client, auth_headers, db_session):
        db_session.get.return_value = _material(stock_quantity=2)
        response = app_client.post(
            f"/api/materials/{uuid4()}/movements",
            json={"movement_type": "out", "quantity": 5, "reason": "Cutting"},
            headers=auth_headers,
        )
        assert response.status_code == 400
        db_session.commit.assert_not_called()


def _order_row(status="PENDING"):
    return SimpleNamespace(
        id=uuid4(), order_number="ORD-20240301-A1B2C3", status=status, total_amount=200,
        customer_name="Ayşe", customer_email=None, customer_phone=None,
        shipping_address=None, shipping_city=None, admin_notes=None,
        created_at=datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc),
    )


class TestOrderStock:
    """Status changes move recipe materials in and out of stock."""

    @pytest.fixture
    def bag(self, db_session):
        order = _order_row()
        leather = _material(stock_quantity=10)
        product_id = uuid4()
        item = SimpleNamespace(id=uuid4(), product_id=product_id, quantity=2, price=100)

        async def get(model, key):
            if model is Order:
                return order
            return leather if key == leather.id else None

        db_session.get = AsyncMock(side_effect=get)
        db_session.scalars = AsyncMock(return_value=[item])
        # half a square metre of leather per bag
        db_session.execute = AsyncMock(return_value=[(product_id, leather.id, 0.5)])
        return SimpleNamespace(order=order, leather=leather)

    @pytest.fixture
    def cached(self, app_client):
        query_client = app_client.app.state.query_client
        for key in ("orders:list:1:20:None", "materials:low-stock", "dashboard:stats", "suppliers:list"):
            query_client.cache.set(key, "cached")
        return query_client

    def test_confirming_consumes_stock(self, app_client, auth_headers, db_session, bag, cached):
        response = app_client.patch(
            f"/api/orders/{bag.order.id}/status", json={"status": "confirmed"}, headers=auth_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["movements"] == 1
        assert body["order"]["status"] == "CONFIRMED"
        assert bag.leather.stock_quantity == 9.0

        movement = db_session.add.call_args.args[0]
        assert movement.movement_type == "OUT"
        assert movement.quantity == 1.0
        assert movement.order_id == bag.order.id
        assert movement.reason.startswith("Order ORD-20240301-A1B2C3 - ")
        db_session.commit.assert_awaited_once()

        assert cached.cache.keys() == ["suppliers:list"]

    def test_insufficient_stock_rolls_back(self, app_client, auth_headers, db_session, bag, cached):
        bag.leather.stock_quantity = 0.5

        response = app_client.patch(
            f"/api/orders/{bag.order.id}/status", json={"status": "CONFIRMED"}, headers=auth_headers,
        )

        assert response.status_code == 409
        assert response.json()["detail"] == "Insufficient stock of Deri"
        assert bag.order.status == "PENDING"
        db_session.rollback.assert_awaited_once()
        db_session.commit.assert_not_called()
        db_session.add.assert_not_called()
        assert cached.cache.size() == 4

    def test_cancelling_processing_order_returns_stock(self, app_client, auth_headers, db_session, bag):
        bag.order.status = "PROCESSING"
        bag.leather.stock_quantity = 9

        response = app_client.patch(
            f"/api/orders/{bag.order.id}/status", json={"status": "CANCELLED"}, headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["movements"] == 1
        assert bag.leather.stock_quantity == 10.0
        assert db_session.add.call_args.args[0].movement_type == "RETURN"


class TestOrders:
    def test_invalid_transition_is_conflict(self, app_client, auth_headers, db_session):
        db_session.get.return_value = SimpleNamespace(id=uuid4(), status="DELIVERED", order_number="ORD-1")
        db_session.scalars = AsyncMock(return_value=[])

        response = app_client.patch(
            f"/api/orders/{uuid4()}/status", json={"status": "pending"}, headers=auth_headers,
        )
        assert response.status_code == 409
        assert response.json()["detail"] == "Invalid status transition from DELIVERED to PENDING"
        db_session.commit.assert_not_called()

    def test_create_order_validates_customer(self, app_client, auth_headers, db_session):
        response = app_client.post(
            "/api/orders",
            json={
                "customer_name": "Ayşe",
                "customer_email": "not-an-email",
                "customer_phone": "12",
                "items": [{"product_id": str(uuid4()), "quantity": 1}],
            },
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["detail"] == ["Invalid email format", "Invalid phone number format"]
        db_session.add.assert_not_called()

    def test_create_order_rejects_negative_price(self, app_client, auth_headers, db_session):
        response = app_client.post(
            "/api/orders",
            json={
                "customer_name": "Ayşe",
                "items": [
                    {"product_id": str(uuid4()), "quantity": 1, "price": 120},
                    {"product_id": str(uuid4()), "quantity": 3, "price": -40},
                ],
            },
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["detail"] == ["Item 2 price must be a positive number"]
        db_session.add.assert_not_called()

    def test_create_order_requires_items(self, app_client, auth_headers):
        response = app_client.post(
            "/api/orders", json={"customer_name": "Ayşe", "items": []}, headers=auth_headers,
        )
        assert response.status_code == 400
        assert "Order must contain at least one item" in response.json()["detail"]


def test_product_validation(app_client, auth_headers, db_session):
    response = app_client.post(
        "/api/products",
        json={"name": "", "price": -5, "recipe": [{"quantity": 1, "item_type": "MATERIAL"}]},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json()["detail"] == [
        "Name is required",
        "Price must be a positive number",
        "Recipe line 1 raw material is required",
    ]
    db_session.add.assert_not_called()
