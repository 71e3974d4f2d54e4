# Overview: Pytest coverage for the sales and inventory HTTP API.

"""
Sales API Tests

Exercises the JSON contract end to end through the Flask test client:
status codes per error kind, response shapes, and stock effects.
"""

from datetime import datetime

from conftest import set_created_at, stock_of
from retail_pos.models import Product


def _create(client, customer, product, quantity=4, **extra):
    body = {
        "customer_id": customer.id,
        "items": [{"product_id": product.id, "quantity": quantity}],
        "payment_method": "cash",
    }
    body.update(extra)
    return client.post("/api/sales/", json=body)


class TestCreateRoute:
    def test_create_returns_201_with_sale(self, client, db_session, customer, product):
        response = _create(client, customer, product)

        assert response.status_code == 201
        sale = response.get_json()["sale"]
        assert sale["total_cents"] == 400
        assert sale["sale_number"] == 1000
        assert sale["items"][0]["quantity"] == 4
        assert sale["customer"]["name"] == "Asha Rao"
        assert sale["created_at"].endswith("Z")
        assert stock_of(db_session, product.id) == 6

    def test_invalid_body_is_400(self, client, db_session):
        response = client.post("/api/sales/", data="not json", content_type="text/plain")
        assert response.status_code == 400
        assert response.get_json()["error"] == "InvalidInput"

    def test_unknown_customer_is_404(self, client, db_session, product):
        response = client.post(
            "/api/sales/",
            json={"customer_id": 999, "items": [{"product_id": product.id, "quantity": 1}], "payment_method": "cash"},
        )
        assert response.status_code == 404
        assert response.get_json()["error"] == "NotFound"

    def test_insufficient_stock_is_409(self, client, db_session, customer, product):
        response = _create(client, customer, product, quantity=25)

        assert response.status_code == 409
        body = response.get_json()
        assert body["error"] == "InsufficientStock"
        assert body["details"]["shortfall"] == 15
        assert stock_of(db_session, product.id) == 10


class TestReadRoutes:
    def test_get_by_id(self, client, db_session, customer, product):
        sale_id = _create(client, customer, product).get_json()["sale"]["id"]

        response = client.get(f"/api/sales/{sale_id}")
        assert response.status_code == 200
        assert response.get_json()["sale"]["id"] == sale_id

    def test_get_missing_is_404(self, client, db_session):
        assert client.get("/api/sales/12345").status_code == 404

    def test_get_by_number(self, client, db_session, customer, product):
        created = _create(client, customer, product).get_json()["sale"]

        response = client.get(f"/api/sales/number/{created['sale_number']}")
        assert response.status_code == 200
        assert response.get_json()["sale"]["id"] == created["id"]

    def test_list_paginates(self, client, db_session, customer, product):
        for _ in range(5):
            _create(client, customer, product, quantity=1)

        response = client.get("/api/sales/?page=1&limit=2")
        assert response.status_code == 200
        body = response.get_json()
        assert body["total"] == 5
        assert body["total_pages"] == 3
        assert body["page"] == 1
        assert body["limit"] == 2
        assert len(body["sales"]) == 2

    def test_list_rejects_oversized_limit(self, client, db_session):
        assert client.get("/api/sales/?limit=1000").status_code == 400

    def test_list_rejects_bad_date(self, client, db_session):
        assert client.get("/api/sales/?start=yesterday").status_code == 400

    def test_list_date_filter_end_covers_whole_day(self, client, db_session, customer, product):
        sale_id = _create(client, customer, product, quantity=1).get_json()["sale"]["id"]
        set_created_at(db_session, sale_id, datetime(2026, 6, 15, 18, 45))

        body = client.get("/api/sales/?start=2026-06-15&end=2026-06-15").get_json()
        assert [sale["id"] for sale in body["sales"]] == [sale_id]


    def test_get_by_number_include_inactive(self, client, db_session, customer, product):
        created = _create(client, customer, product).get_json()["sale"]
        client.delete(f"/api/sales/{created['id']}")

        path = f"/api/sales/number/{created['sale_number']}"
        assert client.get(path).status_code == 404

        response = client.get(f"{path}?include_inactive=true")
        assert response.status_code == 200
        assert response.get_json()["sale"]["is_active"] is False


class TestAmountCeilings:
    def test_huge_quantity_is_400(self, client, db_session, customer, product):
        response = _create(client, customer, product, quantity=10**20)

        assert response.status_code == 400
        assert response.get_json()["error"] == "InvalidInput"
        assert stock_of(db_session, product.id) == 10

    def test_total_over_ceiling_is_400(self, client, db_session, customer, product):
        product_row = db_session.get(Product, product.id)
        product_row.stock_quantity = 1_000_000
        db_session.commit()

        response = _create(
            client, customer, product,
            items=[{"product_id": product.id, "quantity": 100_000, "unit_price_cents": 999_999_999}],
        )

        assert response.status_code == 400
        assert response.get_json()["error"] == "InvalidInput"
        assert stock_of(db_session, product.id) == 1_000_000


class TestUpdateAndDeleteRoutes:
    def test_patch_status(self, client, db_session, customer, product):
        sale_id = _create(client, customer, product).get_json()["sale"]["id"]

        response = client.patch(f"/api/sales/{sale_id}", json={"payment_status": "completed"})
        assert response.status_code == 200
        assert response.get_json()["sale"]["payment_status"] == "completed"

    def test_patch_illegal_transition_is_400(self, client, db_session, customer, product):
        sale_id = _create(client, customer, product).get_json()["sale"]["id"]

        response = client.patch(f"/api/sales/{sale_id}", json={"payment_status": "refunded"})
        assert response.status_code == 400

    def test_patch_cannot_touch_items(self, client, db_session, customer, product):
        sale_id = _create(client, customer, product).get_json()["sale"]["id"]

        response = client.patch(f"/api/sales/{sale_id}", json={"items": []})
        assert response.status_code == 400

    def test_delete_restores_stock(self, client, db_session, customer, product):
        sale_id = _create(client, customer, product).get_json()["sale"]["id"]
        assert stock_of(db_session, product.id) == 6

        response = client.delete(f"/api/sales/{sale_id}")
        assert response.status_code == 200
        assert response.get_json() == {"deleted": True, "id": sale_id}
        assert stock_of(db_session, product.id) == 10

        assert client.get(f"/api/sales/{sale_id}").status_code == 404
        assert client.get(f"/api/sales/{sale_id}?include_inactive=true").status_code == 200
        assert client.delete(f"/api/sales/{sale_id}").status_code == 404


class TestStatsRoutes:
    def test_stats(self, client, db_session, customer, product):
        _create(client, customer, product, quantity=1)
        _create(client, customer, product, quantity=2)

        body = client.get("/api/sales/stats").get_json()
        assert body == {"total_sales": 2, "total_revenue_cents": 300, "average_sale_cents": 150}

    def test_stats_inverted_range_is_400(self, client, db_session):
        assert client.get("/api/sales/stats?start=2026-05-01&end=2026-04-01").status_code == 400

    def test_summary_defaults_to_current_month(self, client, db_session, customer, product):
        _create(client, customer, product, quantity=3)

        body = client.get("/api/sales/stats/summary").get_json()
        assert body["total_sales"] == 1
        assert body["total_items_sold"] == 3

    def test_daily(self, client, db_session, customer, product):
        _create(client, customer, product, quantity=2)

        body = client.get("/api/sales/daily?days=7").get_json()
        assert body["days"] == 7
        assert len(body["daily"]) == 1
        assert body["daily"][0]["revenue_cents"] == 200

    def test_daily_rejects_zero_days(self, client, db_session):
        assert client.get("/api/sales/daily?days=0").status_code == 400


class TestInventoryAndSystemRoutes:
    def test_product_stock(self, client, db_session, product):
        response = client.get(f"/api/inventory/{product.id}/stock")
        assert response.status_code == 200
        assert response.get_json() == {"product_id": product.id, "stock_quantity": 10}

    def test_product_stock_missing(self, client, db_session):
        assert client.get("/api/inventory/999/stock").status_code == 404

    def test_low_stock(self, client, db_session, product, second_product):
        body = client.get("/api/inventory/low-stock").get_json()
        assert body["count"] == 1
        assert body["products"][0]["sku"] == "SB-2CH"

    def test_health(self, client, db_session):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["details"]["active_sales"] == 0

    def test_cors_allows_configured_origin(self, client, db_session):
        response = client.get("/health", headers={"Origin": "http://localhost:5173"})
        assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

        other = client.get("/health", headers={"Origin": "http://evil.example"})
        assert "Access-Control-Allow-Origin" not in other.headers
