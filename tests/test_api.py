import pytest

import app as app_module
from app import create_app
from database import SEED_ITEMS
from exceptions import StorageError


def _create(client, **payload):
    body = {"name": "Milk", "category": "Coffee", "min_level": 0, "is_core": True, "unit": "cartons"}
    body.update(payload)
    response = client.post("/api/items", json=body)
    assert response.status_code == 200
    return response.get_json()["id"]


def test_items_crud(client):
    milk = _create(client)
    _create(client, name="Bread", category="Kitchen", is_core=False, unit="loaves")

    items = client.get("/api/items").get_json()
    assert [i["name"] for i in items] == ["Milk", "Bread"]
    assert items[0]["is_core"] is True

    response = client.delete(f"/api/items/{milk}")
    assert response.get_json() == {"success": True}
    assert [i["name"] for i in client.get("/api/items").get_json()] == ["Bread"]

    # deleting again still succeeds
    assert client.delete(f"/api/items/{milk}").get_json() == {"success": True}


def test_checklist_round_trip(client):
    milk = _create(client)

    response = client.post("/api/checks", json={
        "staff_name": "Alex",
        "items": [{"item_id": milk, "status": "critical", "is_urgent": True, "quantity_needed": 0}],
    })
    assert response.get_json() == {"success": True}

    checks = client.get("/api/checks/today").get_json()
    assert len(checks) == 1
    assert checks[0]["item_id"] == milk
    assert checks[0]["status"] == "critical"
    assert checks[0]["is_urgent"] is True
    assert checks[0]["staff_name"] == "Alex"
    assert checks[0]["name"] == "Milk"
    assert checks[0]["category"] == "Coffee"


def test_purchases_and_weekly_stats(client):
    milk = _create(client)

    response = client.post("/api/purchases", json={
        "item_id": milk, "quantity": 5, "cost": 12.50, "store": "Costco",
    })
    assert response.get_json() == {"success": True}

    purchases = client.get("/api/purchases").get_json()
    assert purchases[0]["name"] == "Milk"
    assert purchases[0]["cost"] == 12.5

    stats = client.get("/api/stats/weekly").get_json()
    assert stats == {
        "items": [{"name": "Milk", "total_quantity": 5, "total_cost": 12.5}],
        "stores": [{"store": "Costco", "total_cost": 12.5}],
    }


def test_reports_endpoints(client):
    response = client.post("/api/reports", json={"staff_name": "Alex", "items_needed": ["Milk"]})
    report_id = response.get_json()["id"]

    reports = client.get("/api/reports").get_json()
    assert [r["id"] for r in reports] == [report_id]
    assert "items_needed" not in reports[0]


def test_store_suggestions_and_health(client):
    assert "Costco" in client.get("/api/stores").get_json()
    assert client.get("/api/health").get_json() == {"status": "ok", "backend": "sqlite"}


def test_validation_error_response(client):
    response = client.post("/api/items", json={"name": "", "category": "Coffee"})

    assert response.status_code == 400
    body = response.get_json()
    assert body["error"] == "ValidationError"
    assert body["details"] == {"field": "name"}


def test_non_object_body_is_rejected(client):
    response = client.post("/api/checks", data="nope", content_type="text/plain")

    assert response.status_code == 400


def test_unknown_item_response(client):
    response = client.post("/api/purchases", json={
        "item_id": 404, "quantity": 1, "cost": "1.00", "store": "Aldi",
    })

    assert response.status_code == 404
    assert response.get_json()["error"] == "ReferenceNotFoundError"


def test_storage_error_response(client, app, monkeypatch):
    store = app.extensions["inventory_store"]

    def broken():
        raise StorageError("disk full", code="query_failed")

    monkeypatch.setattr(store, "list_items", broken)

    response = client.get("/api/items")
    assert response.status_code == 503
    assert response.get_json() == {
        "error": "StorageError",
        "message": "disk full",
        "code": "query_failed",
    }


def test_unexpected_error_returns_json_500(client, app, monkeypatch):
    store = app.extensions["inventory_store"]

    def broken():
        raise RuntimeError("boom")

    monkeypatch.setattr(store, "weekly_stats", broken)

    response = client.get("/api/stats/weekly")
    assert response.status_code == 500
    assert response.get_json()["error"] == "InternalServerError"


def test_create_app_seeds_catalog(tmp_path):
    app = create_app({
        "TESTING": True,
        "DATABASE_URL": None,
        "SQLITE_PATH": str(tmp_path / "seeded.db"),
        "SEED_CATALOG": True,
    })
    try:
        items = app.test_client().get("/api/items").get_json()
    finally:
        app.extensions["inventory_store"].close()

    assert len(items) == len(SEED_ITEMS)
    assert items[0]["category"] == "Bakery Items"


@pytest.mark.parametrize("path", ["/api/items", "/api/checks/today", "/api/purchases"])
def test_empty_lists(client, path):
    assert client.get(path).get_json() == []


@pytest.mark.parametrize("testing, registered", [(True, 0), (False, 1)])
def test_shutdown_hook_only_for_serving_apps(tmp_path, monkeypatch, testing, registered):
    hooks = []
    monkeypatch.setattr(app_module.atexit, "register", hooks.append)

    app = create_app({
        "TESTING": testing,
        "DATABASE_URL": None,
        "SQLITE_PATH": str(tmp_path / "hooks.db"),
        "SEED_CATALOG": False,
    })
    app.extensions["inventory_store"].close()

    assert len(hooks) == registered
