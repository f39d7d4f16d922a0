import csv
import io
from datetime import datetime, timedelta

from tracking_pkg.activity_logger import is_recent_duplicate, record_timeline_event
from tracking_pkg.models import db, Order


def _timeline_codes(client, order_id, auth_header):
    body = client.get(f"/api/orders/{order_id}", headers=auth_header("admin")).get_json()
    return [entry["code"] for entry in body["statusTimeline"]]


def test_customers_cannot_use_admin_routes(client, orders, auth_header):
    response = client.put(f"/api/admin/orders/{orders['own']}/stage",
                          json={"stage": "shipped"}, headers=auth_header("alice"))
    assert response.status_code == 403


def test_stage_update_stamps_and_appends(client, orders, auth_header):
    response = client.put(f"/api/admin/orders/{orders['own']}/stage",
                          json={"stage": "Shipped"}, headers=auth_header("admin"))
    assert response.status_code == 200
    body = response.get_json()
    assert body["stage"] == "shipped"
    assert body["shippedAt"]
    assert body["statusTimeline"][-1] == {
        "code": "shipped",
        "note": "Stage updated by admin",
        "at": body["statusTimeline"][-1]["at"],
    }


def test_packing_alias_is_normalized(client, orders, auth_header):
    response = client.put(f"/api/admin/orders/{orders['guest']}/stage",
                          json={"stage": "packing"}, headers=auth_header("admin"))
    assert response.get_json()["stage"] == "packaging"


def test_unchanged_stage_is_noop(client, orders, auth_header):
    before = _timeline_codes(client, orders["own"], auth_header)
    response = client.put(f"/api/admin/orders/{orders['own']}/stage",
                          json={"stage": "packaging"}, headers=auth_header("admin"))
    assert response.status_code == 200
    assert _timeline_codes(client, orders["own"], auth_header) == before


def test_delivered_stage_completes_order(client, orders, auth_header):
    response = client.put(f"/api/admin/orders/{orders['own']}/stage",
                          json={"stage": "delivered"}, headers=auth_header("admin"))
    body = response.get_json()
    assert body["status"] == "completed"
    assert body["deliveredAt"]


def test_stage_matching_recent_event_is_not_logged_twice(client, orders, auth_header):
    client.post(f"/api/admin/orders/{orders['own']}/events",
                json={"type": "shipped", "text": "Left the warehouse"}, headers=auth_header("admin"))
    response = client.put(f"/api/admin/orders/{orders['own']}/stage",
                          json={"stage": "shipped"}, headers=auth_header("admin"))
    assert response.get_json()["stage"] == "shipped"
    assert _timeline_codes(client, orders["own"], auth_header).count("shipped") == 1


def test_alternating_status_is_always_logged(client, orders, auth_header):
    url = f"/api/admin/orders/{orders['own']}/status"
    for status in ("cancelled", "pending", "cancelled"):
        assert client.put(url, json={"status": status}, headers=auth_header("admin")).status_code == 200
    assert _timeline_codes(client, orders["own"], auth_header)[-3:] == ["cancelled", "pending", "cancelled"]


def test_repeat_status_within_window_not_appended(app, orders):
    order = db.session.get(Order, orders["own"])
    now = datetime.utcnow()
    record_timeline_event(order, "shipped", "Stage updated by admin", "admin", at=now)
    db.session.commit()

    assert is_recent_duplicate(order, "shipped", now=now + timedelta(seconds=10))
    assert not is_recent_duplicate(order, "shipped", now=now + timedelta(seconds=31))
    assert not is_recent_duplicate(order, "delivered", now=now + timedelta(seconds=10))

    skipped = record_timeline_event(order, "shipped", "again", "admin",
                                    at=now + timedelta(seconds=5), dedupe=True)
    assert skipped is None
    assert [h.code for h in order.status_history].count("shipped") == 1


def test_status_update_validation(client, orders, auth_header):
    url = f"/api/admin/orders/{orders['own']}/status"
    assert client.put(url, json={"status": "lost"}, headers=auth_header("admin")).status_code == 400
    assert client.put("/api/admin/orders/999/status", json={"status": "pending"},
                      headers=auth_header("admin")).status_code == 404


def test_status_accepts_spaced_in_progress(client, orders, auth_header):
    response = client.put(f"/api/admin/orders/{orders['guest']}/status",
                          json={"status": "In Progress"}, headers=auth_header("admin"))
    assert response.status_code == 200
    assert response.get_json()["status"] == "in_progress"


def test_completed_status_stamps_delivered_at(client, orders, auth_header):
    response = client.put(f"/api/admin/orders/{orders['guest']}/status",
                          json={"status": "completed"}, headers=auth_header("admin"))
    assert response.get_json()["deliveredAt"]


def test_admin_list_filters(client, orders, auth_header):
    response = client.get("/api/admin/orders/?q=guest", headers=auth_header("admin"))
    assert [o["id"] for o in response.get_json()["orders"]] == [orders["guest"]]

    response = client.get("/api/admin/orders/?stage=packaging", headers=auth_header("admin"))
    assert [o["id"] for o in response.get_json()["orders"]] == [orders["own"]]

    response = client.get("/api/admin/orders/?status=In%20Progress", headers=auth_header("admin"))
    assert [o["id"] for o in response.get_json()["orders"]] == [orders["own"]]

    tomorrow = (datetime.utcnow() + timedelta(days=1)).date().isoformat()
    response = client.get(f"/api/admin/orders/?from={tomorrow}", headers=auth_header("admin"))
    assert response.get_json()["meta"]["total"] == 0

    response = client.get("/api/admin/orders/?from=not-a-date", headers=auth_header("admin"))
    assert response.get_json()["meta"]["total"] == 2


def test_admin_list_newest_first(client, orders, auth_header):
    response = client.get("/api/admin/orders/", headers=auth_header("admin"))
    assert [o["id"] for o in response.get_json()["orders"]] == [orders["guest"], orders["own"]]


def test_add_event_shows_in_tracking(client, orders, auth_header):
    response = client.post(
        f"/api/admin/orders/{orders['own']}/events",
        json={"type": "Note", "text": "<b>Handed</b> to courier", "at": "2030-01-01T10:00:00Z"},
        headers=auth_header("admin"),
    )
    assert response.status_code == 201

    tracking = client.get(f"/api/orders/{orders['own']}/tracking", headers=auth_header("alice")).get_json()
    newest = tracking["tracking"]["activities"][0]
    assert newest["code"] == "note"
    assert newest["text"] == "Handed to courier"
    assert newest["at"].startswith("2030-01-01T10:00:00")


def test_add_event_requires_type(client, orders, auth_header):
    response = client.post(f"/api/admin/orders/{orders['own']}/events",
                           json={"text": "no type"}, headers=auth_header("admin"))
    assert response.status_code == 400


def test_export_csv_uses_list_filters(client, orders, auth_header):
    response = client.get("/api/admin/orders/export.csv?stage=packaging", headers=auth_header("admin"))
    assert response.status_code == 200
    assert "text/csv" in response.headers["Content-Type"]
    assert "attachment; filename=" in response.headers["Content-Disposition"]

    rows = list(csv.reader(io.StringIO(response.get_data(as_text=True))))
    assert rows[0][:2] == ["OrderID", "Code"]
    assert len(rows) == 2
    assert rows[1][0] == str(orders["own"])
    assert rows[1][1] == "ORD-1001"
    assert rows[1][4] == "Alice"
    assert rows[1][6:8] == ["in_progress", "packaging"]


def test_export_csv_is_staff_only(client, orders, auth_header):
    response = client.get("/api/admin/orders/export.csv", headers=auth_header("alice"))
    assert response.status_code == 403
