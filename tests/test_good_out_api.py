from services.event_publisher import (
    GOOD_OUT_REQUEST_APPROVED,
    GOOD_OUT_REQUEST_CREATED,
    GOOD_OUT_REQUEST_REJECTED,
)


def _request(client, headers, item_id, quantity, usage="Pasang ONT pelanggan", location="Cluster Melati"):
    return client.post(
        "/good-out-requests",
        json={"item_id": item_id, "quantity": quantity, "usage_description": usage, "customer_location": location},
        headers=headers,
    )


def test_lifecycle_over_http(client, auth_headers, make_item, publisher):
    item = make_item(quantity=5)
    teknisi = auth_headers("teknisi")
    manager = auth_headers("manager")

    created = _request(client, teknisi, item.id, 3)
    assert created.status_code == 201, created.text
    request = created.json()["data"]
    assert request["status"] == "pending"
    assert request["notes"] == "Location: Cluster Melati"

    approved = client.put(f"/good-out-requests/{request['id']}/approve", headers=manager)
    assert approved.status_code == 200, approved.text
    assert approved.json()["data"]["status"] == "approved"
    assert approved.json()["data"]["item_rel"]["quantity_in_stock"] == 2

    again = client.put(f"/good-out-requests/{request['id']}/approve", headers=manager)
    assert again.status_code == 400
    assert again.json()["success"] is False

    movements = client.get(f"/inventory/{item.id}/movements", headers=manager).json()["data"]
    assert movements["total"] == 2
    assert movements["movements"][0]["reference_number"] == f"REQ-{request['id']}"

    second = _request(client, teknisi, item.id, 2).json()["data"]
    client.post(
        f"/inventory/{item.id}/adjust-stock",
        json={"movement_type": "out", "quantity": 1, "reason": "Rusak"},
        headers=manager,
    )
    short = client.put(f"/good-out-requests/{second['id']}/approve", headers=manager)
    assert short.status_code == 400
    assert short.json()["data"] == {"available": 1, "requested": 2}
    detail = client.get(f"/good-out-requests/{second['id']}", headers=teknisi).json()["data"]
    assert detail["status"] == "pending"

    assert publisher.names().count(GOOD_OUT_REQUEST_CREATED) == 2
    assert publisher.names().count(GOOD_OUT_REQUEST_APPROVED) == 1


def test_reject_and_cancel_over_http(client, auth_headers, make_item, publisher):
    item = make_item(quantity=5)
    teknisi = auth_headers("teknisi")

    first = _request(client, teknisi, item.id, 1).json()["data"]
    rejected = client.put(
        f"/good-out-requests/{first['id']}/reject",
        json={"rejection_reason": "out of budget"},
        headers=auth_headers("admin"),
    )
    assert rejected.status_code == 200
    assert rejected.json()["data"]["rejection_reason"] == "out of budget"

    second = _request(client, teknisi, item.id, 1).json()["data"]
    not_mine = client.delete(f"/good-out-requests/{second['id']}", headers=auth_headers("teknisi2"))
    assert not_mine.status_code == 403

    cancelled = client.delete(f"/good-out-requests/{second['id']}", headers=teknisi)
    assert cancelled.status_code == 200
    assert cancelled.json()["data"]["status"] == "rejected"
    assert cancelled.json()["data"]["rejection_reason"] == "Cancelled by requester"

    stock = client.get(f"/inventory/{item.id}", headers=teknisi).json()["data"]["quantity_in_stock"]
    assert stock == 5
    assert publisher.names().count(GOOD_OUT_REQUEST_REJECTED) == 2


def test_listing_and_pending_count(client, auth_headers, make_item):
    item = make_item(quantity=10)
    _request(client, auth_headers("teknisi"), item.id, 1)
    _request(client, auth_headers("teknisi"), item.id, 2)
    _request(client, auth_headers("teknisi2"), item.id, 1)

    own = client.get("/good-out-requests", headers=auth_headers("teknisi2")).json()
    assert own["total"] == 1

    everything = client.get("/good-out-requests", params={"status": "pending"}, headers=auth_headers("manager")).json()
    assert everything["total"] == 3

    count = client.get("/good-out-requests/pending/count", headers=auth_headers("admin"))
    assert count.json()["data"] == {"pending_count": 3}
    assert client.get("/good-out-requests/pending/count", headers=auth_headers("teknisi")).status_code == 403


def test_create_errors_over_http(client, auth_headers, make_item):
    item = make_item(quantity=2)
    teknisi = auth_headers("teknisi")

    assert _request(client, teknisi, item.id, 0).status_code == 400
    assert _request(client, teknisi, item.id, 5).status_code == 400
    assert _request(client, teknisi, 9999, 1).status_code == 404
    assert _request(client, auth_headers("manager"), item.id, 1).status_code == 403
    assert client.get("/good-out-requests/9999", headers=teknisi).status_code == 404
