def test_category_crud(client, auth_headers):
    admin = auth_headers("admin")

    created = client.post("/categories", json={"name": "Kabel", "code": "CBL"}, headers=admin)
    assert created.status_code == 201
    category_id = created.json()["data"]["id"]

    duplicate = client.post("/categories", json={"name": "Kabel Lain", "code": "CBL"}, headers=admin)
    assert duplicate.status_code == 409

    updated = client.put(f"/categories/{category_id}", json={"description": "Drop cable, patch cord"}, headers=admin)
    assert updated.status_code == 200
    assert updated.json()["data"]["description"] == "Drop cable, patch cord"

    listing = client.get("/categories", params={"search_key": "kab"}, headers=auth_headers("teknisi")).json()
    assert listing["total"] == 1

    assert client.post("/categories", json={"name": "Tools", "code": "TLS"}, headers=auth_headers("teknisi")).status_code == 403

    assert client.delete(f"/categories/{category_id}", headers=admin).status_code == 200
    assert client.get(f"/categories/{category_id}", headers=admin).status_code == 404


def test_category_in_use_cannot_be_deleted(client, auth_headers, make_item, category):
    make_item()
    response = client.delete(f"/categories/{category}", headers=auth_headers("admin"))
    assert response.status_code == 409
    assert response.json()["success"] is False


def test_supplier_crud_and_in_use_guard(client, auth_headers, make_item, supplier):
    admin = auth_headers("manager")

    created = client.post("/suppliers", json={"name": "CV Fiber Jaya", "code": "FBJ", "city": "Bandung"}, headers=admin)
    assert created.status_code == 201
    supplier_id = created.json()["data"]["id"]

    assert client.post("/suppliers", json={"name": "Other", "code": "FBJ"}, headers=admin).status_code == 409
    assert client.put(f"/suppliers/{supplier_id}", json={"code": "KBN"}, headers=admin).status_code == 409

    make_item(supplier_id=supplier)
    assert client.delete(f"/suppliers/{supplier}", headers=admin).status_code == 409
    assert client.delete(f"/suppliers/{supplier_id}", headers=admin).status_code == 200
