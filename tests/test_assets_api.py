def _create_asset(client, serial, name, department=None, status=None):
    body = {"serial_number": serial, "name": name, "department": department}
    if status:
        body["status"] = status
    r = client.post("/assets", json=body)
    assert r.status_code == 201, r.text
    return r.json()


def _borrow(client, serial):
    r = client.post(
        "/borrow",
        json={
            "asset_id": serial,
            "borrower_name": "Ana Reyes",
            "borrower_department": "Library",
            "borrower_contact": "(02) 8123 4567",
            "borrower_email": "ana.reyes@example.edu",
            "purpose": "Orientation",
            "requested_date": "2025-02-01",
            "expected_return_date": "2025-02-03",
        },
    )
    assert r.status_code == 201, r.text
    return r.json()


def test_assets_list_filter_sort_paging(client):
    _create_asset(client, "ASSET-2024-001", "Dell Optiplex 3070 Desktop", department="School of Technology")
    _create_asset(client, "ASSET-2024-002", "Epson Projector EB-980W", department="Computer Lab room 25", status="maintenance")
    _create_asset(client, "ASSET-2024-003", "HP Laptop ProBook 450 G8", department="School of Education")

    r = client.get("/assets?limit=2&offset=0&sort=serial_number&order=asc")
    assert r.status_code == 200
    data = r.json()
    assert [a["serial_number"] for a in data] == ["ASSET-2024-001", "ASSET-2024-002"]

    r = client.get("/assets?status=maintenance")
    assert [a["name"] for a in r.json()] == ["Epson Projector EB-980W"]

    r = client.get("/assets?q=laptop")
    assert [a["serial_number"] for a in r.json()] == ["ASSET-2024-003"]

    r = client.get("/assets?department=School%20of%20Technology")
    assert len(r.json()) == 1

    r = client.get("/assets?status=&department=&q=")
    assert r.status_code == 200
    assert len(r.json()) == 3

    meta = client.get("/assets/meta?limit=2")
    assert meta.json() == {"total": 3, "limit": 2, "offset": 0, "total_pages": 2}


def test_duplicate_serial_is_409(client):
    _create_asset(client, "AST-1", "Canon Camera EOS 80D")

    r = client.post("/assets", json={"serial_number": "AST-1", "name": "Another"})
    assert r.status_code == 409


def test_serial_number_cannot_be_edited(client):
    asset = _create_asset(client, "AST-1", "Canon Camera EOS 80D")

    r = client.patch(f"/assets/{asset['id']}", json={"serial_number": "AST-9"})
    assert r.status_code == 400


def test_manual_status_cannot_be_borrowed(client):
    asset = _create_asset(client, "AST-1", "Canon Camera EOS 80D")

    r = client.patch(f"/assets/{asset['id']}", json={"status": "borrowed"})
    assert r.status_code == 400


def test_borrowed_asset_status_is_locked(client):
    asset = _create_asset(client, "AST-1", "Canon Camera EOS 80D")
    created = _borrow(client, "AST-1")
    client.post(f"/borrow/{created['id']}/approve")

    r = client.patch(f"/assets/{asset['id']}", json={"status": "maintenance"})
    assert r.status_code == 409
    assert r.json()["reason"] == "asset_borrowed"

    # other fields stay editable
    r = client.patch(f"/assets/{asset['id']}", json={"name": "Canon EOS 80D Kit"})
    assert r.status_code == 200
    assert r.json()["name"] == "Canon EOS 80D Kit"
    assert r.json()["status"] == "borrowed"


def test_referenced_asset_cannot_be_deleted(client):
    asset = _create_asset(client, "AST-1", "Yamaha Audio System")
    _borrow(client, "AST-1")

    r = client.delete(f"/assets/{asset['id']}")
    assert r.status_code == 409

    other = _create_asset(client, "AST-2", "Whiteboard Interactive 75")
    assert client.delete(f"/assets/{other['id']}").status_code == 204
    assert client.get(f"/assets/{other['id']}").status_code == 404


def test_asset_stats(client):
    _create_asset(client, "AST-1", "A")
    _create_asset(client, "AST-2", "B", status="maintenance")
    _create_asset(client, "AST-3", "C", status="inactive")
    created = _borrow(client, "AST-1")
    client.post(f"/borrow/{created['id']}/approve")

    r = client.get("/assets/stats")
    assert r.json() == {"total": 3, "active": 0, "borrowed": 1, "maintenance": 1, "inactive": 1}
