from __future__ import annotations

from app.core.extensions import db
from app.core.models import ConcessionPayment, Grave, GraveStatus, LedgerPayment

API = "/api/cemeteries"


def _status(grave_id: str) -> str:
    db.session.expire_all()
    return GraveStatus(db.session.get(Grave, grave_id).status).value


def test_anonymous_requests_get_json_401(client):
    response = client.get(f"{API}/graves/occupancy")
    assert response.status_code == 401
    body = response.get_json()
    assert body["success"] is False
    assert body["error"]["kind"] == "unauthorized"


def test_login_rejects_bad_credentials(client):
    response = client.post("/auth/login", json={"email": "admin@parohie.local", "password": "wrong"})
    assert response.status_code == 401
    assert response.get_json()["error"]["kind"] == "unauthorized"


def test_occupancy_endpoint_returns_views_and_statistics(client, login_viewer):
    assert login_viewer().status_code == 200
    response = client.get(f"{API}/graves/occupancy?search=popescu")
    assert response.status_code == 200
    data = response.get_json()["data"]
    assert [grave["code"] for grave in data["graves"]] == ["A-1"]
    grave = data["graves"][0]
    assert grave["status"] == "occupied"
    assert grave["width"] == "1.20"
    assert grave["concession"]["holderName"] == "Maria Popescu"
    assert grave["concession"]["annualFee"] == "150.00"
    assert grave["burials"][0]["burialDate"] == "2021-05-05"
    assert data["statistics"]["total"] == 1
    assert data["statistics"]["withBurials"] == 1


def test_occupancy_endpoint_rejects_malformed_filters(client, login_viewer):
    login_viewer()
    response = client.get(f"{API}/graves/occupancy?cemeteryId=abc&status=haunted")
    assert response.status_code == 400
    error = response.get_json()["error"]
    assert error["kind"] == "validation_error"
    assert {field["field"] for field in error["fields"]} == {"cemeteryId", "status"}


def test_burial_lifecycle_over_http(app, client, ids, login_admin):
    login_admin()
    create = client.post(
        f"{API}/burials",
        json={
            "graveId": ids["grave_A-3"],
            "cemeteryId": ids["cemetery_id"],
            "deceasedClientId": ids["deceased_id"],
            "deceasedName": "Vasile Pop",
            "deceasedDeathDate": "2024-12-30",
            "burialDate": "2025-01-02",
        },
    )
    assert create.status_code == 201
    burial = create.get_json()["data"]
    assert _status(ids["grave_A-3"]) == "occupied"

    detail = client.get(f"{API}/burials/{burial['id']}")
    assert detail.get_json()["data"]["deceasedName"] == "Vasile Pop"

    update = client.put(f"{API}/burials/{burial['id']}", json={"burialCertificateNumber": "AD-7"})
    assert update.status_code == 200
    assert update.get_json()["data"]["burialCertificateNumber"] == "AD-7"

    delete = client.delete(f"{API}/burials/{burial['id']}")
    assert delete.status_code == 200
    assert delete.get_json()["data"]["id"] == burial["id"]
    assert _status(ids["grave_A-3"]) == "free"

    again = client.delete(f"{API}/burials/{burial['id']}")
    assert again.status_code == 404
    assert again.get_json()["error"]["kind"] == "not_found"


def test_concession_lifecycle_and_payments_over_http(app, client, ids, login_admin):
    login_admin()
    create = client.post(
        f"{API}/concessions",
        json={
            "graveId": ids["grave_A-3"],
            "cemeteryId": ids["cemetery_id"],
            "holderClientId": ids["second_holder_id"],
            "contractNumber": "CC-2025-010",
            "contractDate": "2025-01-01",
            "startDate": "2025-01-01",
            "expiryDate": "2035-01-01",
            "durationYears": 10,
            "annualFee": "95.50",
            "currency": "eur",
        },
    )
    assert create.status_code == 201
    concession = create.get_json()["data"]
    assert concession["currency"] == "EUR"
    assert concession["annualFee"] == "95.50"
    assert _status(ids["grave_A-3"]) == "reserved"

    payment = client.post(
        f"{API}/concessions/{concession['id']}/payments",
        json={"paymentDate": "2025-02-01", "amount": "95.50", "periodStart": "2025-01-01", "periodEnd": "2025-12-31"},
    )
    assert payment.status_code == 201
    payment_data = payment.get_json()["data"]
    assert payment_data["currency"] == "EUR"
    assert payment_data["ledger"]["requested"] is True
    assert payment_data["ledger"]["posted"] is True
    assert payment_data["ledger"]["paymentNumber"].startswith("INC-")

    rejected = client.post(
        f"{API}/concessions/{concession['id']}/payments",
        json={"paymentDate": "2035-02-01", "amount": "95.50", "periodStart": "2024-12-01", "periodEnd": "2035-12-31"},
    )
    assert rejected.status_code == 400
    assert [f["field"] for f in rejected.get_json()["error"]["fields"]] == ["periodStart", "periodEnd"]

    listing = client.get(f"{API}/concessions/{concession['id']}/payments")
    assert [p["id"] for p in listing.get_json()["data"]] == [payment_data["id"]]

    delete = client.delete(f"{API}/concessions/{concession['id']}")
    assert delete.status_code == 200
    assert delete.get_json()["data"]["contractNumber"] == "CC-2025-010"
    assert _status(ids["grave_A-3"]) == "free"
    assert db.session.query(ConcessionPayment).count() == 0
    assert db.session.query(LedgerPayment).count() == 1


def test_payment_without_ledger_entry(client, ids, login_operator):
    login_operator()
    response = client.post(
        f"{API}/concessions/{ids['occupied_concession_id']}/payments",
        json={
            "paymentDate": "2024-01-10",
            "amount": 150,
            "periodStart": "2024-01-01",
            "periodEnd": "2024-12-31",
            "createAccountingPayment": False,
        },
    )
    assert response.status_code == 201
    ledger = response.get_json()["data"]["ledger"]
    assert ledger == {"requested": False, "posted": False, "paymentNumber": None, "error": None}
    assert db.session.query(LedgerPayment).count() == 0


def test_conflicts_are_reported_as_409(client, ids, login_admin):
    login_admin()
    response = client.post(
        f"{API}/concessions",
        json={
            "graveId": ids["grave_A-2"],
            "cemeteryId": ids["cemetery_id"],
            "holderClientId": ids["holder_id"],
            "contractNumber": "CC-2025-011",
            "contractDate": "2025-01-01",
            "startDate": "2025-01-01",
            "expiryDate": "2030-01-01",
            "durationYears": 5,
            "annualFee": "50",
        },
    )
    assert response.status_code == 409
    assert response.get_json()["error"]["kind"] == "conflict"

    blocked = client.delete(f"{API}/graves/{ids['grave_A-1']}")
    assert blocked.status_code == 409


def test_grave_crud_and_maintenance_over_http(client, ids, login_admin):
    login_admin()
    create = client.post(f"{API}/graves", json={"rowId": ids["row_id"], "code": "A-9", "length": "2.50"})
    assert create.status_code == 201
    grave = create.get_json()["data"]
    assert grave["status"] == "free"
    assert grave["length"] == "2.50"

    forbidden_status = client.put(f"{API}/graves/{grave['id']}", json={"status": "occupied"})
    assert forbidden_status.status_code == 400

    update = client.put(f"{API}/graves/{grave['id']}", json={"notes": "Langa gard", "positionX": 9})
    assert update.get_json()["data"]["notes"] == "Langa gard"

    maintenance = client.post(f"{API}/graves/{grave['id']}/maintenance", json={"enabled": True})
    assert maintenance.get_json()["data"]["status"] == "maintenance"
    restored = client.post(f"{API}/graves/{grave['id']}/maintenance", json={"enabled": False})
    assert restored.get_json()["data"]["status"] == "free"

    delete = client.delete(f"{API}/graves/{grave['id']}")
    assert delete.status_code == 200
    assert client.get(f"{API}/graves/{grave['id']}").status_code == 404


def test_structure_endpoints(client, ids, login_admin):
    login_admin()
    cemetery = client.post(f"{API}/", json={"name": "Cimitirul Nou", "code": "CN"})
    assert cemetery.status_code == 201
    cemetery_id = cemetery.get_json()["data"]["id"]
    assert client.post(f"{API}/", json={"name": "Duplicat", "code": "CN"}).status_code == 409

    parcel = client.post(f"{API}/{cemetery_id}/parcels", json={"name": "Parcela N", "code": "N"})
    parcel_id = parcel.get_json()["data"]["id"]
    row = client.post(f"{API}/parcels/{parcel_id}/rows", json={"name": "Rand N1", "code": "N1"})
    row_id = row.get_json()["data"]["id"]
    assert row.get_json()["data"]["cemeteryId"] == cemetery_id

    names = [c["name"] for c in client.get(f"{API}/").get_json()["data"]]
    assert names == ["Cimitirul Central", "Cimitirul Nou"]

    assert client.delete(f"{API}/{cemetery_id}").status_code == 409
    assert client.delete(f"{API}/rows/{row_id}").status_code == 200
    assert client.delete(f"{API}/parcels/{parcel_id}").status_code == 200
    assert client.delete(f"{API}/{cemetery_id}").status_code == 200


def test_operator_cannot_delete_and_viewer_cannot_write(client, ids, login_operator, login_viewer):
    login_operator()
    response = client.delete(f"{API}/concessions/{ids['reserved_concession_id']}")
    assert response.status_code == 403
    assert response.get_json()["error"]["kind"] == "forbidden"

    client.post("/auth/logout")
    login_viewer()
    response = client.post(f"{API}/graves/{ids['grave_A-3']}/maintenance", json={"enabled": True})
    assert response.status_code == 403
    assert _status(ids["grave_A-3"]) == "free"


def test_tenant_isolation_on_grave_detail(client, login_admin, second_parish_grave):
    login_admin()
    response = client.get(f"{API}/graves/{second_parish_grave['grave_id']}")
    assert response.status_code == 404


def test_malformed_path_identifier_is_a_validation_error(client, login_admin):
    login_admin()
    response = client.delete(f"{API}/burials/12345")
    assert response.status_code == 400
    assert response.get_json()["error"]["fields"][0]["field"] == "id"


def test_structure_listing_detail_and_update(client, ids, login_admin):
    login_admin()
    detail = client.get(f"{API}/{ids['cemetery_id']}")
    assert detail.get_json()["data"]["code"] == "CC"

    renamed = client.put(f"{API}/{ids['cemetery_id']}", json={"name": "Cimitirul Vechi", "address": "Str. Noua 2"})
    assert renamed.status_code == 200
    assert renamed.get_json()["data"]["name"] == "Cimitirul Vechi"

    other = client.post(f"{API}/", json={"name": "Cimitirul Nou", "code": "CN"}).get_json()["data"]
    clash = client.put(f"{API}/{other['id']}", json={"code": "CC"})
    assert clash.status_code == 409

    parcels = client.get(f"{API}/{ids['cemetery_id']}/parcels").get_json()["data"]
    assert [p["id"] for p in parcels] == [ids["parcel_id"]]
    assert client.get(f"{API}/{other['id']}/parcels").get_json()["data"] == []

    parcel = client.put(f"{API}/parcels/{ids['parcel_id']}", json={"name": "Parcela Veche"})
    assert parcel.get_json()["data"]["name"] == "Parcela Veche"
    assert client.get(f"{API}/parcels/{ids['parcel_id']}").get_json()["data"]["code"] == "A"

    rows = client.get(f"{API}/parcels/{ids['parcel_id']}/rows").get_json()["data"]
    assert [r["id"] for r in rows] == [ids["row_id"]]
    row = client.put(f"{API}/rows/{ids['row_id']}", json={"code": "R2"})
    assert row.get_json()["data"]["code"] == "R2"
    assert client.get(f"{API}/rows/{ids['row_id']}").get_json()["data"]["name"] == "Rand 1"

    graves = client.get(f"{API}/rows/{ids['row_id']}/graves").get_json()["data"]
    assert [g["code"] for g in graves] == ["A-1", "A-2", "A-3", "A-4"]

    invalid = client.put(f"{API}/rows/{ids['row_id']}", json={"name": ""})
    assert invalid.status_code == 400
    assert client.get(f"{API}/rows/{ids['grave_A-1']}").status_code == 404


def test_viewer_cannot_update_structure(client, ids, login_viewer):
    login_viewer()
    assert client.get(f"{API}/{ids['cemetery_id']}").status_code == 200
    assert client.put(f"{API}/{ids['cemetery_id']}", json={"name": "X"}).status_code == 403


def test_burial_and_concession_listings_with_filters(client, ids, login_viewer):
    login_viewer()
    burials = client.get(f"{API}/burials?graveId={ids['grave_A-1']}").get_json()["data"]
    assert [b["deceasedName"] for b in burials] == ["Ion Popescu"]
    assert client.get(f"{API}/burials?graveId={ids['grave_A-3']}").get_json()["data"] == []
    assert len(client.get(f"{API}/burials?cemeteryId={ids['cemetery_id']}").get_json()["data"]) == 1

    concessions = client.get(f"{API}/concessions").get_json()["data"]
    assert {c["id"] for c in concessions} == {ids["occupied_concession_id"], ids["reserved_concession_id"]}
    by_grave = client.get(f"{API}/concessions?graveId={ids['grave_A-2']}&status=active").get_json()["data"]
    assert [c["id"] for c in by_grave] == [ids["reserved_concession_id"]]
    assert client.get(f"{API}/concessions?status=expired").get_json()["data"] == []

    bad = client.get(f"{API}/concessions?graveId=12&status=void")
    assert bad.status_code == 400
    assert {f["field"] for f in bad.get_json()["error"]["fields"]} == {"graveId", "status"}


def test_listings_are_scoped_to_the_parish(client, login_admin, second_parish_grave):
    login_admin()
    assert client.get(f"{API}/burials?cemeteryId={second_parish_grave['cemetery_id']}").get_json()["data"] == []
    assert client.get(f"{API}/{second_parish_grave['cemetery_id']}/parcels").status_code == 404


def test_payment_detail_update_and_delete_over_http(client, ids, login_admin):
    login_admin()
    concession_id = ids["occupied_concession_id"]
    created = client.post(
        f"{API}/concessions/{concession_id}/payments",
        json={
            "paymentDate": "2044-02-01",
            "amount": "150",
            "periodStart": "2044-01-01",
            "periodEnd": "2044-12-31",
            "createAccountingPayment": False,
        },
    )
    payment_id = created.get_json()["data"]["id"]

    listing = client.get(f"{API}/concessions/payments?concessionId={concession_id}").get_json()["data"]
    assert [p["id"] for p in listing] == [payment_id]
    assert client.get(f"{API}/concessions/payments").get_json()["data"][0]["id"] == payment_id

    detail = client.get(f"{API}/concessions/payments/{payment_id}")
    assert detail.get_json()["data"]["amount"] == "150.00"

    past_expiry = client.put(f"{API}/concessions/payments/{payment_id}", json={"periodEnd": "2045-01-02"})
    assert past_expiry.status_code == 400
    assert [f["field"] for f in past_expiry.get_json()["error"]["fields"]] == ["periodEnd"]
    assert client.get(f"{API}/concessions/payments/{payment_id}").get_json()["data"]["periodEnd"] == "2044-12-31"

    updated = client.put(f"{API}/concessions/payments/{payment_id}", json={"receiptNumber": "CH-9", "amount": "155"})
    assert updated.status_code == 200
    assert updated.get_json()["data"]["receiptNumber"] == "CH-9"
    assert updated.get_json()["data"]["amount"] == "155.00"

    assert client.delete(f"{API}/concessions/payments/{payment_id}").status_code == 200
    again = client.delete(f"{API}/concessions/payments/{payment_id}")
    assert again.status_code == 404
    assert again.get_json()["error"]["kind"] == "not_found"
    assert _status(ids["grave_A-1"]) == "occupied"


def test_operator_cannot_delete_payments(client, ids, login_operator):
    login_operator()
    created = client.post(
        f"{API}/concessions/{ids['occupied_concession_id']}/payments",
        json={"paymentDate": "2024-01-10", "amount": "150", "periodStart": "2024-01-01", "periodEnd": "2024-12-31"},
    )
    payment_id = created.get_json()["data"]["id"]
    assert client.put(f"{API}/concessions/payments/{payment_id}", json={"notes": "ok"}).status_code == 200
    assert client.delete(f"{API}/concessions/payments/{payment_id}").status_code == 403


def test_oversized_payment_amount_is_a_validation_error(client, ids, login_admin):
    login_admin()
    response = client.post(
        f"{API}/concessions/{ids['occupied_concession_id']}/payments",
        json={"paymentDate": "2024-01-10", "amount": "1e100", "periodStart": "2024-01-01", "periodEnd": "2024-12-31"},
    )
    assert response.status_code == 400
    assert [f["field"] for f in response.get_json()["error"]["fields"]] == ["amount"]
    assert db.session.query(ConcessionPayment).count() == 0
