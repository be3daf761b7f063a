from datetime import timedelta

import pytest

from app.models.license_model import License, LicenseStatus
from app.models.order_model import Order
from app.utils.expiry import format_datetime, utc_now

from conftest import EMAIL, LICENSE_KEY

API_KEY = {"X-API-KEY": "test-api-key"}


@pytest.fixture()
def expiring(db, catalog):
    lic = catalog["license"]
    lic.expires_at = (utc_now() + timedelta(days=10)).replace(microsecond=0)
    db.commit()
    return lic


def renewal_payload(catalog, **overrides):
    payload = {
        "license_key": LICENSE_KEY,
        "email": EMAIL,
        "product_id": catalog["product"].id,
        "items_count": 1,
    }
    payload.update(overrides)
    return payload


def create_renewal(client, catalog, **overrides):
    return client.post("/api/internal/orders/renewal", json=renewal_payload(catalog, **overrides), headers=API_KEY)


def test_api_key_required(client, catalog):
    r = client.post("/api/internal/orders/renewal", json=renewal_payload(catalog))
    assert r.status_code == 401


def test_renewal_order_is_linked_to_parent(client, db, catalog):
    r = create_renewal(client, catalog)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["parent_order_id"] == catalog["order"].id

    db.expire_all()
    order = db.get(Order, body["order_id"])
    assert order.renewal_license_key == LICENSE_KEY
    assert order.parent_order_id == catalog["order"].id


def test_unknown_license_key(client, catalog):
    r = create_renewal(client, catalog, license_key="NOPE-000")
    assert r.status_code == 404
    assert r.json()["detail"] == "NOPE-000 - license key does not exist or not yours."


def test_license_of_other_customer(client, catalog):
    r = create_renewal(client, catalog, email="stranger@example.com")
    assert r.status_code == 403


def test_renewal_order_with_several_products(client, catalog):
    r = create_renewal(client, catalog, items_count=2)
    assert r.status_code == 400


def test_completing_renewal_extends_expiry(client, db, catalog, expiring):
    previous = expiring.expires_at
    order_id = create_renewal(client, catalog).json()["order_id"]

    r = client.post(f"/api/internal/orders/{order_id}/complete", headers=API_KEY)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["renewed"] is True
    assert body["status"] == LicenseStatus.delivered.value
    assert body["expires_at"] == format_datetime(previous + timedelta(days=365))

    db.expire_all()
    lic = db.get(License, expiring.id)
    assert lic.expires_at == previous + timedelta(days=365)
    assert lic.status == LicenseStatus.delivered

    renewal = db.get(Order, order_id)
    assert renewal.status == "completed"
    assert renewal.renewal_license_key is None
    assert renewal.notes == [f'Successfully renewed License Key: "{LICENSE_KEY}".']
    assert db.get(Order, catalog["order"].id).renewal_ids == [order_id]


def test_expired_license_renews_from_now(client, db, catalog):
    lic = catalog["license"]
    lic.expires_at = utc_now() - timedelta(days=40)
    db.commit()
    order_id = create_renewal(client, catalog).json()["order_id"]

    before = utc_now().replace(microsecond=0)
    r = client.post(f"/api/internal/orders/{order_id}/complete", headers=API_KEY)
    assert r.status_code == 200, r.text

    db.expire_all()
    renewed = db.get(License, lic.id).expires_at
    assert renewed >= before + timedelta(days=365)


def test_dry_run_does_not_save(client, db, catalog, expiring):
    previous = expiring.expires_at
    order_id = create_renewal(client, catalog).json()["order_id"]

    r = client.post(f"/api/internal/orders/{order_id}/complete", params={"update": "false"}, headers=API_KEY)
    assert r.status_code == 200, r.text
    assert r.json()["updated"] is False

    db.expire_all()
    assert db.get(License, expiring.id).expires_at == previous
    assert db.get(Order, order_id).renewal_license_key == LICENSE_KEY


def test_perpetual_license_is_not_renewed(client, catalog):
    order_id = create_renewal(client, catalog).json()["order_id"]

    r = client.post(f"/api/internal/orders/{order_id}/complete", headers=API_KEY)
    assert r.json() == {"renewed": False, "order_id": order_id, "reason": "no_expiry"}


def test_regular_order_is_not_a_renewal(client, catalog):
    r = client.post(f"/api/internal/orders/{catalog['order'].id}/complete", headers=API_KEY)
    assert r.json()["reason"] == "not_a_renewal"


def test_unknown_order(client, catalog):
    r = client.post("/api/internal/orders/9999/complete", headers=API_KEY)
    assert r.status_code == 404
