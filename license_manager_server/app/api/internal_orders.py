# app/api/internal_orders.py
# -*- coding: utf-8 -*-
"""
Internal Orders → License Renewal
Mounted under /api/internal/orders (X-API-KEY protected)

- POST /api/internal/orders/renewal             : checkout of a renewal order for an existing license key
- POST /api/internal/orders/{order_id}/complete : order completed, extend the license expiry
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session
from typing import Optional

from config import SessionLocal
from app.models.license_model import LicenseStatus
from app.models.order_model import Order
from app.models.logs_model import log_event
from app.utils.auth import require_api_key
from app.utils.expiry import calculate_renewal, format_datetime
from app.utils.stores import LicenseStore, OrderStore, ProductCatalog, UserDirectory

router = APIRouter(prefix="/api/internal/orders", tags=["internal/orders"])

NOT_YOURS = "license key does not exist or not yours."


# -------------------------------------------------------
# DB Session
# -------------------------------------------------------
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# -------------------------------------------------------
# Request Model
# -------------------------------------------------------
class RenewalOrderIn(BaseModel):
    license_key: str
    email: str
    product_id: int
    items_count: int = 1


# -------------------------------------------------------
# Checkout: renewal order for an existing license
# -------------------------------------------------------
@router.post("/renewal", response_model=dict)
def create_renewal_order(
    order: RenewalOrderIn,
    db: Session = Depends(get_db),
    _ok: bool = Depends(require_api_key),
):
    """
    Validates the license entered at checkout and creates the renewal order.
    - license must exist and belong to the ordering customer (email)
    - the order must contain only the licensed product
    - the order that generated the license becomes the parent order
    """
    license_key = order.license_key.strip()
    lic = LicenseStore(db).find_by_key(license_key)
    if not lic:
        raise HTTPException(status_code=404, detail=f"{license_key} - {NOT_YOURS}")

    if order.items_count > 1:
        raise HTTPException(
            status_code=400,
            detail="License key can not be verified when order has more than one product. "
                   "Please order only the product previously purchased for which license key was generated."
        )

    user = UserDirectory(db).find_by_id(lic.user_id)
    if not user or user.email != order.email or order.product_id != lic.product_id:
        raise HTTPException(status_code=403, detail=f"{license_key} - {NOT_YOURS}")

    parent = OrderStore(db).find_by_id(lic.order_id)
    if not parent:
        raise HTTPException(status_code=404, detail="Order not found.")

    renewal = Order(
        user_id=user.id,
        status="pending",
        parent_order_id=parent.id,
        renewal_license_key=license_key,
        renewal_ids=[],
        notes=[],
    )

    try:
        db.add(renewal)
        db.commit()
    except Exception:
        db.rollback()
        raise HTTPException(status_code=500, detail="Failed to create renewal order")

    log_event(db, user=order.email, action="renewal_order", details={
        "order_id": renewal.id,
        "parent_order_id": parent.id,
        "license_key": license_key,
    }, endpoint="/api/internal/orders/renewal")

    return {
        "status": "ok",
        "order_id": renewal.id,
        "parent_order_id": parent.id,
        "license_key": license_key,
    }


# -------------------------------------------------------
# Order completed: renew license validity
# -------------------------------------------------------
@router.post("/{order_id}/complete", response_model=dict)
def complete_order(
    order_id: int,
    update: bool = Query(True, description="False returns the renewal data without saving it"),
    db: Session = Depends(get_db),
    _ok: bool = Depends(require_api_key),
):
    orders = OrderStore(db)
    licenses = LicenseStore(db)
    catalog = ProductCatalog(db)

    order = orders.find_by_id(order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found.")

    if update:
        order.status = "completed"
        db.add(order)
        db.commit()

    def _skip(reason: str) -> dict:
        return {"renewed": False, "order_id": order_id, "reason": reason}

    license_key = order.renewal_license_key
    if not license_key:
        return _skip("not_a_renewal")

    lic = licenses.find_by_key(license_key)
    if not lic:
        return _skip("license_not_found")

    # Perpetual licenses have nothing to renew
    if not lic.expires_at:
        return _skip("no_expiry")

    product = catalog.find_by_id(lic.product_id)
    generator = catalog.get_generator(product) if product else None
    if not generator or not generator.expires_in:
        return _skip("no_generator")

    new_expiry = calculate_renewal(lic.expires_at, generator.expires_in)
    data = {
        "expires_at": format_datetime(new_expiry),
        "status": LicenseStatus.delivered.value,
    }

    if update:
        note = f'Successfully renewed License Key: "{license_key}".'
        try:
            licenses.update(lic.id, {"expires_at": new_expiry, "status": LicenseStatus.delivered})

            # Parent order keeps every renewal order id
            parent = orders.find_by_id(lic.order_id)
            if parent:
                parent.renewal_ids = list(parent.renewal_ids or []) + [order.id]
                db.add(parent)

            order.notes = list(order.notes or []) + [note]
            order.renewal_license_key = None
            db.add(order)
            db.commit()
        except Exception:
            db.rollback()
            raise HTTPException(status_code=500, detail="Failed to renew license")

        log_event(db, user=license_key, action="renewal_complete", details={
            "order_id": order.id,
            "parent_order_id": lic.order_id,
            **data,
        }, endpoint=f"/api/internal/orders/{order_id}/complete")

    return {
        "renewed": True,
        "updated": update,
        "order_id": order_id,
        "license_key": license_key,
        **data,
    }
