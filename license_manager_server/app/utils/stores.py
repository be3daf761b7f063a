# app/utils/stores.py
# -*- coding: utf-8 -*-
"""
Data collaborators of the license Manager, backed by one SQLAlchemy session.

None of these commit: the license API commits (or rolls back) once per
request so authorisation, upstream bookkeeping and binding writes land
together.
"""

from typing import Any, Dict, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.license_model import License, LicenseMeta, LicenseStatus, hash_license_key
from app.models.product_model import Product
from app.models.generator_model import Generator
from app.models.order_model import Order
from app.models.user_model import User
from app.utils.errors import Conflict, Forbidden
from app.utils.expiry import evaluate_expiry, format_datetime

STALE_BINDING = "License data changed while processing the request. Please try again."


class LicenseStore:
    def __init__(self, db: Session):
        self.db = db

    # ---- Licenses ---------------------------------------------------------
    def find_by_key(self, license_key: str) -> Optional[License]:
        if not license_key:
            return None
        return self.db.query(License).filter(License.hash == hash_license_key(license_key)).first()

    def update(self, license_id: int, fields: Dict[str, Any]) -> License:
        lic = self.db.get(License, license_id)
        for name, value in fields.items():
            setattr(lic, name, value)
        self.db.add(lic)
        self.db.flush()
        return lic

    # ---- Metadata ---------------------------------------------------------
    def _meta_row(self, license_id: int, meta_key: str) -> Optional[LicenseMeta]:
        return (
            self.db.query(LicenseMeta)
            .filter(LicenseMeta.license_id == license_id, LicenseMeta.meta_key == meta_key)
            .first()
        )

    def get_metadata(self, license_id: int, meta_key: str) -> Optional[dict]:
        row = self._meta_row(license_id, meta_key)
        return dict(row.meta_value or {}) if row else None

    def get_metadata_versioned(self, license_id: int, meta_key: str) -> Tuple[Optional[dict], int]:
        """Metadata plus its version (0 when no record exists yet)."""
        row = self._meta_row(license_id, meta_key)
        if row is None:
            return None, 0
        return dict(row.meta_value or {}), row.version

    def set_metadata(self, license_id: int, meta_key: str, value: dict, expected_version: Optional[int] = None) -> int:
        """
        Adds or updates a meta record and returns its new version.

        With ``expected_version`` the write only happens when the stored
        version still matches (0 = record must not exist yet); otherwise
        Conflict is raised.
        """
        if expected_version is None:
            row = self._meta_row(license_id, meta_key)
            if row is None:
                return self._insert_meta(license_id, meta_key, value)
            expected_version = row.version

        if expected_version == 0:
            if self._meta_row(license_id, meta_key) is not None:
                raise Conflict(STALE_BINDING, 409)
            return self._insert_meta(license_id, meta_key, value)

        updated = (
            self.db.query(LicenseMeta)
            .filter(
                LicenseMeta.license_id == license_id,
                LicenseMeta.meta_key == meta_key,
                LicenseMeta.version == expected_version,
            )
            .update(
                {LicenseMeta.meta_value: dict(value), LicenseMeta.version: expected_version + 1},
                synchronize_session="fetch",
            )
        )
        if updated != 1:
            raise Conflict(STALE_BINDING, 409)
        return expected_version + 1

    def _insert_meta(self, license_id: int, meta_key: str, value: dict) -> int:
        self.db.add(LicenseMeta(license_id=license_id, meta_key=meta_key, meta_value=dict(value), version=1))
        try:
            self.db.flush()
        except IntegrityError as e:
            # Another request inserted the same key first; the caller rolls back.
            raise Conflict(STALE_BINDING, 409) from e
        return 1

    def delete_metadata(self, license_id: int, meta_key: str) -> bool:
        deleted = (
            self.db.query(LicenseMeta)
            .filter(LicenseMeta.license_id == license_id, LicenseMeta.meta_key == meta_key)
            .delete(synchronize_session="fetch")
        )
        return deleted > 0

    # ---- Upstream bookkeeping --------------------------------------------
    # What the licensing plugin itself does on its activate / deactivate /
    # validate routes, after the Manager authorised the request.

    def activate(self, lic: License) -> Dict[str, Any]:
        expired = evaluate_expiry(lic.expires_at)
        if expired is not None:
            raise expired

        times = lic.times_activated or 0
        if lic.times_activated_max is not None and times >= lic.times_activated_max:
            raise Forbidden(f"License Key: {lic.license_key} reached maximum activation count.")

        self.update(lic.id, {"times_activated": times + 1, "status": LicenseStatus.active})
        return self.to_array(lic)

    def deactivate(self, lic: License) -> Dict[str, Any]:
        times = lic.times_activated or 0
        if times <= 0:
            raise Conflict(f"License Key: {lic.license_key} has not been activated yet.")

        self.update(lic.id, {"times_activated": times - 1})
        return self.to_array(lic)

    def validate(self, lic: License) -> Dict[str, Any]:
        return self.to_array(lic)

    @staticmethod
    def to_array(lic: License) -> Dict[str, Any]:
        return {
            "id": lic.id,
            "orderId": lic.order_id,
            "productId": lic.product_id,
            "userId": lic.user_id,
            "licenseKey": lic.decrypted_license_key,
            "expiresAt": format_datetime(lic.expires_at),
            "status": lic.status.value if lic.status else None,
            "timesActivated": lic.times_activated,
            "timesActivatedMax": lic.times_activated_max,
            "createdAt": format_datetime(lic.created_at),
        }


class ProductCatalog:
    # Keys that name the storage location; never sent to clients.
    STORAGE_KEYS = ("bucket", "filename")
    DISPATCH_KEYS = ("version", "wp_tested", "wp_requires", "last_updated", "logo", "cover")

    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, product_id: Optional[int]) -> Optional[Product]:
        if not product_id:
            return None
        return self.db.get(Product, product_id)

    def find_by_slug(self, slug: str) -> Optional[Product]:
        if not slug:
            return None
        return self.db.query(Product).filter(Product.slug == slug).first()

    def get_generator(self, product: Product) -> Optional[Generator]:
        if not product.use_generator or not product.generator_id:
            return None
        return self.db.get(Generator, product.generator_id)

    def get_metadata(self, product_id: int, dispatch: bool = True) -> Dict[str, Any]:
        """
        Update details of a product for client updaters.

        logo / cover given as a single URL become {"1x": url}. With
        ``dispatch`` the S3 bucket and filename are left out.
        """
        product = self.find_by_id(product_id)
        meta = dict(product.meta or {}) if product else {}
        data: Dict[str, Any] = {"id": product_id}

        keys = self.DISPATCH_KEYS if dispatch else self.DISPATCH_KEYS + self.STORAGE_KEYS
        for key in keys:
            value = meta.get(key)
            if not value:
                continue
            if key in ("logo", "cover"):
                data[key] = make_thing_array(value)
                continue
            data[key] = value
        return data


def make_thing_array(thing) -> dict:
    if isinstance(thing, str):
        return {"1x": thing}
    if isinstance(thing, dict):
        return thing
    return {}


class OrderStore:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, order_id: Optional[int]) -> Optional[Order]:
        if not order_id:
            return None
        return self.db.get(Order, order_id)


class UserDirectory:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, user_id: Optional[int]) -> Optional[User]:
        if not user_id:
            return None
        return self.db.get(User, user_id)

    def find_by_email(self, email: str) -> Optional[User]:
        if not email:
            return None
        return self.db.query(User).filter(User.email == email).first()
