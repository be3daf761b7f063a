# app/models/license_model.py
# -*- coding: utf-8 -*-
from sqlalchemy import Column, Integer, String, DateTime, Enum, JSON, ForeignKey, UniqueConstraint
from datetime import datetime
from config import Base
import enum
import hashlib


class LicenseStatus(enum.Enum):
    sold = 1
    delivered = 2
    active = 3
    inactive = 4


def hash_license_key(license_key: str) -> str:
    return hashlib.sha256(license_key.encode("utf-8")).hexdigest()


class License(Base):
    __tablename__ = "licenses"

    id = Column(Integer, primary_key=True, index=True)

    # License identity
    license_key = Column(String(255), nullable=False)
    hash = Column(String(64), unique=True, nullable=False, index=True)

    # Ownership
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=True)

    # Status
    status = Column(Enum(LicenseStatus), default=LicenseStatus.sold, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=True)

    # Activation counters
    times_activated = Column(Integer, default=0, nullable=False)
    times_activated_max = Column(Integer, nullable=True)

    def __init__(self, **kwargs):
        if "license_key" in kwargs and "hash" not in kwargs:
            kwargs["hash"] = hash_license_key(kwargs["license_key"])
        super().__init__(**kwargs)

    @property
    def decrypted_license_key(self) -> str:
        return self.license_key

    def __repr__(self):
        return f"<License {self.license_key} ({self.status.name}) product={self.product_id}>"


class LicenseMeta(Base):
    """Per-license key/value metadata. Site bindings are stored here."""

    __tablename__ = "license_meta"

    id = Column(Integer, primary_key=True, index=True)
    license_id = Column(Integer, ForeignKey("licenses.id"), nullable=False, index=True)
    meta_key = Column(String(255), nullable=False)
    meta_value = Column(JSON, default={})

    # Bumped on every write; conditional updates compare against it.
    version = Column(Integer, default=1, nullable=False)

    __table_args__ = (
        UniqueConstraint("license_id", "meta_key", name="uq_license_meta_key"),
    )
