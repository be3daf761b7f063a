"""Pytest configuration: local imports work regardless of CWD and every test
runs against a fresh sqlite database."""

import os
import sys
import tempfile
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1] / "license_manager_server"
if str(PROJECT_ROOT) not in sys.path:
    # Prepend so it has priority over any installed copy
    sys.path.insert(0, str(PROJECT_ROOT))

_DB_DIR = tempfile.mkdtemp(prefix="license-server-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR}/test.db"
os.environ["LICENSE_API_KEY"] = "test-api-key"
os.environ["LMFWC_SHARED_SECRET"] = "test-shared-secret"

from datetime import timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import config  # noqa: E402
import main  # noqa: E402
from app.models.generator_model import Generator  # noqa: E402
from app.models.license_model import License, LicenseStatus  # noqa: E402
from app.models.order_model import Order  # noqa: E402
from app.models.product_model import Product  # noqa: E402
from app.models.user_model import User  # noqa: E402
from app.utils.expiry import format_datetime, utc_now  # noqa: E402
from app.utils.manager import Manager  # noqa: E402
from app.utils.options import ServerOptions  # noqa: E402
from app.utils.signer import authorization_header, validation_secret  # noqa: E402
from app.utils.stores import LicenseStore, OrderStore, ProductCatalog, UserDirectory  # noqa: E402

SITE = "https://buyer.example"
EMAIL = "buyer@example.com"
LICENSE_KEY = "ABC-123"
META_KEY = "buyerexample-pro-plugin"


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture()
def db():
    config.Base.metadata.drop_all(bind=config.engine)
    config.Base.metadata.create_all(bind=config.engine)
    session = config.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db):
    with TestClient(main.app) as c:
        yield c


@pytest.fixture()
def catalog(db):
    """Generator, two products, a customer, their order and license ABC-123."""
    generator = Generator(name="Yearly", expires_in=365)
    db.add(generator)
    db.flush()

    product = Product(
        slug="pro-plugin",
        name="Pro Plugin",
        meta={
            "version": "2.1.0",
            "wp_tested": "6.4",
            "wp_requires": "5.0",
            "last_updated": "2024-01-10",
            "logo": "https://cdn.example/logo.png",
            "bucket": "releases",
            "filename": "pro-plugin.zip",
        },
        use_generator=True,
        generator_id=generator.id,
    )
    other = Product(slug="other-plugin", name="Other Plugin", meta={})
    user = User(email=EMAIL, username="buyer")
    db.add_all([product, other, user])
    db.flush()

    order = Order(user_id=user.id, status="completed", renewal_ids=[], notes=[])
    db.add(order)
    db.flush()

    lic = make_license(db, LICENSE_KEY, product=product, user=user, order=order)
    db.commit()

    return {"generator": generator, "product": product, "other": other, "user": user, "order": order, "license": lic}


def make_license(db, key, product, user, order, expires_at=None, times_activated=0, times_activated_max=3):
    lic = License(
        license_key=key,
        user_id=user.id,
        product_id=product.id,
        order_id=order.id,
        status=LicenseStatus.delivered,
        created_at=utc_now().replace(microsecond=0) - timedelta(days=30),
        expires_at=expires_at,
        times_activated=times_activated,
        times_activated_max=times_activated_max,
    )
    db.add(lic)
    db.flush()
    return lic


def make_manager(db, options=None, **kwargs):
    products = ProductCatalog(db)
    return Manager(
        options or ServerOptions(),
        LicenseStore(db),
        products,
        OrderStore(db),
        UserDirectory(db),
        shared_secret=config.LMFWC_SHARED_SECRET,
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Client headers
# ---------------------------------------------------------------------------

def activate_headers(site=SITE, email=None, secret=None):
    headers = {
        "Authorization": authorization_header(secret or config.LMFWC_SHARED_SECRET),
        "Referer": site,
    }
    if email:
        headers["From"] = email
    return headers


def validate_headers(lic, meta_key=META_KEY, site=SITE):
    raw = validation_secret(meta_key, format_datetime(lic.created_at), config.LMFWC_SHARED_SECRET)
    return {"Authorization": authorization_header(raw), "Referer": site}
