"""
Seeds a demo product, generator, customer, order and license.

Usage: python seed_catalog.py [LICENSE_KEY]
"""
import sys
from datetime import timedelta

from config import Base, SessionLocal, engine
from app.models.user_model import User
from app.models.generator_model import Generator
from app.models.product_model import Product
from app.models.order_model import Order
from app.models.license_model import License, LicenseStatus
from app.models.options_model import ServerOption  # noqa: F401
from app.models.logs_model import APILog  # noqa: F401
from app.utils.expiry import utc_now
from app.utils.stores import LicenseStore

Base.metadata.create_all(bind=engine)

license_key = sys.argv[1] if len(sys.argv) > 1 else "DEMO-0000-0000-0000"

db = SessionLocal()

generator = db.query(Generator).filter(Generator.name == "Yearly").first()
if not generator:
    generator = Generator(name="Yearly", expires_in=365)
    db.add(generator)
    db.flush()

product = db.query(Product).filter(Product.slug == "pro-plugin").first()
if not product:
    product = Product(
        slug="pro-plugin",
        name="Pro Plugin",
        meta={
            "version": "1.0.0",
            "wp_tested": "6.4",
            "wp_requires": "5.0",
            "last_updated": utc_now().strftime("%Y-%m-%d"),
            "bucket": "pro-plugin-releases",
            "filename": "pro-plugin.zip",
        },
        use_generator=True,
        generator_id=generator.id,
    )
    db.add(product)
    db.flush()

user = db.query(User).filter(User.email == "buyer@example.com").first()
if not user:
    user = User(email="buyer@example.com", username="buyer")
    db.add(user)
    db.flush()

if LicenseStore(db).find_by_key(license_key):
    print(f"[SKIP] exists: {license_key}")
else:
    order = Order(user_id=user.id, status="completed", renewal_ids=[], notes=[])
    db.add(order)
    db.flush()

    db.add(License(
        license_key=license_key,
        user_id=user.id,
        product_id=product.id,
        order_id=order.id,
        status=LicenseStatus.delivered,
        expires_at=utc_now() + timedelta(days=generator.expires_in),
        times_activated=0,
        times_activated_max=3,
    ))
    print(f"[OK] added: {license_key}")

db.commit()
db.close()
