# -*- coding: utf-8 -*-
"""
License Manager Server
----------------------
License server for WordPress plugins and themes sold through WooCommerce:
- License activation / deactivation / validation for client sites
- Site binding of licenses
- Product update details + signed package downloads (Amazon S3)
- Renewal orders
- Admin options
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config import Base, engine


# -----------------------------
# Import Models (registers tables)
# -----------------------------
from app.models.user_model import User  # noqa: F401
from app.models.generator_model import Generator  # noqa: F401
from app.models.product_model import Product  # noqa: F401
from app.models.order_model import Order  # noqa: F401
from app.models.license_model import License, LicenseMeta  # noqa: F401
from app.models.options_model import ServerOption  # noqa: F401
from app.models.logs_model import APILog  # noqa: F401

from app.utils.errors import LicenseServerError

# -----------------------------
# Import Routers
# -----------------------------
from app.api.admin_auth import router as admin_auth_router
from app.api.options_api import router as options_router
from app.api.internal_orders import router as internal_orders_router

# 🔐 Client site license API
from app.api.license_api import router as license_router

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("license_manager_server")

# -----------------------------
# Create DB tables
# -----------------------------
Base.metadata.create_all(bind=engine)


# -----------------------------
# FastAPI Init
# -----------------------------
app = FastAPI(title="License Manager Server")


@app.exception_handler(LicenseServerError)
async def license_error_handler(request: Request, exc: LicenseServerError):
    return JSONResponse(status_code=exc.status, content=exc.to_dict())


# 1. Admin auth & options
app.include_router(admin_auth_router)
app.include_router(options_router)

# 2. Internal order system (renewals)
app.include_router(internal_orders_router)

# 3. Client license API (catch-all under /lmfwc/v2, keep last)
app.include_router(license_router)


# ----------------------------------------------------------
# System Status
# ----------------------------------------------------------
@app.get("/api/status", tags=["system"])
def root_status():
    return {"status": "license_manager_server", "message": "License server running"}
