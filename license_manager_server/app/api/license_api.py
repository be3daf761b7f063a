# app/api/license_api.py
# -*- coding: utf-8 -*-
"""
License REST API consumed by client sites
- GET|POST /lmfwc/v2/licenses/activate/{license_key}   : Activate for the calling site
- GET|POST /lmfwc/v2/licenses/deactivate/{license_key} : Deactivate for the calling site
- GET|POST /lmfwc/v2/licenses/validate/{license_key}   : Status / update check (flag=cron|update_themes|update_plugins)

Headers: Authorization (TWS credential), Referer (client site), From (optional email).
Every other route under /lmfwc/v2 goes through the same Manager, which
blocks it unless direct API access is allowed.
"""

import json
import logging
from typing import Any, Dict, Mapping

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import SessionLocal
from app.models.logs_model import log_event
from app.utils.errors import LicenseExpired, LicenseServerError, NotFound
from app.utils.manager import Manager, RequestContext
from app.utils.options import load_options, load_s3_options
from app.utils.s3 import S3PackageLocator
from app.utils.stores import LicenseStore, OrderStore, ProductCatalog, UserDirectory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/lmfwc/v2", tags=["licenses"])


# -------------------------
# DB dependency
# -------------------------
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_manager(db: Session = Depends(get_db)) -> Manager:
    options = load_options(db)
    s3_options = load_s3_options(db)
    products = ProductCatalog(db)

    locator = S3PackageLocator(s3_options, products) if s3_options.use_amazon_s3 else None

    return Manager(
        options,
        LicenseStore(db),
        products,
        OrderStore(db),
        UserDirectory(db),
        package_locator=locator,
    )


async def request_parameters(request: Request) -> Dict[str, Any]:
    """Query string merged with a JSON or form body."""
    params: Dict[str, Any] = dict(request.query_params)
    if request.method != "POST":
        return params

    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        raw = await request.body()
        if raw:
            try:
                body = json.loads(raw)
            except ValueError:
                raise LicenseServerError("Invalid JSON body.", 400, data={"request_route": request.url.path})
            if isinstance(body, dict):
                params.update(body)
    elif content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        form = await request.form()
        params.update(dict(form))
    return params


# -------------------------
# Request processing
# -------------------------
def process_license_request(
    db: Session,
    manager: Manager,
    route: str,
    parameters: Mapping[str, Any],
    headers: Mapping[str, str],
) -> Dict[str, Any]:
    """
    validate_request -> license operation -> parse_response, in one
    transaction. On failure everything is rolled back except the expired
    stamp of a site binding.
    """
    ctx = RequestContext.from_request(route, parameters, headers)

    try:
        manager.validate_request(ctx)

        if ctx.state is None:
            raise NotFound("No route was found matching the URL and request method.", data={"request_route": route})
        if ctx.license is None:
            raise NotFound(manager.options.license_validate_response)

        operation = getattr(manager.licenses, ctx.state)
        data = operation(ctx.license)
        response = manager.parse_response(ctx, data)
        db.commit()

    except LicenseServerError as e:
        db.rollback()
        if (ctx.expired_stamped or isinstance(e, LicenseExpired)) and ctx.license is not None and ctx.meta_key:
            manager.license_expired(ctx)
            db.commit()

        log_event(
            db,
            user=ctx.license_key or None,
            action=f"{ctx.state or 'api'}_rejected",
            details={"code": e.status, "error": e.message},
            ip_address=ctx.client_url or None,
            endpoint=route,
        )
        raise

    except SQLAlchemyError:
        db.rollback()
        logger.exception("License request %s failed", route)
        raise LicenseServerError("The license request could not be stored. Please try again.", 500)

    log_event(
        db,
        user=ctx.license_key,
        action=f"{ctx.state}_ok",
        details={"key": ctx.meta_key, "status": response.get("status"), "flag": ctx.flag or None},
        ip_address=ctx.client_url or None,
        endpoint=route,
    )
    return response


# -------------------------
# Endpoint
# -------------------------
@router.api_route("/{path:path}", methods=["GET", "POST"])
def license_endpoint(
    path: str,
    request: Request,
    parameters: Dict[str, Any] = Depends(request_parameters),
    db: Session = Depends(get_db),
    manager: Manager = Depends(get_manager),
):
    return process_license_request(db, manager, request.url.path, parameters, request.headers)
