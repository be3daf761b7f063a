# app/api/options_api.py
# -*- coding: utf-8 -*-
"""
Server Options API (Admin)
--------------------------
- GET/PUT /admin/api/options     : basic server configuration
- GET/PUT /admin/api/options/s3  : Amazon S3 credentials for package downloads

The S3 secret is write-only: it is masked in every response and an empty
value on update keeps the stored one.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config import SessionLocal
from app.models.logs_model import log_event
from app.utils.auth import get_current_admin
from app.utils.options import (
    S3Options,
    ServerOptions,
    load_options,
    load_s3_options,
    save_options,
    save_s3_options,
)

router = APIRouter(prefix="/admin/api/options", tags=["admin/options"])


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


class S3OptionsIn(BaseModel):
    use_amazon_s3: Optional[bool] = None
    s3_region: Optional[str] = None
    s3_endpoint: Optional[str] = None
    s3_key: Optional[str] = None
    s3_secret: Optional[str] = None
    s3_url_expiration: Optional[int] = Field(None, ge=1, le=7 * 24 * 60)


@router.get("", response_model=ServerOptions)
def get_options(db: Session = Depends(get_db), _admin: str = Depends(get_current_admin)):
    return load_options(db)


@router.put("", response_model=ServerOptions)
def update_options(
    payload: ServerOptions,
    db: Session = Depends(get_db),
    admin: str = Depends(get_current_admin),
):
    saved = save_options(db, payload)
    log_event(db, user=admin, action="options_update", details=saved.model_dump(), endpoint="/admin/api/options")
    return saved


@router.get("/s3", response_model=dict)
def get_s3_options(db: Session = Depends(get_db), _admin: str = Depends(get_current_admin)):
    return load_s3_options(db).public_dict()


@router.put("/s3", response_model=dict)
def update_s3_options(
    payload: S3OptionsIn,
    db: Session = Depends(get_db),
    admin: str = Depends(get_current_admin),
):
    current = load_s3_options(db).model_dump()
    changes = payload.model_dump(exclude_unset=True)

    if not changes.get("s3_secret"):
        changes.pop("s3_secret", None)
    for required in ("use_amazon_s3", "s3_endpoint", "s3_url_expiration"):
        if changes.get(required) is None:
            changes.pop(required, None)

    saved = save_s3_options(db, S3Options(**{**current, **changes}))
    public = saved.public_dict()

    log_event(db, user=admin, action="s3_options_update", details=public, endpoint="/admin/api/options/s3")
    return public
