# app/utils/options.py
# -*- coding: utf-8 -*-
"""
Server options
--------------
Typed replacement for the option arrays of the licensing plugin. Two
groups are persisted in the `server_options` table:

- basic_config : debug switch, API restriction and the four messages sent
                 back when request parameters fail validation.
- s3_config    : Amazon S3 credentials used for package download URLs.
"""

from typing import Optional

from pydantic import BaseModel, Field, ValidationInfo, field_validator
from sqlalchemy.orm import Session

from app.models.options_model import ServerOption

BASIC_OPTION = "basic_config"
S3_OPTION = "s3_config"

DEFAULT_MESSAGES = {
    "license_validate_response": "License not found.",
    "email_validate_response": "Email address not found.",
    "order_validate_response": "Order not found.",
    "name_validate_response": "Product not found.",
}


class ServerOptions(BaseModel):
    debug_mode: bool = False
    restrict_api_access: bool = True

    license_validate_response: str = DEFAULT_MESSAGES["license_validate_response"]
    email_validate_response: str = DEFAULT_MESSAGES["email_validate_response"]
    order_validate_response: str = DEFAULT_MESSAGES["order_validate_response"]
    name_validate_response: str = DEFAULT_MESSAGES["name_validate_response"]

    @field_validator(*DEFAULT_MESSAGES.keys(), mode="before")
    @classmethod
    def blank_message_uses_default(cls, value, info: ValidationInfo):
        # Empty messages fall back to the defaults
        if value is None or not str(value).strip():
            return DEFAULT_MESSAGES[info.field_name]
        return str(value).strip()


class S3Options(BaseModel):
    use_amazon_s3: bool = False
    s3_region: Optional[str] = None
    s3_endpoint: str = "s3.amazonaws.com"
    s3_key: Optional[str] = None
    s3_secret: Optional[str] = None
    s3_url_expiration: int = Field(60, ge=1, le=7 * 24 * 60)  # minutes

    def public_dict(self) -> dict:
        data = self.model_dump()
        data["s3_secret"] = "********" if self.s3_secret else None
        return data


def _load(db: Session, name: str) -> dict:
    row = db.query(ServerOption).filter(ServerOption.name == name).first()
    if not row or not isinstance(row.value, dict):
        return {}
    return dict(row.value)


def _save(db: Session, name: str, value: dict) -> None:
    row = db.query(ServerOption).filter(ServerOption.name == name).first()
    if row is None:
        row = ServerOption(name=name, value=value)
    else:
        row.value = value
    db.add(row)
    db.commit()


def load_options(db: Session) -> ServerOptions:
    return ServerOptions(**_load(db, BASIC_OPTION))


def save_options(db: Session, options: ServerOptions) -> ServerOptions:
    _save(db, BASIC_OPTION, options.model_dump())
    return options


def load_s3_options(db: Session) -> S3Options:
    return S3Options(**_load(db, S3_OPTION))


def save_s3_options(db: Session, options: S3Options) -> S3Options:
    _save(db, S3_OPTION, options.model_dump())
    return options
