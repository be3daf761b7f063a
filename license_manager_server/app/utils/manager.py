# app/utils/manager.py
# -*- coding: utf-8 -*-
"""
License server Manager
----------------------
Sits in front of the license activate / deactivate / validate operations:

- validate_request() : authorises the client request (route, credentials,
                       site binding, expiry and renewal, parameters).
- parse_response()   : after the license operation ran, stores the site
                       binding and shapes the payload sent back (product
                       update details and, for active licenses, a signed
                       package URL).

Site bindings are license metadata keyed "<client host>-<product slug>".
Records written under the old "data-<client host>" key are moved to the new
key the first time they are read.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional
from urllib.parse import urlparse

from config import LMFWC_SHARED_SECRET
from app.models.license_model import License
from app.utils.errors import Conflict, Expired, Forbidden, LicenseServerError, NotFound, Unauthorized
from app.utils.expiry import evaluate_expiry, format_datetime, utc_now
from app.utils.options import ServerOptions
from app.utils.s3 import PackageLocator
from app.utils.signer import credential_matches, split_authorization, validation_secret
from app.utils.stores import LicenseStore, OrderStore, ProductCatalog, UserDirectory

logger = logging.getLogger(__name__)

ROUTE_BASE = "/lmfwc/v2/licenses"
STATES = ("activate", "deactivate", "validate")
UPDATE_FLAGS = ("update_themes", "update_plugins")
CRON_FLAG = "cron"

ROUTE_PATTERN = re.compile(r"^/lmfwc/v2/licenses/(activate|deactivate|validate)/([^/]+)/?$")
_UNSAFE_KEY_CHARS = re.compile(r"[^a-z0-9_\-]")


# -------------------------
# Site binding keys
# -------------------------
def sanitize_key(value: str) -> str:
    return _UNSAFE_KEY_CHARS.sub("", (value or "").lower())


def site_host(url: str) -> str:
    """'https://www.Buyer.example/shop' -> 'buyerexample'."""
    url = (url or "").strip()
    if not url:
        return ""
    if "://" not in url:
        url = "//" + url

    host = urlparse(url).hostname or ""
    if host.startswith("www."):
        host = host[len("www."):]
    return sanitize_key(host)


def binding_meta_key(client_url: str, slug: str) -> str:
    return f"{site_host(client_url)}-{slug}"


def legacy_meta_key(client_url: str) -> str:
    return f"data-{site_host(client_url)}"


def _header(headers: Mapping[str, str], name: str) -> str:
    value = headers.get(name)
    if value is None:
        value = headers.get(name.lower())
    if value is None:
        value = headers.get(name.title())
    return str(value).strip() if value else ""


# -------------------------
# Request context
# -------------------------
@dataclass
class RequestContext:
    route: str
    parameters: Dict[str, Any]
    client_url: str = ""
    user_email: str = ""
    auth_type: str = ""
    auth_value: str = ""

    state: Optional[str] = None
    license_key: str = ""
    license: Optional[License] = None

    meta_key: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)
    meta_version: int = 0
    pending_metadata: Optional[Dict[str, Any]] = None

    authorized: bool = False
    bypassed: bool = False
    expired_stamped: bool = False

    @classmethod
    def from_request(cls, route: str, parameters: Mapping[str, Any], headers: Mapping[str, str]) -> "RequestContext":
        auth_type, auth_value = split_authorization(_header(headers, "Authorization"))
        ctx = cls(
            route=route,
            parameters=dict(parameters or {}),
            client_url=_header(headers, "Referer"),
            user_email=_header(headers, "From"),
            auth_type=auth_type,
            auth_value=auth_value,
        )

        match = ROUTE_PATTERN.match(route or "")
        if match:
            ctx.state = match.group(1)
            ctx.license_key = match.group(2)
        return ctx

    @property
    def remote_route(self) -> str:
        return f"{ROUTE_BASE}/{self.state}/" if self.state else f"{ROUTE_BASE}/"

    @property
    def error_data(self) -> Dict[str, str]:
        return {"request_route": self.route, "remote_route": self.remote_route}

    @property
    def flag(self) -> str:
        return str(self.parameters.get("flag") or "")


class ResponseEnricher:
    """
    Extension points of the Manager. Subclass and pass an instance to the
    Manager to change stored binding metadata or the payloads sent back.
    """

    def license_meta(self, metadata: Dict[str, Any], lic: License, state: str) -> Dict[str, Any]:
        return metadata

    def pre_send_response(self, data: Dict[str, Any], lic: License, metadata: Dict[str, Any]) -> Dict[str, Any]:
        return data

    def pre_response_validate(self, data: Dict[str, Any], ctx: RequestContext) -> Dict[str, Any]:
        return data


class Manager:
    def __init__(
        self,
        options: ServerOptions,
        licenses: LicenseStore,
        products: ProductCatalog,
        orders: OrderStore,
        users: UserDirectory,
        package_locator: Optional[PackageLocator] = None,
        enricher: Optional[ResponseEnricher] = None,
        shared_secret: str = LMFWC_SHARED_SECRET,
        clock: Callable = utc_now,
    ):
        self.options = options
        self.licenses = licenses
        self.products = products
        self.orders = orders
        self.users = users
        self.package_locator = package_locator
        self.enricher = enricher or ResponseEnricher()
        self.shared_secret = shared_secret
        self.clock = clock

    # ==========================================================
    # Request validation
    # ==========================================================
    def validate_request(self, ctx: RequestContext) -> RequestContext:
        """
        Authorises ``ctx`` or raises a LicenseServerError.

        Returns the context; ``ctx.authorized`` is False only for requests
        that are not license operations and are let through untouched.
        """
        # Debug mode: integrators test without the authorisation chain.
        if self.options.debug_mode:
            ctx.license = self.licenses.find_by_key(ctx.license_key)
            ctx.authorized = True
            ctx.bypassed = True
            return ctx

        self._check_route(ctx)
        if ctx.state is None:
            return ctx

        # activate / deactivate: pre-shared secret.
        if ctx.state != "validate" and not credential_matches(ctx.auth_type, ctx.auth_value, self.shared_secret):
            raise Unauthorized(f"You are not authorized to {ctx.state} the license.", data=ctx.error_data)

        lic = self.licenses.find_by_key(ctx.license_key)
        if lic is None:
            raise NotFound(self.options.license_validate_response, data=ctx.error_data)
        ctx.license = lic

        self._load_binding(ctx)

        # validate: credential bound to this site binding and issue time.
        if ctx.state == "validate":
            expected = validation_secret(ctx.meta_key, format_datetime(lic.created_at), self.shared_secret)
            if not credential_matches(ctx.auth_type, ctx.auth_value, expected):
                raise Unauthorized("You are not authorized for making license validation.", data=ctx.error_data)

        if ctx.metadata.get("expired") == "yes":
            if self._handle_expired_binding(ctx):
                return ctx

        self._check_already_applied(ctx)
        self._check_parameters(ctx)

        pending = dict(ctx.metadata)
        pending["url"] = ctx.client_url
        email = self._request_email(ctx)
        if email:
            pending["email"] = email
        if "data" in ctx.parameters:
            pending["data"] = ctx.parameters["data"]

        ctx.pending_metadata = pending
        ctx.authorized = True
        return ctx

    def _check_route(self, ctx: RequestContext) -> None:
        if ctx.state is None:
            # Not a license operation.
            if self.options.restrict_api_access:
                raise Unauthorized(
                    "Direct API access is restricted. Only license activation/deactivation/validation is possible.",
                    403,
                    data={"request_route": ctx.route},
                )
            return

        form_state = ctx.parameters.get("form_state")
        if form_state and form_state != ctx.state:
            raise Unauthorized(
                "The request route did not match for further processing.",
                403,
                data={"request_route": ctx.route, "remote_route": f"{ROUTE_BASE}/{form_state}/"},
            )

    def _load_binding(self, ctx: RequestContext) -> None:
        slug = str(ctx.parameters.get("slug") or "")
        if not slug:
            raise NotFound(self.options.name_validate_response, data=ctx.error_data)

        if not site_host(ctx.client_url):
            raise Unauthorized("The client site could not be identified.", data=ctx.error_data)

        ctx.meta_key = binding_meta_key(ctx.client_url, slug)
        self.migrate_legacy_binding(ctx.license, ctx.client_url, ctx.meta_key)

        metadata, version = self.licenses.get_metadata_versioned(ctx.license.id, ctx.meta_key)
        ctx.metadata = metadata if isinstance(metadata, dict) else {}
        ctx.meta_version = version

    def migrate_legacy_binding(self, lic: License, client_url: str, meta_key: str) -> bool:
        """Moves a "data-<host>" record to ``meta_key``. True if one was found."""
        old_key = legacy_meta_key(client_url)
        legacy = self.licenses.get_metadata(lic.id, old_key)
        if legacy is None:
            return False

        if self.licenses.get_metadata(lic.id, meta_key) is None:
            self.licenses.set_metadata(lic.id, meta_key, legacy, expected_version=0)
        self.licenses.delete_metadata(lic.id, old_key)

        logger.info("Migrated license %s binding %s -> %s", lic.id, old_key, meta_key)
        return True

    def _handle_expired_binding(self, ctx: RequestContext) -> bool:
        """
        Binding was stamped expired. Returns True when the request is let
        through as is (scheduled check of a still expired license).
        """
        lic = ctx.license

        if evaluate_expiry(lic.expires_at, self.clock()) is not None:
            if ctx.state == "validate" and ctx.flag == CRON_FLAG:
                ctx.authorized = True
                ctx.bypassed = True
                return True
            raise Expired("Renew your license before attempting to activate again.", 400)

        # The license was renewed since the binding expired.
        if ctx.state == "deactivate":
            raise Forbidden("Please activate your license first after renewal.", 400)

        saved_status = str(ctx.metadata.get("status") or "")
        renewed: Dict[str, Any] = {}
        if ctx.user_email:
            renewed["email"] = ctx.user_email
        renewed["url"] = ctx.client_url
        renewed["status"] = saved_status
        if "data" in ctx.metadata:
            renewed["data"] = ctx.metadata["data"]

        if saved_status == "active":
            # The activation that follows counts again.
            renewed["status"] = "inactive"
            times = lic.times_activated or 0
            self.licenses.update(lic.id, {"times_activated": max(times - 1, 0)})

        renewed["expired"] = "no"

        ctx.meta_version = self.licenses.set_metadata(lic.id, ctx.meta_key, renewed, expected_version=ctx.meta_version)
        ctx.metadata = renewed
        return False

    def _request_email(self, ctx: RequestContext) -> str:
        return ctx.user_email or str(ctx.parameters.get("email") or "")

    def _check_already_applied(self, ctx: RequestContext) -> None:
        saved_url = str(ctx.metadata.get("url") or "")
        saved_status = str(ctx.metadata.get("status") or "")
        # Same host means same binding, whatever path or "www." the Referer carries.
        same_site = bool(saved_url) and site_host(saved_url) == site_host(ctx.client_url)

        active = same_site and saved_status == "active" and ctx.state == "activate"
        inactive = same_site and saved_status == "inactive" and ctx.state == "deactivate"

        email = self._request_email(ctx)
        if email:
            same_email = email == str(ctx.metadata.get("email") or "")
            active = active and same_email
            inactive = inactive and same_email

        if active or inactive:
            raise Conflict(f"The license for this site has already been {ctx.state}d.")

        # Only the site holding an activation can give it back.
        if ctx.state == "deactivate" and saved_status != "active":
            raise Conflict("The license has not been activated for this site.")

    def _check_parameters(self, ctx: RequestContext) -> None:
        lic = ctx.license
        params = ctx.parameters

        product = self.products.find_by_id(lic.product_id)
        if product is None or params.get("slug") != product.slug:
            raise NotFound(self.options.name_validate_response)

        if params.get("order_id") not in (None, ""):
            order = self.orders.find_by_id(lic.order_id)
            try:
                requested = int(params["order_id"])
            except (TypeError, ValueError):
                requested = None
            if order is None or requested != order.id:
                raise NotFound(self.options.order_validate_response)

        email = self._request_email(ctx)
        if email:
            user = self.users.find_by_id(lic.user_id)
            if user is None or email != user.email:
                raise NotFound(self.options.email_validate_response)

    # ==========================================================
    # Response
    # ==========================================================
    def parse_response(self, ctx: RequestContext, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Shapes the payload of an authorised request after the license
        operation itself ran. ``data`` is the operation's own payload.
        """
        if self.options.debug_mode or ctx.state is None:
            return data

        if ctx.state == "validate":
            return self.send_validate_response(ctx)

        lic = ctx.license
        status_text = "inactive" if ctx.state == "deactivate" else "active"

        metadata = dict(ctx.pending_metadata or {})
        metadata["status"] = status_text
        metadata = self.enricher.license_meta(metadata, lic, ctx.state)

        ctx.meta_version = self.licenses.set_metadata(lic.id, ctx.meta_key, metadata, expected_version=ctx.meta_version)
        ctx.metadata = metadata

        package = self._package(lic) if status_text == "active" else None
        return self.send_response(lic, ctx.meta_key, metadata, self.products.get_metadata(lic.product_id), status_text, package)

    def send_validate_response(self, ctx: RequestContext) -> Dict[str, Any]:
        lic = ctx.license
        metadata = self.licenses.get_metadata(lic.id, ctx.meta_key) or {}
        status_text = str(metadata.get("status") or "")

        if not status_text:
            raise Unauthorized("License status can not be verified.")

        state = status_text
        expired = evaluate_expiry(lic.expires_at, self.clock())
        if expired is not None:
            state = "expired"
            if metadata.get("expired") != "yes":
                metadata = self.license_expired(ctx)

        package = None
        if ctx.flag in UPDATE_FLAGS:
            if status_text != "active":
                raise LicenseServerError("License is not active.", 402)
            if expired is not None:
                raise Forbidden("License has expired.", data={"expires_at": expired.expires_at})
            package = self._package(lic)

        response = self.send_response(lic, ctx.meta_key, metadata, self.products.get_metadata(lic.product_id), state, package)
        if expired is not None:
            response["expired_on"] = expired.expires_at

        return self.enricher.pre_response_validate(response, ctx)

    def send_response(
        self,
        lic: License,
        key: str,
        metadata: Dict[str, Any],
        product_meta: Dict[str, Any],
        state: str,
        package: Optional[str] = None,
    ) -> Dict[str, Any]:
        data = {
            "key": key,
            "status": state,
            "state": state,
            "order_id": lic.order_id,
            "expires_at": format_datetime(lic.expires_at),
            "product_id": lic.product_id,
            "active_count": lic.times_activated,
            "total_count": lic.times_activated_max,
            "license_key": lic.decrypted_license_key,
            "purchased_on": format_datetime(lic.created_at),
            "product_meta": product_meta,
        }

        if metadata.get("email"):
            data["email"] = metadata["email"]
        if package:
            data["package"] = package

        return self.enricher.pre_send_response(data, lic, metadata)

    def _package(self, lic: License) -> Optional[str]:
        if self.package_locator is None:
            return None
        return self.package_locator.get_signed_url(lic)

    # ==========================================================
    # Expiry
    # ==========================================================
    def license_expired(self, ctx: RequestContext) -> Dict[str, Any]:
        """Stamps the site binding of an expired license with expired=yes."""
        lic = ctx.license
        metadata = self.licenses.get_metadata(lic.id, ctx.meta_key) or {}

        if metadata.get("expired") != "yes":
            metadata["expired"] = "yes"
            self.licenses.set_metadata(lic.id, ctx.meta_key, metadata)
            ctx.expired_stamped = True
            logger.info("License %s binding %s marked expired", lic.id, ctx.meta_key)

        return metadata
