# app/utils/errors.py
# -*- coding: utf-8 -*-
"""
License server error taxonomy.

Every failure of a license request is raised as a LicenseServerError and
rendered by main.py as:

    {"error": "<message>", "code": <status>, "data": {...}}

with the HTTP status set to ``code``. ``data`` only carries diagnostics
(requested vs. expected route, expiry date), never credentials.
"""

from typing import Any, Dict, Optional

from fastapi import status as http_status


class LicenseServerError(Exception):
    default_status = http_status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, status: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.message = message
        self.status = status if status is not None else self.default_status
        self.data = data

    def to_dict(self) -> Dict[str, Any]:
        payload = {"error": self.message, "code": self.status}
        if self.data:
            payload["data"] = self.data
        return payload


class Unauthorized(LicenseServerError):
    """Bad or missing credential, wrong state on route, direct API access blocked."""
    default_status = http_status.HTTP_401_UNAUTHORIZED


class NotFound(LicenseServerError):
    """License, order, product or user lookup miss."""
    default_status = http_status.HTTP_404_NOT_FOUND


class Conflict(LicenseServerError):
    """Operation already applied or binding changed underneath the request."""
    default_status = http_status.HTTP_400_BAD_REQUEST


class Expired(LicenseServerError):
    """License past expiry, not renewable via this call."""
    default_status = http_status.HTTP_405_METHOD_NOT_ALLOWED


class LicenseExpired(Expired):
    def __init__(self, expires_at: str):
        super().__init__(f"The license Key expired on {expires_at} (UTC).", data={"expires_at": expires_at})
        self.expires_at = expires_at


class Forbidden(LicenseServerError):
    default_status = http_status.HTTP_403_FORBIDDEN


class UpstreamFailure(LicenseServerError):
    """Package Locator (or another collaborator) call failed."""
    default_status = http_status.HTTP_502_BAD_GATEWAY
