# license_client.py
# ----------------------------------------
# License Manager Server - Python Client
# Builds the TWS credentials client sites send
# ----------------------------------------

import requests

from app.utils.signer import authorization_header, validation_secret

CLIENT_API = "/lmfwc/v2/licenses"


class LicenseClientError(Exception):
    def __init__(self, message, code=None, data=None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data


class LicenseClient:
    def __init__(self, server_url: str, site_url: str, shared_secret: str, email: str = None, timeout: int = 10):
        """
        server_url = "https://shop.example"   (license server)
        site_url   = "https://buyer.example"  (site the license is used on, sent as Referer)
        """
        self.base = server_url.rstrip("/") + CLIENT_API
        self.site_url = site_url
        self.shared_secret = shared_secret
        self.email = email
        self.timeout = timeout

    # ----------------------------------------------------------------------
    # HEADERS
    # ----------------------------------------------------------------------
    def _headers(self, credential: str) -> dict:
        headers = {
            "Authorization": authorization_header(credential),
            "Referer": self.site_url,
        }
        if self.email:
            headers["From"] = self.email
        return headers

    def _request(self, state: str, license_key: str, params: dict, credential: str) -> dict:
        params = {k: v for k, v in params.items() if v not in (None, "")}
        params["form_state"] = state

        r = requests.get(
            f"{self.base}/{state}/{license_key}",
            params=params,
            headers=self._headers(credential),
            timeout=self.timeout,
        )

        try:
            data = r.json()
        except ValueError:
            raise LicenseClientError(f"Invalid response from license server ({r.status_code})", r.status_code)

        if r.status_code >= 400 or "error" in data:
            raise LicenseClientError(data.get("error") or data.get("detail") or "License request failed",
                                     data.get("code", r.status_code), data.get("data"))
        return data

    # ----------------------------------------------------------------------
    # LICENSE OPERATIONS
    # ----------------------------------------------------------------------
    def activate(self, license_key: str, slug: str, order_id: int = None) -> dict:
        return self._request("activate", license_key, {"slug": slug, "order_id": order_id}, self.shared_secret)

    def deactivate(self, license_key: str, slug: str, order_id: int = None) -> dict:
        return self._request("deactivate", license_key, {"slug": slug, "order_id": order_id}, self.shared_secret)

    def validate(self, license_key: str, slug: str, meta_key: str, purchased_on: str, flag: str = None) -> dict:
        """
        meta_key and purchased_on come from the activation response
        ("key" and "purchased_on").
        """
        credential = validation_secret(meta_key, purchased_on, self.shared_secret)
        return self._request("validate", license_key, {"slug": slug, "flag": flag}, credential)
