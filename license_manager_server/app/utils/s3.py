# app/utils/s3.py
"""
Package Locator: time-limited download URLs for licensed products stored
on Amazon S3 (or any S3 compatible storage).
"""

import logging
from datetime import timedelta
from typing import Optional

from minio import Minio
from minio.error import S3Error

from app.models.license_model import License
from app.utils.errors import UpstreamFailure
from app.utils.options import S3Options
from app.utils.stores import ProductCatalog

logger = logging.getLogger(__name__)


class PackageLocator:
    """Resolves the signed package URL of a license's product."""

    def get_signed_url(self, lic: License) -> str:
        raise NotImplementedError


class S3PackageLocator(PackageLocator):
    def __init__(self, options: S3Options, catalog: ProductCatalog, client: Optional[Minio] = None):
        self.options = options
        self.catalog = catalog
        self._client = client

    @property
    def client(self) -> Minio:
        if self._client is None:
            if not self.options.s3_key or not self.options.s3_secret:
                raise UpstreamFailure("Amazon S3 credentials are not configured.")
            self._client = Minio(
                self.options.s3_endpoint,
                access_key=self.options.s3_key,
                secret_key=self.options.s3_secret,
                region=self.options.s3_region or None,
                secure=True,
            )
        return self._client

    def get_signed_url(self, lic: License) -> str:
        meta = self.catalog.get_metadata(lic.product_id, dispatch=False)
        bucket = meta.get("bucket")
        filename = meta.get("filename")

        if not bucket or not filename:
            raise UpstreamFailure(f"No package is stored for product {lic.product_id}.")

        try:
            return self.client.presigned_get_object(
                bucket,
                filename,
                expires=timedelta(minutes=self.options.s3_url_expiration),
            )
        except S3Error as e:
            logger.warning("S3 refused package URL for %s/%s: %s", bucket, filename, e.code)
            raise UpstreamFailure(f"{e.code}: {e.message}") from e
        except UpstreamFailure:
            raise
        except Exception as e:
            logger.exception("Package URL for %s/%s failed", bucket, filename)
            raise UpstreamFailure(str(e) or e.__class__.__name__) from e
