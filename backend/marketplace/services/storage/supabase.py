"""
Supabase Storage bundle backend

Talks to the Supabase Storage REST API with the service role key. Uploads are
sent with x-upsert disabled so an existing bundle is reported as a conflict
instead of being replaced.
"""

import logging
from typing import Optional
from urllib.parse import quote

import httpx

from .base import StorageConflictError, StorageError

logger = logging.getLogger(__name__)


class SupabaseBundleStorage:
    """
    Bundle storage backed by a Supabase Storage bucket.

    Args:
        base_url: Supabase project URL (https://<project>.supabase.co)
        service_key: Service role key used for storage administration
        bucket: Bucket that holds extension bundles
        client: Optional preconfigured httpx client
    """

    def __init__(
        self,
        base_url: str,
        service_key: str,
        bucket: str = "extensions",
        client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self._client = client or httpx.Client(timeout=timeout)
        self._headers = {
            "Authorization": f"Bearer {service_key}",
            "apikey": service_key,
        }

    def _object_url(self, action: str, path: str) -> str:
        return f"{self.base_url}/storage/v1/{action}/{self.bucket}/{quote(path)}"

    @staticmethod
    def _is_duplicate(response: httpx.Response) -> bool:
        if response.status_code == 409:
            return True
        # Storage API reports duplicates as 400 with statusCode "409" in the body
        try:
            body = response.json()
        except ValueError:
            return False
        if not isinstance(body, dict):
            return False
        return str(body.get("statusCode")) == "409" or body.get("error") == "Duplicate"

    def put(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        try:
            response = self._client.post(
                self._object_url("object", path),
                content=data,
                headers={**self._headers, "Content-Type": content_type, "x-upsert": "false"},
            )
        except httpx.HTTPError as e:
            logger.error(f"Storage upload request failed for {path}: {e}")
            raise StorageError(f"Upload failed for {path}") from e

        if response.status_code >= 400:
            if self._is_duplicate(response):
                raise StorageConflictError(path)
            logger.error(f"Storage upload rejected for {path}: HTTP {response.status_code} {response.text}")
            raise StorageError(f"Upload failed for {path}")

        logger.info(f"Uploaded bundle {path} to bucket {self.bucket}")
        return path

    def signed_url(self, path: str, ttl_seconds: int) -> str:
        try:
            response = self._client.post(
                self._object_url("object/sign", path),
                json={"expiresIn": ttl_seconds},
                headers=self._headers,
            )
            response.raise_for_status()
            signed_path = response.json()["signedURL"]
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.error(f"Failed to sign download URL for {path}: {e}")
            raise StorageError(f"Could not sign {path}") from e

        return f"{self.base_url}/storage/v1{signed_path}"

    def public_url(self, path: str) -> str:
        return self._object_url("object/public", path)
