"""Template object storage.

ObjectStore is the narrow interface the download path consumes;
SupabaseStorage reads from a private Supabase Storage bucket over HTTP.
"""
from __future__ import annotations

from typing import Protocol
from urllib.parse import quote

import httpx

from techforge.core.errors import UpstreamError


class ObjectStore(Protocol):

    def fetch(self, name: str) -> bytes:
        """Return the object's bytes.

        Raises:
            UpstreamError: Missing object, provider failure or timeout
        """
        ...


def template_object_name(template: str) -> str:
    return f"{template}.zip"


class SupabaseStorage:
    def __init__(self, base_url: str, service_key: str, bucket: str, *, timeout: float = 10.0):
        self.base_url = (base_url or "").rstrip("/")
        self.service_key = service_key
        self.bucket = bucket
        self.timeout = timeout

    def object_url(self, name: str) -> str:
        return f"{self.base_url}/storage/v1/object/{quote(self.bucket)}/{quote(name)}"

    def fetch(self, name: str) -> bytes:
        if not self.base_url or not self.service_key:
            raise UpstreamError("storage", "SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY not configured")

        headers = {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
        }
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.get(self.object_url(name), headers=headers)
        except httpx.HTTPError as exc:
            raise UpstreamError("storage", f"download of {name} failed: {exc}") from exc
        if response.status_code >= 300:
            raise UpstreamError("storage", f"download of {name} failed: {response.status_code} {response.text[:200]}")
        return response.content
