"""License delivery email.

Notifier is the narrow interface the fulfillment pipeline consumes;
ResendNotifier posts to the Resend HTTP API with a bounded timeout.
"""
from __future__ import annotations

from html import escape
from typing import Dict, Protocol
from urllib.parse import urlencode

import httpx

from techforge.core.errors import UpstreamError
from techforge.models.license import License


RESEND_API_URL = "https://api.resend.com/emails"


class Notifier(Protocol):

    def send_license(self, license: License) -> None:
        """Deliver the license key and download links to the license owner.

        Raises:
            UpstreamError: If the provider rejects the message or times out
        """
        ...


def download_links(base_url: str, license_key: str, templates: Dict[str, str]) -> Dict[str, str]:
    """Template title -> download URL for this license."""
    base = base_url.rstrip("/")
    return {
        title: f"{base}/download?{urlencode({'template': name, 'license': license_key})}"
        for name, title in templates.items()
    }


def render_license_email(brand: str, license: License, links: Dict[str, str]) -> str:
    items = "\n".join(
        f'<li><a href="{escape(url)}">{escape(title)}</a></li>' for title, url in links.items()
    )
    return (
        "<h2>You're activated</h2>\n"
        f"<p><b>Plan:</b> {escape(license.plan.value)}</p>\n"
        f"<p><b>License Key:</b> {escape(license.key)}</p>\n"
        f"<p>Downloads ({escape(brand)}):</p>\n"
        f"<ul>\n{items}\n</ul>\n"
    )


class ResendNotifier:
    def __init__(
        self,
        api_key: str,
        sender: str,
        *,
        brand: str,
        download_base: str,
        templates: Dict[str, str],
        timeout: float = 10.0,
        api_url: str = RESEND_API_URL,
    ):
        self.api_key = api_key
        self.sender = sender
        self.brand = brand
        self.download_base = download_base
        self.templates = templates
        self.timeout = timeout
        self.api_url = api_url

    def send_license(self, license: License) -> None:
        if not self.api_key:
            raise UpstreamError("resend", "RESEND_API_KEY not configured")

        links = download_links(self.download_base, license.key, self.templates)
        payload = {
            "from": self.sender,
            "to": [license.email],
            "subject": f"Your {self.brand} License + Downloads",
            "html": render_license_email(self.brand, license, links),
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self.api_url, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            raise UpstreamError("resend", f"request failed: {exc}") from exc
        if response.status_code >= 300:
            raise UpstreamError("resend", f"{response.status_code} {response.text[:200]}")
