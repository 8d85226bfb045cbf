"""Watermarked template bundles.

The watermark is informational: it is shipped next to the untouched original
archive rather than injected into its files.
"""
from __future__ import annotations

import io
import re
import zipfile
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from techforge.core.errors import AuthError
from techforge.features.entitlements.gate import AccessDecision


BUNDLE_CONTENT_TYPE = "application/zip"


@dataclass(frozen=True)
class AssetBundle:
    filename: str
    content_type: str
    content: bytes


def _slug(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-") or "bundle"


class AssetPackager:
    def __init__(self, brand: str):
        self.brand = brand

    def bundle_filename(self, template: str) -> str:
        return f"{_slug(self.brand)}-{_slug(template)}-watermarked.zip"

    def watermark_text(self, decision: AccessDecision, generated_at: datetime) -> str:
        lic = decision.license
        return (
            f"{self.brand} Watermark\n"
            f"Email: {lic.email}\n"
            f"License: {lic.key}\n"
            f"Template: {decision.asset}\n"
            f"Generated: {generated_at.isoformat()}\n"
        )

    def license_text(self, decision: AccessDecision) -> str:
        lic = decision.license
        return (
            f"License Key: {lic.key}\n"
            f"Plan: {lic.plan.value}\n"
            f"Licensed to: {lic.email}\n"
        )

    def package(self, decision: AccessDecision, asset_bytes: bytes, generated_at: Optional[datetime] = None) -> AssetBundle:
        """Build the zip bundle for an allowed decision.

        Output is byte-identical for identical inputs and ``generated_at``:
        every member carries the generation time as its zip timestamp.
        """
        if not decision.allowed or decision.license is None:
            code = decision.reason.value if decision.reason else None
            raise AuthError(decision.message, code=code)

        generated_at = generated_at or datetime.now(timezone.utc)
        stamp = max(generated_at.timetuple()[:6], (1980, 1, 1, 0, 0, 0))

        members = [
            ("WATERMARK.txt", self.watermark_text(decision, generated_at).encode("utf-8"), zipfile.ZIP_DEFLATED),
            ("LICENSE.txt", self.license_text(decision).encode("utf-8"), zipfile.ZIP_DEFLATED),
            # Already an archive; stored as-is
            (f"{decision.asset}-original.zip", asset_bytes, zipfile.ZIP_STORED),
        ]

        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w") as zf:
            for name, data, compression in members:
                info = zipfile.ZipInfo(name, date_time=stamp)
                info.compress_type = compression
                info.external_attr = 0o644 << 16
                zf.writestr(info, data)

        return AssetBundle(
            filename=self.bundle_filename(decision.asset),
            content_type=BUNDLE_CONTENT_TYPE,
            content=buf.getvalue(),
        )
