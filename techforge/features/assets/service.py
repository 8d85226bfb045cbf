"""Download path: validate, gate, fetch, package."""
from __future__ import annotations

import logging

from techforge.core.errors import AuthError, ValidationError
from techforge.features.assets.packager import AssetBundle, AssetPackager
from techforge.features.assets.storage import ObjectStore, template_object_name
from techforge.features.entitlements.gate import EntitlementGate

logger = logging.getLogger("techforge")


class DownloadService:
    def __init__(self, gate: EntitlementGate, store: ObjectStore, packager: AssetPackager):
        self.gate = gate
        self.store = store
        self.packager = packager

    def download(self, template: str, license_key: str) -> AssetBundle:
        """Return the watermarked bundle for ``template``.

        Raises:
            ValidationError: Unknown template or missing license (400)
            AuthError: Invalid, inactive or insufficient license (403)
            UpstreamError: Storage failure (500)
        """
        resolved = self.gate.resolve(template)
        if resolved is None:
            raise ValidationError("Invalid template", code="invalid_template")
        license_key = (license_key or "").strip()
        if not license_key:
            raise ValidationError("Missing license", code="missing_license")

        decision = self.gate.check_access(license_key, resolved.name)
        if not decision.allowed:
            raise AuthError(decision.message, code=decision.reason.value)

        asset_bytes = self.store.fetch(template_object_name(resolved.name))
        bundle = self.packager.package(decision, asset_bytes)
        logger.info(
            "download.packaged",
            extra={"template": resolved.name, "plan": decision.license.plan.value},
        )
        return bundle
