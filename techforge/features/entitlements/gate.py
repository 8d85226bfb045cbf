"""
techforge/features/entitlements/gate.py

Entitlement gate for template downloads.

A license may download a template when its plan ranks at least as high as
the template's minimum plan. The check never mutates the license.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional
import logging

from techforge.features.licenses.store import LicenseNotFound, LicenseStore
from techforge.models.license import License
from techforge.models.plan import Plan


logger = logging.getLogger("techforge")


@dataclass(frozen=True)
class Template:
    name: str
    title: str
    required_plan: Plan


# Static catalog; not a mutable entity
TEMPLATES: Dict[str, Template] = {
    "saas": Template("saas", "SaaS Landing", Plan.STARTER),
    "ai": Template("ai", "AI Startup", Plan.PRO),
    "agency": Template("agency", "Agency Suite", Plan.AGENCY),
}


def template_titles() -> Dict[str, str]:
    return {t.name: t.title for t in TEMPLATES.values()}


class DenyReason(str, Enum):
    INVALID_LICENSE = "invalid_license"
    INACTIVE = "inactive"
    UNKNOWN_ASSET = "unknown_asset"
    INSUFFICIENT_PLAN = "insufficient_plan"


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    asset: str
    reason: Optional[DenyReason] = None
    required_plan: Optional[Plan] = None
    license: Optional[License] = None

    @property
    def message(self) -> str:
        """Human-readable reason, stable per DenyReason."""
        if self.allowed:
            return "ok"
        if self.reason == DenyReason.INVALID_LICENSE:
            return "Invalid license"
        if self.reason == DenyReason.INACTIVE:
            return "License not active"
        if self.reason == DenyReason.UNKNOWN_ASSET:
            return "Invalid template"
        return f"Plan upgrade required: {self.required_plan.value}"


class EntitlementGate:

    def __init__(self, licenses: LicenseStore, templates: Optional[Dict[str, Template]] = None):
        self.licenses = licenses
        self.templates = templates if templates is not None else TEMPLATES

    def resolve(self, name: Optional[str]) -> Optional[Template]:
        """Look ``name`` up in this gate's catalog."""
        return self.templates.get((name or "").strip().lower())

    def check_access(self, license_key: str, asset: str) -> AccessDecision:
        """
        Decide whether ``license_key`` may download ``asset``.

        Order: license exists, license active, asset known, plan rank.
        """
        asset = (asset or "").strip().lower()

        try:
            lic = self.licenses.lookup(license_key)
        except LicenseNotFound:
            return self._deny(asset, DenyReason.INVALID_LICENSE)

        if not lic.is_active:
            return self._deny(asset, DenyReason.INACTIVE, license=lic)

        template = self.templates.get(asset)
        if template is None:
            return self._deny(asset, DenyReason.UNKNOWN_ASSET, license=lic)

        if not lic.plan.covers(template.required_plan):
            return self._deny(
                asset,
                DenyReason.INSUFFICIENT_PLAN,
                license=lic,
                required_plan=template.required_plan,
            )

        return AccessDecision(
            allowed=True,
            asset=asset,
            required_plan=template.required_plan,
            license=lic,
        )

    def _deny(self, asset: str, reason: DenyReason, **kwargs) -> AccessDecision:
        logger.info(
            "entitlement.denied",
            extra={"template": asset, "error_code": reason.value},
        )
        return AccessDecision(allowed=False, asset=asset, reason=reason, **kwargs)
