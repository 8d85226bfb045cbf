"""
Service wiring.

Every collaborator is constructed here once, at startup, and handed to the
services that need it. Routes reach the services through
``request.app.state.services``; nothing else holds a client instance.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from techforge.core.config import Settings
from techforge.core.database import Database
from techforge.features.affiliates.ledger import AffiliateLedger
from techforge.features.assets.packager import AssetPackager
from techforge.features.assets.service import DownloadService
from techforge.features.assets.storage import ObjectStore, SupabaseStorage
from techforge.features.billing.provider import PaymentEventVerifier, PaymentGateway
from techforge.features.billing.service import CheckoutService
from techforge.features.billing.stripe_provider import StripeProvider
from techforge.features.entitlements.gate import EntitlementGate, template_titles
from techforge.features.fulfillment.service import FulfillmentOrchestrator
from techforge.features.licenses.store import LicenseStore
from techforge.features.notifications.notifier import Notifier, ResendNotifier
from techforge.features.profiles.service import ProfileStore


@dataclass
class Services:
    settings: Settings
    db: Database
    profiles: ProfileStore
    licenses: LicenseStore
    ledger: AffiliateLedger
    checkout: CheckoutService
    fulfillment: FulfillmentOrchestrator
    gate: EntitlementGate
    downloads: DownloadService


def build_services(
    settings_obj: Settings,
    *,
    db: Optional[Database] = None,
    gateway: Optional[PaymentGateway] = None,
    verifier: Optional[PaymentEventVerifier] = None,
    object_store: Optional[ObjectStore] = None,
    notifier: Optional[Notifier] = None,
) -> Services:
    """Build the service graph; any collaborator may be overridden (tests)."""
    timeout = settings_obj.UPSTREAM_TIMEOUT_SECONDS
    db = db or Database.from_settings(settings_obj)

    if gateway is None or verifier is None:
        stripe_provider = StripeProvider(
            settings_obj.STRIPE_SECRET_KEY,
            settings_obj.STRIPE_WEBHOOK_SECRET,
            timeout=timeout,
        )
        gateway = gateway or stripe_provider
        verifier = verifier or stripe_provider

    object_store = object_store or SupabaseStorage(
        settings_obj.SUPABASE_URL,
        settings_obj.SUPABASE_SERVICE_ROLE_KEY,
        settings_obj.TEMPLATE_BUCKET,
        timeout=timeout,
    )
    notifier = notifier or ResendNotifier(
        settings_obj.RESEND_API_KEY,
        settings_obj.LICENSE_EMAIL_FROM,
        brand=settings_obj.BRAND_NAME,
        download_base=settings_obj.PUBLIC_DOWNLOAD_BASE,
        templates=template_titles(),
        timeout=timeout,
    )

    profiles = ProfileStore(db)
    licenses = LicenseStore(db)
    ledger = AffiliateLedger(db)
    gate = EntitlementGate(licenses)

    return Services(
        settings=settings_obj,
        db=db,
        profiles=profiles,
        licenses=licenses,
        ledger=ledger,
        checkout=CheckoutService(
            gateway,
            profiles,
            settings_obj.price_map(),
            settings_obj.PUBLIC_SITE_URL,
        ),
        fulfillment=FulfillmentOrchestrator(db, verifier, profiles, licenses, ledger, notifier),
        gate=gate,
        downloads=DownloadService(gate, object_store, AssetPackager(settings_obj.BRAND_NAME)),
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency: the service graph built at startup."""
    return request.app.state.services
