"""
Admin license routes.

- GET  /admin/licenses/{key}: Inspect a license
- POST /admin/licenses/{key}/revoke: Revoke a license
- GET  /admin/affiliates/{code}: Commission ledger for one affiliate code

All routes require X-Admin-Key.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from techforge.core.admin_auth import AdminActor, require_admin
from techforge.core.container import Services, get_services
from techforge.models.license import AffiliateEvent, License


logger = logging.getLogger("techforge")

router = APIRouter(prefix="/admin", tags=["admin"])


class LicenseResponse(BaseModel):
    key: str
    email: str
    plan: str
    status: str
    source_event_id: Optional[str]
    created_at: datetime
    revoked_at: Optional[datetime]


class AffiliateSummaryResponse(BaseModel):
    affiliate_code: str
    sales: int
    gross: Decimal
    commission: Decimal
    events: List[AffiliateEvent]


def _license_response(lic: License) -> LicenseResponse:
    return LicenseResponse(
        key=lic.key,
        email=lic.email,
        plan=lic.plan.value,
        status=lic.status.value,
        source_event_id=lic.source_event_id,
        created_at=lic.created_at,
        revoked_at=lic.revoked_at,
    )


@router.get("/licenses/{key}", response_model=LicenseResponse)
def get_license(
    key: str,
    actor: AdminActor = Depends(require_admin),
    services: Services = Depends(get_services),
):
    return _license_response(services.licenses.lookup(key))


@router.post("/licenses/{key}/revoke", response_model=LicenseResponse)
def revoke_license(
    key: str,
    actor: AdminActor = Depends(require_admin),
    services: Services = Depends(get_services),
):
    lic = services.licenses.revoke(key)
    logger.info(
        "admin.license_revoked",
        extra={"email": lic.email, "plan": lic.plan.value, "actor_id": actor.actor_id},
    )
    return _license_response(lic)


@router.get("/affiliates/{code}", response_model=AffiliateSummaryResponse)
def affiliate_summary(
    code: str,
    actor: AdminActor = Depends(require_admin),
    services: Services = Depends(get_services),
):
    events = services.ledger.events_for_code(code)
    return AffiliateSummaryResponse(
        affiliate_code=code,
        sales=len(events),
        gross=sum((e.amount for e in events), Decimal("0.00")),
        commission=sum((e.commission for e in events), Decimal("0.00")),
        events=events,
    )
