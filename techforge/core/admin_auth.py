"""
Admin authentication for license operations.

Shared-secret X-Admin-Key header compared against ADMIN_KEY. With no
ADMIN_KEY configured every admin request is refused.
"""
import hashlib
import hmac
from dataclasses import dataclass

from fastapi import Depends, Request

from techforge.core.container import Services, get_services
from techforge.core.errors import AuthError


@dataclass
class AdminActor:
    """Represents an authenticated admin actor."""
    actor_id: str  # "key:<hash prefix>"
    auth_mechanism: str = "x_admin_key"


def require_admin(request: Request, services: Services = Depends(get_services)) -> AdminActor:
    """FastAPI dependency; raises AuthError (403) unless X-Admin-Key matches."""
    expected_key = services.settings.ADMIN_KEY
    header_key = request.headers.get("X-Admin-Key", "").strip()
    if not expected_key or not header_key or not hmac.compare_digest(header_key, expected_key):
        raise AuthError("Admin access required", code="admin_required")

    key_hash = hashlib.sha256(header_key.encode()).hexdigest()[:16]
    return AdminActor(actor_id=f"key:{key_hash}")
