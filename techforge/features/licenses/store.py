"""
techforge/features/licenses/store.py

License persistence.

Handles:
- Key generation (CSPRNG, Crockford base32, 140 bits)
- Issuance with one-license-per-event idempotency
- Lookup and revocation

Uniqueness is enforced by the database (unique license_key and unique
source_event_id), never by in-process locks: concurrent deliveries of the
same event race on the insert and the loser observes DuplicateEvent.
"""

import secrets
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import select, insert, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from techforge.core.database import Database, licenses
from techforge.core.errors import NotFoundError, UpstreamError
from techforge.features.profiles.service import normalize_email
from techforge.models.license import License, LicenseStatus
from techforge.models.plan import Plan


# Crockford base32: no I, L, O or U, so keys survive being read aloud or retyped
LICENSE_KEY_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
LICENSE_KEY_PREFIX = "TF"
LICENSE_KEY_GROUPS = 7
LICENSE_KEY_GROUP_SIZE = 4


class DuplicateEvent(Exception):
    """A license already exists for this fulfillment event. Not an error."""

    def __init__(self, license: License):
        super().__init__(f"license already issued for event {license.source_event_id}")
        self.license = license


class LicenseNotFound(NotFoundError):
    code = "license_not_found"


def generate_license_key(prefix: str = LICENSE_KEY_PREFIX) -> str:
    """Return e.g. ``TF-7K3Q-M0ZD-...``; 28 symbols x 5 bits = 140 bits of entropy."""
    groups = [
        "".join(secrets.choice(LICENSE_KEY_ALPHABET) for _ in range(LICENSE_KEY_GROUP_SIZE))
        for _ in range(LICENSE_KEY_GROUPS)
    ]
    return "-".join([prefix, *groups])


def normalize_license_key(key: str) -> str:
    return (key or "").strip().upper()


def _row_to_license(row) -> License:
    return License(
        key=row.license_key,
        email=row.email,
        plan=Plan(row.plan),
        status=LicenseStatus(row.status),
        source_event_id=row.source_event_id,
        created_at=row.created_at,
        revoked_at=row.revoked_at,
    )


class LicenseStore:

    def __init__(self, db: Database):
        self.db = db

    def issue(
        self,
        email: str,
        plan: Plan,
        event_id: Optional[str],
        *,
        session: Optional[Session] = None,
    ) -> License:
        """
        Persist a new active license.

        When ``session`` is given the insert joins the caller's transaction and
        a unique-constraint race surfaces to the caller as IntegrityError on
        flush or commit. Otherwise the store owns the transaction and resolves
        the race itself.

        Raises:
            DuplicateEvent: A license already exists for ``event_id``
            UpstreamError: The insert failed for any other reason
        """
        if session is not None:
            return self._insert(session, email, plan, event_id)

        try:
            with self.db.session() as s:
                return self._insert(s, email, plan, event_id)
        except IntegrityError as exc:
            existing = self.find_by_event(event_id) if event_id else None
            if existing is not None:
                raise DuplicateEvent(existing)
            raise UpstreamError("database", f"license insert conflict: {exc}") from exc

    def _insert(self, s: Session, email: str, plan: Plan, event_id: Optional[str]) -> License:
        if event_id:
            existing = self._select_by_event(s, event_id)
            if existing is not None:
                raise DuplicateEvent(existing)

        issued = License(
            key=generate_license_key(),
            email=normalize_email(email),
            plan=plan,
            status=LicenseStatus.ACTIVE,
            source_event_id=event_id,
            created_at=datetime.now(timezone.utc),
        )
        s.execute(
            insert(licenses).values(
                license_key=issued.key,
                email=issued.email,
                plan=issued.plan.value,
                status=issued.status.value,
                source_event_id=issued.source_event_id,
                created_at=issued.created_at,
            )
        )
        s.flush()
        return issued

    def _select_by_event(self, s: Session, event_id: str) -> Optional[License]:
        row = s.execute(
            select(licenses).where(licenses.c.source_event_id == event_id)
        ).fetchone()
        return _row_to_license(row) if row else None

    def find_by_event(self, event_id: str, *, session: Optional[Session] = None) -> Optional[License]:
        with self.db.scope(session) as s:
            return self._select_by_event(s, event_id)

    def lookup(self, key: str) -> License:
        with self.db.session() as s:
            row = s.execute(
                select(licenses).where(licenses.c.license_key == normalize_license_key(key))
            ).fetchone()
        if row is None:
            raise LicenseNotFound("License not found")
        return _row_to_license(row)

    def revoke(self, key: str) -> License:
        """Move a license to revoked. Revoking twice keeps the first revoked_at."""
        key = normalize_license_key(key)
        with self.db.session() as s:
            row = s.execute(select(licenses).where(licenses.c.license_key == key)).fetchone()
            if row is None:
                raise LicenseNotFound("License not found")
            if row.status != LicenseStatus.REVOKED.value:
                s.execute(
                    update(licenses)
                    .where(licenses.c.license_key == key)
                    .values(status=LicenseStatus.REVOKED.value, revoked_at=datetime.now(timezone.utc))
                )
                s.flush()
                row = s.execute(select(licenses).where(licenses.c.license_key == key)).fetchone()
            return _row_to_license(row)
