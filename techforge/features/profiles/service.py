"""
techforge/features/profiles/service.py

Customer profile upserts.

Profiles are keyed by email. A checkout may arrive before the email is known
to us under a user id, so a profile missing by email is looked up by user_id
before a new row is inserted. Profiles are never deleted here.
"""

from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import select, insert, update
from sqlalchemy.orm import Session

from techforge.core.database import Database, profiles
from techforge.models.license import Profile
from techforge.models.plan import Plan


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _row_to_profile(row) -> Profile:
    return Profile(
        user_id=row.user_id,
        email=row.email,
        plan=Plan(row.plan),
        updated_at=row.updated_at,
    )


class ProfileStore:

    def __init__(self, db: Database):
        self.db = db

    def upsert(
        self,
        email: str,
        *,
        plan: Optional[Plan] = None,
        user_id: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> Profile:
        """
        Create or refresh a profile.

        ``plan`` is only written when given, so a checkout upsert never
        downgrades an existing customer. ``user_id`` is attached to a profile
        that has none, unless another profile already holds it.
        """
        email = normalize_email(email)
        now = datetime.now(timezone.utc)

        with self.db.scope(session) as s:
            row = s.execute(select(profiles).where(profiles.c.email == email)).fetchone()
            if row is None and user_id:
                row = s.execute(select(profiles).where(profiles.c.user_id == user_id)).fetchone()

            values = {"email": email, "updated_at": now}
            if plan is not None:
                values["plan"] = plan.value
            if user_id and (row is None or row.user_id is None):
                # user_id is unique; never steal it from another profile
                holder = s.execute(
                    select(profiles.c.id).where(profiles.c.user_id == user_id)
                ).fetchone()
                if holder is None:
                    values["user_id"] = user_id

            if row is not None:
                s.execute(update(profiles).where(profiles.c.id == row.id).values(**values))
            else:
                values.setdefault("plan", Plan.FREE.value)
                s.execute(insert(profiles).values(**values))
            s.flush()

            saved = s.execute(select(profiles).where(profiles.c.email == email)).fetchone()
            return _row_to_profile(saved)

    def get(self, email: str) -> Optional[Profile]:
        with self.db.session() as s:
            row = s.execute(
                select(profiles).where(profiles.c.email == normalize_email(email))
            ).fetchone()
        return _row_to_profile(row) if row else None
