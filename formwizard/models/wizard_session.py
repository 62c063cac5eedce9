"""Stored wizard session entries (database session backend).

One row per (browser session, wizard) pair. `data` holds the serialised
WizardState; rows untouched for longer than the session TTL are treated
as absent and removed by the purge loop.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from formwizard.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp (stored without tzinfo on every backend)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class WizardSession(Base):
    __tablename__ = "wizard_sessions"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    session_key: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    data: Mapped[dict] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, index=True
    )
