"""Request-scoped browser session identity.

Key components:
  - _session_ctx        ContextVar holding the session id for the current request
  - set / get / clear helpers for the ContextVar
  - validate_session_id()   only accepts ids this service could have minted
  - new_session_id()        mints a fresh id
"""

import re
import uuid
from contextvars import ContextVar

from fastapi import HTTPException, status

# ── Request-scoped session context ──────────────────────────

_session_ctx: ContextVar[str | None] = ContextVar("_session_ctx", default=None)


def set_current_session_id(session_id: str) -> None:
    _session_ctx.set(session_id)


def get_current_session_id() -> str:
    """Return the current session id or raise if unset."""
    session_id = _session_ctx.get()
    if session_id is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="No session context; is WizardSessionMiddleware installed?",
        )
    return session_id


def peek_session_id() -> str | None:
    """The current session id, or None outside a request."""
    return _session_ctx.get()


def clear_session_context() -> None:
    _session_ctx.set(None)


# ── Validation ──────────────────────────────────────────────

_SESSION_ID_RE = re.compile(r"^[0-9a-f]{32}$")


def validate_session_id(session_id: str | None) -> str:
    """Ensure a client-supplied id is safe to embed in store keys."""
    if not session_id or not _SESSION_ID_RE.match(session_id):
        raise ValueError(f"Invalid session id: {session_id!r}")
    return session_id


def new_session_id() -> str:
    return uuid.uuid4().hex
