"""Session middleware — resolves the browser session on every request.

Flow:
  1. Read the session cookie
  2. Validate it; mint a new id when it is missing or malformed
  3. Set the ContextVar so downstream code (WizardStateManager) can read it
  4. Refresh the cookie on the response (sliding expiry)
  5. Clear the ContextVar
"""

from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from formwizard.config import settings
from formwizard.sessions import (
    clear_session_context,
    new_session_id,
    set_current_session_id,
    validate_session_id,
)


class WizardSessionMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        cookie_name: Optional[str] = None,
        max_age: Optional[int] = None,
        secure: Optional[bool] = None,
    ):
        super().__init__(app)
        self.cookie_name = cookie_name or settings.session_cookie_name
        self.max_age = max_age or settings.session_ttl_seconds
        self.secure = settings.environment == "production" if secure is None else secure

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            session_id = validate_session_id(request.cookies.get(self.cookie_name))
        except ValueError:
            session_id = new_session_id()

        set_current_session_id(session_id)
        try:
            response = await call_next(request)
        finally:
            clear_session_context()

        response.set_cookie(
            self.cookie_name,
            session_id,
            max_age=self.max_age,
            httponly=True,
            samesite="lax",
            secure=self.secure,
        )
        return response
