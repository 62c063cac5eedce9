"""Loading and saving WizardState for the current browser session."""

import logging

from fastapi import Depends
from pydantic import ValidationError

from formwizard.schemas.state import WizardState
from formwizard.sessions import get_current_session_id
from formwizard.stores import SessionStore, get_session_store

logger = logging.getLogger(__name__)


class WizardStateManager:
    def __init__(self, store: SessionStore, session_id: str):
        self.store = store
        self.session_id = session_id

    def _key(self, instance_key: str) -> str:
        return f"{self.session_id}:{instance_key}"

    async def load(self, instance_key: str) -> WizardState:
        """Stored state, or a fresh one when absent or unreadable."""
        raw = await self.store.get(self._key(instance_key))
        if not raw:
            return WizardState()
        try:
            return WizardState.model_validate(raw)
        except ValidationError:
            logger.warning(
                f"Discarding unreadable wizard state for {instance_key}",
                extra={"instance_key": instance_key},
            )
            return WizardState()

    async def save(self, instance_key: str, state: WizardState) -> None:
        if state.is_empty:
            await self.store.delete(self._key(instance_key))
        else:
            await self.store.set(self._key(instance_key), state.to_session())

    async def clear(self, instance_key: str) -> None:
        await self.store.delete(self._key(instance_key))


async def get_state_manager(store: SessionStore = Depends(get_session_store)) -> WizardStateManager:
    """FastAPI dependency bound to the request's session id."""
    return WizardStateManager(store, get_current_session_id())
