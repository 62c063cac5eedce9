"""Durable per-wizard-instance state.

Stored in the session under the wizard's instance key as

    {"stepCurrent": 2, "validations": {"name": "X", "email": "x@y.com"}}

`step_current` is the watermark: the highest step position this session
may enter. `validations` holds every field accepted so far.
"""

from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field


class WizardState(BaseModel):
    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    step_current: int = Field(default=0, ge=0, alias="stepCurrent")
    validations: dict[str, Any] = {}

    @property
    def is_empty(self) -> bool:
        return self.step_current == 0 and not self.validations

    def is_authorized(self, position: int) -> bool:
        return position <= self.step_current

    def record_step_validated(self, position: int, fields: dict[str, Any]) -> None:
        """Merge accepted fields (later wins) and advance the watermark."""
        self.validations = {**self.validations, **fields}
        self.step_current = max(self.step_current, position + 1)

    def prune_from(self, position: int, field_names: Iterable[str]) -> None:
        """Forget answers given on `position` and later; rewind the watermark."""
        drop = set(field_names)
        self.validations = {k: v for k, v in self.validations.items() if k not in drop}
        self.step_current = position

    def reset(self) -> None:
        self.validations = {}
        self.step_current = 0

    def to_session(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
