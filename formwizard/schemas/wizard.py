"""Pydantic schemas for wizard definitions and wizard responses.

Definitions (`FormSpec`, `Step`) accept the raw dict format used in wizard
configuration modules:

    {
        "step": "account",
        "name": "Your account",
        "validatePrevSteps": False,
        "keepSession": False,
        "forms": {
            "onSave": {
                "validation": {"email": "required|email"},
                "validation_messages": {"email.required": "We need your email."},
                "extra_validation": [derive_username],
            },
        },
    }

Response models serialise with camelCase keys.
"""

from typing import Any, Callable, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from formwizard.services.validation import accepted_fields


# ── Definitions ──────────────────────────────────────────────

class FormSpec(BaseModel):
    """Validation contract for one submittable form within a step."""

    model_config = ConfigDict(frozen=True)

    validation: dict[str, Union[str, list[Any]]] = {}
    validation_messages: dict[str, str] = {}
    extra_validation: list[Callable[..., Any]] = []

    @field_validator("extra_validation", mode="before")
    @classmethod
    def _wrap_single_callable(cls, value):
        if value is None:
            return []
        if callable(value):
            return [value]
        return value


class Step(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    step: str = Field(min_length=1)
    name: str
    forms: dict[str, FormSpec] = {}
    validate_prev_steps: bool = Field(
        default=False,
        validation_alias=AliasChoices("validatePrevSteps", "validate_prev_steps"),
    )
    # "keep_sesion" is the historical spelling still found in older configs
    keep_session: bool = Field(
        default=False,
        validation_alias=AliasChoices("keepSession", "keep_session", "keep_sesion"),
    )

    @model_validator(mode="before")
    @classmethod
    def _default_name(cls, data):
        if isinstance(data, dict) and not data.get("name") and data.get("step"):
            data = {**data, "name": data["step"]}
        return data

    def declared_fields(self) -> set[str]:
        """Every field name any of this step's forms keeps once accepted."""
        names: set[str] = set()
        for form in self.forms.values():
            names.update(accepted_fields(form.validation))
        return names


# ── Responses ────────────────────────────────────────────────

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StepSummary(_CamelModel):
    position: int
    step: str
    name: str
    url: str
    validated: bool


class WizardView(_CamelModel):
    """Render data for a full-page visit to a step."""

    step_current: str
    step_position: int
    step_validated: int
    step_next: str | None = None
    step_prev: str | None = None
    step_current_name: str
    steps: list[StepSummary]
    fields: dict[str, Any] = {}
    prev_validations_data: dict[str, Any] = {}


class RedirectPointer(BaseModel):
    """JSON stand-in for an HTTP redirect on background requests."""

    redirect: str
