"""Wizard orchestration — one request through the step state machine.

    ResolveStep → Authorize → Validate → Persist → Navigate → Respond

The controller is synchronous and pure: it receives the session's
WizardState, works on a private copy, and returns a tagged outcome.

  Redirect   → the request must go elsewhere; the copy is discarded so
               nothing is persisted on these paths.
  Rendered   → full-page visit; carries render data + the state to save.
  Submitted  → accepted form; carries the JSON payload + the state to save.

Invalid submissions raise ValidationFailed (also with nothing persisted).
Loading and saving state is the caller's job (see routers/wizard.py).
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Union

from formwizard.middleware.exceptions import ValidationFailed
from formwizard.schemas.state import WizardState
from formwizard.schemas.wizard import Step, StepSummary, WizardView
from formwizard.services import validation
from formwizard.services.navigation import StepUrlResolver, navigation
from formwizard.services.step_graph import StepNotFound, WizardDefinition

logger = logging.getLogger(__name__)


class RedirectReason(str, Enum):
    MISSING_STEP = "missing_step"    # no step in the URL → first step
    UNKNOWN_STEP = "unknown_step"    # identifier not in the graph → watermark step
    UNAUTHORIZED = "unauthorized"    # skip-ahead → watermark step
    STALE_SESSION = "stale_session"  # previous steps no longer validate → first step


@dataclass(frozen=True)
class Redirect:
    url: str
    step: str
    reason: RedirectReason


@dataclass(frozen=True)
class Rendered:
    view: WizardView
    state: WizardState


@dataclass(frozen=True)
class Submitted:
    payload: dict[str, Any]
    state: WizardState
    redirect_url: str


WizardOutcome = Union[Redirect, Rendered, Submitted]


def form_key(handler: str) -> str:
    """"component::onSave" → "onSave"; bare names pass through."""
    return handler.split("::")[-1].strip()


class WizardController:
    def __init__(
        self,
        definition: WizardDefinition,
        resolver: Optional[StepUrlResolver] = None,
        engine: Optional[validation.ValidationEngine] = None,
    ):
        self.definition = definition
        self.graph = definition.graph
        self.resolver = resolver or StepUrlResolver(definition.route)
        self.engine = engine or validation.engine

    # ── Full-page visit ─────────────────────────────────────

    def render(self, step_id: Optional[str], state: WizardState) -> Union[Redirect, Rendered]:
        state = state.model_copy(deep=True)

        resolved = self._resolve(step_id, state)
        if isinstance(resolved, Redirect):
            return resolved
        position, step = resolved

        # Entering the first step starts a fresh pass through the wizard.
        if position == 0 and not state.is_empty:
            logger.info("Restarting wizard", extra=self._log_extra(step))
            state.reset()

        prior = self._prior_validations(position, step, state)
        if isinstance(prior, Redirect):
            return prior

        nav = navigation(self.graph, position, self.resolver)
        view = WizardView(
            step_current=step.step,
            step_position=position,
            step_validated=state.step_current,
            step_next=nav.step_next,
            step_prev=nav.step_prev,
            step_current_name=nav.step_current_name,
            steps=self._summaries(state),
            fields=dict(state.validations),
            prev_validations_data=prior,
        )

        if nav.step_next is None:
            if not step.keep_session:
                self._finish_or_prune(position, step, state)
        else:
            self._prune(position, state)

        return Rendered(view=view, state=state)

    # ── Form submission ─────────────────────────────────────

    def submit(
        self,
        step_id: Optional[str],
        handler: Optional[str],
        payload: Mapping[str, Any],
        state: WizardState,
    ) -> Union[Redirect, Submitted]:
        state = state.model_copy(deep=True)

        resolved = self._resolve(step_id, state)
        if isinstance(resolved, Redirect):
            return resolved
        position, step = resolved

        prior = self._prior_validations(position, step, state)
        if isinstance(prior, Redirect):
            return prior

        accumulator: dict[str, Any] = dict(prior)
        result = None
        form = step.forms.get(form_key(handler)) if handler else None

        if form is not None:
            outcome = self.engine.validate(
                payload,
                form.validation,
                form.validation_messages,
                form.extra_validation,
                accumulator=prior,
                hook_data={**state.validations, **payload},
            )
            if not outcome.ok:
                logger.info(
                    f"Validation failed on step {step.step!r}: {sorted(outcome.errors)}",
                    extra=self._log_extra(step),
                )
                raise ValidationFailed(outcome.errors)
            accumulator, result = outcome.fields, outcome.result
        elif handler:
            logger.debug(
                f"No form {form_key(handler)!r} on step {step.step!r}; nothing to validate",
                extra=self._log_extra(step),
            )

        state.record_step_validated(position, accumulator)

        nav = navigation(self.graph, position, self.resolver)
        payload_out = {**accumulator, "stepNext": nav.step_next, "return": result}
        return Submitted(
            payload=payload_out,
            state=state,
            redirect_url=nav.step_next or self.resolver.url_for(step.step),
        )

    # ── Replay of earlier steps ─────────────────────────────

    def replay_previous_steps(self, position: int, state: WizardState) -> validation.ValidationOutcome:
        """Validate every form of every step before `position` in one pass
        against the accumulated session values."""
        rules: dict[str, Any] = {}
        messages: dict[str, str] = {}
        extras = []
        for prev in self.graph.steps_before(position):
            for form in prev.forms.values():
                rules.update(form.validation)
                messages.update(form.validation_messages)
                extras.extend(form.extra_validation)

        return self.engine.validate(
            state.validations, rules, messages, extras, accumulator=state.validations
        )

    # ── Helpers ─────────────────────────────────────────────

    def _resolve(self, step_id: Optional[str], state: WizardState) -> Union[Redirect, tuple[int, Step]]:
        if not step_id:
            return self._redirect(0, RedirectReason.MISSING_STEP)

        try:
            position, step = self.graph.find_by_identifier(step_id)
        except StepNotFound:
            return self._redirect(self._watermark(state), RedirectReason.UNKNOWN_STEP)

        if not state.is_authorized(position):
            return self._redirect(self._watermark(state), RedirectReason.UNAUTHORIZED)

        return position, step

    def _prior_validations(self, position: int, step: Step, state: WizardState) -> Union[Redirect, dict]:
        if not step.validate_prev_steps:
            return dict(state.validations)

        outcome = self.replay_previous_steps(position, state)
        if not outcome.ok:
            logger.warning(
                f"Previous steps no longer validate ({sorted(outcome.errors)}); restarting",
                extra=self._log_extra(step),
            )
            return self._redirect(0, RedirectReason.STALE_SESSION)
        return dict(outcome.fields)

    def _finish_or_prune(self, position: int, step: Step, state: WizardState) -> None:
        # A final step with a form keeps its session until that form has
        # been accepted; a summary-only final step ends the wizard at once.
        if not step.forms or state.step_current > position:
            logger.info("Wizard finished; clearing session", extra=self._log_extra(step))
            state.reset()
        else:
            self._prune(position, state)

    def _prune(self, position: int, state: WizardState) -> None:
        state.prune_from(position, self.graph.fields_from(position))

    def _watermark(self, state: WizardState) -> int:
        return min(state.step_current, self.graph.last_position)

    def _redirect(self, position: int, reason: RedirectReason) -> Redirect:
        target = self.graph[position]
        url = self.resolver.url_for(target.step)
        logger.info(
            f"Redirecting to step {target.step!r} ({reason.value})",
            extra={"wizard": self.definition.name, "step": target.step, "reason": reason.value},
        )
        return Redirect(url=url, step=target.step, reason=reason)

    def _summaries(self, state: WizardState) -> list[StepSummary]:
        return [
            StepSummary(
                position=position,
                step=step.step,
                name=step.name,
                url=self.resolver.url_for(step.step),
                validated=position < state.step_current,
            )
            for position, step in enumerate(self.graph)
        ]

    def _log_extra(self, step: Step) -> dict[str, str]:
        return {"wizard": self.definition.name, "step": step.step}
