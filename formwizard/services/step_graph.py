"""Static step definitions for one wizard.

A StepGraph is built once (at import/registration time) and never
changes. Position order is the traversal order; identifiers are unique.
Any malformed definition raises ConfigurationError immediately.
"""

from __future__ import annotations

from typing import Any, Iterator, Sequence

from pydantic import ValidationError

from formwizard.middleware.exceptions import ConfigurationError
from formwizard.schemas.wizard import Step
from formwizard.services.validation import check_ruleset

STEP_PLACEHOLDER = "{step}"


class StepNotFound(LookupError):
    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Unknown step: {identifier!r}")


class StepGraph:
    def __init__(self, steps: Sequence[Step]):
        if not steps:
            raise ConfigurationError("A wizard needs at least one step")

        self._steps: tuple[Step, ...] = tuple(steps)
        self._positions: dict[str, int] = {}
        for position, step in enumerate(self._steps):
            if step.step in self._positions:
                raise ConfigurationError(f"Duplicate step identifier: {step.step!r}")
            for form in step.forms.values():
                check_ruleset(form.validation)
            self._positions[step.step] = position

    @classmethod
    def from_config(cls, config: Sequence[dict[str, Any]]) -> StepGraph:
        """Build a graph from the raw list-of-dicts configuration format."""
        steps = []
        for position, entry in enumerate(config):
            if not isinstance(entry, dict) or not entry.get("step"):
                raise ConfigurationError(
                    f"Step #{position} must define a non-empty 'step' key"
                )
            try:
                steps.append(Step.model_validate(entry))
            except ValidationError as exc:
                raise ConfigurationError(
                    f"Step {entry['step']!r} is not defined correctly: {exc}"
                ) from exc
        return cls(steps)

    # ── Lookup ──────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[Step]:
        return iter(self._steps)

    def __getitem__(self, position: int) -> Step:
        return self._steps[position]

    @property
    def first(self) -> Step:
        return self._steps[0]

    @property
    def last_position(self) -> int:
        return len(self._steps) - 1

    def find_by_identifier(self, identifier: str) -> tuple[int, Step]:
        try:
            position = self._positions[identifier]
        except KeyError:
            raise StepNotFound(identifier) from None
        return position, self._steps[position]

    def next(self, position: int) -> Step | None:
        if position + 1 < len(self._steps):
            return self._steps[position + 1]
        return None

    def prev(self, position: int) -> Step | None:
        if position > 0:
            return self._steps[position - 1]
        return None

    def steps_before(self, position: int) -> tuple[Step, ...]:
        return self._steps[:position]

    def fields_from(self, position: int) -> set[str]:
        """Field names declared by the step at `position` and every later one."""
        names: set[str] = set()
        for step in self._steps[position:]:
            names.update(step.declared_fields())
        return names


class WizardDefinition:
    """A named StepGraph bound to a route template such as "/signup/{step}"."""

    def __init__(self, name: str, route: str, steps: StepGraph | Sequence[Any]):
        if not name:
            raise ConfigurationError("A wizard needs a name")
        if STEP_PLACEHOLDER not in route:
            raise ConfigurationError(
                f'Wizard {name!r}: route {route!r} must contain a "{STEP_PLACEHOLDER}" placeholder'
            )
        if not route.startswith("/"):
            raise ConfigurationError(f"Wizard {name!r}: route {route!r} must start with '/'")

        self.name = name
        self.route = route
        if isinstance(steps, StepGraph):
            self.graph = steps
        elif steps and all(isinstance(s, Step) for s in steps):
            self.graph = StepGraph(steps)
        else:
            self.graph = StepGraph.from_config(steps)

    @property
    def instance_key(self) -> str:
        return f"wizard_steps-{self.name}"

    @property
    def base_route(self) -> str:
        """The route with its trailing step segment removed ("/signup")."""
        base = self.route.replace(f"/{STEP_PLACEHOLDER}", "").replace(STEP_PLACEHOLDER, "")
        return base or "/"

    def __repr__(self) -> str:
        return f"WizardDefinition(name={self.name!r}, route={self.route!r}, steps={len(self.graph)})"
