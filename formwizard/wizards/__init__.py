"""Registry of wizard definitions served by the app.

Wizards are plain modules exposing a module-level `wizard`
(a WizardDefinition). `settings.wizard_modules` lists which to load.
"""

import importlib
import logging
from typing import Iterable, Iterator, Optional, Union

from formwizard.middleware.exceptions import ConfigurationError, WizardNotFoundError
from formwizard.services.step_graph import WizardDefinition

logger = logging.getLogger(__name__)


class WizardRegistry:
    def __init__(self, definitions: Optional[Iterable[WizardDefinition]] = None):
        self._wizards: dict[str, WizardDefinition] = {}
        for definition in definitions or ():
            self.register(definition)

    @classmethod
    def from_modules(cls, modules: Union[str, Iterable[str]]) -> "WizardRegistry":
        """Import each module and register its `wizard` attribute."""
        if isinstance(modules, str):
            modules = [m.strip() for m in modules.split(",")]

        registry = cls()
        for path in modules:
            if not path:
                continue
            try:
                module = importlib.import_module(path)
            except ImportError as exc:
                raise ConfigurationError(f"Cannot import wizard module {path!r}: {exc}") from exc

            definition = getattr(module, "wizard", None)
            if not isinstance(definition, WizardDefinition):
                raise ConfigurationError(
                    f"Wizard module {path!r} must define a module-level `wizard` WizardDefinition"
                )
            registry.register(definition)
        return registry

    def register(self, definition: WizardDefinition) -> WizardDefinition:
        if definition.name in self._wizards:
            raise ConfigurationError(f"Wizard {definition.name!r} is registered twice")
        for other in self._wizards.values():
            if other.route == definition.route:
                raise ConfigurationError(
                    f"Wizards {other.name!r} and {definition.name!r} share route {definition.route!r}"
                )
        self._wizards[definition.name] = definition
        logger.debug(f"Registered wizard {definition!r}")
        return definition

    def get(self, name: str) -> WizardDefinition:
        try:
            return self._wizards[name]
        except KeyError:
            raise WizardNotFoundError(name) from None

    def names(self) -> list[str]:
        return list(self._wizards)

    def __iter__(self) -> Iterator[WizardDefinition]:
        return iter(self._wizards.values())

    def __len__(self) -> int:
        return len(self._wizards)

    def __contains__(self, name: object) -> bool:
        return name in self._wizards
