"""Management CLI for wizards and stored sessions.

Usage:
    python -m formwizard.cli list-wizards          # Registered wizards and routes
    python -m formwizard.cli show-wizard <name>    # Steps, forms and fields of one wizard
    python -m formwizard.cli purge-sessions        # Delete expired rows (database backend)
"""

import asyncio
import sys

from formwizard.config import settings
from formwizard.middleware.exceptions import FormWizardException
from formwizard.stores import create_session_store
from formwizard.stores.database import DatabaseSessionStore
from formwizard.wizards import WizardRegistry


def load_registry() -> WizardRegistry:
    return WizardRegistry.from_modules(settings.wizard_modules)


def list_wizards():
    registry = load_registry()
    for definition in registry:
        print(f"  {definition.name:<20} {definition.route}  ({len(definition.graph)} steps)")
    print(f"\n{len(registry)} wizard(s)")


def show_wizard(name: str) -> int:
    try:
        definition = load_registry().get(name)
    except FormWizardException as e:
        print(e.message)
        return 1

    print(f"{definition.name}  {definition.route}")
    for position, step in enumerate(definition.graph):
        flags = []
        if step.validate_prev_steps:
            flags.append("validatePrevSteps")
        if step.keep_session:
            flags.append("keepSession")
        suffix = f"  [{', '.join(flags)}]" if flags else ""
        print(f"  {position}. {step.step} - {step.name}{suffix}")
        for handler, form in step.forms.items():
            print(f"       {handler}: {', '.join(form.validation) or '(no fields)'}")
    return 0


async def purge_sessions() -> int:
    store = create_session_store(settings)
    try:
        if not isinstance(store, DatabaseSessionStore):
            print(f"The {settings.session_backend} backend expires sessions itself; nothing to purge.")
            return 0
        purged = await store.purge_expired()
        print(f"Purged {purged} expired session(s)")
        return 0
    finally:
        await store.close()


def main(argv: list[str]) -> int:
    cmd = argv[1] if len(argv) > 1 else ""
    if cmd == "list-wizards":
        list_wizards()
        return 0
    if cmd == "show-wizard" and len(argv) > 2:
        return show_wizard(argv[2])
    if cmd == "purge-sessions":
        return asyncio.run(purge_sessions())
    print("Usage: python -m formwizard.cli [list-wizards|show-wizard <name>|purge-sessions]")
    return 2


if __name__ == "__main__":
    sys.exit(main(sys.argv))
