"""Aggregate model imports so Base.metadata knows every table."""

from formwizard.models.wizard_session import WizardSession  # noqa: F401
