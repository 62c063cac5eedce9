"""Sample four-step sign-up wizard.

account → profile → confirm → done

`confirm` re-validates everything entered so far before it can be shown
or submitted; `done` is a summary page, so reaching it ends the wizard.
"""

from formwizard.services.step_graph import WizardDefinition

BLOCKED_DOMAINS = {"example.invalid", "mailinator.com"}


def derive_display_name(context, data, accumulator):
    first = str(data.get("first_name", "")).strip()
    last = str(data.get("last_name", "")).strip()
    return {"display_name": f"{first} {last}".strip()}


def reject_disposable_email(context, data, accumulator):
    email = str(data.get("email", ""))
    domain = email.rpartition("@")[2].lower()
    if domain in BLOCKED_DOMAINS:
        context.add_error("email", "Please use a permanent email address.")


def summarise(context, data, accumulator):
    return {"summary": f"{accumulator.get('display_name', '')} <{accumulator.get('email', '')}>"}


wizard = WizardDefinition(
    name="signup",
    route="/signup/{step}",
    steps=[
        {
            "step": "account",
            "name": "Your account",
            "forms": {
                "onSave": {
                    "validation": {
                        "first_name": "required|string|max:80",
                        "last_name": "required|string|max:80",
                        "email": "required|email|max:254",
                    },
                    "validation_messages": {
                        "email.required": "We need an email address to create your account.",
                    },
                    "extra_validation": [derive_display_name, reject_disposable_email],
                },
            },
        },
        {
            "step": "profile",
            "name": "About you",
            "forms": {
                "onSave": {
                    "validation": {
                        "age": "required|integer|between:16,120",
                        "phone": "nullable|phone",
                        "website": "nullable|url",
                    },
                },
            },
        },
        {
            "step": "confirm",
            "name": "Confirm",
            "validatePrevSteps": True,
            "forms": {
                "onConfirm": {
                    "validation": {"terms": "required|accepted"},
                    "validation_messages": {"terms.required": "Please accept the terms to continue."},
                    "extra_validation": summarise,
                },
            },
        },
        {"step": "done", "name": "All done"},
    ],
)
