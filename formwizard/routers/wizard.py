"""Wizard endpoints — one set per registered wizard.

For a wizard with route "/signup/{step}":

  GET  /signup         → redirect to the first step
  GET  /signup/{step}  → render data for the step (or a redirect)
  POST /signup/{step}  → validate + store a step's form (or a redirect)

Design:
  - Session state is loaded at request start and saved only when the
    controller returns a state (Rendered / Submitted). Redirects and
    validation failures never write.
  - Background requests (X-Requested-With: XMLHttpRequest) get JSON:
    redirects become {"redirect": url}, submissions return the accumulated
    fields plus stepNext/return. Navigational requests get 303 redirects.
  - The form handler comes from the handler header, or a `_handler` field
    for plain HTML forms that cannot set headers.
"""

from typing import Any, Union

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, RedirectResponse

from formwizard.config import settings
from formwizard.schemas.state import WizardState
from formwizard.schemas.wizard import RedirectPointer, WizardView
from formwizard.services.controller import Redirect, WizardController
from formwizard.services.state import WizardStateManager, get_state_manager
from formwizard.services.step_graph import WizardDefinition

HANDLER_FIELD = "_handler"


# ── Helpers ──────────────────────────────────────────────────

def is_background(request: Request) -> bool:
    return request.headers.get("x-requested-with", "").lower() == "xmlhttprequest"


async def read_payload(request: Request) -> dict[str, Any]:
    """Flat field → value map from a JSON or form-encoded body."""
    content_type = request.headers.get("content-type", "")
    if not content_type:
        return {}

    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed JSON body")
        if body is None:
            return {}
        if not isinstance(body, dict):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="JSON body must be an object")
        return body

    form = await request.form()
    data: dict[str, Any] = {}
    for key in form.keys():
        values = form.getlist(key)
        data[key] = values[0] if len(values) == 1 else list(values)
    return data


def redirect_response(request: Request, outcome: Redirect) -> Union[JSONResponse, RedirectResponse]:
    if is_background(request):
        return JSONResponse(RedirectPointer(redirect=outcome.url).model_dump())
    return RedirectResponse(outcome.url, status_code=status.HTTP_303_SEE_OTHER)


# ── Router factory ───────────────────────────────────────────

def build_wizard_router(definition: WizardDefinition) -> APIRouter:
    router = APIRouter()
    controller = WizardController(definition)
    instance_key = definition.instance_key

    @router.get(definition.base_route, name=f"{definition.name}:start")
    async def start_wizard(request: Request):
        """Entering the wizard without a step always lands on the first step."""
        return redirect_response(request, controller.render(None, WizardState()))

    @router.get(
        definition.route,
        name=f"{definition.name}:render",
        responses={
            200: {"model": WizardView},
            303: {"description": "Redirect to an authorised step"},
        },
    )
    async def render_step(
        step: str,
        request: Request,
        states: WizardStateManager = Depends(get_state_manager),
    ):
        state = await states.load(instance_key)
        outcome = controller.render(step, state)
        if isinstance(outcome, Redirect):
            return redirect_response(request, outcome)

        await states.save(instance_key, outcome.state)
        return JSONResponse(jsonable_encoder(outcome.view.model_dump(by_alias=True)))

    @router.post(
        definition.route,
        name=f"{definition.name}:submit",
        responses={
            200: {"description": "Accepted; accumulated fields with stepNext"},
            303: {"description": "Accepted (navigational) or redirect to an authorised step"},
            422: {"description": "Per-field validation errors"},
        },
    )
    async def submit_step(
        step: str,
        request: Request,
        states: WizardStateManager = Depends(get_state_manager),
    ):
        payload = await read_payload(request)
        handler = request.headers.get(settings.handler_header) or payload.pop(HANDLER_FIELD, None)
        payload.pop(HANDLER_FIELD, None)

        state = await states.load(instance_key)
        outcome = controller.submit(step, handler, payload, state)
        if isinstance(outcome, Redirect):
            return redirect_response(request, outcome)

        await states.save(instance_key, outcome.state)
        if is_background(request):
            return JSONResponse(jsonable_encoder(outcome.payload))
        return RedirectResponse(outcome.redirect_url, status_code=status.HTTP_303_SEE_OTHER)

    return router
