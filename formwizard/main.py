import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from formwizard.config import settings
from formwizard.middleware.exceptions import register_exception_handlers
from formwizard.middleware.session import WizardSessionMiddleware
from formwizard.routers import health
from formwizard.routers.wizard import build_wizard_router
from formwizard.services.lifespan import lifespan
from formwizard.stores import SessionStore, create_session_store
from formwizard.wizards import WizardRegistry

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def create_app(
    wizards: Optional[WizardRegistry] = None,
    store: Optional[SessionStore] = None,
) -> FastAPI:
    app = FastAPI(
        title="FormWizard",
        description="Multi-step form wizard service",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.wizards = wizards if wizards is not None else WizardRegistry.from_modules(settings.wizard_modules)
    app.state.session_store = store if store is not None else create_session_store(settings)

    # ── Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Middleware (last added is outermost) ─────────────────────
    app.add_middleware(WizardSessionMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins.split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Routers ──────────────────────────────────────────────────
    app.include_router(health.router)
    for definition in app.state.wizards:
        app.include_router(build_wizard_router(definition), tags=[definition.name])

    return app


app = create_app()
