"""
main.py — FastAPI Application Entrypoint

Purpose:
- Initialize application services (logging, config, stores, registries).
- Register API routers.
- Serve locally stored uploads under UPLOADS_URL_PREFIX.
- Define root-level health/status endpoints.
- Provide `app` object used by ASGI server (uvicorn / hypercorn).

No business logic here.
"""

from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from campuspay.api.v1 import events, officer_profiles, orgs, payments, session
from campuspay.core.config import Settings, settings as default_settings
from campuspay.core.database import build_services
from campuspay.core.errors import CampusPayError
from campuspay.core.logging import configure_logging, get_logger

logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None, supabase_client=None) -> FastAPI:
    """
    Build a configured app. Tests pass their own Settings (temp paths) and,
    optionally, a fake Supabase client.
    """
    settings = settings or default_settings

    # -------------------------------------------------------------------------
    # App Initialization
    # -------------------------------------------------------------------------

    app = FastAPI(
        title="CampusPay Backend",
        description="Payment collection for campus organizations",
        version="0.1.0",
    )
    app.state.services = build_services(settings, supabase_client)

    if not settings.auth_enabled:
        logger.warning(
            "AUTH_JWT_SECRET is not set: bearer tokens are NOT verified and every "
            "request has officer capability. Do not run this way in production."
        )

    # -------------------------------------------------------------------------
    # CORS
    # -------------------------------------------------------------------------

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------------------------------
    # Error Rendering
    # -------------------------------------------------------------------------

    @app.exception_handler(CampusPayError)
    async def campuspay_error_handler(request: Request, exc: CampusPayError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    # -------------------------------------------------------------------------
    # Router Registration
    # -------------------------------------------------------------------------

    app.include_router(orgs.router, prefix="/api")
    app.include_router(events.router, prefix="/api")
    app.include_router(payments.router, prefix="/api")
    app.include_router(officer_profiles.router, prefix="/api")
    app.include_router(session.router)

    uploads_dir = Path(settings.UPLOADS_DIR)
    uploads_dir.mkdir(parents=True, exist_ok=True)
    app.mount(settings.UPLOADS_URL_PREFIX, StaticFiles(directory=str(uploads_dir)), name="uploads")

    # -------------------------------------------------------------------------
    # Health Check
    # -------------------------------------------------------------------------

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


configure_logging(default_settings.LOG_LEVEL)  # Set logging defaults at startup

app = create_app()
