from __future__ import annotations

import logging

from fastapi import FastAPI

from src.infrastructure.api.middlewares import add_default_middlewares
from src.infrastructure.api.routes.admin_routes import router as admin_router
from src.infrastructure.api.routes.auth_routes import router as auth_router
from src.infrastructure.api.routes.dashboard_routes import router as dashboard_router
from src.infrastructure.api.routes.restaurant_routes import router as restaurant_router
from src.infrastructure.settings import get_role_set, log_level


def configure_logging() -> None:
    log = logging.getLogger("src")
    if not log.handlers:
        h = logging.StreamHandler()
        h.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        log.addHandler(h)
    log.setLevel(log_level())


def create_app() -> FastAPI:
    configure_logging()
    # fail at startup on a bad APP_ROLES / APP_DEFAULT_ROLE
    roles = get_role_set()
    logging.getLogger(__name__).info("Configured roles: %s", ", ".join(sorted(roles.roles)))

    app = FastAPI(
        title="Mealhub Backend",
        version="0.1.0",
        description="""
        ## Mealhub Backend API

        FastAPI backend for a restaurant and meal ordering app, using Supabase
        for auth and the database.

        ### Features
        - **Authentication**: Sign-up, sign-in and sign-out against Supabase Auth
        - **Roles**: One profile per account carrying a role from a configurable closed set
        - **Browsing**: Public restaurant and meal listings
        - **Dashboards**: Role-gated customer and restaurant admin dashboards
        - **Menu Management**: Admins manage their restaurant and its meals

        ### Authentication
        Protected endpoints take the access token returned by sign-in:
        ```
        Authorization: Bearer your-jwt-token
        ```

        ### Access Control
        - **401 Unauthorized**: no valid session; `Location` names the sign-in page
        - **403 Forbidden**: signed in without the required role; `Location` names the landing page

        An account whose profile is missing (failed sign-up step or failed
        lookup) holds no role until `POST /auth/profile/reconcile` succeeds.
        """,
        contact={
            "name": "Mealhub Team",
            "email": "support@mealhub.app",
        },
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )
    add_default_middlewares(app)

    @app.get(
        "/",
        summary="API Root",
        description="Get basic information about the Mealhub API",
        response_description="API information including status and version",
    )
    def root():
        """Get API root information."""
        return {"status": "ok", "service": "mealhub-backend", "version": app.version}

    @app.get(
        "/health",
        summary="Health Check",
        description="Check if the API service is running and healthy",
        response_description="Health status of the API service",
    )
    def health():
        """Check API health status."""
        return {"status": "healthy"}

    app.include_router(auth_router)
    app.include_router(restaurant_router)
    app.include_router(dashboard_router)
    app.include_router(admin_router)
    return app


app = create_app()
