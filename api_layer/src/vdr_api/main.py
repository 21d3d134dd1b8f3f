import os
from pathlib import Path
from textwrap import dedent

import pydantic
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse
from fastapi.routing import APIRoute
from loguru import logger

from vdr_api.auth.tokens import TokenService
from vdr_api.background import BackgroundSpawner
from vdr_api.billing.razorpay_client import RazorpayClient
from vdr_api.db.migrations import run_migrations
from vdr_api.db.warehouse import Warehouse
from vdr_api.errors import AppError
from vdr_api.errors import handle_app_errors
from vdr_api.errors import handle_broad_exceptions
from vdr_api.errors import handle_pydantic_validation_errors
from vdr_api.monitoring.logger import configure_logger
from vdr_api.monitoring.request_context import RequestContextMiddleware
from vdr_api.notify.mailer import Mailer
from vdr_api.routes.routes_access import ROUTER_ACCESS
from vdr_api.routes.routes_auth import ROUTER_AUTH
from vdr_api.routes.routes_favorites import ROUTER_FAVORITES
from vdr_api.routes.routes_files import ROUTER_FILES
from vdr_api.routes.routes_groups import ROUTER_GROUPS
from vdr_api.routes.routes_health import ROUTER_HEALTH
from vdr_api.routes.routes_logs import ROUTER_LOGS
from vdr_api.routes.routes_notifications import ROUTER_NOTIFICATIONS
from vdr_api.routes.routes_org import ROUTER_ORG
from vdr_api.routes.routes_reports import ROUTER_REPORTS
from vdr_api.routes.routes_settings import ROUTER_SETTINGS
from vdr_api.routes.routes_storage import ROUTER_STORAGE
from vdr_api.routes.routes_superadmin import ROUTER_SUPERADMIN
from vdr_api.routes.routes_trash import ROUTER_TRASH
from vdr_api.routes.routes_users import ROUTER_USERS
from vdr_api.settings import Settings
from vdr_api.storage.blob_store import BlobStore

ROUTERS = [
    ROUTER_HEALTH,
    ROUTER_AUTH,
    ROUTER_USERS,
    ROUTER_ACCESS,
    ROUTER_FILES,
    ROUTER_TRASH,
    ROUTER_FAVORITES,
    ROUTER_NOTIFICATIONS,
    ROUTER_GROUPS,
    ROUTER_LOGS,
    ROUTER_SETTINGS,
    ROUTER_STORAGE,
    ROUTER_REPORTS,
    ROUTER_ORG,
    ROUTER_SUPERADMIN,
]

SHUTDOWN_DRAIN_TIMEOUT_SECONDS = 10.0


def _detect_environment() -> str:
    """Detect if running in Azure Web App or locally."""
    # Azure Web App sets WEBSITE_INSTANCE_ID
    if os.getenv("WEBSITE_INSTANCE_ID"):
        return "azure-web-app"
    elif Path(".env").exists():
        return "local-env-file"
    else:
        return "local-env-vars"


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create a FastAPI application.

    Configuration is loaded directly from environment variables via pydantic-settings.
    - Azure Web App: Set variables as App Settings (Configuration > Application settings)
    - Local development: Use a .env file in the api_layer directory

    The warehouse connects in the background on startup; requests that need it
    wait for the connection, and ``/api/health/ready`` reports 503 until then.
    """
    settings = settings or Settings()

    configure_logger(settings.log_level)

    logger.info(
        "Configuration loaded successfully",
        environment=_detect_environment(),
        smtp_configured=bool(settings.smtp_host),
        blob_storage_configured=bool(settings.azure_storage_connection_string),
        payment_gateway_configured=bool(settings.razorpay_key_id and settings.razorpay_key_secret),
        superadmin_configured=bool(settings.superadmin_email and settings.superadmin_password),
        run_migrations_on_startup=settings.run_migrations_on_startup,
    )

    app = FastAPI(
        title="VDR API",
        version="v1",
        description=dedent(
            """
        Virtual data room backend: folders and files, access requests and approvals,
        favorites, trash, groups, notifications, activity logs, personal storage,
        reports, organization plans and the super admin console.

        | Token | Issued by | Used for |
        | --- | --- | --- |
        | `type=user` | `/api/auth/verify-otp` | Data room endpoints |
        | `type=organization` | `/api/org/login` | `/api/org/me` |
        | `type=superadmin` | `/api/superadmin/login` | `/api/superadmin/*` |
        """
        ),
        docs_url=None,  # Disable default docs to use custom
        generate_unique_id_function=custom_generate_unique_id,
        swagger_ui_parameters={
            "defaultModelsExpandDepth": -1,  # Hide schemas section
            "defaultModelExpandDepth": 1,  # Keep models collapsed if shown
        },
    )
    app.state.settings = settings
    app.state.warehouse = Warehouse(
        settings.database_url,
        connect_attempts=settings.db_connect_attempts,
        connect_delay_seconds=settings.db_connect_delay_seconds,
        command_timeout=settings.db_command_timeout_seconds,
    )
    app.state.background = BackgroundSpawner()
    app.state.token_service = TokenService(settings.jwt_secret, settings.jwt_algorithm)
    app.state.mailer = Mailer.from_settings(settings)
    app.state.blob_store = BlobStore.from_settings(settings)
    app.state.razorpay = RazorpayClient.from_settings(settings)

    # Custom Swagger UI with smaller example text
    @app.get("/", include_in_schema=False)
    async def custom_swagger_ui_html():
        return HTMLResponse(
            content=f"""
            <!DOCTYPE html>
            <html>
            <head>
                <link type="text/css" rel="stylesheet" href="https://cdn.jsdelivr.net/npm/swagger-ui-dist@5/swagger-ui.css">
                <title>{app.title} - Swagger UI</title>
                <style>
                    .parameter__example,
                    .parameter__example .example,
                    .parameter__example .example__value {{
                        font-size: 12px !important;
                        font-style: italic !important;
                    }}

                    .topbar-wrapper img,
                    .topbar-wrapper .link,
                    .filter-container {{
                        display: none !important;
                    }}

                    .download-openapi-btn {{
                        position: fixed;
                        top: 10px;
                        right: 20px;
                        z-index: 10000;
                        background-color: #4990e2;
                        color: white;
                        padding: 10px 20px;
                        border-radius: 4px;
                        text-decoration: none;
                        font-size: 14px;
                    }}
                </style>
            </head>
            <body>
                <a href="{app.openapi_url}" download="openapi.json" class="download-openapi-btn">Download OpenAPI JSON</a>
                <div id="swagger-ui"></div>
                <script src="https://cdn.jsdelivr.net/npm/swagger-ui-dist@5/swagger-ui-bundle.js"></script>
                <script src="https://cdn.jsdelivr.net/npm/swagger-ui-dist@5/swagger-ui-standalone-preset.js"></script>
                <script>
                    const ui = SwaggerUIBundle({{
                        url: '{app.openapi_url}',
                        dom_id: '#swagger-ui',
                        presets: [
                            SwaggerUIBundle.presets.apis,
                            SwaggerUIStandalonePreset
                        ],
                        layout: "StandaloneLayout",
                        deepLinking: true,
                        persistAuthorization: true,
                        defaultModelsExpandDepth: -1,
                        defaultModelExpandDepth: 1,
                        filter: false
                    }})
                </script>
            </body>
            </html>
            """
        )

    # Add request context middleware for tracking who/where requests come from
    app.add_middleware(RequestContextMiddleware)
    for router in ROUTERS:
        app.include_router(router, prefix="/api")

    @app.on_event("startup")
    async def startup_warehouse():
        """Start connecting; optionally apply pending migrations once connected."""
        app.state.warehouse.start()
        if settings.run_migrations_on_startup:
            applied = await run_migrations(app.state.warehouse)
            logger.success("Startup migrations complete", applied=applied)

    @app.on_event("shutdown")
    async def shutdown_services():
        """Let side effects finish, then release the blob client and the warehouse connection."""
        await app.state.background.drain(timeout=SHUTDOWN_DRAIN_TIMEOUT_SECONDS)
        await app.state.blob_store.close()
        await app.state.warehouse.close()
        logger.info("VDR API shut down")

    app.add_exception_handler(
        exc_class_or_status_code=AppError,
        handler=handle_app_errors,
    )
    app.add_exception_handler(
        exc_class_or_status_code=RequestValidationError,
        handler=handle_pydantic_validation_errors,
    )
    app.add_exception_handler(
        exc_class_or_status_code=pydantic.ValidationError,
        handler=handle_pydantic_validation_errors,
    )

    app.middleware("http")(handle_broad_exceptions)

    logger.info("Starting VDR API application", routers=len(ROUTERS))
    return app


def custom_generate_unique_id(route: APIRoute):
    """
    Generate prettier `operationId`s in the OpenAPI schema.

    These become the function names in generated client SDKs.
    """
    if route.tags:
        return f"{route.tags[0]}-{route.name}"
    return route.name


if __name__ == "__main__":
    import uvicorn

    app = create_app()
    uvicorn.run(app, host="0.0.0.0", port=8000)
