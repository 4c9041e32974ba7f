from sqlalchemy import text

from constructpro.core.observability import (
    ActionFailedError,
    action_failed_handler,
    http_exception_handler,
    request_logging_middleware,
    setup_observability,
    unhandled_exception_handler,
    validation_exception_handler,
)
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from constructpro.core.config import settings
from constructpro.db.session import engine
from constructpro.routers import auth, material_inventory, material_requests, materials, suppliers

app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    description=(
        "Construction materials management API.\n\n"
        "Swagger quick test flow:\n"
        "1. Call `POST /auth/register` (the first account becomes admin) or `POST /auth/login`.\n"
        "2. Click **Authorize** and use your email/username + password "
        "(OAuth token URL: `/auth/token`).\n"
        "3. Create materials, stock the store via `/material-inventory/adjust`, "
        "then walk a request through `/material-requests`."
    ),
    swagger_ui_parameters={
        "persistAuthorization": True,
        "displayRequestDuration": True,
        "defaultModelsExpandDepth": 1,
    },
    openapi_tags=[
        {"name": "health", "description": "Service status and quick links."},
        {"name": "auth", "description": "User authentication and role management."},
        {"name": "materials", "description": "Material catalog with stock levels."},
        {"name": "suppliers", "description": "Supplier records referenced by the catalog."},
        {"name": "material-requests", "description": "Request, approval, issuance, acknowledgment and completion."},
        {"name": "material-inventory", "description": "Stock balances, adjustments, transfers and the movement log."},
    ],
)

setup_observability()
app.middleware("http")(request_logging_middleware)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(ActionFailedError, action_failed_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

cors_origins = settings.cors_origins or ["http://localhost:3000"]
allow_all_origins = "*" in cors_origins
env_value = settings.env.lower().strip()
allow_origin_regex = settings.cors_origin_regex

if (
    not allow_origin_regex
    and env_value in {"dev", "development", "staging", "stage"}
):
    allow_origin_regex = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all_origins else cors_origins,
    allow_origin_regex=allow_origin_regex,
    allow_credentials=not allow_all_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(materials.router)
app.include_router(suppliers.router)
app.include_router(material_requests.router)
app.include_router(material_inventory.router)


@app.get("/", tags=["health"])
def root():
    return {
        "app": settings.app_name,
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/health",
        "ready": "/ready",
    }


@app.get("/health", tags=["health"])
def health():
    return {"ok": True}


@app.get("/ready", tags=["health"])
def ready():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        return {"ok": False}
    return {"ok": True}
