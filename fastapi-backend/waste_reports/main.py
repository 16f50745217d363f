from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel
from typing import Optional
import logging

from . import auth
from .config import get_settings
from .database import init_db
from .errors import DomainError, domain_error_handler
from .geocoding import get_geocoder
from .models import Principal, Role
from .observability import (
    setup_logging,
    init_sentry,
    setup_metrics_middleware,
    metrics_endpoint,
    get_health_check,
)
from .routes import analytics as analytics_routes
from .routes import photos as photos_routes
from .routes import reports as reports_routes

# Setup observability
setup_logging()
init_sentry()

logger = logging.getLogger("app")

settings = get_settings()


class PrincipalPublic(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: Role


app = FastAPI(title="Waste Reporting API")

setup_metrics_middleware(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins for dev; restrict in prod
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=list(settings.allowed_hosts) or ["*"])

app.add_exception_handler(DomainError, domain_error_handler)

app.include_router(reports_routes.router)
app.include_router(photos_routes.router)
app.include_router(analytics_routes.router)

# Serve locally stored photos (development fallback when S3 is not configured)
if settings.storage_provider != "s3":
    settings.local_storage_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/storage", StaticFiles(directory=str(settings.local_storage_dir)), name="storage")


@app.get("/api/v1/profile/me", response_model=PrincipalPublic)
def get_current_profile(principal: Principal = Depends(auth.get_current_principal)):
    """The caller's identity and role as resolved from their token."""
    return PrincipalPublic(id=principal.id, email=principal.email, name=principal.name, role=principal.role)


@app.get("/health")
def health():
    """Health check endpoint."""
    return get_health_check()


app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], include_in_schema=False)


@app.on_event("startup")
async def on_startup():
    await init_db()
    logger.info("Waste Reporting API started (env=%s)", settings.environment)


@app.on_event("shutdown")
async def on_shutdown():
    await get_geocoder().aclose()
