"""FastAPI application entry point."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tenantguard.api.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from tenantguard.api.routes import (
    auth,
    authorization,
    licenses,
    metrics,
    organizations,
    permissions,
    roles,
    users,
)
from tenantguard.core.config import get_settings
from tenantguard.core.errors import ErrorKind, TenantGuardError
from tenantguard.core.structured_logging import configure_logging, log_json
from tenantguard.schemas.errors import ErrorResponse

logger = logging.getLogger(__name__)

settings = get_settings()
configure_logging(settings.log_level)
docs_enabled = settings.docs_enabled

app = FastAPI(
    title="TenantGuard API",
    description="Multi-tenant identity, licensing and authorization API",
    version="1.0.0",
    docs_url="/api/docs" if docs_enabled else None,
    redoc_url="/api/redoc" if docs_enabled else None,
    openapi_url="/api/openapi.json" if docs_enabled else None,
)

# Starlette wraps middleware in reverse registration order: CORS sees the
# request first and request logging sits next to the routes.
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)


@app.exception_handler(TenantGuardError)
async def tenantguard_error_handler(request: Request, exc: TenantGuardError):
    """Map domain errors to the shared error body and their fixed status."""
    if exc.status_code >= 500:
        log_json(
            logger,
            logging.ERROR,
            "domain_error",
            kind=exc.kind.value,
            path=request.url.path,
            cause=exc.__cause__.__class__.__name__ if exc.__cause__ else None,
        )
    body = ErrorResponse.from_error(exc)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=body.body(),
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    details = {
        ".".join(str(part) for part in error["loc"] if part != "body"): error["msg"]
        for error in exc.errors()
    }
    body = ErrorResponse(
        error=ErrorKind.VALIDATION_ERROR,
        message="Request validation failed",
        details=details,
    )
    return JSONResponse(status_code=422, content=body.body())


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(organizations.router, prefix="/api/organizations", tags=["organizations"])
app.include_router(roles.router, prefix="/api/roles", tags=["roles"])
app.include_router(permissions.router, prefix="/api/permissions", tags=["permissions"])
app.include_router(licenses.router, prefix="/api/licenses", tags=["licenses"])
app.include_router(authorization.router, prefix="/api", tags=["authorization"])
app.include_router(metrics.router, prefix="/api", tags=["metrics"])
