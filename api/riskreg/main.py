"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder

from riskreg.api import (
    analytics, audit_logs, auth, controls, criteria, dashboard, kris, objectives,
    org_units, reports, risks, taxonomies, treatments
)
from riskreg.core.config import settings
from riskreg.core.risk_scoring import InvalidScaleValue
from riskreg.services.report_scheduler import report_scheduler

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.SCHEDULER_ENABLED:
        report_scheduler.start()
    yield
    report_scheduler.shutdown()


app = FastAPI(title="Risk Management System", version="1.0.0", lifespan=lifespan)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Validation error", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(InvalidScaleValue)
async def invalid_scale_handler(request: Request, exc: InvalidScaleValue):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Validation error", "details": [{"field": exc.field, "message": str(exc)}]},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


# Routes
app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(org_units.router, prefix="/org-units", tags=["org-units"])
app.include_router(taxonomies.router, prefix="/taxonomies", tags=["taxonomies"])
app.include_router(criteria.router, prefix="/criteria", tags=["criteria"])
app.include_router(objectives.router, prefix="/objectives", tags=["objectives"])
app.include_router(risks.router, prefix="/risks", tags=["risks"])
app.include_router(controls.router, prefix="/controls", tags=["controls"])
app.include_router(kris.router, prefix="/kris", tags=["kris"])
app.include_router(treatments.router, prefix="/treatments", tags=["treatments"])
app.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
app.include_router(analytics.router, prefix="/analytics", tags=["analytics"])
app.include_router(reports.router, prefix="/reports", tags=["reports"])
app.include_router(audit_logs.router, prefix="/audit-logs", tags=["audit-logs"])


@app.get("/")
def read_root():
    return {"message": "Risk Management System API"}
