"""
FastAPI application entry point.

Registers middleware (in order), routes and exception handlers, and seeds
development data on startup.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from refund_workflow.config import LOG_LEVEL, is_production, get_cors_origins
from refund_workflow.errors import RefundError, TransientStoreError
from refund_workflow.middleware import RequestIDMiddleware, StructuredLoggingMiddleware
from refund_workflow.routes.refunds import router as refunds_router
from refund_workflow.routes.admin_refunds import router as admin_refunds_router
from refund_workflow.routes.audit import router as audit_router
from seed_data import load_seed_data

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    logging.basicConfig(
        level=LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    docs_url = None if is_production() else "/docs"
    redoc_url = None if is_production() else "/redoc"

    application = FastAPI(
        title="Course Refund Workflow Service",
        description="Refund eligibility, admin offers and learner decisions for course orders.",
        version="1.0.0",
        docs_url=docs_url,
        redoc_url=redoc_url,
    )

    # ── Middleware stack (order matters) ────────────────────────────────────
    application.add_middleware(RequestIDMiddleware)
    application.add_middleware(StructuredLoggingMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_origins(),
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "X-API-Key", "X-Admin-Key", "X-User-Id", "X-Request-ID"],
    )

    # ── Routes ──────────────────────────────────────────────────────────────
    application.include_router(refunds_router)
    application.include_router(admin_refunds_router)
    application.include_router(audit_router)

    # ── Exception handlers ───────────────────────────────────────────────────
    @application.exception_handler(RefundError)
    async def refund_error_handler(request: Request, exc: RefundError):
        return JSONResponse(
            status_code=exc.http_status,
            content={"error": {"code": exc.code, "message": exc.message, "details": exc.details}},
        )

    @application.exception_handler(TransientStoreError)
    async def transient_error_handler(request: Request, exc: TransientStoreError):
        logger.warning("Transient store failure on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=exc.http_status,
            content={"error": {"code": exc.code, "message": "Temporary failure, please retry"}},
            headers={"Retry-After": "1"},
        )

    @application.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Never leak stack traces to clients."""
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": {"code": "INTERNAL_ERROR", "message": "An unexpected error occurred"}},
        )

    # ── Startup ──────────────────────────────────────────────────────────────
    @application.on_event("startup")
    async def on_startup():
        if not is_production():
            load_seed_data()

    return application


app = create_app()
