import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from summit_registration import scheduler
from summit_registration.api.routes import admin, auth, health, registration, scanner
from summit_registration.core.config import settings
from summit_registration.core.exceptions import SummitError
from summit_registration.core.logging import setup_logging
from summit_registration.db.session import Database
from summit_registration.services.email import EmailService
from summit_registration.services.tickets import TicketIssuer

logger = logging.getLogger(__name__)


def create_app(
    database: Optional[Database] = None,
    email_service: Optional[EmailService] = None,
    ticket_issuer: Optional[TicketIssuer] = None,
    start_scheduler: Optional[bool] = None,
) -> FastAPI:
    """
    Build the application. Collaborators default to ones built from
    settings; tests pass their own.
    """
    run_scheduler = settings.CLEANUP_ENABLED if start_scheduler is None else start_scheduler

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan events for startup and shutdown"""
        # Startup
        setup_logging()
        logger.info(f"🚀 Starting {settings.PROJECT_NAME} v{settings.VERSION}...")

        db = database or Database(settings.DATABASE_URL)

        logger.info("📦 Creating database tables...")
        db.create_all()

        try:
            db.ping()
            logger.info("✅ Database connection successful")
        except Exception as e:
            logger.error(f"❌ Database connection failed: {e}")
            raise

        app.state.db = db
        app.state.email_service = email_service or EmailService()
        app.state.ticket_issuer = ticket_issuer or TicketIssuer()

        if not app.state.email_service.configured:
            logger.warning("📧 Email delivery is not configured; confirmations will be skipped")

        if run_scheduler:
            scheduler.init_scheduler(db)

        yield

        # Shutdown
        logger.info("👋 Shutting down...")
        if run_scheduler:
            scheduler.shutdown_scheduler()
        db.dispose()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Access-code event registration with QR tickets and venue check-in",
        version=settings.VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(SummitError)
    async def summit_error_handler(request: Request, exc: SummitError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "Invalid request data")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "error": f"{field}: {message}" if field else message,
                "errorType": "VALIDATION_ERROR",
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"❌ Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=SummitError().to_dict(),
        )

    prefix = settings.API_PREFIX
    app.include_router(health.router, prefix=prefix, tags=["Health"])
    app.include_router(auth.router, prefix=f"{prefix}/auth", tags=["Auth"])
    app.include_router(registration.router, prefix=prefix, tags=["Registration"])
    app.include_router(admin.router, prefix=f"{prefix}/admin", tags=["Admin"])
    app.include_router(scanner.router, prefix=f"{prefix}/scanner", tags=["Scanner"])

    @app.get("/")
    async def root():
        """Root endpoint with API information"""
        return {
            "service": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "status": "operational",
            "docs": "/docs",
            "endpoints": {
                "health": f"{prefix}/health",
                "register": f"{prefix}/register",
                "verify": f"{prefix}/verify/{{accessCode}}",
                "admin": f"{prefix}/admin",
                "scanner": f"{prefix}/scanner",
            },
        }

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000, reload=False)
