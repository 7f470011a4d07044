"""FastAPI application factory for Transcript-Engine."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from transcript_engine.common.config import get_settings
from transcript_engine.common.logging import get_logger, setup_logging
from transcript_engine.common.schemas import HealthResponse

logger = get_logger("app")


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        from transcript_engine.deps import get_db
        db = get_db()
        await db.init()
        await db.create_all()
        logger.info("Transcript-Engine started (%s)", settings.environment)
        yield
        # Shutdown
        await db.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version)

    # Mount routers
    from transcript_engine.students.router import router as students_router
    from transcript_engine.certification.router import router as certification_router
    from transcript_engine.audit.router import router as audit_router
    from transcript_engine.verification.router import router as verification_router

    prefix = settings.api_prefix
    app.include_router(students_router, prefix=prefix, tags=["students"])
    app.include_router(certification_router, prefix=prefix, tags=["certification"])
    app.include_router(audit_router, prefix=prefix, tags=["audit"])
    app.include_router(verification_router, prefix=prefix, tags=["verification"])

    return app
