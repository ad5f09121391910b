"""
FastAPI application for the assessment engine.

Production deployment configuration via environment variables
(see utils.config.Config).
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from assessment import AssessmentError, AssessmentService, get_assessment_repository
from utils.config import Config

from web.routes import router as assessment_router


logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def create_app(
    config: Optional[Config] = None,
    service: Optional[AssessmentService] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Settings (default: loaded from environment)
        service: Service to serve (default: one over the process repository)
    """
    config = config or Config.load()
    if service is None:
        repository = get_assessment_repository(config.data_path or None)
        service = AssessmentService(repository, config)

    app = FastAPI(
        title="Assessment Engine",
        description="Property valuation, forecasting and appeal recommendations",
        version=VERSION,
        debug=config.debug,
    )
    app.state.config = config
    app.state.service = service

    # Healthchecks: no dependencies, no IO
    @app.get("/", include_in_schema=False)
    def root():
        return {"status": "ok"}

    @app.get("/health", include_in_schema=False)
    def health():
        return {"status": "healthy", "version": VERSION}

    if config.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.allowed_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    @app.exception_handler(AssessmentError)
    async def handle_assessment_error(request: Request, exc: AssessmentError):
        if exc.status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status, content=exc.to_dict())

    # PDF packets; the directory may be created after startup
    reports_dir = Path(config.reports_dir)
    app.mount("/reports", StaticFiles(directory=reports_dir, check_dir=False), name="reports")

    app.include_router(assessment_router)

    logger.info("Assessment engine app created (reports in %s)", reports_dir)
    return app
