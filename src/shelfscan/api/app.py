# ABOUTME: FastAPI application exposing POST /api/scan and GET /health.
# ABOUTME: Maps malformed requests to 400, quota denials to 429, everything else to 200.

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from shelfscan.config import ScanSettings
from shelfscan.core.pipeline import build_pipeline
from shelfscan.core.quota import UsageQuota
from shelfscan.core.service import (
    InvalidScanRequestError,
    QuotaExceededError,
    ScanRequest,
    ScanService,
)

logger = logging.getLogger(__name__)


class ScanBody(BaseModel):
    image_data_url: str | None = Field(default=None, alias="imageDataURL")
    user_id: str | None = Field(default=None, alias="userId")


def create_app(
    service: ScanService | None = None,
    *,
    settings: ScanSettings | None = None,
    quota: UsageQuota | None = None,
) -> FastAPI:
    """Build the API application.

    When service is None, one is wired from settings (or the environment) at
    startup and its HTTP client is closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        if service is not None:
            yield
            return

        pipeline = build_pipeline(settings or ScanSettings())
        app.state.service = ScanService(pipeline, quota=quota)
        logger.info("Scan service ready")
        try:
            yield
        finally:
            await pipeline.aclose()

    app = FastAPI(
        title="Shelfscan",
        description="Recognize books on a bookshelf photo",
        version="0.1.0",
        lifespan=lifespan,
    )
    if service is not None:
        app.state.service = service

    @app.post("/api/scan")
    async def scan(body: ScanBody, request: Request) -> dict:
        try:
            scan_request = ScanRequest.from_data_url(body.image_data_url)
        except InvalidScanRequestError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        try:
            outcome = await request.app.state.service.handle(scan_request, user_id=body.user_id)
        except QuotaExceededError as exc:
            raise HTTPException(status_code=429, detail=str(exc)) from exc
        return outcome.to_dict()

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return app
