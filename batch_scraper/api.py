"""HTTP job submission endpoint.

``POST /api/scrape``
    Body ``{"urls": [...], "label"?: str, "config"?: {...}}``. Responds 200
    with ``{"jobId", "status", "results"}`` once a job exists, 400 with the
    validation issues when the body is malformed, and 500 when the job
    could not be created or finalized.

``GET /api/health``
    Liveness check.
"""

from __future__ import annotations

import json

import structlog
from fastapi import APIRouter, FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from .errors import ValidationError
from .orchestrator import ScrapeOrchestrator

logger = structlog.get_logger("batch_scraper.api")


def _invalid_body(issues: list[dict]) -> JSONResponse:
    return JSONResponse(
        {"error": "Invalid body", "issues": issues},
        status_code=status.HTTP_400_BAD_REQUEST,
    )


def build_router(orchestrator: ScrapeOrchestrator) -> APIRouter:
    router = APIRouter(prefix="/api", tags=["scrape"])

    @router.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @router.post("/scrape")
    async def submit_scrape(request: Request) -> JSONResponse:
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return _invalid_body([{"loc": [], "msg": "Body must be valid JSON", "type": "json_invalid"}])

        try:
            response = await run_in_threadpool(orchestrator.submit, payload)
        except ValidationError as exc:
            return _invalid_body(exc.issues)
        except Exception as exc:  # noqa: BLE001
            logger.exception("scrape_api_error", error=str(exc))
            return JSONResponse(
                {"error": "Internal server error", "message": str(exc) or "Unknown"},
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return JSONResponse(response.to_dict(), status_code=status.HTTP_200_OK)

    return router


def create_app(orchestrator: ScrapeOrchestrator) -> FastAPI:
    """Build the application around an already constructed orchestrator."""

    app = FastAPI(title="batch-scraper")
    app.include_router(build_router(orchestrator))
    return app


__all__ = ["build_router", "create_app"]
