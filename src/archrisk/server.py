"""archrisk HTTP API: FastAPI application entry point."""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from . import __version__
from .analysis_pipeline import AnalysisPipeline, validate_input
from .config import ArchriskConfig, get_config
from .models import MissingFieldsError
from .observability.init import initialize_observability
from .observability.metrics import get_metrics

logger = logging.getLogger(__name__)


def create_app(config: Optional[ArchriskConfig] = None) -> FastAPI:
    """Build the API around one AnalysisPipeline"""
    config = config or get_config()
    initialize_observability(config.telemetry)

    pipeline = AnalysisPipeline(config)
    llm_configured = pipeline.llm_router.is_configured()
    started_at = datetime.now(timezone.utc)

    app = FastAPI(
        title="archrisk",
        description="Architecture failure-risk analysis backed by an LLM",
        version=__version__,
    )
    app.state.pipeline = pipeline

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root():
        return {
            "message": "archrisk backend is running",
            "llm": "configured" if llm_configured else "missing api key",
        }

    @app.get("/health")
    async def health():
        uptime = (datetime.now(timezone.utc) - started_at).total_seconds()
        return {
            "status": "healthy",
            "uptime_seconds": round(uptime, 2),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": __version__,
        }

    @app.post("/api/analyze")
    async def analyze_endpoint(request: Request):
        # An empty body is an empty record, rejected below for missing fields
        raw = await request.body()
        try:
            payload = json.loads(raw) if raw.strip() else {}
        except ValueError:
            logger.warning("Rejected analysis request: body is not valid JSON")
            return JSONResponse(
                status_code=400, content={"error": "Request body must be valid JSON"}
            )

        if not isinstance(payload, dict):
            return JSONResponse(
                status_code=400, content={"error": "Request body must be a JSON object"}
            )
        try:
            record = validate_input(payload)
        except MissingFieldsError as e:
            logger.warning(f"Rejected analysis request: missing {e.fields}")
            return JSONResponse(status_code=400, content={"error": str(e)})
        except ValidationError as e:
            logger.warning(f"Rejected analysis request: {e.error_count()} invalid fields")
            return JSONResponse(
                status_code=400,
                content={
                    "error": "Invalid input fields",
                    "details": e.errors(include_context=False, include_input=False),
                },
            )

        report = await app.state.pipeline.run(record)
        return report.to_wire()

    @app.get("/metrics")
    async def metrics():
        collector = get_metrics()
        if collector is None:
            return JSONResponse(status_code=404, content={"error": "Metrics disabled"})
        return PlainTextResponse(
            collector.get_metrics_text(), media_type="text/plain; version=0.0.4"
        )

    if llm_configured:
        logger.info(f"LLM integration active (router '{config.llm.default}')")
    else:
        logger.warning(
            "LLM API key missing; every analysis will use the fallback engine"
        )

    return app
