"""
FastAPI application exposing the batch trigger.

Endpoints:
- POST /api/process - Process the configured input file
- GET /metrics - Prometheus metrics
- GET /health - Liveness check
"""

from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI, Response
from fastapi.responses import JSONResponse

from tenant_ingest.batch.pipeline import TenantIngestionPipeline
from tenant_ingest.config import PipelineSettings, load_settings
from tenant_ingest.core.exceptions import PipelineError
from tenant_ingest.observability.logger import get_logger
from tenant_ingest.observability.metrics import render_metrics


logger = get_logger(__name__)

PipelineFactory = Callable[[PipelineSettings], TenantIngestionPipeline]


def create_app(
    settings: PipelineSettings | None = None,
    pipeline_factory: PipelineFactory | None = None,
) -> FastAPI:
    """
    Create the API application.

    Args:
        settings: Pipeline settings (defaults to load_settings())
        pipeline_factory: Builds a pipeline per request (defaults to
            TenantIngestionPipeline.from_settings)
    """
    settings = settings or load_settings()
    pipeline_factory = pipeline_factory or TenantIngestionPipeline.from_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Batch input directory: {settings.data_dir.resolve()}")
        yield

    app = FastAPI(
        title="Tenant Ingest API",
        description="Per-tenant search index provisioning and ingestion",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/metrics")
    async def metrics():
        content, content_type = render_metrics()
        return Response(content=content, media_type=content_type)

    # Sync handler: runs in the threadpool; runs are serialized by the pipeline lock
    @app.post("/api/process")
    def process():
        """Process every tenant in the configured input file."""
        try:
            with pipeline_factory(settings) as pipeline:
                result = pipeline.run(settings.input_path)
        except PipelineError as e:
            logger.error(f"Batch processing failed: {e}")
            return JSONResponse(status_code=500, content={"success": False, "error": str(e)})
        except Exception as e:
            logger.exception("Unexpected error during batch processing")
            return JSONResponse(
                status_code=500,
                content={"success": False, "error": f"{type(e).__name__}: {e}"},
            )

        summary = result.summary()
        if result.status != "succeeded":
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "error": f"{result.tenants_failed} tenant(s) failed",
                    **summary,
                },
            )

        return {"success": True, "message": "Processed all users!", **summary}

    return app
