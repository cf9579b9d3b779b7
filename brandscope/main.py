# =============================================================================
# Application Entry Point — FastAPI App Factory
# =============================================================================
#
# Run locally:
#   uvicorn brandscope.main:app --reload
#
# create_app() wires logging, the analyze router and the AnalyzeError →
# HTTP mapping. Tests build their own app through the same factory.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from brandscope import __version__
from brandscope.api.analyze import analyze_error_handler, router
from brandscope.config import settings
from brandscope.errors import AnalyzeError

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Root logging at the configured level, one line per record."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging()
    logger.info(
        "%s %s starting (llm_provider=%s, model=%s)",
        settings.app_name, __version__, settings.llm_provider, settings.llm_model,
    )
    yield
    logger.info("%s shutting down", settings.app_name)


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        description=(
            "Assess how relevant a YouTube video is to a brand, with an "
            "Analyst/Evaluator review loop gating every result."
        ),
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.include_router(router)
    app.add_exception_handler(AnalyzeError, analyze_error_handler)
    return app


app = create_app()
