import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from automator import __version__
from automator.api.account import router as account_router
from automator.api.diagnostics import router as diagnostics_router
from automator.api.routes import (
    automator_exception_handler,
    generic_exception_handler,
    http_exception_handler,
    router as generate_router,
    validation_exception_handler,
)
from automator.config import get_settings
from automator.services.job_store import get_job_store, run_sweeper
from automator.utils.errors import AutomatorError

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the job sweeper for the lifetime of the app."""
    sweeper = asyncio.create_task(
        run_sweeper(get_job_store(), settings.job_sweep_interval_seconds)
    )
    if not settings.claude_api_key:
        logger.warning("CLAUDE_API_KEY not set, generation jobs will fail immediately")
    try:
        yield
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper


def create_app() -> FastAPI:
    app = FastAPI(title="Automator API", version=__version__, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(AutomatorError, automator_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(generate_router)
    app.include_router(account_router)
    app.include_router(diagnostics_router)
    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("automator.main:app", host=settings.host, port=settings.port, reload=True)
