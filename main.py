"""
TDD Convergence Agent — HTTP entry point
========================================
POST /run-agent starts a background convergence run for one Java class;
GET /status/{run_id} and GET /results/{run_id} report on it.

Run with:  python main.py   (or: uvicorn main:app)
"""
import time
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from starlette.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from tdd_agent.api.run_agent import router as run_agent_router
from tdd_agent.api.status import router as status_router
from tdd_agent.api.results import router as results_router
from tdd_agent.core.config import (
    GENERATOR_PROVIDER,
    PRIMARY_MODEL,
    FALLBACK_MODEL,
    MAX_CYCLES,
    MAX_ITERATIONS,
    BUILD_MODE,
    ALLOWED_DEPENDENCY_GROUPS,
    CORS_ORIGINS,
)
from tdd_agent.utils.logging_config import setup_logging

setup_logging()
logger = logging.getLogger("main")


def _loop_settings() -> dict:
    return {
        "provider": GENERATOR_PROVIDER,
        "primary_model": PRIMARY_MODEL,
        "fallback_model": FALLBACK_MODEL,
        "max_cycles": MAX_CYCLES,
        "max_iterations": MAX_ITERATIONS,
        "build_mode": BUILD_MODE,
        "allowed_dependency_groups": list(ALLOWED_DEPENDENCY_GROUPS),
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("TDD agent ready | %s", _loop_settings())
    yield
    logger.info("TDD agent shutting down")


app = FastAPI(title="TDD Convergence Agent API", lifespan=lifespan)


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------
class LoggingMiddleware(BaseHTTPMiddleware):
    """One line per request; status polling is kept at DEBUG."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        is_poll = request.url.path.startswith("/status/")
        log = logger.debug if is_poll else logger.info

        try:
            response = await call_next(request)
        except Exception:
            logger.exception("%s %s failed", request.method, request.url.path)
            raise

        log(
            "%s %s -> %d (%.1fms)",
            request.method, request.url.path, response.status_code,
            (time.time() - start_time) * 1000,
        )
        return response


app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(CORS_ORIGINS),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    return {"status": "ok", "settings": _loop_settings()}


app.include_router(run_agent_router, tags=["Agent"])
app.include_router(status_router, tags=["Agent"])
app.include_router(results_router, tags=["Agent"])

if __name__ == "__main__":
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=True)
