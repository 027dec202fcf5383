"""FastAPI application entry point.

Wires the API routers, middleware, startup hook and error handlers into
the ASGI application served by uvicorn.
"""

import os
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from seedling.routes import (
    tasks,
    progress,
    families,
    rewards,
    points,
)
from seedling.database import create_db_and_tables
from seedling.errors import InvalidTimezone, StorageUnavailable

# The log level can be set per deployment through the environment.
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(title="Seedling")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def on_startup():
    await create_db_and_tables()


app.include_router(tasks.router)
app.include_router(progress.router)
app.include_router(families.router)
app.include_router(rewards.router)
app.include_router(points.router)


@app.get("/")
async def read_root():
    return {"message": "Welcome to Seedling API"}


@app.exception_handler(StorageUnavailable)
async def storage_unavailable_handler(request: Request, exc: StorageUnavailable):
    logger.error("Storage unavailable during request %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={
            "code": "storage_unavailable",
            "message": "The ledger could not be reached, please retry",
        },
    )


@app.exception_handler(InvalidTimezone)
async def invalid_timezone_handler(request: Request, exc: InvalidTimezone):
    return JSONResponse(
        status_code=400,
        content={"code": "invalid_timezone", "message": str(exc)},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all exception handler that logs the stack trace once."""
    logger.exception("Unhandled error during request %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "code": "internal_server_error",
            "message": "An unexpected error occurred",
        },
    )
