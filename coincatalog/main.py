import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from coincatalog.api import auth_router, collection_router, health_router
from coincatalog.config import settings
from coincatalog.db.database import init_db
from coincatalog.models.failure import ApiResponse, KnownError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    await init_db()
    yield


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("coincatalog"),
    lifespan=lifespan,
)

app.include_router(auth_router)
app.include_router(collection_router)
app.include_router(health_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(KnownError)
async def known_error_handler(_request: Request, exc: KnownError) -> JSONResponse:
    """Render a KnownError as the failure envelope with its status code."""
    if exc.status_code >= 500:
        logger.error("%s: %s (%s)", exc.kind.value, exc.message, exc.detail)
    body = exc.to_response().model_dump(mode="json")
    body["detail"] = exc.message
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(Exception)
async def unknown_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Render anything unexpected as the unknown-failure envelope."""
    logger.exception("Unhandled error: %s", exc)
    body = ApiResponse.unknown_failure(detail=type(exc).__name__).model_dump(mode="json")
    return JSONResponse(status_code=500, content=body)
