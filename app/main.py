from fastapi import FastAPI, Request, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
import time
from loguru import logger
import uuid
from prometheus_client import Counter, Histogram, generate_latest
from prometheus_client.openmetrics.exposition import CONTENT_TYPE_LATEST
from fastapi.responses import Response

from app.api import views
from app.api.v1 import auth, users, tours, reviews
from app.core.config import settings
from app.core.dependencies import rate_limit_dependency
from app.core.errors import register_exception_handlers, render_error
from app.db.session import engine

REQUEST_COUNT = Counter(
    "app_request_count",
    "Application Request Count",
    ["app_name", "method", "endpoint", "http_status"]
)
REQUEST_LATENCY = Histogram(
    "app_request_latency_seconds",
    "Application Request Latency",
    ["app_name", "method", "endpoint"]
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.PROJECT_NAME} in {settings.ENVIRONMENT} mode")

    yield

    logger.info("Closing database connections...")
    await engine.dispose()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Tours, users and reviews API with server-rendered pages",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    request_id = str(uuid.uuid4())
    logger.info(f"[{request_id}] {request.method} {request.url.path}")

    start_time = time.time()

    try:
        response = await call_next(request)
    except Exception as e:
        process_time = time.time() - start_time
        logger.error(f"[{request_id}] Failed in {process_time:.4f}s: {str(e)}")
        response = render_error(request, e)

    process_time = time.time() - start_time

    REQUEST_LATENCY.labels(
        settings.PROJECT_NAME,
        request.method,
        request.url.path
    ).observe(process_time)

    REQUEST_COUNT.labels(
        settings.PROJECT_NAME,
        request.method,
        request.url.path,
        response.status_code
    ).inc()

    logger.info(f"[{request_id}] Completed {response.status_code} in {process_time:.4f}s")

    return response


rate_limited = [Depends(rate_limit_dependency())]

app.include_router(
    auth.router,
    prefix=f"{settings.API_V1_STR}/users",
    tags=["authentication"],
    dependencies=rate_limited,
)

app.include_router(
    users.router,
    prefix=f"{settings.API_V1_STR}/users",
    tags=["users"],
    dependencies=rate_limited,
)

app.include_router(
    tours.router,
    prefix=f"{settings.API_V1_STR}/tours",
    tags=["tours"],
    dependencies=rate_limited,
)

app.include_router(
    reviews.router,
    prefix=f"{settings.API_V1_STR}/reviews",
    tags=["reviews"],
    dependencies=rate_limited,
)

app.mount("/img", StaticFiles(directory=settings.IMAGES_DIR, check_dir=False), name="img")

app.include_router(views.router)


@app.get("/api/health")
async def health_check():
    return {"status": "ok"}


@app.get("/metrics")
async def metrics():
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )

