"""
Storefront — FastAPI application entrypoint
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.exc import SQLAlchemyError

from storefront.core.config import get_settings
from storefront.core.errors import (
    PersistenceError,
    StorefrontError,
    ValidationError,
    storefront_error_handler,
)
from storefront.core.redis_client import close_redis
from storefront.db.database import engine, Base
from storefront.middleware.auth import SessionAuthMiddleware
from storefront.middleware.idempotency import IdempotencyMiddleware
from storefront.api import auth, checkout, commands, health, owner, store

import storefront.models  # noqa: F401  (register tables on Base.metadata)

settings = get_settings()
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title="Storefront",
    description="Multi-tenant ordering: public store pages, customer checkout, owner dashboard.",
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Order matters: the session middleware is outermost, so the idempotency
# layer and every route see request.state.user
app.add_middleware(IdempotencyMiddleware)
app.add_middleware(SessionAuthMiddleware)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    field = None
    if errors:
        loc = [str(part) for part in errors[0].get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc) or None
    return await storefront_error_handler(request, ValidationError(field=field))


@app.exception_handler(SQLAlchemyError)
async def persistence_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Unhandled database error on %s %s", request.method, request.url.path)
    return await storefront_error_handler(request, PersistenceError())


app.add_exception_handler(StorefrontError, storefront_error_handler)

if settings.METRICS_ENABLED:
    Instrumentator().instrument(app).expose(app, endpoint="/metrics")

app.include_router(store.router)
app.include_router(checkout.router)
app.include_router(owner.router)
app.include_router(commands.router)
app.include_router(auth.router)
app.include_router(health.router)


@app.get("/")
async def root():
    return {"service": settings.SERVICE_NAME, "version": settings.SERVICE_VERSION}
