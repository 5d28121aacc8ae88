# storefront/main.py
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from sqlmodel import Session

from storefront.core.config import get_settings
from storefront.core.errors import TransientStorageError
from storefront.database import create_db_and_tables, engine

# Import models so SQLModel metadata is populated before create_all()
from storefront.models import user as _user_models  # noqa: F401
from storefront.models import product as _product_models  # noqa: F401
from storefront.models import review as _review_models  # noqa: F401
from storefront.models import cart as _cart_models  # noqa: F401

# Routers
from storefront.routers.users import router as users_router
from storefront.routers.products import admin_router as catalog_admin_router
from storefront.routers.products import router as products_router
from storefront.routers.reviews import router as reviews_router
from storefront.routers.cart import router as cart_router, service as cart_service

settings = get_settings()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Verify DB connectivity and create tables.
      - Drop carts abandoned past the retention window.
    """
    logger.info("Startup: connecting to database...")
    try:
        create_db_and_tables()
        with Session(engine) as session:
            cart_service.purge_expired(session)
        logger.info("Startup: DB connection OK, tables verified.")
    except Exception as e:
        logger.error(f"Startup: DB connection FAILED: {e}")
        raise
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(OperationalError)
async def storage_unavailable_handler(request: Request, exc: OperationalError):
    """
    Storage outages surface as 503 with reason=storage_unavailable.
    Nothing is retried server-side; the client may retry the request.
    """
    logger.error("Storage error on %s %s: %s", request.method, request.url.path, exc)
    error = TransientStorageError()
    return JSONResponse(status_code=error.status_code, content={"detail": error.detail})


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Versioned API prefix, e.g. /api/v1
app.include_router(users_router, prefix=settings.API_V1_STR)
app.include_router(products_router, prefix=settings.API_V1_STR)
app.include_router(catalog_admin_router, prefix=settings.API_V1_STR)
app.include_router(reviews_router, prefix=settings.API_V1_STR)
app.include_router(cart_router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "storefront"}
