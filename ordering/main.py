"""
Main FastAPI application
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ordering.config import get_settings
from ordering.database import engine, Base
from ordering.models import *  # noqa: F401,F403 - register all tables
from ordering.api import orders, capacity, coupons
from ordering.services.errors import OrderError
from ordering.utils.logger import configure_logging, get_logger

settings = get_settings()
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")

    yield

    await engine.dispose()

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(OrderError)
async def order_error_handler(request: Request, exc: OrderError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({type(exc).__name__}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


# Include routers
app.include_router(orders.router, prefix="/api/orders", tags=["Orders"])
app.include_router(capacity.router, prefix="/api/capacity", tags=["Capacity"])
app.include_router(coupons.router, prefix="/api/coupons", tags=["Coupons"])


@app.get("/")
async def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "ordering.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
