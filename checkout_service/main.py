import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__, models  # noqa: F401  models регистрирует таблицы в Base.metadata
from .api import api_router
from .config import settings
from .database import Base, check_connection, engine
from .events.producer import checkout_event_producer
from .exceptions import CheckoutServiceError

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def init_database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("✅ Database schema is up to date")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"🚀 Starting {settings.app_name} v{__version__}")
    await init_database()

    if settings.kafka_enabled:
        await checkout_event_producer.start()
    else:
        logger.warning("⚠️ Kafka is disabled, domain events will be dropped")

    try:
        yield
    finally:
        logger.info(f"🛑 Stopping {settings.app_name}")
        await checkout_event_producer.stop()
        await engine.dispose()
        logger.info("👋 Database pool closed")


app = FastAPI(
    title=settings.app_name,
    description="Корзина, промокоды и оформление заказов",
    version=__version__,
    debug=settings.debug,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/health")
async def health_check():
    """Состояние БД и брокера"""
    try:
        await check_connection()
    except Exception as e:
        logger.error(f"❌ Health check: database unavailable: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": "unavailable"}
        )

    return {
        "status": "healthy",
        "service": settings.kafka_client_id,
        "database": "connected",
        "kafka": "connected" if checkout_event_producer.is_running else "disabled",
        "version": __version__
    }


@app.get("/")
async def root():
    return {
        "message": f"{settings.app_name} API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


@app.exception_handler(CheckoutServiceError)
async def checkout_error_handler(request: Request, exc: CheckoutServiceError):
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"{request.method} {request.url.path} -> {exc.status_code} {exc.error}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"❌ Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": "An unexpected error occurred"}
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("checkout_service.main:app", host="0.0.0.0", port=8003, reload=settings.debug)
