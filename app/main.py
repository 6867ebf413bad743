import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Import models so every table is registered with Base before create_all
from . import models  # noqa: F401
from .config import FRONTEND_URL, LOG_LEVEL
from .database import Base, engine
from .domain.bookings.router import router as bookings_router
from .domain.drafts.router import router as drafts_router
from .domain.fulfillment.router import router as drivers_router
from .shared.exceptions import BookingDomainError

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    try:
        from .redis_client import get_redis_client

        get_redis_client()  # Connection test
        logger.info("Redis connection established")
    except Exception as e:
        logger.warning(f"Redis connection failed - background retries will not be queued: {e}")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Cargo Booking API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(BookingDomainError)
async def booking_domain_exception_handler(request: Request, exc: BookingDomainError):
    """Typed service errors → 400 / 404 / 409 with their context"""
    if exc.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} → {exc.status_code} {exc.kind}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    errors = [
        {"loc": list(error.get("loc", [])), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    return JSONResponse(status_code=422, content={"detail": errors})


ALLOWED_ORIGINS = [FRONTEND_URL]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(bookings_router)
app.include_router(drafts_router)
app.include_router(drivers_router)


@app.get("/")
def root():
    return {"message": "Cargo Booking API is running"}


@app.get("/health")
async def health():
    """Liveness plus Redis connectivity (Redis is optional for serving requests)"""
    try:
        from .redis_client import get_redis_client

        start_time = time.time()
        get_redis_client().ping()
        response_time = (time.time() - start_time) * 1000
        redis_status = {"connected": True, "response_time_ms": round(response_time, 2)}
    except Exception as e:
        redis_status = {"connected": False, "error": str(e)}

    return {"status": "healthy", "redis": redis_status}
