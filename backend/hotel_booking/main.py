"""Hotel Booking — FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hotel_booking.api.routes.admin_reservations import router as admin_reservations_router
from hotel_booking.api.routes.admin_rooms import room_types_router, rooms_router
from hotel_booking.api.routes.availability import router as availability_router
from hotel_booking.api.routes.payments import router as payments_router
from hotel_booking.api.routes.reservations import router as reservations_router
from hotel_booking.api.routes.reservations import user_router
from hotel_booking.api.routes.webhooks import router as webhooks_router
from hotel_booking.config import settings

# Configure root logger so all hotel_booking.* loggers output to stderr (captured by Docker).
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup and shutdown events."""
    # Startup
    yield
    # Shutdown — close the cache client and dispose engine connections
    from hotel_booking.database import engine
    from hotel_booking.services.cache import close_cache

    await close_cache()
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Hotel reservations with PayU payment reconciliation.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Answer malformed or incomplete request bodies with 400."""
    logger.info("Invalid request to %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "message": "Missing or invalid fields",
            "errors": jsonable_errors(exc),
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg", ""), "type": error.get("type", "")}
        for error in exc.errors()
    ]


# Routers
app.include_router(availability_router)
app.include_router(reservations_router)
app.include_router(user_router)
app.include_router(payments_router)
app.include_router(webhooks_router)
app.include_router(admin_reservations_router)
app.include_router(room_types_router)
app.include_router(rooms_router)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.app_name}


@app.get("/", tags=["root"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
