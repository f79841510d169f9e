"""PlayHub API application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from playhub.core.config import settings
from playhub.core.errors import BookingViolation
from playhub.routes import passes, reservations


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    yield


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    docs_url=f"{settings.api_prefix}/docs",
    openapi_url=f"{settings.api_prefix}/openapi.json",
    lifespan=lifespan,
)

# CORS - permissive in dev, lock down in production
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BookingViolation)
async def booking_violation_handler(request: Request, exc: BookingViolation):
    return JSONResponse(status_code=exc.status_code, content={"detail": [exc.to_detail()]})


# Mount routes
app.include_router(reservations.router, prefix=settings.api_prefix)
app.include_router(passes.router, prefix=settings.api_prefix)


@app.get("/health")
async def health():
    return {"status": "ok", "app": settings.app_name}
