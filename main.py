import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load environment-specific .env file BEFORE any app imports
env = os.getenv("ENV", "local")
load_dotenv(f".env.{env}")

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db import get_db
from app.middleware import PerformanceMiddleware
from app.routers import auth_router, billing_router, onboarding_router
from app.schemas.common import ErrorDetail, ErrorResponse
from app.services.firebase import initialize_firebase, is_firebase_initialized
from app.services.onboarding import OnboardingError
from app.services.preferences import preference_store
from app.services.stripe import list_plans
from app.utils import API_PREFIX, configure_sentry, is_debug, logger
from app.utils.sentry_utils import capture_exception

if configure_sentry():
    logger.info("Sentry error tracking initialized")


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        initialize_firebase()
    except FileNotFoundError as e:
        logger.warning(f"Starting without Firebase, sign-in will fail: {e}")

    unavailable = [plan.id for plan in list_plans() if plan.is_checkout and not plan.payment_link]
    if unavailable:
        logger.warning(f"Plans without a payment link cannot be selected: {unavailable}")

    yield

    preference_store.cache.clear()
    logger.info("Onboarding backend stopped")


app = FastAPI(
    title="Onboarding Gate Backend",
    description="Post-signup onboarding, plan selection and payment completion API",
    version="0.1.0",
    docs_url="/docs" if is_debug() else None,
    redoc_url=None,
    lifespan=lifespan,
)

# The web app sends the session cookie, so origins must be explicit
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.app_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(PerformanceMiddleware)

app.include_router(auth_router, prefix=API_PREFIX)
app.include_router(onboarding_router, prefix=API_PREFIX)
app.include_router(billing_router, prefix=API_PREFIX)


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message))
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(OnboardingError)
async def onboarding_exception_handler(request: Request, exc: OnboardingError):
    """Domain errors a router did not translate itself."""
    logger.warning(f"{exc.__class__.__name__} on {request.url.path}: {exc}")
    return error_response(400, "ONBOARDING_ERROR", str(exc))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled exception: {exc.__class__.__name__}: {exc}",
        exc_info=True,
    )
    capture_exception(exc)
    return error_response(500, "INTERNAL_ERROR", "An unexpected error occurred")


@app.get("/")
async def root():
    return {"message": "Welcome to Onboarding Gate Backend API", "version": "0.1.0"}


@app.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """Liveness plus the state of the database and Firebase."""
    try:
        await db.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        db_status = "disconnected"

    return {
        "status": "healthy",
        "database": db_status,
        "firebase": "initialized" if is_firebase_initialized() else "unavailable",
    }


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting Onboarding Gate Backend (env={env}, debug={is_debug()})")
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=is_debug())
