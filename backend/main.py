from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from sqlalchemy import text
from api.v1 import auth, otp
from core.config import settings
from core.exceptions import (
    AlreadyExistsError,
    IdentityError,
    InvalidCredentialsError,
    InvalidOrExpiredOtpError,
    StorageError,
    ValidationError,
)
from db.base import initialize_database
from db.session import engine, SessionLocal
from utils.logging_config import configure_logging, RequestContextMiddleware
from utils.responses import error_json

# Configure logging with date-based files and TTL retention
logger = configure_logging("travel_identity")

ERROR_STATUS = {
    ValidationError: 400,
    InvalidCredentialsError: 401,
    InvalidOrExpiredOtpError: 400,
    AlreadyExistsError: 409,
    StorageError: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    await initialize_database()
    logger.info("Application startup complete")
    yield
    await engine.dispose()
    logger.info("Application shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
)


@app.exception_handler(IdentityError)
async def identity_error_handler(request: Request, exc: IdentityError):
    status_code = next(
        (code for kind, code in ERROR_STATUS.items() if isinstance(exc, kind)),
        500,
    )
    if status_code >= 500:
        logger.error(f"Identity failure at {request.url.path}: {exc}")
        return error_json("Internal server error", status_code)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return error_json(exc.message, status_code, headers=headers)


# Global exception handler to ensure 500s for unexpected errors
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error at {request.url.path}: {exc}")
    return error_json("Internal server error", 500)


app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router, tags=["Authentication"])
app.include_router(otp.router, tags=["OTP"])


@app.get("/")
async def root():
    return {"message": settings.APP_NAME, "version": settings.VERSION}


@app.get("/health")
async def health_check():
    try:
        async with SessionLocal() as db:
            await db.execute(text("SELECT 1"))
        db_status = "sql_connected"
    except Exception as e:
        logger.warning(f"Health SQL check failed: {e}")
        db_status = "sql_unavailable"
    return {"status": "healthy", "database": db_status}
