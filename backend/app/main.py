# app/main.py
import logging
import psutil # For system metrics in health check
import time   # For uptime calculation
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Dict, Any
from datetime import datetime, timedelta, timezone # For uptime calculation
from fastapi import status
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.core.config import settings, PROJECT_NAME, API_PREFIX, VERSION
from app.core.exceptions import SchoolAPIError
from app.db.database import connect_to_mongo, close_mongo_connection, check_database_health, get_database
from app.db.init_db import ensure_indexes, seed_reference_data

# Endpoint routers
from app.api.v1.endpoints.auth import router as auth_router
from app.api.v1.endpoints.users import router as users_router
from app.api.v1.endpoints.pending_students import router as pending_students_router
from app.api.v1.endpoints.students import router as students_router
from app.api.v1.endpoints.classes import router as classes_router
from app.api.v1.endpoints.content import routers as content_routers

logger = logging.getLogger(__name__)

# Track application start time for uptime calculation
APP_START_TIME = time.time()

app = FastAPI(
    title=PROJECT_NAME,
    version=VERSION,
    description="Backend for the school portal: admissions, users, students, classes and school content",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
    # Using on_event decorators below for DB lifecycle
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Exception Handlers ---
def error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message})

@app.exception_handler(SchoolAPIError)
async def school_api_error_handler(request: Request, exc: SchoolAPIError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return error_response(exc.status_code, type(exc).__name__, exc.message)

@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if not errors:
        return error_response(status.HTTP_400_BAD_REQUEST, "ValidationError", "Invalid request")
    first = errors[0]
    # Drop the leading 'body'/'query'/'path' segment from the location
    loc = [str(part) for part in first.get("loc", ())]
    field = ".".join(loc[1:] if len(loc) > 1 else loc) or "body"
    message = str(first.get("msg", "Invalid value")).removeprefix("Value error, ")
    return error_response(status.HTTP_400_BAD_REQUEST, "ValidationError", f"{field}: {message}")

@app.exception_handler(DuplicateKeyError)
async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    logger.warning(f"{request.method} {request.url.path} hit a duplicate key: {exc.details}")
    return error_response(status.HTTP_409_CONFLICT, "Conflict", "A record with this key already exists")

@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError):
    logger.error(f"Database error during {request.method} {request.url.path}: {exc}", exc_info=exc)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "InternalError", "Database operation failed")

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error during {request.method} {request.url.path}: {exc}", exc_info=exc)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "InternalError", "Internal server error")


# --- Event Handlers for DB Connection ---
@app.on_event("startup")
async def startup_event():
    """Connect to MongoDB, ensure indexes and seed reference data on application startup."""
    logger.info("Executing startup event: Connecting to database...")
    connected = await connect_to_mongo()
    if not connected:
        logger.critical("FATAL: Database connection failed on startup. Application might not function correctly.")
        return

    logger.info("Startup event: Database connection successful.")
    db_instance = get_database()
    if db_instance is None:
        logger.error("Could not get database instance to ensure indexes.")
        return
    try:
        await ensure_indexes(db_instance)
        seeded = await seed_reference_data(db_instance)
        logger.info(f"Reference data seeding finished: {seeded}")
    except PyMongoError as e:
        logger.error(f"Error preparing the database on startup: {e}", exc_info=True)

@app.on_event("shutdown")
async def shutdown_event():
    """Disconnect from MongoDB on application shutdown."""
    logger.info("Executing shutdown event: Disconnecting from database...")
    await close_mongo_connection()


# --- API Endpoints ---
@app.get("/", tags=["Root"], include_in_schema=False)
async def read_root():
    """Root endpoint welcome message."""
    return {"message": "School server is running"}

@app.get("/health", status_code=200, tags=["Health Check"])
async def health_check() -> Dict[str, Any]:
    """
    Health check endpoint that reports:
    - Application status and metrics (uptime, memory)
    - Database connectivity and collections
    """
    db_health = await check_database_health()

    process = psutil.Process()
    memory_info = process.memory_info()

    uptime_seconds = time.time() - APP_START_TIME
    uptime = str(timedelta(seconds=int(uptime_seconds)))

    health_info = {
        "status": "OK",
        "application": {
            "name": PROJECT_NAME,
            "version": VERSION,
            "status": "OK",
            "uptime": uptime,
            "memory_usage": {
                "rss_bytes": memory_info.rss,
                "vms_bytes": memory_info.vms,
                "percent": f"{process.memory_percent():.2f}%"
            }
        },
        "database": db_health,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }

    # Overall status follows the database
    if db_health.get("status") in ("ERROR", "WARNING"):
        health_info["status"] = db_health["status"]

    return health_info

# --- Liveness and Readiness Probes ---
@app.get("/healthz", tags=["Probes"], status_code=status.HTTP_200_OK)
async def liveness_probe():
    """Liveness probe: Checks if the application process is running and responsive."""
    return {"status": "live"}

@app.get("/readyz", tags=["Probes"])
async def readiness_probe(response: Response):
    """Readiness probe: ready once the database answers."""
    db_health = await check_database_health()
    if db_health.get("status") in ("OK", "WARNING"):
        response.status_code = status.HTTP_200_OK
        return {"status": "ready", "database": db_health}
    response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {"status": "not_ready", "database": db_health}


# --- Include API Routers ---
app.include_router(auth_router, prefix=API_PREFIX)
app.include_router(users_router, prefix=API_PREFIX)
app.include_router(pending_students_router, prefix=API_PREFIX)
app.include_router(students_router, prefix=API_PREFIX)
app.include_router(classes_router, prefix=API_PREFIX)
for content_router in content_routers:
    app.include_router(content_router, prefix=API_PREFIX)
