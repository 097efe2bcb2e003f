from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException
import time
import logging

from .api.v1.auth import router as auth_router
from .api.v1.appointments import router as appointments_router
from .api.v1.doctors import router as doctors_router
from .api.v1.patients import router as patients_router
from .api.v1.prescriptions import router as prescriptions_router
from .core.config import settings
from .core.database import get_db, init_db
from .core.exceptions import error_kind

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    description="Clinic management API: appointments, availability, prescriptions",
    openapi_url=f"{API_PREFIX}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# TestClient requests carry Host: testserver
if not settings.TESTING:
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=["localhost", "127.0.0.1", "*.localhost", "testserver"]
    )

@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.time()
    response = await call_next(request)
    elapsed = time.time() - started
    response.headers["X-Process-Time"] = str(elapsed)

    logger.info(
        f"{request.method} {request.url.path} - "
        f"Status: {response.status_code} - "
        f"Time: {elapsed:.4f}s"
    )
    return response

def error_body(request: Request, kind: str, message) -> dict:
    return {"error": kind, "message": message, "path": str(request.url.path)}

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, error_kind(exc), exc.detail),
        headers=getattr(exc, "headers", None)
    )

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = [
        f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(request, "InvalidArgument", "; ".join(problems) or "Invalid request")
    )

@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(request, "Internal", "An unexpected error occurred")
    )

for router in (
    auth_router, appointments_router, patients_router, doctors_router, prescriptions_router
):
    app.include_router(router, prefix=API_PREFIX)

@app.on_event("startup")
async def startup_event():
    logger.info(f"Starting {settings.APP_NAME} {settings.VERSION}")

    db_url = settings.get_database_url
    backend = "SQLite" if db_url.startswith("sqlite") else "PostgreSQL"
    logger.info(f"Using {backend} database")

    try:
        init_db()
    except SQLAlchemyError as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    window = settings.slot_window
    logger.info(
        f"Slots {window.start:%H:%M}-{window.end:%H:%M} every {window.step_minutes} min; "
        f"respect availability={settings.SLOTS_RESPECT_AVAILABILITY}, "
        f"prevent double booking={settings.PREVENT_DOUBLE_BOOKING}"
    )

@app.on_event("shutdown")
async def shutdown_event():
    logger.info(f"Shutting down {settings.APP_NAME}")

@app.get("/health")
async def health_check(db: Session = Depends(get_db)):
    """Liveness plus a round trip to the database."""
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        logger.warning(f"Health check database ping failed: {e}")
        database = "unavailable"

    return {
        "status": "healthy" if database == "ok" else "degraded",
        "database": database,
        "timestamp": time.time(),
        "version": settings.VERSION
    }

@app.get("/")
async def root():
    return {
        "message": f"Welcome to the {settings.APP_NAME} API",
        "version": settings.VERSION,
        "docs": "/docs",
        "health": "/health"
    }

@app.get(f"{API_PREFIX}/info")
async def api_info():
    """Entry points of each resource group."""
    return {
        "name": settings.APP_NAME,
        "version": settings.VERSION,
        "endpoints": {
            "authentication": f"{API_PREFIX}/auth",
            "appointments": f"{API_PREFIX}/appointments",
            "patients": f"{API_PREFIX}/patients",
            "doctors": f"{API_PREFIX}/doctors",
            "prescriptions": f"{API_PREFIX}/prescriptions",
            "openapi": app.openapi_url
        }
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "clinic.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="info"
    )
