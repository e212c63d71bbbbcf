import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from locallink.config.db import init_engine, dispose_engine
from locallink.config.settings import settings
from locallink.controllers import admin, auth, comments, issues, uploads
from locallink.database.migrations import create_tables
from locallink.errors import LocalLinkError, Unauthenticated
from locallink.middleware.auth import get_verifier

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    init_engine()
    create_tables()
    logger.info(f"Token verification mode: {get_verifier().mode}")
    yield
    dispose_engine()

app = FastAPI(title="LocalLink Community Issue Reporting API", lifespan=lifespan)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(LocalLinkError)
async def handle_locallink_error(request: Request, exc: LocalLinkError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message}, headers=headers)

@app.exception_handler(RequestValidationError)
async def handle_request_validation(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    location = ".".join(str(part) for part in errors[0].get("loc", ())) if errors else ""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": f"{location}: {message}" if location else message},
    )

@app.exception_handler(Exception)
async def handle_unexpected(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )

# Include API routers
app.include_router(auth.router, prefix="/api/auth", tags=["authentication"])
app.include_router(issues.router, prefix="/api/issues", tags=["issues"])
app.include_router(comments.router, prefix="/api/comments", tags=["comments"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])
app.include_router(uploads.router, prefix="/api/uploads", tags=["uploads"])

@app.get("/")
async def root():
    return {"message": "Welcome to the LocalLink Community Issue Reporting API"}

@app.get("/health")
async def health_check():
    return {"status": "healthy"}
