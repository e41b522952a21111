"""Entry point for the file sharing server."""

import time
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from common.constants import ACCESS_TOKEN_TTL_SECONDS
from common.logging_config import get_logger, setup_logging
from server import config, service_locator
from server.auth import init_dummy_password_hash
from server.database import init_database
from server.exceptions import (
    AuthenticationError,
    ExpiredTokenError,
    InvalidCredentialsError,
    InvalidInputError,
    NotFoundError,
    PayloadTooLargeError,
    PermissionConflictError,
    RefreshTokenReusedError,
    SFSException,
    UploadAbortedError,
    UserAlreadyExistsError,
)
from server.repositories import create_memory_store, create_sqlite_store
from server.routes.auth_routes import router as auth_router
from server.routes.file_routes import router as file_router
from server.routes.me_routes import router as me_router
from server.schemas.common import HealthResponse
from server.storage import DiskStorage
from server.tokens import TokenIssuer

setup_logging('server')
logger = get_logger(__name__)

INTERNAL_ERROR_DETAIL = "Internal server error"


def configure_from_settings() -> None:
    """
    Build the store, disk storage and token issuer from server.config and
    install them in the service locator.
    """
    if config.STORE_BACKEND == "memory":
        store = create_memory_store()
        logger.warning("Using the in-memory store; all data is lost on restart")
    else:
        init_database(config.DATABASE_PATH)
        store = create_sqlite_store(config.DATABASE_PATH)
        logger.info(f"Database initialized at {config.DATABASE_PATH}")

    storage = DiskStorage(config.UPLOAD_DIR, chunk_size=config.UPLOAD_CHUNK_SIZE)
    storage.ensure_upload_dir()

    if config.JWT_SECRET == config.DEV_JWT_SECRET:
        logger.warning("SFS_JWT_SECRET is not set, signing tokens with the development secret")

    token_issuer = TokenIssuer(
        config.JWT_SECRET,
        algorithm=config.JWT_ALGORITHM,
        ttl_seconds=ACCESS_TOKEN_TTL_SECONDS,
    )
    init_dummy_password_hash()
    service_locator.configure(store, storage, token_issuer)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("File sharing server starting up...")
    if not service_locator.is_configured():
        configure_from_settings()
    yield
    logger.info("File sharing server shutting down...")


app = FastAPI(
    title="SFS Secure File Sharing",
    description="File sharing server with rotating refresh sessions and per-file access control",
    version="1.0.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(
        f"Request started: {request.method} {request.url.path} [request_id={request_id}]"
    )

    response = await call_next(request)

    duration = time.time() - start_time
    user_id = getattr(request.state, 'user_id', None)

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s "
        f"[request_id={request_id}] [user_id={user_id or 'anonymous'}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


def _error(status_code: int, detail: str, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, "code": code})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Request validation error: {exc.errors()} [request_id={request_id}] path={request.url.path}"
    )
    return _error(status.HTTP_400_BAD_REQUEST, "Malformed request", "VALIDATION_ERROR")


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Invalid input error: {exc} [request_id={request_id}] path={request.url.path}"
    )
    if isinstance(exc, UserAlreadyExistsError):
        code = "USER_ALREADY_EXISTS"
    elif isinstance(exc, UploadAbortedError):
        code = "UPLOAD_ABORTED"
    else:
        code = "VALIDATION_ERROR"
    return _error(status.HTTP_400_BAD_REQUEST, str(exc), code)


@app.exception_handler(AuthenticationError)
async def authentication_handler(request: Request, exc: AuthenticationError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Authentication error: {type(exc).__name__} [request_id={request_id}] path={request.url.path}"
    )
    if isinstance(exc, InvalidCredentialsError):
        code = "INVALID_CREDENTIALS"
    elif isinstance(exc, RefreshTokenReusedError):
        code = "INVALID_REFRESH_TOKEN"
    elif isinstance(exc, ExpiredTokenError):
        code = "TOKEN_EXPIRED"
    else:
        code = "INVALID_TOKEN"
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": str(exc), "code": code},
        headers={"WWW-Authenticate": "Bearer"},
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    user_id = getattr(request.state, 'user_id', 'anonymous')
    logger.info(
        f"Not found: {request.url.path} [request_id={request_id}] [user_id={user_id}]"
    )
    # one body for "absent" and "not yours"
    return _error(status.HTTP_404_NOT_FOUND, "Not found", "NOT_FOUND")


@app.exception_handler(PermissionConflictError)
async def permission_conflict_handler(request: Request, exc: PermissionConflictError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Permission conflict: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return _error(status.HTTP_409_CONFLICT, str(exc), "CONFLICT")


@app.exception_handler(PayloadTooLargeError)
async def payload_too_large_handler(request: Request, exc: PayloadTooLargeError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Payload too large: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return JSONResponse(
        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        content={"detail": str(exc), "code": "PAYLOAD_TOO_LARGE"},
        headers={"Connection": "close"},
    )


@app.exception_handler(SFSException)
async def sfs_exception_handler(request: Request, exc: SFSException):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Server error: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=exc
    )
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR_DETAIL, "INTERNAL_ERROR")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Unhandled exception: {type(exc).__name__} [request_id={request_id}] path={request.url.path}",
        exc_info=exc
    )
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR_DETAIL, "INTERNAL_ERROR")


app.include_router(auth_router)
app.include_router(me_router)
app.include_router(file_router)


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint. Returns 200 if the service is alive.
    """
    return HealthResponse(status="healthy", service="sfs")


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        app,
        host=config.SERVER_HOST,
        port=config.SERVER_PORT,
    )


if __name__ == "__main__":
    main()
