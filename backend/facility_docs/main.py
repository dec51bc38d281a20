import asyncio
import logging
import re
import sys
from contextlib import asynccontextmanager

from alembic import command
from alembic.config import Config
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from facility_docs.config import settings
from facility_docs.errors import (
    PREVIEW_NOT_SUPPORTED,
    BusinessRuleError,
    DocumentError,
    DocumentValidationError,
    IntegrityViolationError,
    NotFoundError,
    PermissionDeniedError,
)
from facility_docs.middleware.rate_limit import limiter
from facility_docs.routers import auth, documents, preferences
from facility_docs.services import storage

# Console logging to stderr
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    stream=sys.stderr,
    force=True,
)
logger = logging.getLogger(__name__)

ERROR_STATUS: list[tuple[type[DocumentError], int]] = [
    (DocumentValidationError, 422),
    (NotFoundError, 404),
    (PermissionDeniedError, 403),
    (BusinessRuleError, 409),
    (IntegrityViolationError, 404),
]

# File transfers answer refusals with a bare status code.
_FILE_TRANSFER_PATH = re.compile(r"/files/\d+/(download|preview)$")


def status_for(exc: DocumentError) -> int:
    if exc.code == PREVIEW_NOT_SUPPORTED:
        return 400
    for cls, status in ERROR_STATUS:
        if isinstance(exc, cls):
            return status
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    def _run_migrations() -> None:
        alembic_cfg = Config("alembic.ini")
        command.upgrade(alembic_cfg, "head")

    if settings.run_migrations:
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, _run_migrations)
        logger.info("Migrations applied")

    root = storage.storage_root()
    logger.info("Document storage ready", extra={"storage_root": str(root)})
    yield


app = FastAPI(title="Facility Documents API", lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


@app.exception_handler(DocumentError)
async def document_error_handler(request: Request, exc: DocumentError) -> Response:
    status = status_for(exc)
    if status >= 500:
        logger.error(
            "Document operation failed",
            extra={"path": request.url.path, "code": exc.code, "context": exc.context},
        )
    if isinstance(exc, IntegrityViolationError) or _FILE_TRANSFER_PATH.search(request.url.path):
        return Response(status_code=status)
    content = {"success": False, "code": exc.code, "detail": exc.message}
    field = getattr(exc, "field", None)
    if field:
        content["field"] = field
    return JSONResponse(status_code=status, content=content)


@app.exception_handler(Exception)
async def log_unhandled_exceptions(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception", extra={"path": request.url.path, "method": request.method})
    return JSONResponse(status_code=500, content={"detail": str(exc)})


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(documents.router)
app.include_router(documents.category_router)
app.include_router(documents.categories_router)
app.include_router(preferences.router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
