import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from busline.core.config import settings
from busline.core.errors import (
    BuslineError, ConflictError, ExternalDependencyError, NotFound, PaymentDeclined, StateError, ValidationFailed,
)
from busline.core.log import configure_logging
from busline.api.v1.api import api_router

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)

# CORS: use CORS_ORIGINS from env in production; default to localhost for dev
_default_origins = [
    "http://127.0.0.1:8080", "http://localhost:8080",
    "http://127.0.0.1:3000", "http://localhost:3000",
]
_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()] if settings.CORS_ORIGINS else _default_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


def status_for(exc: BuslineError) -> int:
    if isinstance(exc, ValidationFailed):
        return 422
    if isinstance(exc, (ConflictError, StateError)):
        return 409
    if isinstance(exc, NotFound):
        return 404
    if isinstance(exc, PaymentDeclined):
        return 402
    if isinstance(exc, ExternalDependencyError):
        return 502
    return 400


@app.exception_handler(BuslineError)
async def busline_error_handler(request: Request, exc: BuslineError):
    status = status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s %s", request.method, request.url.path, exc.code, exc.details)
    else:
        logger.info("%s %s -> %s %s", request.method, request.url.path, status, exc.code)
    return JSONResponse(status_code=status, content=exc.to_dict())


@app.get("/health")
def health():
    return {"status": "ok"}
