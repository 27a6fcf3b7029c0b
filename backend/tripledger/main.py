"""
FastAPI entrypoint for the TripLedger backend application.
"""
import logging
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from tripledger.core.config import settings
from tripledger.core.errors import (
    AdjustmentError,
    ExpenseNotFoundError,
    LedgerError,
    MemberReferenceError,
    SplitValidationError,
    TripNotFoundError,
)
from tripledger.api.router import api_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="TripLedger API",
    description="Shared trip-expense ledger and settlement engine",
    version="1.0.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Ledger error kind -> HTTP status
ERROR_STATUS = [
    (SplitValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (MemberReferenceError, status.HTTP_409_CONFLICT),
    (ExpenseNotFoundError, status.HTTP_404_NOT_FOUND),
    (TripNotFoundError, status.HTTP_404_NOT_FOUND),
    (AdjustmentError, status.HTTP_409_CONFLICT),
]


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    """Translate ledger failures into HTTP errors."""
    status_code = next(
        (code for kind, code in ERROR_STATUS if isinstance(exc, kind)),
        status.HTTP_400_BAD_REQUEST
    )
    logger.warning(f"{request.method} {request.url.path} rejected: {exc}")
    content = {"detail": str(exc), "error": type(exc).__name__}
    if isinstance(exc, SplitValidationError):
        content["issues"] = exc.issues
    if isinstance(exc, MemberReferenceError):
        content["member_ids"] = exc.member_ids
    return JSONResponse(status_code=status_code, content=content)


# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"message": "TripLedger API is running"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
