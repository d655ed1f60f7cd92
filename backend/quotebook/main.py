"""Main FastAPI application."""

import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from quotebook.config import settings
from quotebook.api import quotes, bookings, payments, events
from quotebook.core.errors import (
    BookingError,
    InvalidAmountError,
    InvalidPayerError,
    InvalidSignatureError,
    InvalidTransitionError,
    NotAuthorizedError,
    NotFoundError,
    SettlementInconsistencyError,
    SigningError,
)

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Quotebook API",
    version="1.0.0",
    description="Quote requests, vendor revisions and PayFast-settled booking deposits for event clients and vendors"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(quotes.router, prefix=settings.API_V1_PREFIX)
app.include_router(bookings.router, prefix=settings.API_V1_PREFIX)
app.include_router(payments.router, prefix=settings.API_V1_PREFIX)
app.include_router(events.router, prefix=settings.API_V1_PREFIX)


@app.on_event("startup")
async def startup():
    """Application startup tasks."""
    logger.info(f"Quotebook API starting (environment: {settings.ENVIRONMENT})")
    logger.info(f"PayFast {'sandbox' if settings.PAYFAST_SANDBOX else 'live'}: {settings.payfast_base_url}")


@app.on_event("shutdown")
async def shutdown():
    """Application shutdown tasks."""
    logger.info("Quotebook API shutting down")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Quotebook API",
        "version": "1.0.0",
        "docs": "/docs",
        "redoc": "/redoc",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
    }


_ERROR_STATUS = {
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    InvalidAmountError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidPayerError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    NotAuthorizedError: status.HTTP_403_FORBIDDEN,
    InvalidSignatureError: status.HTTP_400_BAD_REQUEST,
}


# Global exception handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Handle HTTP exceptions with consistent error format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail}
    )


@app.exception_handler(SettlementInconsistencyError)
async def settlement_inconsistency_handler(request: Request, exc: SettlementInconsistencyError):
    """
    The payer has paid; the booking write is retried by reconciliation.

    Reported as accepted so the client never asks the payer to pay again.
    """
    return JSONResponse(
        status_code=status.HTTP_202_ACCEPTED,
        content={
            "status": "paid",
            "reconciliation": "pending",
            "deposit_id": exc.deposit_id,
            "quote_id": exc.quote_id,
        }
    )


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    """Map lifecycle errors to status codes with a code and a suggested action."""
    if isinstance(exc, SigningError):
        logger.error(f"Signing failed on {request.url.path}: {exc.message}", exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": {
                "code": exc.code,
                "message": "Payment could not be prepared. Please try again later.",
                "action": exc.action,
            }}
        )

    status_code = next(
        (code for error_type, code in _ERROR_STATUS.items() if isinstance(exc, error_type)),
        status.HTTP_400_BAD_REQUEST,
    )
    detail = {"code": exc.code, "message": exc.message, "action": exc.action}
    if isinstance(exc, InvalidTransitionError) and exc.current_status:
        detail["current_status"] = exc.current_status
    return JSONResponse(status_code=status_code, content={"detail": detail})
