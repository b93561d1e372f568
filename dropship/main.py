from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from dropship.config import settings
from dropship.exceptions import DropshipError
from dropship.api.v1 import postpaid, payouts, wallet, chat, notifications
from dropship.api.v1 import admin_postpaid, admin_payouts, admin_orders, admin_chat, admin_wallets
from dropship.services import order_wallet_sync  # noqa: F401  registers the order wallet hook
import logging

# Configure logging
if not settings.DEBUG:
    from dropship.utils.logging_config import root_logger  # noqa: F401
logger = logging.getLogger(__name__)

# Determine docs URLs based on environment
docs_url = "/docs" if settings.DEBUG else None
redoc_url = "/redoc" if settings.DEBUG else None

app = FastAPI(
    title=settings.APP_NAME,
    description="Dropshipping platform ledger, payouts and support chat API",
    version=settings.APP_VERSION,
    docs_url=docs_url,
    redoc_url=redoc_url,
    openapi_url="/openapi.json" if settings.DEBUG else None
)

# CORS Middleware
if settings.ENVIRONMENT == "production":
    origins = settings.ALLOWED_ORIGINS.split(",") if settings.ALLOWED_ORIGINS else []
    if not origins:
        logger.warning("No ALLOWED_ORIGINS set in production!")
else:
    origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


# Exception Handlers
@app.exception_handler(DropshipError)
async def domain_exception_handler(request: Request, exc: DropshipError):
    """Validation, policy, not-found and remote errors raised by the services"""
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": exc.title,
            "error": {
                "code": exc.code,
                "details": exc.message
            }
        }
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors"""
    def sanitize_error(error):
        """Convert error dict to JSON-serializable format"""
        if isinstance(error, dict):
            return {k: sanitize_error(v) for k, v in error.items()}
        elif isinstance(error, list):
            return [sanitize_error(item) for item in error]
        elif isinstance(error, bytes):
            return error.decode('utf-8', errors='replace')
        elif isinstance(error, (str, int, float, bool, type(None))):
            return error
        else:
            return str(error)

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "message": "Validation error",
            "error": {
                "code": "VALIDATION_ERROR",
                "details": sanitize_error(exc.errors())
            }
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "message": "Internal server error",
            "error": {
                "code": "SERVER_ERROR",
                "details": str(exc) if settings.DEBUG else "An error occurred"
            }
        }
    )


# Include Routers
app.include_router(postpaid.router, prefix="/api/v1/postpaid", tags=["Postpaid"])
app.include_router(payouts.router, prefix="/api/v1/payouts", tags=["Payouts"])
app.include_router(wallet.router, prefix="/api/v1/wallet", tags=["Wallet"])
app.include_router(chat.router, prefix="/api/v1/chat", tags=["Support Chat"])
app.include_router(notifications.router, prefix="/api/v1/notifications", tags=["Notifications"])

# Admin Routers
app.include_router(admin_postpaid.router, prefix="/admin/postpaid", tags=["Admin Postpaid"])
app.include_router(admin_payouts.router, prefix="/admin/payouts", tags=["Admin Payouts"])
app.include_router(admin_orders.router, prefix="/admin/orders", tags=["Admin Orders"])
app.include_router(admin_chat.router, prefix="/admin/chat", tags=["Admin Chat"])
app.include_router(admin_wallets.router, prefix="/admin/wallets", tags=["Admin Wallets"])


@app.get("/")
def root():
    """Root endpoint"""
    return {
        "message": f"{settings.APP_NAME} is running",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": settings.APP_NAME
    }
