from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import logging

# Import database components
from app.database.database import sync_engine, Base

# Import middleware
from app.common.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from app.common.exceptions import POSError

# Import routers
from app.modules.auth.router import auth_router
from app.modules.products.router import product_router
from app.modules.shifts.router import shift_router
from app.modules.sales.router import sale_router
from app.modules.clients.router import client_router
from app.modules.reports.routers import sales_router as sales_reports_router

# Import models for table creation
import app.modules.products.models
import app.modules.shifts.models
import app.modules.sales.models
import app.modules.clients.models

from app.core.config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.ENVIRONMENT == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# FastAPI app
app = FastAPI(
    title="POS Shift & Ledger API",
    description="Punto de venta: turnos con arqueo, ventas, devoluciones, inventario y fiado",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None
)

# Add middleware (order matters!)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Add your frontend URLs
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(POSError)
async def pos_error_handler(request: Request, exc: POSError):
    """Errores de negocio: detalle legible y código estable para la UI"""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code}
    )


# Include routers
app.include_router(auth_router, prefix="/auth", tags=["Auth"])
app.include_router(shift_router, prefix="/api/v1")
app.include_router(sale_router, prefix="/api/v1")
app.include_router(product_router, prefix="/api/v1")
app.include_router(client_router, prefix="/api/v1")
app.include_router(sales_reports_router, prefix="/api/v1")

# Create database tables (only for development - use migrations in production)
if settings.ENVIRONMENT == "development":
    Base.metadata.create_all(bind=sync_engine)


@app.get("/")
async def read_root():
    return {
        "message": "POS API is running",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy", "environment": settings.ENVIRONMENT}


@app.on_event("startup")
async def startup_event():
    logger.info("POS API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("POS API shutting down...")
