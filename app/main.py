# app/main.py

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.core.errors import ReceivingError
from app.routers import aliases, catalog, health, receiving

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# ============================================
# Create FastAPI app
# ============================================

app = FastAPI(
    title=settings.app_name,
    description="Inventory receiving: barcode scans reconciled against purchase receipts",
    version="1.0.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# ============================================
# CORS middleware
# ============================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.frontend_url,
        "http://localhost:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ============================================
# Error handling
# ============================================

@app.exception_handler(ReceivingError)
async def receiving_error_handler(request: Request, exc: ReceivingError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content={**exc.to_dict(), "endpoint": request.url.path},
    )

# ============================================
# Include routers
# ============================================

app.include_router(health.router, tags=["Health"])
app.include_router(catalog.router, prefix="/catalog", tags=["Catalog"])
app.include_router(receiving.router, prefix="/receiving", tags=["Receiving"])
app.include_router(aliases.router, prefix="/aliases", tags=["Aliases"])

# ============================================
# Root endpoint
# ============================================

@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs" if settings.debug else None,
    }
