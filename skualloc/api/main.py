"""
FastAPI application for the SKU budget allocation service.

Run with: uvicorn skualloc.api.main:app --reload
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from skualloc.api.routes import (
    allocations,
    categories,
    periods,
    sessions,
    transfer,
)
from skualloc.config import Config

logging.basicConfig(
    level=Config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Create FastAPI app
app = FastAPI(
    title="SKU Budget Allocation",
    description="Hierarchical percentage-based budget allocation over SKU hierarchies",
    version="1.0.0"
)

# CORS middleware for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(categories.router)
app.include_router(sessions.router)
app.include_router(allocations.router)
app.include_router(periods.router)
app.include_router(transfer.router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "app": "SKU Budget Allocation"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    from skualloc.db.postgres import test_connection
    db_ok, db_msg = test_connection()
    return {
        "status": "healthy" if db_ok else "unhealthy",
        "database": db_msg
    }
