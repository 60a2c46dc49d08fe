"""FastAPI application — Milk Ledger API."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from milk_ledger import __version__
from milk_ledger.config import load_config

from api.routes import router

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = FastAPI(
    title="Milk Ledger API",
    description="Shift entries, reconciliation and reports for milk ATMs.",
    version=__version__,
)

# CORS: ALLOWED_ORIGINS="*" allows any origin
_config = load_config()

app.add_middleware(
    CORSMiddleware,
    allow_origins=_config.allowed_origins,
    allow_credentials=not _config.allow_all_origins,  # credentials not allowed with wildcard
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)

app.include_router(router)


@app.get("/")
async def root():
    return {
        "name": "Milk Ledger API",
        "version": __version__,
        "docs": "/docs",
        "health": "/api/v1/health",
    }
