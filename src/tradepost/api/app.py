"""
FastAPI application factory for the tradepost dashboard API.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tradepost.api.routers import analysis, market, simulation, trading
from tradepost.api.sessions import SessionManager

# Load .env from the project root first, then CWD
_project_root = Path(__file__).resolve().parents[3]  # src/tradepost/api/app.py → project root
load_dotenv(_project_root / ".env")
load_dotenv(Path.cwd() / ".env")


def _cors_origins() -> list[str]:
    raw = os.environ.get("TRADEPOST_CORS_ORIGINS", "*")
    return [o.strip() for o in raw.split(",") if o.strip()]


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="Tradepost API",
        description="REST API for the tradepost market simulation",
        version="0.1.0",
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.state.session_manager = SessionManager()

    application.include_router(simulation.router, prefix="/api/simulation", tags=["simulation"])
    application.include_router(market.router, prefix="/api/market", tags=["market"])
    application.include_router(trading.router, prefix="/api/trading", tags=["trading"])
    application.include_router(analysis.router, prefix="/api/analysis", tags=["analysis"])

    @application.get("/api/health")
    def health_check():
        return {"status": "ok"}

    return application


app = create_app()
