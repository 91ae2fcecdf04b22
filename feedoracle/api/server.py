"""
REST API Server for the consensus oracle.

Thin HTTP surface over ``ConsensusOracle``: queries, provider metrics,
default criteria administration and the recent round log.
"""

import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
import structlog
import uvicorn

from feedoracle import __version__
from feedoracle.core import ConsensusOracle, OracleConfig
from feedoracle.errors import InsufficientProviders, InvalidCriteria
from feedoracle.models import (
    ConsensusResult,
    ProviderSnapshot,
    RoundOutcome,
    SelectionCriteria,
)

logger = structlog.get_logger()


# ============================================================================
# Request/Response Models
# ============================================================================

class QueryRequest(BaseModel):
    """Request for a consensus value."""
    data_type: str = Field(..., description="Requested data type, e.g. price")
    subject: str = Field(..., description="Subject of the query, e.g. BTC")
    criteria: Optional[dict[str, Any]] = Field(
        None, description="Selection criteria overrides"
    )
    timeout_seconds: Optional[float] = Field(None, gt=0, description="Per-provider timeout")


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    timestamp: str
    providers_registered: int
    providers_active: int


class StatsResponse(BaseModel):
    """System statistics."""
    total_providers: int
    active_providers: int
    system_health: float
    providers: list[ProviderSnapshot]


# ============================================================================
# API Application
# ============================================================================

class OracleAPI:
    """Oracle API application."""

    def __init__(self, oracle: Optional[ConsensusOracle] = None):
        self.oracle = oracle

    async def initialize(self):
        """Initialize the oracle and start health checks."""
        if self.oracle is None:
            self.oracle = ConsensusOracle(config=OracleConfig.from_env())
        self.oracle.start()
        logger.info("Oracle API initialized", providers=len(self.oracle.registry))

    async def shutdown(self):
        """Shutdown the oracle."""
        if self.oracle:
            await self.oracle.close()
        logger.info("Oracle API shutdown")

    def require_oracle(self) -> ConsensusOracle:
        if self.oracle is None:
            raise HTTPException(status_code=503, detail="Oracle not initialized")
        return self.oracle


def create_app(oracle: Optional[ConsensusOracle] = None) -> FastAPI:
    """Create the FastAPI application."""

    api = OracleAPI(oracle)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        await api.initialize()
        yield
        await api.shutdown()

    app = FastAPI(
        title="feedoracle",
        description="Dynamic provider selection and consensus aggregation",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.api = api

    cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ========================================================================
    # Endpoints
    # ========================================================================

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """Health check endpoint."""
        current = api.require_oracle()
        stats = current.system_stats()
        return HealthResponse(
            status="healthy" if stats["active_providers"] else "degraded",
            version=__version__,
            timestamp=datetime.now(timezone.utc).isoformat(),
            providers_registered=stats["total_providers"],
            providers_active=stats["active_providers"],
        )

    @app.post("/api/v1/query", response_model=ConsensusResult)
    async def query(request: QueryRequest):
        """Run one consensus round."""
        current = api.require_oracle()
        try:
            return await current.query(
                request.data_type,
                request.subject,
                request.criteria,
                timeout=request.timeout_seconds,
            )
        except InvalidCriteria as e:
            raise HTTPException(status_code=422, detail={"message": str(e), "errors": e.errors})
        except InsufficientProviders as e:
            raise HTTPException(
                status_code=503,
                detail={"message": str(e), "attempted": e.attempted, "failures": e.failures},
            )

    @app.get("/api/v1/providers", response_model=list[ProviderSnapshot])
    async def list_providers():
        """Current weights, metrics and status of every provider."""
        return api.require_oracle().get_provider_metrics()

    @app.post("/api/v1/providers/health")
    async def check_providers() -> dict[str, bool]:
        """Run a health pass now."""
        return await api.require_oracle().check_health()

    @app.get("/api/v1/stats", response_model=StatsResponse)
    async def system_stats():
        return StatsResponse(**api.require_oracle().system_stats())

    @app.get("/api/v1/criteria", response_model=SelectionCriteria)
    async def get_criteria():
        """Process-wide default selection criteria."""
        return api.require_oracle().default_criteria

    @app.put("/api/v1/criteria", response_model=SelectionCriteria)
    async def update_criteria(changes: dict[str, Any]):
        """Update the process-wide default selection criteria."""
        try:
            return api.require_oracle().update_default_criteria(**changes)
        except InvalidCriteria as e:
            raise HTTPException(status_code=422, detail={"message": str(e), "errors": e.errors})

    @app.get("/api/v1/rounds", response_model=list[RoundOutcome])
    async def recent_rounds(limit: int = Query(20, ge=1, le=1000)):
        """Most recent rounds, newest first."""
        current = api.require_oracle()
        await current.events.drain()
        return current.recent_rounds.recent(limit)

    return app


def run_server(host: str = None, port: int = None):
    """Run the API server."""
    # Load from environment variables if not provided
    load_dotenv()

    if host is None:
        host = os.getenv("API_HOST", "0.0.0.0")
    if port is None:
        port = int(os.getenv("API_PORT", "8090"))

    logger.info("Starting oracle API server", host=host, port=port)
    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    run_server()
