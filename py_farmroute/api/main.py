"""FastAPI main application."""

import logging
from typing import Dict, List, Optional

import structlog
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, field_validator

from .. import __version__
from ..config import settings
from ..core.density import DENSE_MIN_COUNT, classify_dense, compute_neighbor_counts
from ..core.parameter_tuner import TunedParams, tune_auto_route_params
from ..core.planner import AutoRoutePlanner, PlannerOptions, PlanResult
from ..core.route_builder import (
    RouteSettings,
    RouteStats,
    SpawnPoint,
    XY,
    floor_budget,
    generate_auto_route,
)

# Configure logging
logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer()
        if settings.log_format == "console"
        else structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

# Initialize FastAPI app
app = FastAPI(
    title="Farm Route API",
    description="Automatic farming-route planning over spawn points",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request/Response models
class DensityRequest(BaseModel):
    """Neighbor counts for a point set."""

    points: List[SpawnPoint] = Field(default_factory=list)
    radius: float = Field(description="Neighborhood radius")


class DensityResponse(BaseModel):
    counts: Dict[int, int]
    dense_ids: List[int]


class GenerateRouteRequest(BaseModel):
    """Route generation with caller-supplied dense ids."""

    points: List[SpawnPoint] = Field(default_factory=list)
    dense_ids: List[int] = Field(default_factory=list)
    settings: RouteSettings


class RouteResponse(BaseModel):
    route: List[SpawnPoint]
    stats: RouteStats


class TuneRequest(BaseModel):
    """Parameter tuning around a center."""

    points: List[SpawnPoint] = Field(default_factory=list)
    center: XY
    max_waypoints: int = Field(default=settings.default_max_waypoints)

    @field_validator("max_waypoints", mode="before")
    @classmethod
    def floor_max_waypoints(cls, value):
        return floor_budget(value)


class PlanRequest(BaseModel):
    """Full planning run; options default to the configured manual parameters."""

    points: List[SpawnPoint] = Field(default_factory=list)
    center: Optional[XY] = Field(default=None, description="View center in world coordinates")
    options: Optional[PlannerOptions] = None


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Farm Route API",
        "version": __version__,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.post("/density", response_model=DensityResponse)
def neighbor_density(request: DensityRequest):
    """Neighbor counts within ``radius`` and the ids that count as dense."""
    try:
        counts = compute_neighbor_counts(request.points, request.radius)
        dense_ids = classify_dense(request.points, counts, DENSE_MIN_COUNT)
    except Exception as e:
        logger.error("Density computation failed", error=str(e))
        raise HTTPException(status_code=500, detail="Density computation failed")

    return DensityResponse(counts=counts, dense_ids=sorted(dense_ids))


@app.post("/routes/generate", response_model=RouteResponse)
def generate_route(request: GenerateRouteRequest):
    """Build a route with explicit settings."""
    logger.info(
        "Route generation requested",
        points=len(request.points),
        dense=len(request.dense_ids),
    )
    try:
        result = generate_auto_route(request.points, set(request.dense_ids), request.settings)
    except Exception as e:
        logger.error("Route generation failed", error=str(e))
        raise HTTPException(status_code=500, detail="Route generation failed")

    return RouteResponse(route=result.route, stats=result.stats)


@app.post("/routes/tune", response_model=Optional[TunedParams])
def tune_route(request: TuneRequest):
    """Tune route radii; null when there is nothing to tune."""
    logger.info(
        "Route tuning requested",
        points=len(request.points),
        max_waypoints=request.max_waypoints,
    )
    try:
        return tune_auto_route_params(request.points, request.center, request.max_waypoints)
    except Exception as e:
        logger.error("Route tuning failed", error=str(e))
        raise HTTPException(status_code=500, detail="Route tuning failed")


@app.post("/routes/plan", response_model=PlanResult)
def plan_route(request: PlanRequest):
    """Tune, filter and build a route in one call."""
    options = request.options or PlannerOptions.from_settings(settings)
    logger.info(
        "Route planning requested",
        points=len(request.points),
        auto_tune=options.auto_tune,
    )
    try:
        return AutoRoutePlanner(options).plan(request.points, request.center)
    except Exception as e:
        logger.error("Route planning failed", error=str(e))
        raise HTTPException(status_code=500, detail="Route planning failed")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
