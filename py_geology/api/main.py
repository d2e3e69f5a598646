"""FastAPI main application."""

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
import structlog
import threading
import uuid
from datetime import datetime, timezone

from ..config import settings, configure_logging
from ..core.planet_grid import GridConfig, generate_planet_grid
from ..core.plate_field import PlateFieldOptions
from ..core.simulator import GeologySimulator, SimulatorOptions

configure_logging(settings.log_level, settings.log_format)

logger = structlog.get_logger()

# Initialize FastAPI app
app = FastAPI(
    title="Planetary Geology API",
    description="Plate tectonics, volcanism and erosion on a cylindrical planet grid",
    version="0.1.0"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# In-memory world store
worlds: Dict[str, GeologySimulator] = {}
created_at: Dict[str, datetime] = {}
_worlds_lock = threading.Lock()


# Request/Response models
class WorldCreateRequest(BaseModel):
    """Request to create a new world."""

    seed: Optional[str] = Field(None, description="World seed; defaults to the configured seed")
    width: int = Field(settings.default_width, ge=3, le=1024, description="Grid width in cells")
    height: int = Field(settings.default_height, ge=2, le=512, description="Grid height in cells")
    num_plates: int = Field(settings.default_num_plates, ge=1, le=64, description="Number of tectonic plates")


class Multipliers(BaseModel):
    """Activity multipliers, clamped to [0.1, 3.0] by the engine."""

    tectonic_activity: float = Field(1.0, description="Tectonic activity multiplier")
    volcanic_activity: float = Field(1.0, description="Volcanic activity multiplier")
    erosion_rate: float = Field(1.0, description="Erosion rate multiplier")


class TickRequest(BaseModel):
    """Request to advance a world."""

    delta_time: float = Field(1.0, ge=0.0, le=100.0, description="Simulated time step per tick")
    years: int = Field(1, ge=1, le=1000, description="Number of ticks to run")
    multipliers: Optional[Multipliers] = None


class WorldSummary(BaseModel):
    """Summary information about a world."""

    id: str
    seed: str
    width: int
    height: int
    year: int
    plates: int
    hotspots: int
    volcanoes: int
    land_cells: int
    water_cells: int
    solar_energy: float
    created_at: datetime


class TickResult(BaseModel):
    year: int
    delta_time: float
    eruptions: int
    earthquakes: int
    repaired: int


class PlateSummary(BaseModel):
    id: int
    velocity_x: float
    velocity_y: float
    is_oceanic: bool
    density: float
    cell_count: int


class EruptionInfo(BaseModel):
    x: int
    y: int
    year: int
    eruption_type: str
    vei: int


class EarthquakeInfo(BaseModel):
    x: int
    y: int
    magnitude: float
    year: int
    relief: bool


class EventsResponse(BaseModel):
    """Recent events plus running totals."""

    eruptions: List[EruptionInfo]
    earthquakes: List[EarthquakeInfo]
    total_eruptions: int
    total_earthquakes: int


def _get_world(world_id: str) -> GeologySimulator:
    simulator = worlds.get(world_id)
    if simulator is None:
        raise HTTPException(status_code=404, detail="World not found")
    return simulator


def _summarize(world_id: str, simulator: GeologySimulator, created: Optional[datetime] = None) -> WorldSummary:
    if created is None:
        with _worlds_lock:
            created = created_at.get(world_id)
    if created is None:
        # Deleted between lookup and summary
        raise HTTPException(status_code=404, detail="World not found")

    grid = simulator.grid
    with simulator.locked():
        land_cells = int((grid.elevation >= 0).sum())
        return WorldSummary(
            id=world_id,
            seed=str(simulator.seed),
            width=grid.width,
            height=grid.height,
            year=simulator.current_year,
            plates=len(simulator.kinematics.plates),
            hotspots=int(simulator.geology.is_hotspot.sum()),
            volcanoes=int(simulator.geology.is_volcano.sum()),
            land_cells=land_cells,
            water_cells=grid.n_cells - land_cells,
            solar_energy=float(grid.solar_energy),
            created_at=created,
        )


@app.on_event("startup")
async def startup_event():
    """Initialize application on startup."""
    logger.info("Starting Planetary Geology API")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on application shutdown."""
    logger.info("Shutting down Planetary Geology API", worlds=len(worlds))


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Planetary Geology API",
        "version": "0.1.0",
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "worlds": len(worlds)}


@app.post("/worlds", response_model=WorldSummary, status_code=201)
def create_world(request: WorldCreateRequest):
    """Generate terrain and geology for a new world."""
    if request.width * request.height > settings.max_grid_cells:
        raise HTTPException(
            status_code=400,
            detail=f"Grid exceeds {settings.max_grid_cells} cells",
        )
    if request.num_plates > request.width * request.height:
        raise HTTPException(status_code=400, detail="More plates than cells")

    seed = request.seed if request.seed is not None else settings.default_seed
    logger.info("World creation requested", request=request.model_dump())

    grid = generate_planet_grid(GridConfig(width=request.width, height=request.height), seed)
    options = SimulatorOptions(plate_field=PlateFieldOptions(num_plates=request.num_plates))
    simulator = GeologySimulator(grid, seed, options)

    world_id = str(uuid.uuid4())
    with _worlds_lock:
        worlds[world_id] = simulator
        created_at[world_id] = datetime.now(timezone.utc)

    logger.info("World created", world_id=world_id, seed=seed)
    return _summarize(world_id, simulator)


@app.get("/worlds", response_model=List[WorldSummary])
def list_worlds():
    """List worlds held in memory."""
    with _worlds_lock:
        items = [(world_id, simulator, created_at[world_id]) for world_id, simulator in worlds.items()]
    return [_summarize(world_id, simulator, created) for world_id, simulator, created in items]


@app.get("/worlds/{world_id}", response_model=WorldSummary)
def get_world(world_id: str):
    """Get a world summary."""
    return _summarize(world_id, _get_world(world_id))


@app.delete("/worlds/{world_id}", status_code=204)
def delete_world(world_id: str):
    """Drop a world from memory."""
    with _worlds_lock:
        if worlds.pop(world_id, None) is None:
            raise HTTPException(status_code=404, detail="World not found")
        created_at.pop(world_id, None)
    logger.info("World deleted", world_id=world_id)


@app.post("/worlds/{world_id}/tick", response_model=List[TickResult])
def tick_world(world_id: str, request: TickRequest):
    """Advance a world by one or more ticks."""
    simulator = _get_world(world_id)

    if request.multipliers is not None:
        controls = simulator.grid.controls
        with simulator.locked():
            controls.tectonic_activity = request.multipliers.tectonic_activity
            controls.volcanic_activity = request.multipliers.volcanic_activity
            controls.erosion_rate = request.multipliers.erosion_rate

    reports = simulator.run(request.years, delta_time=request.delta_time)
    logger.info(
        "World advanced",
        world_id=world_id,
        years=request.years,
        year=simulator.current_year,
        eruptions=sum(r.eruptions for r in reports),
        earthquakes=sum(r.earthquakes for r in reports),
    )
    return [
        TickResult(
            year=r.year,
            delta_time=r.delta_time,
            eruptions=r.eruptions,
            earthquakes=r.earthquakes,
            repaired=r.repaired,
        )
        for r in reports
    ]


@app.get("/worlds/{world_id}/plates", response_model=List[PlateSummary])
def get_plates(world_id: str):
    """Get the plate roster of a world."""
    simulator = _get_world(world_id)
    with simulator.locked():
        plates = simulator.plates
    return [
        PlateSummary(
            id=p.id,
            velocity_x=p.velocity_x,
            velocity_y=p.velocity_y,
            is_oceanic=p.is_oceanic,
            density=p.density,
            cell_count=p.cell_count,
        )
        for p in plates
    ]


@app.get("/worlds/{world_id}/events", response_model=EventsResponse)
def get_events(world_id: str):
    """Get recent eruptions and earthquakes."""
    simulator = _get_world(world_id)
    with simulator.locked():
        events = simulator.events
        return EventsResponse(
            eruptions=[
                EruptionInfo(x=e.x, y=e.y, year=e.year, eruption_type=e.eruption_type.name, vei=e.vei)
                for e in events.eruptions
            ],
            earthquakes=[
                EarthquakeInfo(x=q.x, y=q.y, magnitude=q.magnitude, year=q.year, relief=q.relief)
                for q in events.earthquakes
            ],
            total_eruptions=events.total_eruptions,
            total_earthquakes=events.total_earthquakes,
        )


@app.get("/worlds/{world_id}/cells/{x}/{y}")
def get_cell(world_id: str, x: int, y: int) -> Dict[str, Any]:
    """Get the full geology of one cell; x wraps around the planet."""
    simulator = _get_world(world_id)
    if not 0 <= y < simulator.grid.height:
        raise HTTPException(status_code=400, detail="Invalid cell row")
    return simulator.cell_geology(x, y)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
