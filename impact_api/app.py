from fastapi import Depends, FastAPI, HTTPException, Query, Response
from pydantic import BaseModel, Field
import logging
from functools import lru_cache
from math import isfinite
from typing import Optional, Literal

from .analysis import GeminiAnalysisProvider
from .config import Settings
from .errors import AsteroidNotFoundError, InputValidationError, ProviderError
from .export import ExportFormat, export_report
from .impact_model import (
    ImpactLocation, ImpactModel, ImpactorParameters, compute_metrics, density_for, estimate_mass,
)
from .neo import NeoWsClient
from .report import ReportSynthesizer
from .timeline import SimulationTimeline

settings = Settings.from_env()
logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(title="Meteor Impact Simulator", version="1.0.0")

# -------------------------------
# Dependencies (overridable in tests)
# -------------------------------
def get_settings() -> Settings:
    return settings


@lru_cache(maxsize=1)
def _default_synthesizer() -> ReportSynthesizer:
    return ReportSynthesizer(GeminiAnalysisProvider.from_settings(settings))


def get_synthesizer() -> ReportSynthesizer:
    return _default_synthesizer()


def get_asteroid_provider(cfg: Settings = Depends(get_settings)) -> NeoWsClient:
    return NeoWsClient(cfg)


@lru_cache(maxsize=1)
def _default_timeline() -> SimulationTimeline:
    logger.info("[startup] settings=%s", settings.describe())
    return SimulationTimeline(_default_synthesizer(), time_scale=settings.simulation_time_scale)


def get_timeline() -> SimulationTimeline:
    return _default_timeline()


# -------------------------------
# Request models
# -------------------------------
CompositionIn = Literal["iron", "stony", "stony-iron", "carbonaceous"]


class ImpactorIn(BaseModel):
    speed_mps: float = Field(..., gt=0, description="Impact speed in m/s")
    diameter_m: float = Field(..., gt=0, description="Impactor diameter in meters")
    mass_kg: Optional[float] = Field(None, gt=0, description="Mass in kg; derived from diameter and composition when omitted")
    angle_deg: float = Field(45.0, ge=0, le=90, description="Entry angle to horizontal in degrees")
    composition: CompositionIn = Field("stony")
    source_name: Optional[str] = Field(None, description="NEO name when parameters came from NASA data")

    def to_domain(self) -> ImpactorParameters:
        if self.mass_kg is None:
            return ImpactorParameters.from_diameter(self.speed_mps, self.diameter_m, self.angle_deg,
                                                    self.composition, source_name=self.source_name)
        return ImpactorParameters(speed_mps=self.speed_mps, diameter_m=self.diameter_m, mass_kg=self.mass_kg,
                                  angle_deg=self.angle_deg, composition=self.composition,
                                  source_name=self.source_name)


class LocationIn(BaseModel):
    latitude: float = Field(..., ge=-90, le=90, description="Latitude in decimal degrees")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude in decimal degrees")
    name: Optional[str] = Field(None, description="Display name")

    def to_domain(self) -> ImpactLocation:
        return ImpactLocation(latitude=self.latitude, longitude=self.longitude, name=self.name)


class ImpactRequest(BaseModel):
    impactor: ImpactorIn
    location: LocationIn


class MassRequest(BaseModel):
    diameter_m: float = Field(..., gt=0, description="Impactor diameter in meters")
    composition: str = Field("stony", description="Unknown values use the stony density")


def _domain(req: ImpactRequest):
    # Parsed once; everything downstream works on immutable values.
    try:
        return req.impactor.to_domain(), req.location.to_domain()
    except InputValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))


def _download(report, fmt: ExportFormat) -> Response:
    doc = export_report(report, fmt)
    return Response(content=doc.content, media_type=doc.media_type,
                    headers={"Content-Disposition": f'attachment; filename="{doc.filename}"'})


# -------------------------------
# Health
# -------------------------------
@app.get("/health")
def health(cfg: Settings = Depends(get_settings)):
    return {"status": "ok", "analysis_configured": cfg.analysis_configured}


# -------------------------------
# Impact physics + report endpoints
# -------------------------------
@app.post("/impact/mass")
def impact_mass(req: MassRequest):
    mass = estimate_mass(req.diameter_m, req.composition)
    if not isfinite(mass):
        raise HTTPException(status_code=422, detail=f"diameter_m={req.diameter_m!r} gives a mass beyond float range.")
    return {"mass_kg": mass, "density_kgpm3": density_for(req.composition)}


@app.post("/impact/metrics")
def impact_metrics(impactor: ImpactorIn):
    try:
        model = ImpactModel(impactor.to_domain())
        return model.summary()
    except InputValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))


@app.post("/impact/analyze")
async def impact_analyze(req: ImpactRequest, synthesizer: ReportSynthesizer = Depends(get_synthesizer)):
    impactor, location = _domain(req)
    try:
        metrics = compute_metrics(impactor)
    except InputValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    report = await synthesizer.synthesize(impactor, location, metrics)
    return report.to_dict()


@app.post("/impact/report/{fmt}")
async def impact_report_download(fmt: ExportFormat, req: ImpactRequest,
                                 synthesizer: ReportSynthesizer = Depends(get_synthesizer)):
    impactor, location = _domain(req)
    try:
        metrics = compute_metrics(impactor)
    except InputValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    report = await synthesizer.synthesize(impactor, location, metrics)
    return _download(report, fmt)


# -------------------------------
# NASA lookups
# -------------------------------
@app.get("/asteroids/{asteroid_id}")
async def asteroid_lookup(asteroid_id: str, provider: NeoWsClient = Depends(get_asteroid_provider)):
    try:
        data = await provider.fetch_by_id(asteroid_id)
    except AsteroidNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ProviderError as e:
        logger.warning("[asteroid.error] id=%s error=%s", asteroid_id, e)
        raise HTTPException(status_code=502, detail="Failed to fetch asteroid data from NASA. Please try again.")
    try:
        impactor = data.to_impactor()
    except InputValidationError as e:
        raise HTTPException(status_code=502, detail=f"NASA data unusable: {e}")
    return {"asteroid": data.to_dict(), "impactor": impactor.to_dict()}


@app.get("/comets")
async def comet_search(query: str = Query(..., min_length=1, description="Substring of the comet name"),
                       provider: NeoWsClient = Depends(get_asteroid_provider)):
    try:
        return await provider.search_comets(query)
    except ProviderError as e:
        logger.warning("[comets.error] query=%r error=%s", query, e)
        raise HTTPException(status_code=502, detail="Failed to fetch comet data. Please try again.")


# -------------------------------
# Simulation timeline
# -------------------------------
def _timeline_state(timeline: SimulationTimeline) -> dict:
    state = timeline.snapshot().to_dict()
    report = timeline.report
    state["report"] = report.to_dict() if report is not None else None
    return state


@app.post("/simulation/start")
async def simulation_start(req: ImpactRequest, timeline: SimulationTimeline = Depends(get_timeline)):
    impactor, location = _domain(req)
    try:
        run = timeline.start(impactor, location)
    except InputValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"started": run is not None, "state": _timeline_state(timeline)}


@app.post("/simulation/reset")
async def simulation_reset(timeline: SimulationTimeline = Depends(get_timeline)):
    timeline.reset()
    return _timeline_state(timeline)


@app.get("/simulation")
async def simulation_state(timeline: SimulationTimeline = Depends(get_timeline)):
    return _timeline_state(timeline)


@app.get("/simulation/report/{fmt}")
async def simulation_report_download(fmt: ExportFormat, timeline: SimulationTimeline = Depends(get_timeline)):
    report = timeline.report
    if report is None:
        raise HTTPException(status_code=409, detail=f"No report available (phase={timeline.phase.value}).")
    return _download(report, fmt)
