"""
Impact report synthesis.

A Report always carries the metrics computed by the physics model. The
narrative comes from the AnalysisProvider when one is configured and answers,
otherwise from a deterministic template fed by the very same metrics, so the
two paths can only differ in prose.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from .analysis import AnalysisProvider
from .errors import ProviderError
from .impact_model import ImpactLocation, ImpactMetrics, ImpactorParameters, damage_zones

logger = logging.getLogger(__name__)

UNKNOWN_LOCATION = "Unknown"
TARGET_PLACEHOLDER = "the target location"
COORDINATES_PLACEHOLDER = "the coordinates provided"
HIROSHIMA_MT = 15.0
TUNGUSKA_THRESHOLD_MT = 10.0
CRATER_DEPTH_RATIO = 0.3


class ReportSource(str, Enum):
    PROVIDER = "provider"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class Report:
    generated_at: datetime
    impactor: ImpactorParameters
    location: ImpactLocation
    metrics: ImpactMetrics
    narrative_text: str
    source: ReportSource

    def to_dict(self) -> dict:
        return {
            "generatedAt": self.generated_at.isoformat(),
            "impactor": self.impactor.to_dict(),
            "location": self.location.to_dict(),
            "metrics": self.metrics.to_dict(),
            "formattedMetrics": format_metrics(self.metrics),
            "analysis": self.narrative_text,
            "source": self.source.value,
        }


# ---------- Number formatting shared by prompt, template and exports ----------
def fmt_energy(mt: float) -> str:
    return f"{mt:.2f}"


def fmt_meters(m: float) -> str:
    return f"{m:.0f}"


def fmt_km(km: float) -> str:
    return f"{km:.1f}"


def fmt_magnitude(m: float) -> str:
    return f"{m:.1f}"


def fmt_count(x: float) -> str:
    return f"{round(x):,}"


def format_metrics(metrics: ImpactMetrics) -> dict:
    return {
        "impactEnergy": fmt_energy(metrics.energy_megatons),
        "craterDiameter": fmt_meters(metrics.crater_diameter_m),
        "blastRadius": fmt_km(metrics.blast_radius_km),
        "evacuationZone": fmt_km(metrics.evacuation_zone_km),
        "seismicMagnitude": fmt_magnitude(metrics.seismic_magnitude),
    }


def _mass_million_kg(impactor: ImpactorParameters) -> str:
    return f"{impactor.mass_kg / 1e6:,.2f}"


# ---------- Provider prompt ----------
def build_prompt(impactor: ImpactorParameters, location: ImpactLocation, metrics: ImpactMetrics) -> str:
    m = format_metrics(metrics)
    return f"""You are an expert planetary scientist analyzing a meteor impact scenario. Provide a detailed, human-readable impact analysis report.

Meteor Parameters:
- Speed: {impactor.speed_mps:,.0f} m/s
- Diameter: {impactor.diameter_m:g} meters
- Mass: {_mass_million_kg(impactor)} million kg
- Impact Angle: {impactor.angle_deg:g}°
- Composition: {impactor.composition.value}

Impact Location:
- Location: {location.name or UNKNOWN_LOCATION}
- Coordinates: {location.coordinates_label()}

Computed Metrics (authoritative, quote them exactly and do not recalculate):
- Impact Energy: {m['impactEnergy']} megatons of TNT
- Crater Diameter: {m['craterDiameter']} meters
- Blast Radius: {m['blastRadius']} km
- Evacuation Zone: {m['evacuationZone']} km
- Seismic Magnitude: {m['seismicMagnitude']}

Please provide a comprehensive analysis including:

1. IMPACT SUMMARY: Brief overview of the impact scenario (2-3 sentences)
2. DAMAGE ASSESSMENT: immediate, severe and moderate damage radii and the evacuation zone (km)
3. CASUALTY ESTIMATES: approximate deaths and injuries given the population near the location
4. ENVIRONMENTAL EFFECTS: seismic activity, atmospheric effects, tsunami potential, long-term climate impact
5. INFRASTRUCTURE DAMAGE: buildings, transportation, utilities, economic impact (billions USD)
6. COMPARISON: a known historical event or nuclear weapon
7. RECOMMENDATIONS: immediate response, evacuation priorities, long-term recovery

Format the response in clear sections with specific numbers and ranges. Be realistic and scientific in your estimates."""


# ---------- Deterministic template ----------
def render_fallback_narrative(impactor: ImpactorParameters, location: ImpactLocation,
                              metrics: ImpactMetrics) -> str:
    E = metrics.energy_megatons
    m = format_metrics(metrics)
    zones = damage_zones(E)
    root = E ** 0.5
    target = location.name or TARGET_PLACEHOLDER
    where = location.name or COORDINATES_PLACEHOLDER
    hiroshima = f"{E / HIROSHIMA_MT:,.1f}"
    crater_depth = fmt_meters(metrics.crater_diameter_m * CRATER_DEPTH_RATIO)
    if E > TUNGUSKA_THRESHOLD_MT:
        analogue, character = "Tunguska event (1908)", "greater"
    else:
        analogue, character = "Chelyabinsk meteor (2013)", "different"

    return f"""IMPACT SUMMARY
This meteor impact scenario involves a {impactor.diameter_m:g}-meter {impactor.composition.value} asteroid striking {target} at {impactor.speed_mps:,.0f} m/s. The impact would release approximately {m['impactEnergy']} megatons of energy, equivalent to {hiroshima} times the Hiroshima bomb. This would be a catastrophic event with severe regional consequences.

DAMAGE ASSESSMENT
- Immediate Blast Zone: {fmt_km(zones.immediate_km)} km radius - Complete destruction, vaporization of all materials
- Severe Damage Zone: {m['blastRadius']} km radius - Structural collapse, fires, 90%+ fatality rate
- Moderate Damage Zone: {fmt_km(zones.moderate_km)} km radius - Significant structural damage, broken windows, injuries
- Evacuation Zone: {m['evacuationZone']} km radius - Recommended minimum safe distance

CASUALTY ESTIMATES
Based on the impact location at {where}:
- Estimated Deaths: {fmt_count(root * 50_000)} - {fmt_count(root * 100_000)}
- Estimated Injuries: {fmt_count(root * 150_000)} - {fmt_count(root * 300_000)}
- Population at Risk: {fmt_count(root * 500_000)}+

ENVIRONMENTAL EFFECTS
- Seismic Activity: Magnitude {m['seismicMagnitude']} earthquake, felt up to {fmt_meters(E ** 0.4 * 100)} km away
- Atmospheric Effects: Dust cloud reaching {fmt_meters(E ** 0.25 * 10)} km altitude, potential for temporary cooling
- Crater Formation: {m['craterDiameter']} meters diameter, {crater_depth} meters deep
- Ejecta Distribution: Debris scattered up to {fmt_meters(E ** 0.35 * 50)} km from impact site

INFRASTRUCTURE DAMAGE
- Buildings: Complete destruction within {m['blastRadius']} km, severe damage to {m['evacuationZone']} km
- Transportation: Roads, bridges, and airports severely damaged or destroyed within damage zones
- Utilities: Power, water, and communication infrastructure disrupted across {fmt_meters(E ** 0.33 * 10)} km radius
- Economic Impact: Estimated ${E * 5:,.0f} - ${E * 10:,.0f} billion in direct damages

COMPARISON
This impact is comparable to:
- {hiroshima}x the Hiroshima atomic bomb
- Similar to the {analogue} but with {character} characteristics
- Equivalent to a magnitude {m['seismicMagnitude']} earthquake

RECOMMENDATIONS
Immediate Response:
1. Evacuate all personnel within {m['evacuationZone']} km radius immediately
2. Establish emergency command centers outside the damage zone
3. Deploy search and rescue teams with radiation and hazmat protection
4. Secure critical infrastructure and prevent secondary disasters

Evacuation Priorities:
1. Hospitals, schools, and high-density residential areas first
2. Establish evacuation routes away from the impact trajectory
3. Coordinate with regional and national emergency services
4. Prepare shelters for displaced populations

Long-term Recovery:
1. Environmental monitoring for dust, contamination, and climate effects
2. Structural assessment and rebuilding of critical infrastructure
3. Economic recovery programs and international aid coordination
4. Psychological support services for affected populations
5. Update disaster preparedness plans based on lessons learned

DISCLAIMER
This analysis uses illustrative scaling laws and templated estimates. Actual impact effects depend on numerous variables including exact impact angle, local geology, weather conditions, and population distribution. This report is for educational and planning purposes only."""


class ReportSynthesizer:
    """
    One provider attempt per call, template on any failure. The metrics passed
    in are the metrics returned; nothing here recomputes them.
    """

    def __init__(self, provider: Optional[AnalysisProvider] = None,
                 clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self._provider = provider
        self._clock = clock

    @property
    def provider_configured(self) -> bool:
        return self._provider is not None

    async def synthesize(self, impactor: ImpactorParameters, location: ImpactLocation,
                         metrics: ImpactMetrics) -> Report:
        narrative: Optional[str] = None
        source = ReportSource.FALLBACK

        if self._provider is None:
            logger.info("[report.fallback] reason=unconfigured")
        else:
            try:
                narrative = await self._provider.generate_narrative(build_prompt(impactor, location, metrics))
                if not isinstance(narrative, str) or not narrative.strip():
                    raise ProviderError("Analysis provider returned no text.")
                source = ReportSource.PROVIDER
            except Exception as e:  # any provider failure degrades to the template
                logger.warning("[report.fallback] reason=provider_error error=%r", e)
                narrative = None

        if narrative is None:
            narrative = render_fallback_narrative(impactor, location, metrics)

        report = Report(
            generated_at=self._clock(),
            impactor=impactor,
            location=location,
            metrics=metrics,
            narrative_text=narrative,
            source=source,
        )
        logger.info("[report.done] source=%s energy_mt=%s chars=%d",
                    source.value, fmt_energy(metrics.energy_megatons), len(narrative))
        return report
