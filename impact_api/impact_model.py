from __future__ import annotations
from dataclasses import dataclass, asdict
from enum import Enum
from math import pi, log10, isfinite

from .errors import InputValidationError

# -----------------------------
# Model constants (fixed, not tunable)
# -----------------------------
J_PER_MT_TNT = 4.184e15          # J in 1 megaton TNT
CRATER_COEFF = 1.8               # crater diameter (km) per Mt^0.3
CRATER_EXPONENT = 0.3
BLAST_EXPONENT = 0.33            # base exponent shared by every damage zone
SEISMIC_BASE_MAGNITUDE = 4.0     # magnitude of a 1 Mt impact

# Damage-zone multiples of E_mt^0.33 (km)
ZONE_IMMEDIATE = 1.0
ZONE_SEVERE = 2.0                # == blast radius
ZONE_MODERATE = 3.5
ZONE_EVACUATION = 5.0            # == evacuation zone

# Bulk densities (kg/m^3)
COMPOSITION_DENSITIES = {
    "iron": 7800.0,
    "stony": 3500.0,
    "stony-iron": 5000.0,
    "carbonaceous": 2500.0,
}
DEFAULT_DENSITY = COMPOSITION_DENSITIES["stony"]


class Composition(str, Enum):
    IRON = "iron"
    STONY = "stony"
    STONY_IRON = "stony-iron"
    CARBONACEOUS = "carbonaceous"

    @property
    def density_kgpm3(self) -> float:
        return COMPOSITION_DENSITIES[self.value]


# ---------- Mass estimation ----------
def sphere_mass_kg(diameter_m: float, density_kgpm3: float) -> float:
    """Mass of a sphere of the given diameter: (4/3)·π·r³·ρ."""
    r = 0.5 * diameter_m
    return (4.0 / 3.0) * pi * r * r * r * density_kgpm3


def density_for(composition: str | Composition) -> float:
    key = composition.value if isinstance(composition, Composition) else str(composition).lower()
    return COMPOSITION_DENSITIES.get(key, DEFAULT_DENSITY)


def estimate_mass(diameter_m: float, composition: str | Composition) -> float:
    """Unknown compositions fall back to the stony density. Callers validate diameter > 0."""
    return sphere_mass_kg(diameter_m, density_for(composition))


def _require_positive(name: str, value: float) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise InputValidationError(f"{name} must be a number, got {value!r}.")
    if not isfinite(v) or v <= 0.0:
        raise InputValidationError(f"{name} must be a finite number > 0, got {value!r}.")
    return v


def _require_range(name: str, value: float, lo: float, hi: float) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise InputValidationError(f"{name} must be a number, got {value!r}.")
    if not isfinite(v) or not (lo <= v <= hi):
        raise InputValidationError(f"{name} must be within [{lo:g}, {hi:g}], got {value!r}.")
    return v


def parse_composition(value: str | Composition) -> Composition:
    if isinstance(value, Composition):
        return value
    try:
        return Composition(str(value).lower())
    except ValueError:
        allowed = ", ".join(c.value for c in Composition)
        raise InputValidationError(f"Unknown composition '{value}' (expected one of: {allowed}).")


# ---------- Domain values ----------
@dataclass(frozen=True)
class ImpactorParameters:
    speed_mps: float
    diameter_m: float
    mass_kg: float
    angle_deg: float  # to HORIZONTAL
    composition: Composition = Composition.STONY
    source_name: str | None = None  # NEO name when mapped from NASA data

    def __post_init__(self):
        object.__setattr__(self, "speed_mps", _require_positive("speed_mps", self.speed_mps))
        object.__setattr__(self, "diameter_m", _require_positive("diameter_m", self.diameter_m))
        object.__setattr__(self, "mass_kg", _require_positive("mass_kg", self.mass_kg))
        object.__setattr__(self, "angle_deg", _require_range("angle_deg", self.angle_deg, 0.0, 90.0))
        object.__setattr__(self, "composition", parse_composition(self.composition))

    @classmethod
    def from_diameter(cls, speed_mps: float, diameter_m: float, angle_deg: float,
                      composition: str | Composition = Composition.STONY,
                      source_name: str | None = None) -> "ImpactorParameters":
        comp = parse_composition(composition)
        d = _require_positive("diameter_m", diameter_m)
        return cls(speed_mps=speed_mps, diameter_m=d, mass_kg=estimate_mass(d, comp),
                   angle_deg=angle_deg, composition=comp, source_name=source_name)

    def to_dict(self) -> dict:
        return {
            "speed": self.speed_mps,
            "size": self.diameter_m,
            "mass": self.mass_kg,
            "angle": self.angle_deg,
            "composition": self.composition.value,
        }


@dataclass(frozen=True)
class ImpactLocation:
    latitude: float
    longitude: float
    name: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "latitude", _require_range("latitude", self.latitude, -90.0, 90.0))
        object.__setattr__(self, "longitude", _require_range("longitude", self.longitude, -180.0, 180.0))
        if self.name is not None and not str(self.name).strip():
            object.__setattr__(self, "name", None)

    def coordinates_label(self) -> str:
        ns = "N" if self.latitude >= 0 else "S"
        ew = "E" if self.longitude >= 0 else "W"
        return f"{abs(self.latitude):.4f}°{ns}, {abs(self.longitude):.4f}°{ew}"

    def to_dict(self) -> dict:
        return {"name": self.name, "latitude": self.latitude, "longitude": self.longitude}


@dataclass(frozen=True)
class ImpactMetrics:
    energy_megatons: float
    crater_diameter_m: float
    blast_radius_km: float
    evacuation_zone_km: float
    seismic_magnitude: float

    def to_dict(self) -> dict:
        return {
            "energyMegatons": self.energy_megatons,
            "craterDiameterMeters": self.crater_diameter_m,
            "blastRadiusKm": self.blast_radius_km,
            "evacuationZoneKm": self.evacuation_zone_km,
            "seismicMagnitude": self.seismic_magnitude,
        }


@dataclass(frozen=True)
class DamageZones:
    immediate_km: float
    severe_km: float
    moderate_km: float
    evacuation_km: float


def zone_radius_km(energy_mt: float, multiple: float) -> float:
    return (energy_mt ** BLAST_EXPONENT) * multiple


def damage_zones(energy_mt: float) -> DamageZones:
    """Severe and evacuation radii are the same expressions ImpactModel uses for its metrics."""
    return DamageZones(
        immediate_km=zone_radius_km(energy_mt, ZONE_IMMEDIATE),
        severe_km=zone_radius_km(energy_mt, ZONE_SEVERE),
        moderate_km=zone_radius_km(energy_mt, ZONE_MODERATE),
        evacuation_km=zone_radius_km(energy_mt, ZONE_EVACUATION),
    )


class ImpactModel:
    """
    Energy + crater + blast/evacuation radii + seismic magnitude.
    Every output is a function of the impactor alone; location never enters.
    """

    def __init__(self, impactor: ImpactorParameters):
        self.p = impactor

    # ---------- Energetics ----------
    def kinetic_energy_J(self) -> float:
        # Multiplication overflows to inf (caught below) where ** would raise.
        return 0.5 * self.p.mass_kg * self.p.speed_mps * self.p.speed_mps

    def energy_mt_tnt(self) -> float:
        E_mt = self.kinetic_energy_J() / J_PER_MT_TNT
        # Inputs are validated > 0, so this only trips on float underflow.
        if not (E_mt > 0.0) or not isfinite(E_mt):
            raise InputValidationError(
                f"Impact energy must be positive and finite, got {E_mt!r} Mt "
                f"(mass={self.p.mass_kg!r} kg, speed={self.p.speed_mps!r} m/s)."
            )
        return E_mt

    # ---------- Crater ----------
    def crater_diameter_m(self) -> float:
        return CRATER_COEFF * self.energy_mt_tnt() ** CRATER_EXPONENT * 1000.0

    # ---------- Blast ----------
    def blast_radius_km(self) -> float:
        return zone_radius_km(self.energy_mt_tnt(), ZONE_SEVERE)

    def evacuation_zone_km(self) -> float:
        return zone_radius_km(self.energy_mt_tnt(), ZONE_EVACUATION)

    def damage_zones(self) -> DamageZones:
        return damage_zones(self.energy_mt_tnt())

    # ---------- Seismic ----------
    def seismic_magnitude(self) -> float:
        """Below 4 for sub-megaton impacts."""
        return SEISMIC_BASE_MAGNITUDE + log10(self.energy_mt_tnt())

    # ---------- Convenience ----------
    def metrics(self) -> ImpactMetrics:
        return ImpactMetrics(
            energy_megatons=self.energy_mt_tnt(),
            crater_diameter_m=self.crater_diameter_m(),
            blast_radius_km=self.blast_radius_km(),
            evacuation_zone_km=self.evacuation_zone_km(),
            seismic_magnitude=self.seismic_magnitude(),
        )

    def summary(self) -> dict:
        E_J = self.kinetic_energy_J()
        metrics = self.metrics()
        return {
            "impactor": {"diameter_m": self.p.diameter_m, "speed_mps": self.p.speed_mps,
                         "mass_kg": self.p.mass_kg, "angle_deg": self.p.angle_deg,
                         "composition": self.p.composition.value,
                         "density_kgpm3": self.p.composition.density_kgpm3},
            "energy": {"kinetic_J": E_J, "tnt_megatons": metrics.energy_megatons},
            "metrics": metrics.to_dict(),
            "damage_zones_km": asdict(damage_zones(metrics.energy_megatons)),
        }


def compute_metrics(impactor: ImpactorParameters) -> ImpactMetrics:
    return ImpactModel(impactor).metrics()
