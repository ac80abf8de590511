import math

import pytest

from impact_api.errors import InputValidationError
from impact_api.impact_model import (
    Composition, ImpactLocation, ImpactModel, ImpactorParameters, compute_metrics, damage_zones,
    density_for, estimate_mass, sphere_mass_kg,
)


def _impactor(**kw):
    base = dict(speed_mps=20000.0, diameter_m=100.0, mass_kg=1e9, angle_deg=45.0, composition="stony")
    base.update(kw)
    return ImpactorParameters(**base)


def test_stony_100m_mass():
    expected = (4.0 / 3.0) * math.pi * 50.0**3 * 3500.0
    assert estimate_mass(100.0, "stony") == pytest.approx(expected, rel=1e-3)
    assert estimate_mass(100.0, Composition.STONY) == pytest.approx(1.833e9, rel=1e-3)


def test_unknown_composition_uses_stony_density():
    assert density_for("unobtainium") == 3500.0
    assert estimate_mass(10.0, "unobtainium") == estimate_mass(10.0, "stony")


@pytest.mark.parametrize("comp, density", [
    ("iron", 7800.0), ("stony", 3500.0), ("stony-iron", 5000.0), ("carbonaceous", 2500.0),
])
def test_composition_densities(comp, density):
    assert Composition(comp).density_kgpm3 == density
    assert estimate_mass(2.0, comp) == pytest.approx(sphere_mass_kg(2.0, density))


def test_reference_scenario():
    m = compute_metrics(_impactor())
    assert ImpactModel(_impactor()).kinetic_energy_J() == pytest.approx(2e17)
    assert m.energy_megatons == pytest.approx(47.80, rel=1e-3)
    assert m.crater_diameter_m == pytest.approx(1.8 * 47.80 ** 0.3 * 1000, rel=1e-3)
    assert m.blast_radius_km == pytest.approx(7.17, rel=1e-2)
    assert m.evacuation_zone_km == pytest.approx(17.9, rel=1e-2)
    assert m.seismic_magnitude == pytest.approx(5.68, abs=0.01)


def test_metrics_are_deterministic():
    assert compute_metrics(_impactor()) == compute_metrics(_impactor())


def test_location_does_not_enter_metrics():
    # compute_metrics takes only the impactor; same impactor, same metrics
    p = _impactor(angle_deg=10.0)
    assert compute_metrics(p) == compute_metrics(_impactor(angle_deg=10.0))


@pytest.mark.parametrize("field, values", [
    ("speed_mps", [11000.0, 20000.0, 35000.0, 72000.0]),
    ("mass_kg", [1e6, 1e8, 1e9, 5e12]),
])
def test_metrics_increase_with_speed_and_mass(field, values):
    series = [compute_metrics(_impactor(**{field: v})) for v in values]
    for lo, hi in zip(series, series[1:]):
        assert hi.energy_megatons > lo.energy_megatons
        assert hi.crater_diameter_m > lo.crater_diameter_m
        assert hi.blast_radius_km > lo.blast_radius_km
        assert hi.evacuation_zone_km > lo.evacuation_zone_km
        assert hi.seismic_magnitude > lo.seismic_magnitude


def test_sub_megaton_magnitude_below_four():
    m = compute_metrics(_impactor(mass_kg=1e6, speed_mps=12000.0))
    assert m.energy_megatons < 1.0
    assert m.seismic_magnitude < 4.0
    assert math.isfinite(m.seismic_magnitude)
    assert m.crater_diameter_m > 0.0


def test_damage_zones_match_metrics_exactly():
    m = compute_metrics(_impactor())
    zones = damage_zones(m.energy_megatons)
    assert zones.severe_km == m.blast_radius_km
    assert zones.evacuation_km == m.evacuation_zone_km
    assert zones.immediate_km < zones.severe_km < zones.moderate_km < zones.evacuation_km
    assert zones.moderate_km == pytest.approx(zones.immediate_km * 3.5)


@pytest.mark.parametrize("kw", [
    {"mass_kg": 0.0},
    {"mass_kg": -5.0},
    {"speed_mps": 0.0},
    {"diameter_m": -1.0},
    {"speed_mps": float("nan")},
    {"mass_kg": float("inf")},
    {"angle_deg": -0.1},
    {"angle_deg": 90.5},
    {"composition": "cheese"},
])
def test_invalid_impactor_rejected(kw):
    with pytest.raises(InputValidationError):
        _impactor(**kw)


def test_underflowing_energy_is_rejected():
    tiny = _impactor(mass_kg=1e-300, speed_mps=1e-10)
    with pytest.raises(InputValidationError):
        compute_metrics(tiny)


def test_overflowing_energy_is_rejected():
    fast = _impactor(speed_mps=1e200)
    with pytest.raises(InputValidationError):
        compute_metrics(fast)


def test_from_diameter_rejects_mass_beyond_float_range():
    assert math.isinf(estimate_mass(1e150, "stony"))
    with pytest.raises(InputValidationError):
        ImpactorParameters.from_diameter(17000.0, 1e150, 30.0, "stony")


def test_angle_bounds_inclusive():
    assert _impactor(angle_deg=0.0).angle_deg == 0.0
    assert _impactor(angle_deg=90.0).angle_deg == 90.0


def test_impactor_is_immutable():
    p = _impactor()
    with pytest.raises(AttributeError):
        p.speed_mps = 1.0


def test_from_diameter_derives_mass():
    p = ImpactorParameters.from_diameter(17000.0, 100.0, 30.0, "iron")
    assert p.composition is Composition.IRON
    assert p.mass_kg == pytest.approx(estimate_mass(100.0, "iron"))


def test_from_diameter_rejects_non_positive_diameter():
    with pytest.raises(InputValidationError):
        ImpactorParameters.from_diameter(17000.0, 0.0, 30.0, "iron")


def test_location_validation_and_label():
    loc = ImpactLocation(latitude=-33.8688, longitude=151.2093, name="  ")
    assert loc.name is None
    assert loc.coordinates_label() == "33.8688°S, 151.2093°E"
    with pytest.raises(InputValidationError):
        ImpactLocation(latitude=91.0, longitude=0.0)
    with pytest.raises(InputValidationError):
        ImpactLocation(latitude=0.0, longitude=-180.5)


def test_summary_block():
    s = ImpactModel(_impactor()).summary()
    assert s["energy"]["kinetic_J"] == pytest.approx(2e17)
    assert s["metrics"]["blastRadiusKm"] == s["damage_zones_km"]["severe_km"]
    assert s["impactor"]["density_kgpm3"] == 3500.0
