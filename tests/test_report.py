from datetime import datetime, timezone

import pytest

from conftest import FailingProvider, StaticProvider, run
from impact_api.impact_model import ImpactorParameters, compute_metrics, damage_zones
from impact_api.report import (
    COORDINATES_PLACEHOLDER, TARGET_PLACEHOLDER, ReportSource, ReportSynthesizer, build_prompt,
    format_metrics, render_fallback_narrative,
)

SECTIONS = [
    "IMPACT SUMMARY", "DAMAGE ASSESSMENT", "CASUALTY ESTIMATES", "ENVIRONMENTAL EFFECTS",
    "INFRASTRUCTURE DAMAGE", "COMPARISON", "RECOMMENDATIONS",
]


def test_unconfigured_provider_uses_template(impactor, location):
    metrics = compute_metrics(impactor)
    report = run(ReportSynthesizer(None).synthesize(impactor, location, metrics))
    assert report.source is ReportSource.FALLBACK
    assert report.metrics is metrics
    assert report.impactor is impactor and report.location is location
    for section in SECTIONS:
        assert section in report.narrative_text


def test_provider_success_wraps_text_with_same_metrics(impactor, location):
    provider = StaticProvider()
    metrics = compute_metrics(impactor)
    report = run(ReportSynthesizer(provider).synthesize(impactor, location, metrics))
    assert report.source is ReportSource.PROVIDER
    assert report.narrative_text == provider.text
    assert report.metrics is metrics
    assert len(provider.prompts) == 1


def test_failed_provider_metrics_identical_to_successful(impactor, location):
    ok = run(ReportSynthesizer(StaticProvider()).synthesize(impactor, location, compute_metrics(impactor)))
    failing = FailingProvider()
    bad = run(ReportSynthesizer(failing).synthesize(impactor, location, compute_metrics(impactor)))
    assert failing.calls == 1  # single attempt, no retry
    assert bad.source is ReportSource.FALLBACK
    assert ok.source is ReportSource.PROVIDER
    assert bad.metrics == ok.metrics
    assert bad.metrics.to_dict() == ok.metrics.to_dict()


@pytest.mark.parametrize("exc", [RuntimeError("boom"), ValueError("bad json"), KeyError("candidates")])
def test_any_provider_exception_falls_back(impactor, location, exc):
    report = run(ReportSynthesizer(FailingProvider(exc)).synthesize(
        impactor, location, compute_metrics(impactor)))
    assert report.source is ReportSource.FALLBACK
    assert "IMPACT SUMMARY" in report.narrative_text


def test_blank_provider_text_falls_back(impactor, location):
    report = run(ReportSynthesizer(StaticProvider("   ")).synthesize(
        impactor, location, compute_metrics(impactor)))
    assert report.source is ReportSource.FALLBACK


def test_narrative_quotes_metrics_exactly(impactor, location):
    m = compute_metrics(impactor)
    text = render_fallback_narrative(impactor, location, m)
    assert f"Evacuation Zone: {m.evacuation_zone_km:.1f} km radius" in text
    assert f"Severe Damage Zone: {m.blast_radius_km:.1f} km radius" in text
    assert f"approximately {m.energy_megatons:.2f} megatons" in text
    assert f"Crater Formation: {m.crater_diameter_m:.0f} meters diameter" in text
    assert f"Magnitude {m.seismic_magnitude:.1f} earthquake" in text
    zones = damage_zones(m.energy_megatons)
    assert f"Immediate Blast Zone: {zones.immediate_km:.1f} km" in text
    assert f"Moderate Damage Zone: {zones.moderate_km:.1f} km" in text
    assert f"{m.crater_diameter_m * 0.3:.0f} meters deep" in text


def test_narrative_derived_figures(impactor, location):
    m = compute_metrics(impactor)
    text = render_fallback_narrative(impactor, location, m)
    root = m.energy_megatons ** 0.5
    assert f"Estimated Deaths: {round(root * 50_000):,} - {round(root * 100_000):,}" in text
    assert f"Estimated Injuries: {round(root * 150_000):,} - {round(root * 300_000):,}" in text
    assert f"{m.energy_megatons / 15:,.1f}x the Hiroshima atomic bomb" in text
    assert f"${m.energy_megatons * 5:,.0f} - ${m.energy_megatons * 10:,.0f} billion" in text


def test_missing_location_name_uses_placeholders(impactor, unnamed_location):
    text = render_fallback_narrative(impactor, unnamed_location, compute_metrics(impactor))
    assert f"striking {TARGET_PLACEHOLDER}" in text
    assert f"impact location at {COORDINATES_PLACEHOLDER}" in text


def test_historical_analogue_switches_at_ten_megatons(location):
    small = ImpactorParameters(speed_mps=15000.0, diameter_m=20.0, mass_kg=1e7, angle_deg=45.0)
    big = ImpactorParameters(speed_mps=20000.0, diameter_m=100.0, mass_kg=1e9, angle_deg=45.0)
    assert "Chelyabinsk" in render_fallback_narrative(small, location, compute_metrics(small))
    assert "Tunguska" in render_fallback_narrative(big, location, compute_metrics(big))


def test_template_is_deterministic(impactor, location):
    m = compute_metrics(impactor)
    assert render_fallback_narrative(impactor, location, m) == render_fallback_narrative(impactor, location, m)


def test_prompt_carries_formatted_metrics(impactor, location):
    m = compute_metrics(impactor)
    prompt = build_prompt(impactor, location, m)
    for value in format_metrics(m).values():
        assert value in prompt
    assert "New York City" in prompt
    assert "40.7128°N, 74.0060°W" in prompt


def test_each_synthesis_builds_a_new_report(impactor, location):
    stamps = iter([datetime(2025, 10, 4, 12, 0, tzinfo=timezone.utc),
                   datetime(2025, 10, 4, 12, 5, tzinfo=timezone.utc)])
    synth = ReportSynthesizer(None, clock=lambda: next(stamps))
    m = compute_metrics(impactor)
    first = run(synth.synthesize(impactor, location, m))
    second = run(synth.synthesize(impactor, location, m))
    assert first is not second
    assert first.generated_at < second.generated_at
    with pytest.raises(AttributeError):
        first.narrative_text = "edited"


def test_report_dict(impactor, location):
    report = run(ReportSynthesizer(None).synthesize(impactor, location, compute_metrics(impactor)))
    d = report.to_dict()
    assert d["source"] == "fallback"
    assert d["formattedMetrics"]["evacuationZone"] == f"{report.metrics.evacuation_zone_km:.1f}"
    assert d["metrics"]["energyMegatons"] == report.metrics.energy_megatons
    assert d["location"]["name"] == "New York City"
