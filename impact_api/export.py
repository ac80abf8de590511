"""TXT / HTML / JSON renderings of a Report for download."""
from __future__ import annotations
import html
import json
from dataclasses import dataclass
from enum import Enum

from .report import Report, format_metrics

RULE = "═" * 59


class ExportFormat(str, Enum):
    TXT = "txt"
    HTML = "html"
    JSON = "json"


@dataclass(frozen=True)
class ExportedReport:
    content: bytes
    media_type: str
    filename: str


def _generated_label(report: Report) -> str:
    return report.generated_at.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


def _epoch_ms(report: Report) -> int:
    return int(report.generated_at.timestamp() * 1000)


def render_text(report: Report) -> str:
    p, loc = report.impactor, report.location
    m = format_metrics(report.metrics)
    nasa = f"\nNASA Object: {p.source_name}" if p.source_name else ""
    return f"""METEOR IMPACT ANALYSIS REPORT
Generated: {_generated_label(report)}

{RULE}

IMPACT LOCATION
Location: {loc.name or "Unknown"}
Coordinates: {loc.coordinates_label()}

METEOR PARAMETERS
Speed: {p.speed_mps:,.0f} m/s
Diameter: {p.diameter_m:g} m
Mass: {p.mass_kg / 1e6:,.2f} million kg
Impact Angle: {p.angle_deg:g}°
Composition: {p.composition.value}{nasa}

{RULE}

KEY METRICS
Impact Energy: {m['impactEnergy']} megatons TNT
Crater Diameter: {m['craterDiameter']} meters
Blast Radius: {m['blastRadius']} km
Evacuation Zone: {m['evacuationZone']} km
Seismic Magnitude: {m['seismicMagnitude']}

{RULE}

DETAILED ANALYSIS
{report.narrative_text}

{RULE}

Report generated by Meteor Impact Simulator
"""


_HTML_STYLE = """
        body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 900px; margin: 40px auto; padding: 20px; background: #f5f5f5; color: #333; }
        .container { background: white; padding: 40px; border-radius: 8px; box-shadow: 0 2px 8px rgba(0,0,0,0.1); }
        h1 { color: #1a1a1a; border-bottom: 3px solid #e74c3c; padding-bottom: 10px; }
        h2 { color: #2c3e50; margin-top: 30px; }
        .metrics { display: grid; grid-template-columns: repeat(auto-fit, minmax(200px, 1fr)); gap: 15px; margin: 20px 0; }
        .metric-card { background: #f8f9fa; padding: 15px; border-radius: 6px; border-left: 4px solid #3498db; }
        .metric-label { font-size: 12px; color: #666; text-transform: uppercase; }
        .metric-value { font-size: 24px; font-weight: bold; color: #2c3e50; }
        .analysis { line-height: 1.8; white-space: pre-wrap; }
"""


def render_html(report: Report) -> str:
    p, loc = report.impactor, report.location
    m = format_metrics(report.metrics)
    e = html.escape
    cards = [
        ("Impact Energy", f"{m['impactEnergy']} MT"),
        ("Crater Diameter", f"{m['craterDiameter']} m"),
        ("Blast Radius", f"{m['blastRadius']} km"),
        ("Evacuation Zone", f"{m['evacuationZone']} km"),
        ("Seismic Magnitude", f"M {m['seismicMagnitude']}"),
    ]
    card_html = "\n".join(
        f'            <div class="metric-card"><div class="metric-label">{label}</div>'
        f'<div class="metric-value">{e(value)}</div></div>'
        for label, value in cards
    )
    nasa = f"<br><strong>NASA Object:</strong> {e(p.source_name)}" if p.source_name else ""
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Meteor Impact Analysis Report</title>
    <style>{_HTML_STYLE}    </style>
</head>
<body>
    <div class="container">
        <h1>Meteor Impact Analysis Report</h1>
        <p><strong>Generated:</strong> {e(_generated_label(report))}</p>
        <h2>Impact Location</h2>
        <p><strong>Location:</strong> {e(loc.name or "Unknown")}<br><strong>Coordinates:</strong> {e(loc.coordinates_label())}</p>
        <h2>Meteor Parameters</h2>
        <p><strong>Speed:</strong> {p.speed_mps:,.0f} m/s<br><strong>Diameter:</strong> {p.diameter_m:g} m<br><strong>Mass:</strong> {p.mass_kg / 1e6:,.2f} million kg<br><strong>Angle:</strong> {p.angle_deg:g}°<br><strong>Composition:</strong> {e(p.composition.value)}{nasa}</p>
        <h2>Key Metrics</h2>
        <div class="metrics">
{card_html}
        </div>
        <h2>Detailed Analysis</h2>
        <div class="analysis">{e(report.narrative_text)}</div>
    </div>
</body>
</html>
"""


def report_document(report: Report) -> dict:
    p = report.impactor
    params = p.to_dict()
    params["nasaData"] = {"name": p.source_name} if p.source_name else None
    return {
        "metadata": {
            "generatedAt": report.generated_at.isoformat(),
            "location": report.location.to_dict(),
            "impactorParameters": params,
        },
        "metrics": report.metrics.to_dict(),
        "analysis": report.narrative_text,
    }


def render_json(report: Report) -> str:
    return json.dumps(report_document(report), indent=2, ensure_ascii=False)


def export_report(report: Report, fmt: ExportFormat | str) -> ExportedReport:
    fmt = ExportFormat(fmt)
    stamp = _epoch_ms(report)
    if fmt is ExportFormat.TXT:
        return ExportedReport(render_text(report).encode("utf-8"), "text/plain; charset=utf-8",
                              f"meteor-impact-report-{stamp}.txt")
    if fmt is ExportFormat.HTML:
        return ExportedReport(render_html(report).encode("utf-8"), "text/html; charset=utf-8",
                              f"meteor-impact-report-{stamp}.html")
    return ExportedReport(render_json(report).encode("utf-8"), "application/json",
                          f"meteor-impact-data-{stamp}.json")
