"""
Simulation phase timeline.

One SimulationTimeline owns the phase/progress state. A run is driven by a
single asyncio task that sleeps until each scheduled offset; reset() and a
new start() cancel that task and every transition also checks that its run is
still the active one, so nothing from a superseded run can be observed.
"""
from __future__ import annotations
import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from .errors import TimelineMisuseError
from .impact_model import ImpactLocation, ImpactMetrics, ImpactorParameters, compute_metrics
from .report import Report, ReportSynthesizer

logger = logging.getLogger(__name__)


class SimulationPhase(str, Enum):
    IDLE = "idle"
    APPROACH = "approach"
    ATMOSPHERIC_ENTRY = "atmospheric-entry"
    IMPACT = "impact"
    SHOCKWAVE = "shockwave"
    SECONDARY_EFFECTS = "secondary-effects"
    DUST_FORMATION = "dust-formation"
    COMPLETE = "complete"

    @property
    def description(self) -> str:
        return PHASE_DESCRIPTIONS[self]


PHASE_DESCRIPTIONS = {
    SimulationPhase.IDLE: "Ready to simulate meteor impact",
    SimulationPhase.APPROACH: "Meteor approaching Earth at high velocity...",
    SimulationPhase.ATMOSPHERIC_ENTRY: "Entering atmosphere - friction heating to extreme temperatures...",
    SimulationPhase.IMPACT: "IMPACT! Massive energy release at impact site...",
    SimulationPhase.SHOCKWAVE: "Shockwave expanding outward, devastating everything in its path...",
    SimulationPhase.SECONDARY_EFFECTS: "Secondary effects: Tsunamis, volcanic activity, seismic waves...",
    SimulationPhase.DUST_FORMATION: "Dust cloud forming around Earth, blocking sunlight...",
    SimulationPhase.COMPLETE: "Simulation complete. Analyzing impact consequences...",
}

# (phase, progress %, offset from run start in seconds)
PHASE_SCHEDULE = (
    (SimulationPhase.APPROACH, 0, 0.0),
    (SimulationPhase.ATMOSPHERIC_ENTRY, 20, 2.0),
    (SimulationPhase.IMPACT, 40, 4.0),
    (SimulationPhase.SHOCKWAVE, 60, 6.0),
    (SimulationPhase.SECONDARY_EFFECTS, 75, 8.0),
    (SimulationPhase.DUST_FORMATION, 90, 10.0),
    (SimulationPhase.COMPLETE, 100, 12.0),
)

STARTABLE_PHASES = frozenset({SimulationPhase.IDLE, SimulationPhase.COMPLETE})


@dataclass(frozen=True)
class TimelineSnapshot:
    run_id: Optional[int]
    phase: SimulationPhase
    progress: int

    @property
    def description(self) -> str:
        return self.phase.description

    def to_dict(self) -> dict:
        return {"runId": self.run_id, "phase": self.phase.value,
                "progress": self.progress, "description": self.description}


@dataclass(eq=False)
class TimelineRun:
    run_id: int
    impactor: ImpactorParameters
    location: ImpactLocation
    metrics: ImpactMetrics
    task: Optional["asyncio.Task[None]"] = field(default=None, repr=False)
    report: Optional[Report] = None
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True
        if self.task is not None and not self.task.done():
            self.task.cancel()


Listener = Callable[[TimelineSnapshot], None]
ReportListener = Callable[[Report], None]


class SimulationTimeline:
    def __init__(self, synthesizer: ReportSynthesizer, time_scale: float = 1.0,
                 metrics_fn: Callable[[ImpactorParameters], ImpactMetrics] = compute_metrics):
        if time_scale <= 0.0:
            raise ValueError(f"time_scale must be > 0, got {time_scale!r}")
        self._synthesizer = synthesizer
        self._time_scale = time_scale
        self._metrics_fn = metrics_fn
        self._phase = SimulationPhase.IDLE
        self._progress = 0
        self._run: Optional[TimelineRun] = None
        self._report: Optional[Report] = None
        self._listeners: List[Listener] = []
        self._report_listeners: List[ReportListener] = []
        self._ids = itertools.count(1)

    # ---------- Read-only views ----------
    @property
    def phase(self) -> SimulationPhase:
        return self._phase

    @property
    def progress(self) -> int:
        return self._progress

    @property
    def report(self) -> Optional[Report]:
        return self._report

    @property
    def current_run(self) -> Optional[TimelineRun]:
        return self._run

    @property
    def is_running(self) -> bool:
        return self._phase not in STARTABLE_PHASES

    def snapshot(self) -> TimelineSnapshot:
        run_id = self._run.run_id if self._run is not None else None
        return TimelineSnapshot(run_id=run_id, phase=self._phase, progress=self._progress)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def subscribe_report(self, listener: ReportListener) -> Callable[[], None]:
        self._report_listeners.append(listener)
        return lambda: self._report_listeners.remove(listener) if listener in self._report_listeners else None

    # ---------- Commands ----------
    def start(self, impactor: ImpactorParameters, location: ImpactLocation,
              strict: bool = False) -> Optional[TimelineRun]:
        """
        Begin a run from idle/complete. Must be called with a running event loop.
        While a run is in progress this is a no-op returning None, or raises
        TimelineMisuseError when strict.
        """
        if self.is_running:
            active = self._run.run_id if self._run is not None else None
            logger.warning("[timeline.start.ignored] phase=%s active_run=%s", self._phase.value, active)
            if strict:
                raise TimelineMisuseError(f"A simulation run is already in progress (phase={self._phase.value}).")
            return None

        loop = asyncio.get_running_loop()
        metrics = self._metrics_fn(impactor)

        self._cancel_active()
        run = TimelineRun(run_id=next(self._ids), impactor=impactor, location=location, metrics=metrics)
        self._run = run
        self._report = None
        logger.info("[timeline.start] run=%d energy_mt=%.3f time_scale=%g",
                    run.run_id, metrics.energy_megatons, self._time_scale)

        first_phase, first_progress, _ = PHASE_SCHEDULE[0]
        self._apply(run, first_phase, first_progress)
        run.task = loop.create_task(self._drive(run))
        run.task.add_done_callback(lambda t, rid=run.run_id: self._on_task_done(rid, t))
        return run

    def reset(self) -> TimelineSnapshot:
        previous = self._run.run_id if self._run is not None else None
        self._cancel_active()
        self._run = None
        self._report = None
        self._phase = SimulationPhase.IDLE
        self._progress = 0
        logger.info("[timeline.reset] cancelled_run=%s", previous)
        snap = self.snapshot()
        self._notify(snap)
        return snap

    async def wait_report(self) -> Optional[Report]:
        """Wait for the current run to finish; None if it was cancelled first."""
        run = self._run
        if run is None or run.task is None:
            return self._report
        await asyncio.wait({run.task})
        return run.report if self._is_active(run) else None

    # ---------- Internals ----------
    def _is_active(self, run: TimelineRun) -> bool:
        return self._run is run and not run.cancelled

    def _cancel_active(self) -> None:
        if self._run is not None:
            self._run.cancel()

    def _apply(self, run: TimelineRun, phase: SimulationPhase, progress: int) -> None:
        if not self._is_active(run):
            return
        self._phase = phase
        self._progress = progress
        logger.info("[timeline.phase] run=%d phase=%s progress=%d", run.run_id, phase.value, progress)
        self._notify(self.snapshot())

    def _notify(self, snapshot: TimelineSnapshot) -> None:
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("[timeline.listener.error] phase=%s", snapshot.phase.value)

    async def _drive(self, run: TimelineRun) -> None:
        loop = asyncio.get_running_loop()
        t0 = loop.time()
        for phase, progress, offset in PHASE_SCHEDULE[1:]:
            delay = t0 + offset * self._time_scale - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)
            if not self._is_active(run):
                return
            self._apply(run, phase, progress)

        report = await self._synthesizer.synthesize(run.impactor, run.location, run.metrics)
        if not self._is_active(run):
            logger.info("[timeline.report.discarded] run=%d", run.run_id)
            return
        run.report = report
        self._report = report
        logger.info("[timeline.report] run=%d source=%s", run.run_id, report.source.value)
        for listener in list(self._report_listeners):
            try:
                listener(report)
            except Exception:
                logger.exception("[timeline.report_listener.error] run=%d", run.run_id)

    def _on_task_done(self, run_id: int, task: "asyncio.Task[None]") -> None:
        if task.cancelled():
            logger.info("[timeline.run.cancelled] run=%d", run_id)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("[timeline.run.failed] run=%d error=%r", run_id, exc, exc_info=exc)
