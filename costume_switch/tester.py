"""
Offline stream simulation for validating a profile.

Runs the full streaming pipeline over a static text as if it arrived one
character at a time, on a simulated clock, and reports what the engine saw
and decided.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from config import settings
from .attribution.detector import detect_matches
from .attribution.scorer import ScoringOptions, rank_matches
from .monitoring.metrics import SwitchMetricsCollector
from .models import Match, MatchKind, SceneRanking, ScoredMatch, SwitchEvent
from .profiles.profile import Profile
from .switching.stream_engine import CostumeSwitchEngine

logger = logging.getLogger(__name__)


class SimulatedClock:
    """Millisecond clock advanced explicitly by the simulation."""

    def __init__(self, start_ms: float = 0.0):
        self.now = float(start_ms)

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> float:
        self.now += ms
        return self.now


class RecordingExecutor:
    """Switch executor that always succeeds and remembers every folder it was asked for."""

    def __init__(self, clock: SimulatedClock):
        self.clock = clock
        self.calls: List[Dict[str, Any]] = []

    async def __call__(self, folder: str) -> None:
        self.calls.append({"folder": folder, "timestamp": self.clock()})


@dataclass
class SimulationReport:
    """Everything the engine detected and decided during one simulated stream."""
    profile_name: str
    text_length: int
    detections: List[Match] = field(default_factory=list)
    events: List[SwitchEvent] = field(default_factory=list)
    switches: List[Dict[str, Any]] = field(default_factory=list)
    scene_roster: List[str] = field(default_factory=list)
    top_characters: List[SceneRanking] = field(default_factory=list)
    mention_stats: Dict[str, int] = field(default_factory=dict)
    score_breakdown: List[ScoredMatch] = field(default_factory=list)
    vetoed: bool = False
    compile_error: Optional[str] = None
    duration_ms: float = 0.0

    @property
    def switched_folders(self) -> List[str]:
        return [call["folder"] for call in self.switches]

    def events_with_reason(self, reason: str) -> List[SwitchEvent]:
        return [event for event in self.events if event.reason == reason]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "profile": self.profile_name,
            "textLength": self.text_length,
            "detections": [d.to_dict() for d in self.detections],
            "events": [e.to_dict() for e in self.events],
            "switches": list(self.switches),
            "sceneRoster": list(self.scene_roster),
            "topCharacters": [r.to_dict() for r in self.top_characters],
            "mentionStats": dict(self.mention_stats),
            "scoreBreakdown": [s.to_dict() for s in self.score_breakdown],
            "vetoed": self.vetoed,
            "compileError": self.compile_error,
            "durationMs": self.duration_ms,
        }


def simulate_stream(text: str, profile: Profile,
                    char_delay_ms: float = settings.SIMULATION_CHAR_DELAY_MS,
                    message_key: str = "simulation",
                    metrics: Optional[SwitchMetricsCollector] = None) -> SimulationReport:
    """
    Stream ``text`` through an isolated engine one character per token.

    The clock advances ``char_delay_ms`` before every character, so cooldowns
    and repeat suppression behave as they would at that streaming rate.
    Detections are collected from every engine scan, unique by name, kind and
    absolute position in the streamed text.
    """
    clock = SimulatedClock()
    executor = RecordingExecutor(clock)
    events: List[SwitchEvent] = []
    engine = CostumeSwitchEngine(profile, execute_costume_switch=executor, clock=clock,
                                 metrics=metrics, on_event=events.append)

    report = SimulationReport(
        profile_name=profile.name if profile else "",
        text_length=len(text or ""),
        compile_error=engine.compile_error,
    )
    if engine.compile_error:
        logger.warning(f"Simulation running with detection disabled: {engine.compile_error}")

    seen = set()
    priorities = {kind: profile.priority_for(kind) for kind in MatchKind} if profile else None
    state = engine.on_generation_start(message_key)

    def collect():
        if state.vetoed or engine.compiled is None or state.pending_length:
            return
        for match in detect_matches(state.buffer, engine.compiled, priorities, last_subject=state.subject_fallback):
            position = match.match_index + state.trimmed_chars
            key = (match.name.lower(), match.match_kind, position)
            if key not in seen:
                seen.add(key)
                report.detections.append(Match(match.name, match.match_kind, position, match.priority))

    for char in text or "":
        clock.advance(char_delay_ms)
        engine.on_token(char, message_key)
        collect()

    clock.advance(char_delay_ms)
    report.mention_stats = engine.on_generation_end(message_key)
    collect()

    report.events = events
    report.switches = list(executor.calls)
    report.vetoed = state.vetoed
    report.scene_roster = sorted(state.scene_roster.members)
    report.top_characters = engine.get_scene_ranking()[:settings.TOP_CHARACTERS_LIMIT]
    if state.vetoed:
        report.detections = []
    elif engine.compiled is not None:
        final = detect_matches(state.buffer, engine.compiled, priorities, last_subject=state.subject_fallback)
        roster = state.scene_roster.members if profile.scene_roster_enabled else ()
        report.score_breakdown = rank_matches(final, len(state.buffer), ScoringOptions.from_profile(profile, roster=roster))
    report.duration_ms = clock()
    return report
