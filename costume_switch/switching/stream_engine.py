"""
Streaming costume switch engine.

The host drives the engine with three calls per generated message:

    engine.on_generation_start(key)
    engine.on_token(text)            # once per streamed token
    engine.on_generation_end(key)

Each token is normalized and appended to the message buffer. Once at least
``token_process_threshold`` new characters have arrived the whole buffer is
rescanned, the best detection past the last accepted position wins, and the
winner goes through repeat suppression and the decision engine. A positive
decision is handed to the injected ``execute_costume_switch(folder)``
coroutine; its outcome feeds the cooldown bookkeeping once it completes.
"""

import time
import asyncio
import inspect
import logging
from collections import Counter
from typing import Any, Awaitable, Callable, Dict, Hashable, List, Optional, Set

from config import settings
from ..attribution.detector import detect_matches, latest_subject, mention_counts
from ..attribution.pattern_compiler import CompiledPatterns, PatternCompiler
from ..attribution.scorer import ScoringOptions, rank_matches, rank_scene_characters
from ..models import (
    MatchKind,
    SceneRanking,
    ScoredMatch,
    SwitchDecision,
    SwitchEvent,
    SwitchReason,
    TriggerResult,
)
from ..monitoring.metrics import SwitchMetricsCollector
from ..profiles.profile import Profile
from ..profiles.profile_utils import find_costume_for_trigger, suggest_trigger
from ..text_processing.normalizer import normalize_stream_text
from .decision_engine import Clock, RuntimeState, SwitchDecisionEngine, monotonic_ms
from .message_state import MessageState, MessageStateStore

SwitchExecutor = Callable[[str], Optional[Awaitable[Any]]]
EventListener = Callable[[SwitchEvent], None]


class CostumeSwitchEngine:
    """
    Per-chat-session engine wiring compiler, detector, scorer and decision engine.

    Args:
        profile: Active profile (None disables detection)
        execute_costume_switch: Called with the folder path to switch to; may
            return an awaitable. None runs the engine dry: every positive
            decision is recorded as a successful switch.
        clock: Millisecond clock, monotonic time by default
        metrics: Optional Prometheus collector
        on_event: Optional listener for every switch/skip event
    """

    def __init__(self, profile: Optional[Profile] = None,
                 execute_costume_switch: Optional[SwitchExecutor] = None,
                 clock: Optional[Clock] = None,
                 metrics: Optional[SwitchMetricsCollector] = None,
                 on_event: Optional[EventListener] = None,
                 max_tracked_messages: int = settings.MAX_TRACKED_MESSAGES):
        self.logger = logging.getLogger(__name__)
        self.clock = clock or monotonic_ms
        self.execute_costume_switch = execute_costume_switch
        self.metrics = metrics
        self.on_event = on_event

        self.compiler = PatternCompiler()
        self.runtime = RuntimeState()
        self.decisions = SwitchDecisionEngine(self.runtime, clock=self.clock)
        self.messages = MessageStateStore(max_tracked_messages)

        self.profile: Optional[Profile] = None
        self.focus_lock: Optional[str] = None
        self.last_message_stats: Dict[str, int] = {}
        self.last_ranking: List[SceneRanking] = []
        self.last_scan: List[ScoredMatch] = []
        self._pending_folders: Set[str] = set()
        self._tasks: Set[asyncio.Task] = set()

        self.update_profile(profile)

    # ------------------------------------------------------------------
    # Profile handling
    # ------------------------------------------------------------------

    @property
    def compiled(self) -> Optional[CompiledPatterns]:
        return self.compiler.active

    @property
    def compile_error(self) -> Optional[str]:
        return self.compiler.last_error

    def update_profile(self, profile: Optional[Profile]) -> Optional[Profile]:
        """Install ``profile`` and recompile its patterns when they changed."""
        self.profile = profile
        compiled_before = self.compiler.compile_count
        error_before = self.compiler.last_error
        self.compiler.ensure(profile)
        if self.metrics:
            if self.compiler.compile_count != compiled_before:
                self.metrics.record_compile(True)
            elif self.compiler.last_error and self.compiler.last_error != error_before:
                self.metrics.record_compile(False)
        return profile

    # ------------------------------------------------------------------
    # Stream ingestion
    # ------------------------------------------------------------------

    def _roster_ttl(self) -> int:
        return self.profile.scene_roster_ttl if self.profile else settings.DEFAULT_SCENE_ROSTER_TTL

    def _priorities(self) -> Dict[MatchKind, int]:
        return {kind: self.profile.priority_for(kind) for kind in MatchKind}

    def _state_for(self, key: Optional[Hashable] = None) -> MessageState:
        if key is None:
            return self.messages.current(self._roster_ttl())
        state = self.messages.get(key)
        if state is None:
            self.logger.debug(f"Unknown generation {key!r}, creating message state")
            state = self.messages.start(key, self._roster_ttl())
        return state

    def on_generation_start(self, key: Hashable) -> MessageState:
        state = self.messages.start(key, self._roster_ttl())
        if self.profile is not None and not self.profile.scene_roster_enabled:
            state.scene_roster.clear()
        if self.metrics:
            self.metrics.set_tracked_messages(len(self.messages))
        self.logger.info(f"Generation {key!r} started (roster: {sorted(state.scene_roster.members)})")
        return state

    def on_token(self, token: str, key: Optional[Hashable] = None) -> Optional[SwitchDecision]:
        """
        Feed one streamed token. Returns the decision made for this token, if any.

        Never raises: a failure while handling a token is logged and the
        token's effect is dropped so the generation carries on.
        """
        try:
            return self._handle_token(token, key)
        except Exception as e:
            self.logger.error(f"Error while processing token: {e}", exc_info=True)
            return None

    def _handle_token(self, token: str, key: Optional[Hashable]) -> Optional[SwitchDecision]:
        state = self._state_for(key)
        text = normalize_stream_text(token)
        if not text:
            return None

        profile = self.profile
        max_chars = profile.max_buffer_chars if profile else settings.DEFAULT_MAX_BUFFER_CHARS
        trimmed = state.append(text, max_chars)
        if trimmed:
            self.logger.debug(f"Trimmed {trimmed} chars from message buffer {state.key!r}")

        compiled = self.compiled
        if profile is None or compiled is None or state.vetoed:
            state.mark_processed()
            return None

        now = self.clock()
        veto = compiled.find_veto(state.buffer)
        if veto:
            return self._trip_veto(state, veto.group(0), now)

        if state.pending_length < profile.token_process_threshold:
            return None
        return self._scan(state, now)

    def _trip_veto(self, state: MessageState, phrase: str, now: float) -> SwitchDecision:
        state.vetoed = True
        state.mark_processed()
        self.logger.info(f"Veto phrase {phrase!r} found, detection stopped for message {state.key!r}")
        if self.metrics:
            self.metrics.record_veto()
        decision = SwitchDecision(should_switch=False, reason=SwitchReason.VETO)
        self._emit("skip", decision, state, now)
        return decision

    def _scan(self, state: MessageState, now: float) -> Optional[SwitchDecision]:
        profile = self.profile
        started = time.perf_counter()
        scanned_from = state.processed_length
        state.mark_processed()

        if self.focus_lock:
            decision = SwitchDecision(should_switch=False, reason=SwitchReason.FOCUS_LOCKED, name=self.focus_lock)
            self._emit("skip", decision, state, now)
            return decision

        matches = detect_matches(state.buffer, self.compiled, self._priorities(),
                                 last_subject=state.subject_fallback)
        state.last_subject = latest_subject(matches) or state.last_subject

        roster = state.scene_roster.members if profile.scene_roster_enabled else ()
        options = ScoringOptions.from_profile(profile, roster=roster, min_index=state.last_accepted_index)
        ranked = rank_matches(matches, len(state.buffer), options)
        self.last_scan = ranked

        if self.metrics:
            for kind, count in Counter(m.match_kind for m in matches if m.match_index >= scanned_from).items():
                self.metrics.record_detection(kind.value, count)
            self.metrics.record_scan_duration(time.perf_counter() - started)

        # Every detected character counts as present, not only the winner
        if profile.scene_roster_enabled:
            for match in matches:
                if match.name:
                    state.scene_roster.add(match.name)

        if not ranked:
            return None
        winner = ranked[0]

        if (state.last_accepted_name
                and state.last_accepted_name.lower() == winner.name.lower()
                and state.last_accepted_ts is not None
                and now - state.last_accepted_ts < profile.repeat_suppress_ms):
            state.last_accepted_index = winner.match_index
            decision = SwitchDecision(should_switch=False, reason=SwitchReason.REPEAT_SUPPRESSED, name=winner.name)
            self._emit("skip", decision, state, now, winner)
            return decision

        state.last_accepted_name = winner.name
        state.last_accepted_ts = now
        state.last_accepted_index = winner.match_index

        decision = self.decisions.evaluate(
            winner.name, profile,
            match_kind=winner.match_kind,
            text=state.buffer,
            roster=state.scene_roster.members,
            message_state=state,
            now=now,
        )
        if decision.should_switch:
            decision = self._dispatch(decision)
        self._emit("switch" if decision.should_switch else "skip", decision, state, now, winner)
        return decision

    def on_generation_end(self, key: Optional[Hashable] = None) -> Dict[str, int]:
        """
        Finish a message: scan any unprocessed tail, then compute the
        mention statistics and the final scene ranking.
        """
        state = self.messages.get(key if key is not None else self.messages.current_key)
        if state is None:
            self.logger.debug(f"Generation end for unknown message {key!r}")
            return {}

        try:
            if self.profile is not None and self.compiled is not None and not state.vetoed and state.pending_length > 0:
                self._scan(state, self.clock())
        except Exception as e:
            self.logger.error(f"Error during final scan: {e}", exc_info=True)

        stats: Dict[str, int] = {}
        ranking: List[SceneRanking] = []
        if self.profile is not None and self.compiled is not None and not state.vetoed:
            matches = detect_matches(state.buffer, self.compiled,
                                     self._priorities(),
                                     last_subject=state.subject_fallback)
            stats = mention_counts(matches)
            roster = state.scene_roster.members if self.profile.scene_roster_enabled else ()
            ranking = rank_scene_characters(matches, ScoringOptions.from_profile(self.profile, roster=roster))

        state.finalized = True
        self.last_message_stats = stats
        self.last_ranking = ranking
        self.logger.info(f"Generation {state.key!r} ended: mentions={stats}")
        return dict(stats)

    # ------------------------------------------------------------------
    # Switch execution
    # ------------------------------------------------------------------

    def _dispatch(self, decision: SwitchDecision) -> SwitchDecision:
        folder = decision.folder
        if folder in self._pending_folders:
            self.logger.debug(f"Switch to '{folder}' already in flight")
            return SwitchDecision(should_switch=False, reason=SwitchReason.SWITCH_PENDING,
                                  name=decision.name, folder=folder, outfit=decision.outfit)

        if self.execute_costume_switch is None:
            self.decisions.record_success(decision.name, folder, decision.outfit)
            if self.metrics:
                self.metrics.record_switch_command(True)
            return decision

        self._pending_folders.add(folder)
        coroutine = self._execute(decision)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            asyncio.run(coroutine)
        else:
            task = loop.create_task(coroutine)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return decision

    async def _execute(self, decision: SwitchDecision) -> bool:
        folder = decision.folder
        try:
            result = self.execute_costume_switch(folder)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self.decisions.record_failure(folder)
            if self.metrics:
                self.metrics.record_switch_command(False)
            self.logger.error(f"Costume switch command for '{folder}' failed: {e}")
            return False
        finally:
            self._pending_folders.discard(folder)

        self.decisions.record_success(decision.name, folder, decision.outfit)
        if self.metrics:
            self.metrics.record_switch_command(True)
        return True

    async def drain(self) -> None:
        """Wait for every in-flight switch command to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _emit(self, event_type: str, decision: SwitchDecision, state: MessageState,
              now: float, match: Optional[ScoredMatch] = None) -> None:
        if self.metrics:
            self.metrics.record_decision(decision.reason.value)
        self.logger.debug(f"{event_type}: {decision.reason.value} name='{decision.name}' folder='{decision.folder}'")
        if self.on_event is None:
            return
        self.on_event(SwitchEvent(
            type=event_type,
            reason=decision.reason,
            name=decision.name,
            folder=decision.folder,
            match_kind=match.match_kind if match else None,
            match_index=match.match_index if match else None,
            position=len(state.buffer),
            timestamp=now,
            message_key=str(state.key),
        ))

    # ------------------------------------------------------------------
    # Manual controls
    # ------------------------------------------------------------------

    def lock_focus(self, name: str) -> SwitchDecision:
        """Switch to ``name`` immediately and suppress automatic detection until unlocked."""
        decision = self.decisions.evaluate(name, self.profile, is_lock=True)
        if not decision.should_switch:
            return decision
        self.focus_lock = decision.name
        self.logger.info(f"Focus locked on '{decision.name}'")
        return self._dispatch(decision)

    def unlock_focus(self) -> None:
        if self.focus_lock:
            self.logger.info(f"Focus lock on '{self.focus_lock}' released")
        self.focus_lock = None

    def run_trigger(self, key: str) -> TriggerResult:
        """Execute a manual trigger alias (``"battle"``, ``"change battle"``) through the switch executor."""
        folder = find_costume_for_trigger(self.profile, key)
        if not folder:
            suggestion = suggest_trigger(self.profile, key)
            hint = f", did you mean '{suggestion}'?" if suggestion else ""
            self.logger.warning(f"No costume trigger matches '{key}'{hint}")
            return TriggerResult(key=key, suggestion=suggestion)

        decision = self._dispatch(SwitchDecision(should_switch=True, reason=SwitchReason.SWITCH, folder=folder))
        return TriggerResult(key=key, folder=folder, dispatched=decision.should_switch, reason=decision.reason)

    def reset_session(self) -> None:
        """Forget all runtime and message state, e.g. when the chat changes."""
        self.runtime.reset()
        self.messages.clear()
        self._pending_folders.clear()
        self.focus_lock = None
        self.last_message_stats = {}
        self.last_ranking = []
        self.last_scan = []
        self.logger.info("Session state reset")

    # ------------------------------------------------------------------
    # Query surface
    # ------------------------------------------------------------------

    def get_scene_ranking(self) -> List[SceneRanking]:
        state = self.messages.get(self.messages.current_key)
        if state is None or not state.buffer or state.vetoed or self.compiled is None or self.profile is None:
            return list(self.last_ranking)
        matches = detect_matches(state.buffer, self.compiled,
                                 self._priorities(),
                                 last_subject=state.subject_fallback)
        roster = state.scene_roster.members if self.profile.scene_roster_enabled else ()
        return rank_scene_characters(matches, ScoringOptions.from_profile(self.profile, roster=roster))

    def get_top_characters(self, n: Optional[int] = settings.TOP_CHARACTERS_LIMIT) -> List[str]:
        if n is None:
            n = settings.TOP_CHARACTERS_LIMIT
        limit = max(0, min(int(n), settings.TOP_CHARACTERS_LIMIT))
        return [ranking.name for ranking in self.get_scene_ranking()[:limit]]

    def get_last_message_stats(self) -> Dict[str, int]:
        return dict(self.last_message_stats)
