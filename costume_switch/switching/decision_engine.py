"""
Switch decision engine.

Turns a winning candidate name into a throttled, deduplicated switch
verdict. Rules are applied in order and the first applicable one decides:

    1. no-profile / no-name          hard preconditions
    2. (resolve the outfit folder)
    3. already-active                same character (and folder) already issued
    4. outfit-unchanged              cached outfit is the one on screen
    5. global-cooldown               any switch too recent
    6. per-trigger-cooldown          this folder switched too recently
    7. failed-trigger-cooldown       this folder failed too recently
    8. switch

A focus lock bypasses rules 3-7. The engine never executes the switch
itself; callers report the outcome through ``record_success`` and
``record_failure``.
"""

import time
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Optional

from ..models import MatchKind, OutfitResolution, SwitchDecision, SwitchReason
from ..profiles.profile import Profile
from .message_state import MessageState
from .outfit_resolver import resolve_outfit

Clock = Callable[[], float]


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass
class RuntimeState:
    """Session-wide switch bookkeeping, reset when the chat changes. Timestamps are milliseconds."""
    last_issued_name: Optional[str] = None
    last_issued_folder: Optional[str] = None
    last_switch_ts: Optional[float] = None
    folder_last_success: Dict[str, float] = field(default_factory=dict)
    folder_last_failure: Dict[str, float] = field(default_factory=dict)
    outfit_cache: Dict[str, OutfitResolution] = field(default_factory=dict)

    def reset(self) -> None:
        self.last_issued_name = None
        self.last_issued_folder = None
        self.last_switch_ts = None
        self.folder_last_success.clear()
        self.folder_last_failure.clear()
        self.outfit_cache.clear()


def _within(now: float, since: Optional[float], window_ms: float) -> bool:
    return since is not None and window_ms > 0 and (now - since) < window_ms


class SwitchDecisionEngine:
    """Evaluates switch requests against a RuntimeState."""

    def __init__(self, runtime: Optional[RuntimeState] = None, clock: Optional[Clock] = None):
        self.runtime = runtime or RuntimeState()
        self.clock = clock or monotonic_ms
        self.logger = logging.getLogger(__name__)

    def evaluate(self, name: Optional[str], profile: Optional[Profile],
                 match_kind: Optional[MatchKind] = None, text: str = "",
                 roster: Optional[Iterable[str]] = None,
                 message_state: Optional[MessageState] = None,
                 is_lock: bool = False, now: Optional[float] = None) -> SwitchDecision:
        if profile is None:
            return SwitchDecision(should_switch=False, reason=SwitchReason.NO_PROFILE)
        name = " ".join(str(name or "").split())
        if not name:
            return SwitchDecision(should_switch=False, reason=SwitchReason.NO_NAME)

        now = self.clock() if now is None else now
        key = name.lower()
        if roster is None and message_state is not None:
            roster = message_state.scene_roster.members
        outfit = resolve_outfit(name, profile, text=text, match_kind=match_kind, roster=roster)
        folder = outfit.folder
        if message_state is not None:
            message_state.outfit_roster[key] = outfit

        def skip(reason: SwitchReason) -> SwitchDecision:
            self.logger.debug(f"Skipping switch to '{name}' ({folder}): {reason.value}")
            return SwitchDecision(should_switch=False, reason=reason, name=name, folder=folder, outfit=outfit)

        if is_lock:
            return SwitchDecision(should_switch=True, reason=SwitchReason.FOCUS_LOCK,
                                  name=name, folder=folder, outfit=outfit)

        runtime = self.runtime
        same_name = (runtime.last_issued_name or "").lower() == key
        if profile.outfits_enabled:
            if same_name and runtime.last_issued_folder == folder:
                return skip(SwitchReason.ALREADY_ACTIVE)
            cached = runtime.outfit_cache.get(key)
            if cached is not None and cached.folder == folder and runtime.last_issued_folder == folder:
                return skip(SwitchReason.OUTFIT_UNCHANGED)
        elif same_name:
            return skip(SwitchReason.ALREADY_ACTIVE)

        if _within(now, runtime.last_switch_ts, profile.global_cooldown_ms):
            return skip(SwitchReason.GLOBAL_COOLDOWN)
        if _within(now, runtime.folder_last_success.get(folder), profile.per_trigger_cooldown_ms):
            return skip(SwitchReason.PER_TRIGGER_COOLDOWN)
        if _within(now, runtime.folder_last_failure.get(folder), profile.failed_trigger_cooldown_ms):
            return skip(SwitchReason.FAILED_TRIGGER_COOLDOWN)

        return SwitchDecision(should_switch=True, reason=SwitchReason.SWITCH, name=name, folder=folder, outfit=outfit)

    def record_success(self, name: str, folder: str, outfit: Optional[OutfitResolution] = None,
                       now: Optional[float] = None) -> None:
        now = self.clock() if now is None else now
        runtime = self.runtime
        runtime.last_issued_name = name or None
        runtime.last_issued_folder = folder
        runtime.last_switch_ts = now
        runtime.folder_last_success[folder] = now
        if name and outfit is not None:
            runtime.outfit_cache[name.lower()] = outfit
        self.logger.info(f"Switched costume to '{folder}'" + (f" for '{name}'" if name else ""))

    def record_failure(self, folder: str, now: Optional[float] = None) -> None:
        now = self.clock() if now is None else now
        self.runtime.folder_last_failure[folder] = now
        self.logger.warning(f"Costume switch to '{folder}' failed; cooling down")
