import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, Iterator, Optional, Set

from config import settings
from ..models import OutfitResolution
from ..text_processing.normalizer import build_stream_buffer

MessageKey = Hashable


@dataclass
class SceneRoster:
    """
    Recency set of characters active in the current scene.

    Membership is lowercase. The roster shares one time-to-live counter,
    measured in messages: every accepted detection refreshes it, every new
    message decays it, and the roster empties when it reaches zero.
    """
    ttl: int = settings.DEFAULT_SCENE_ROSTER_TTL
    members: Set[str] = field(default_factory=set)
    turns_remaining: int = 0

    def add(self, name: str) -> None:
        lookup = (name or "").strip().lower()
        if not lookup:
            return
        self.members.add(lookup)
        self.turns_remaining = self.ttl

    def __contains__(self, name: Any) -> bool:
        return str(name or "").strip().lower() in self.members

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.members))

    def __len__(self) -> int:
        return len(self.members)

    def decayed(self, ttl: Optional[int] = None) -> "SceneRoster":
        """Copy for the next message with one turn consumed."""
        remaining = self.turns_remaining - 1
        roster = SceneRoster(ttl=ttl if ttl is not None else self.ttl)
        if remaining > 0 and self.members:
            roster.members = set(self.members)
            roster.turns_remaining = remaining
        return roster

    def clear(self) -> None:
        self.members.clear()
        self.turns_remaining = 0


@dataclass
class MessageState:
    """Streaming state for one in-flight generated message."""
    key: MessageKey
    buffer: str = ""
    processed_length: int = 0
    last_accepted_name: Optional[str] = None
    last_accepted_ts: Optional[float] = None
    last_accepted_index: int = -1
    last_subject: Optional[str] = None
    carried_subject: Optional[str] = None
    scene_roster: SceneRoster = field(default_factory=SceneRoster)
    outfit_roster: Dict[str, OutfitResolution] = field(default_factory=dict)
    vetoed: bool = False
    finalized: bool = False
    trimmed_chars: int = 0

    def append(self, text: str, max_chars: int) -> int:
        """
        Append normalized text, trimming the oldest content beyond ``max_chars``.

        Position cursors are shifted by the trimmed amount so they keep
        pointing at the same characters. Returns the number of characters trimmed.
        """
        combined_length = len(self.buffer) + len(text)
        self.buffer = build_stream_buffer(self.buffer, text, max_chars)
        trimmed = combined_length - len(self.buffer)
        if not trimmed:
            return 0
        self.trimmed_chars += trimmed
        self.processed_length = max(0, self.processed_length - trimmed)
        self.last_accepted_index = max(-1, self.last_accepted_index - trimmed)
        return trimmed

    @property
    def subject_fallback(self) -> Optional[str]:
        """Pronoun antecedent used when none precedes the pronoun in the buffer."""
        return self.last_subject or self.carried_subject

    @property
    def pending_length(self) -> int:
        return len(self.buffer) - self.processed_length

    def mark_processed(self) -> None:
        self.processed_length = max(self.processed_length, len(self.buffer))

    def decay_outfits(self, roster: SceneRoster) -> Dict[str, OutfitResolution]:
        if not roster.members:
            return {}
        return {name: outfit for name, outfit in self.outfit_roster.items() if name in roster.members}


class MessageStateStore:
    """
    Least Recently Used store of message states keyed by generation id.

    A new message is seeded with the previous message's scene roster and
    outfit roster after one turn of decay. Only ``max_size`` messages are
    tracked; the oldest are evicted.
    """

    def __init__(self, max_size: int = settings.MAX_TRACKED_MESSAGES):
        self.max_size = max(1, max_size)
        self._states: "OrderedDict[MessageKey, MessageState]" = OrderedDict()
        self.current_key: Optional[MessageKey] = None
        self.logger = logging.getLogger(__name__)

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, key: MessageKey) -> bool:
        return key in self._states

    def get(self, key: MessageKey) -> Optional[MessageState]:
        state = self._states.get(key)
        if state is not None:
            self._states.move_to_end(key)
        return state

    def latest(self) -> Optional[MessageState]:
        if not self._states:
            return None
        return self._states[next(reversed(self._states))]

    def start(self, key: MessageKey, roster_ttl: int = settings.DEFAULT_SCENE_ROSTER_TTL) -> MessageState:
        """Create (or reset) the state for ``key``, seeded from the most recent message."""
        previous = self.latest()
        if previous is not None and previous.key == key:
            previous = None if len(self._states) == 1 else self._states[list(self._states)[-2]]

        roster = previous.scene_roster.decayed(roster_ttl) if previous else SceneRoster(ttl=roster_ttl)
        state = MessageState(
            key=key,
            scene_roster=roster,
            outfit_roster=previous.decay_outfits(roster) if previous else {},
            carried_subject=(previous.last_subject or previous.carried_subject) if previous and roster.members else None,
        )
        self._put(key, state)
        self.current_key = key
        return state

    def current(self, roster_ttl: int = settings.DEFAULT_SCENE_ROSTER_TTL) -> MessageState:
        """State of the current generation, created lazily when unknown."""
        if self.current_key is not None:
            state = self.get(self.current_key)
            if state is not None:
                return state
            self.logger.debug(f"Message state for {self.current_key!r} missing, recreating")
            return self.start(self.current_key, roster_ttl)
        return self.start(f"auto-{len(self._states) + 1}", roster_ttl)

    def _put(self, key: MessageKey, state: MessageState) -> None:
        if key in self._states:
            del self._states[key]
        self._states[key] = state
        while len(self._states) > self.max_size:
            oldest_key = next(iter(self._states))
            del self._states[oldest_key]
            self.logger.debug(f"Evicted message state: {oldest_key!r}")

    def clear(self) -> None:
        self._states.clear()
        self.current_key = None
