"""
Core value types shared by the detection, scoring and switching layers.

Match kinds, decision reasons and outfit-resolution reasons are closed
enumerations. They subclass ``str`` so that records coming from the settings
store (plain strings) compare equal to the enum members.
"""

from enum import Enum
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional


class MatchKind(str, Enum):
    """Linguistic signal that produced a detection."""
    SPEAKER = "speaker"
    ATTRIBUTION = "attribution"
    ACTION = "action"
    PRONOUN = "pronoun"
    VOCATIVE = "vocative"
    POSSESSIVE = "possessive"
    NAME = "name"

    @classmethod
    def parse(cls, value: Any) -> Optional["MatchKind"]:
        """Return the member for ``value`` or None when it is not a known kind."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class SwitchReason(str, Enum):
    """Outcome codes of the switch pipeline."""
    SWITCH = "switch"
    FOCUS_LOCK = "focus-lock"
    NO_PROFILE = "no-profile"
    NO_NAME = "no-name"
    ALREADY_ACTIVE = "already-active"
    OUTFIT_UNCHANGED = "outfit-unchanged"
    GLOBAL_COOLDOWN = "global-cooldown"
    PER_TRIGGER_COOLDOWN = "per-trigger-cooldown"
    FAILED_TRIGGER_COOLDOWN = "failed-trigger-cooldown"
    # Raised by the streaming handler before the decision engine runs
    VETO = "veto"
    REPEAT_SUPPRESSED = "repeat-suppression"
    FOCUS_LOCKED = "focus-locked"
    SWITCH_PENDING = "switch-pending"


class OutfitReason(str, Enum):
    """How the outfit resolver arrived at a folder."""
    DEFAULT_FOLDER = "default-folder"
    TRIGGER_MATCH = "trigger-match"
    AWARENESS_MATCH = "awareness-match"
    VARIANT_DEFAULT = "variant-default"


@dataclass
class Match:
    """A single candidate name occurrence found by a buffer scan."""
    name: str
    match_kind: MatchKind
    match_index: int
    priority: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "matchKind": self.match_kind.value,
            "matchIndex": self.match_index,
            "priority": self.priority,
        }


@dataclass
class ScoredMatch(Match):
    score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["score"] = self.score
        return data


@dataclass
class SceneRanking:
    """Aggregate activity of one character across a scan."""
    name: str
    normalized: str
    count: int
    best_priority: int
    earliest_index: int
    latest_index: int
    in_roster: bool
    score: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class OutfitResolution:
    """Folder chosen for a character together with the evidence behind it."""
    folder: str
    reason: OutfitReason
    mapping: Optional[Dict[str, Any]] = None
    variant: Optional[Dict[str, Any]] = None
    trigger: Optional[str] = None
    awareness: Dict[str, List[str]] = field(default_factory=dict)
    label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "folder": self.folder,
            "reason": self.reason.value,
            "trigger": self.trigger,
            "awareness": dict(self.awareness),
            "label": self.label,
        }


@dataclass
class SwitchDecision:
    """Per-call verdict of the switch decision engine."""
    should_switch: bool
    reason: SwitchReason
    name: str = ""
    folder: str = ""
    outfit: Optional[OutfitResolution] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shouldSwitch": self.should_switch,
            "reason": self.reason.value,
            "name": self.name,
            "folder": self.folder,
            "outfit": self.outfit.to_dict() if self.outfit else None,
        }


@dataclass
class SwitchEvent:
    """One switch or skip outcome emitted by the streaming handler."""
    type: str
    reason: SwitchReason
    name: str = ""
    folder: str = ""
    match_kind: Optional[MatchKind] = None
    match_index: Optional[int] = None
    position: int = 0
    timestamp: float = 0.0
    message_key: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "reason": self.reason.value,
            "name": self.name,
            "folder": self.folder,
            "matchKind": self.match_kind.value if self.match_kind else None,
            "matchIndex": self.match_index,
            "position": self.position,
            "timestamp": self.timestamp,
            "messageKey": self.message_key,
        }


@dataclass
class TriggerResult:
    """Outcome of a manual trigger request."""
    key: str
    folder: str = ""
    dispatched: bool = False
    suggestion: Optional[str] = None
    reason: Optional[SwitchReason] = None
