"""
Profile data model.

A profile is the configuration bundle the engine runs against: name
patterns, ignore and veto lists, detection toggles, scoring weights,
cooldowns, vocabularies and the character -> outfit mapping table. Profiles
live in the host's settings store as plain nested records; ``Profile.from_dict``
and ``Profile.to_dict`` convert between those records and the typed form the
engine uses. The engine treats a Profile as an immutable snapshot.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from config import settings
from ..models import MatchKind
from ..vocabulary import DEFAULT_ACTION_WORDS, DEFAULT_ATTRIBUTION_WORDS, DEFAULT_PRONOUNS

ProfileRecord = Dict[str, Any]


def _clean_str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def split_entries(value: Any) -> List[str]:
    """Accept a list or a comma/newline separated string and return trimmed, non-empty entries."""
    if value is None:
        return []
    if isinstance(value, str):
        raw_items: Iterable[Any] = value.replace("\r", "\n").replace(",", "\n").split("\n")
    elif isinstance(value, (list, tuple, set)):
        raw_items = value
    else:
        return []
    entries = []
    for item in raw_items:
        text = _clean_str(item)
        if text:
            entries.append(text)
    return entries


def unique_entries(values: Iterable[str]) -> List[str]:
    """Case-insensitive de-duplication keeping the first spelling."""
    seen = set()
    result = []
    for value in values:
        key = value.lower()
        if key not in seen:
            seen.add(key)
            result.append(value)
    return result


def _int(value: Any, default: int, minimum: Optional[int] = None) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if minimum is not None and number < minimum:
        return minimum
    return number


def _float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass
class OutfitVariant:
    """Alternate costume folder selected by triggers and/or scene awareness."""
    folder: str
    label: str = ""
    triggers: List[str] = field(default_factory=list)
    match_kinds: List[MatchKind] = field(default_factory=list)
    requires: List[str] = field(default_factory=list)
    requires_any: List[str] = field(default_factory=list)
    excludes: List[str] = field(default_factory=list)

    @property
    def has_awareness(self) -> bool:
        return bool(self.requires or self.requires_any or self.excludes)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "OutfitVariant":
        raw = raw if isinstance(raw, dict) else {}
        awareness = raw.get("awareness") if isinstance(raw.get("awareness"), dict) else {}
        match_kinds = []
        for entry in split_entries(raw.get("match_kinds", raw.get("matchKinds"))):
            kind = MatchKind.parse(entry)
            if kind and kind not in match_kinds:
                match_kinds.append(kind)
        triggers = split_entries(raw.get("triggers"))
        if not triggers and _clean_str(raw.get("trigger")):
            triggers = [_clean_str(raw.get("trigger"))]
        return cls(
            folder=_clean_str(raw.get("folder")),
            label=_clean_str(raw.get("label", raw.get("name"))),
            triggers=unique_entries(t for t in triggers if t),
            match_kinds=match_kinds,
            requires=split_entries(awareness.get("requires", raw.get("requires"))),
            requires_any=split_entries(awareness.get("requires_any", awareness.get("requiresAny",
                                                    raw.get("requires_any", raw.get("requiresAny"))))),
            excludes=split_entries(awareness.get("excludes", raw.get("excludes"))),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "folder": self.folder,
            "label": self.label,
            "triggers": list(self.triggers),
            "match_kinds": [kind.value for kind in self.match_kinds],
            "awareness": {
                "requires": list(self.requires),
                "requires_any": list(self.requires_any),
                "excludes": list(self.excludes),
            },
        }


@dataclass
class CharacterMapping:
    """Character name -> default folder plus ordered outfit variants."""
    name: str
    default_folder: str = ""
    variants: List[OutfitVariant] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "CharacterMapping":
        raw = raw if isinstance(raw, dict) else {}
        variants_raw = raw.get("variants", raw.get("outfits")) or []
        return cls(
            name=_clean_str(raw.get("name")),
            default_folder=_clean_str(raw.get("default_folder", raw.get("defaultFolder", raw.get("folder")))),
            variants=[OutfitVariant.from_dict(v) for v in variants_raw if isinstance(v, dict)],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "default_folder": self.default_folder,
            "variants": [variant.to_dict() for variant in self.variants],
        }


def normalize_trigger_entry(entry: Any) -> Dict[str, Any]:
    """
    Normalize a manual trigger entry.

    ``trigger``, ``triggers``, ``matcher`` and ``patterns`` are merged into a
    single alias list (case-insensitive de-duplication, first spelling wins).
    The legacy ``costume`` key is accepted in place of ``folder``.
    """
    entry = entry if isinstance(entry, dict) else {}
    aliases = [_clean_str(entry.get("trigger"))]
    for key in ("triggers", "matcher", "patterns"):
        aliases.extend(split_entries(entry.get(key)))
    aliases = unique_entries(a for a in aliases if a)
    folder = _clean_str(entry.get("folder")) or _clean_str(entry.get("costume"))
    return {
        "trigger": aliases[0] if aliases else "",
        "triggers": aliases,
        "folder": folder,
    }


def normalize_variant_entry(entry: Any) -> Dict[str, str]:
    entry = entry if isinstance(entry, dict) else {}
    return {"name": _clean_str(entry.get("name")), "folder": _clean_str(entry.get("folder"))}


@dataclass
class Profile:
    """Immutable-by-convention configuration snapshot for one compile cycle."""
    name: str = settings.DEFAULT_PROFILE_NAME
    patterns: List[str] = field(default_factory=list)
    ignore_patterns: List[str] = field(default_factory=list)
    veto_patterns: List[str] = field(default_factory=list)
    base_folder: str = ""
    detection: Dict[str, bool] = field(default_factory=lambda: dict(settings.DEFAULT_DETECTION_TOGGLES))
    priority_weights: Dict[str, int] = field(default_factory=lambda: dict(settings.DEFAULT_PRIORITY_WEIGHTS))
    pronoun_requires_subject: bool = settings.DEFAULT_PRONOUN_REQUIRES_SUBJECT
    scene_roster_enabled: bool = settings.DEFAULT_SCENE_ROSTER_ENABLED
    scene_roster_ttl: int = settings.DEFAULT_SCENE_ROSTER_TTL
    global_cooldown_ms: int = settings.DEFAULT_GLOBAL_COOLDOWN_MS
    per_trigger_cooldown_ms: int = settings.DEFAULT_PER_TRIGGER_COOLDOWN_MS
    failed_trigger_cooldown_ms: int = settings.DEFAULT_FAILED_TRIGGER_COOLDOWN_MS
    max_buffer_chars: int = settings.DEFAULT_MAX_BUFFER_CHARS
    token_process_threshold: int = settings.DEFAULT_TOKEN_PROCESS_THRESHOLD
    repeat_suppress_ms: int = settings.DEFAULT_REPEAT_SUPPRESS_MS
    detection_bias: float = settings.DEFAULT_DETECTION_BIAS
    roster_bonus: float = settings.DEFAULT_ROSTER_BONUS
    roster_priority_dropoff: float = settings.DEFAULT_ROSTER_PRIORITY_DROPOFF
    distance_penalty_weight: float = settings.DEFAULT_DISTANCE_PENALTY_WEIGHT
    pronoun_vocabulary: List[str] = field(default_factory=lambda: list(DEFAULT_PRONOUNS))
    attribution_verbs: List[str] = field(default_factory=lambda: list(DEFAULT_ATTRIBUTION_WORDS))
    action_verbs: List[str] = field(default_factory=lambda: list(DEFAULT_ACTION_WORDS))
    outfits_enabled: bool = settings.DEFAULT_OUTFITS_ENABLED
    mappings: List[CharacterMapping] = field(default_factory=list)
    triggers: List[Dict[str, Any]] = field(default_factory=list)
    variants: List[Dict[str, str]] = field(default_factory=list)

    def is_enabled(self, kind: MatchKind) -> bool:
        return bool(self.detection.get(kind.value, False))

    def priority_for(self, kind: MatchKind) -> int:
        return int(self.priority_weights.get(kind.value, settings.DEFAULT_PRIORITY_WEIGHTS[kind.value]))

    def find_mapping(self, name: str) -> Optional[CharacterMapping]:
        lookup = (name or "").strip().lower()
        if not lookup:
            return None
        for mapping in self.mappings:
            if mapping.name.lower() == lookup:
                return mapping
        return None

    def copy(self) -> "Profile":
        return copy.deepcopy(self)

    @classmethod
    def from_dict(cls, raw: Optional[ProfileRecord], name: Optional[str] = None) -> "Profile":
        """Build a profile from a settings-store record, filling defaults for anything missing."""
        raw = raw if isinstance(raw, dict) else {}
        defaults = cls()

        detection = dict(defaults.detection)
        for key, value in (raw.get("detection") or {}).items():
            kind = MatchKind.parse(key)
            if kind:
                detection[kind.value] = bool(value)

        weights = dict(defaults.priority_weights)
        for key, value in (raw.get("priority_weights") or {}).items():
            kind = MatchKind.parse(key)
            if kind:
                weights[kind.value] = _int(value, weights[kind.value])

        def vocab(key: str, fallback: List[str]) -> List[str]:
            if key not in raw:
                return list(fallback)
            return unique_entries(split_entries(raw.get(key)))

        return cls(
            name=_clean_str(name or raw.get("name")) or defaults.name,
            patterns=unique_entries(split_entries(raw.get("patterns"))),
            ignore_patterns=unique_entries(split_entries(raw.get("ignore_patterns"))),
            veto_patterns=unique_entries(split_entries(raw.get("veto_patterns"))),
            base_folder=_clean_str(raw.get("base_folder")),
            detection=detection,
            priority_weights=weights,
            pronoun_requires_subject=bool(raw.get("pronoun_requires_subject", defaults.pronoun_requires_subject)),
            scene_roster_enabled=bool(raw.get("scene_roster_enabled", defaults.scene_roster_enabled)),
            scene_roster_ttl=_int(raw.get("scene_roster_ttl"), defaults.scene_roster_ttl, minimum=1),
            global_cooldown_ms=_int(raw.get("global_cooldown_ms"), defaults.global_cooldown_ms, minimum=0),
            per_trigger_cooldown_ms=_int(raw.get("per_trigger_cooldown_ms"), defaults.per_trigger_cooldown_ms, minimum=0),
            failed_trigger_cooldown_ms=_int(raw.get("failed_trigger_cooldown_ms"), defaults.failed_trigger_cooldown_ms, minimum=0),
            max_buffer_chars=_int(raw.get("max_buffer_chars"), defaults.max_buffer_chars, minimum=0),
            token_process_threshold=_int(raw.get("token_process_threshold"), defaults.token_process_threshold, minimum=0),
            repeat_suppress_ms=_int(raw.get("repeat_suppress_ms"), defaults.repeat_suppress_ms, minimum=0),
            detection_bias=_float(raw.get("detection_bias"), defaults.detection_bias),
            roster_bonus=_float(raw.get("roster_bonus"), defaults.roster_bonus),
            roster_priority_dropoff=_float(raw.get("roster_priority_dropoff"), defaults.roster_priority_dropoff),
            distance_penalty_weight=_float(raw.get("distance_penalty_weight"), defaults.distance_penalty_weight),
            pronoun_vocabulary=vocab("pronoun_vocabulary", defaults.pronoun_vocabulary),
            attribution_verbs=vocab("attribution_verbs", defaults.attribution_verbs),
            action_verbs=vocab("action_verbs", defaults.action_verbs),
            outfits_enabled=bool(raw.get("outfits_enabled", defaults.outfits_enabled)),
            mappings=[CharacterMapping.from_dict(m) for m in (raw.get("mappings") or []) if isinstance(m, dict)],
            triggers=[normalize_trigger_entry(t) for t in (raw.get("triggers") or [])],
            variants=[normalize_variant_entry(v) for v in (raw.get("variants") or [])],
        )

    def to_dict(self) -> ProfileRecord:
        return {
            "name": self.name,
            "patterns": list(self.patterns),
            "ignore_patterns": list(self.ignore_patterns),
            "veto_patterns": list(self.veto_patterns),
            "base_folder": self.base_folder,
            "detection": dict(self.detection),
            "priority_weights": dict(self.priority_weights),
            "pronoun_requires_subject": self.pronoun_requires_subject,
            "scene_roster_enabled": self.scene_roster_enabled,
            "scene_roster_ttl": self.scene_roster_ttl,
            "global_cooldown_ms": self.global_cooldown_ms,
            "per_trigger_cooldown_ms": self.per_trigger_cooldown_ms,
            "failed_trigger_cooldown_ms": self.failed_trigger_cooldown_ms,
            "max_buffer_chars": self.max_buffer_chars,
            "token_process_threshold": self.token_process_threshold,
            "repeat_suppress_ms": self.repeat_suppress_ms,
            "detection_bias": self.detection_bias,
            "roster_bonus": self.roster_bonus,
            "roster_priority_dropoff": self.roster_priority_dropoff,
            "distance_penalty_weight": self.distance_penalty_weight,
            "pronoun_vocabulary": list(self.pronoun_vocabulary),
            "attribution_verbs": list(self.attribution_verbs),
            "action_verbs": list(self.action_verbs),
            "outfits_enabled": self.outfits_enabled,
            "mappings": [mapping.to_dict() for mapping in self.mappings],
            "triggers": [dict(t, triggers=list(t["triggers"])) for t in self.triggers],
            "variants": [dict(v) for v in self.variants],
        }
