import re
import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Pattern, Tuple

from config import settings
from .cache_keys import PatternFingerprint
from ..models import MatchKind
from ..profiles.profile import Profile
from ..profiles.profile_utils import parse_regex_literal

# Unicode-aware word edges: str patterns treat \w as any letter or digit in any script
BOUNDARY_START = r"(?<!\w)"
BOUNDARY_END = r"(?!\w)"

_FLAGS = re.IGNORECASE | re.MULTILINE


class ProfileCompileError(ValueError):
    """A profile pattern could not be compiled; detection stays disabled until it is fixed."""

    def __init__(self, message: str, pattern: Optional[str] = None):
        super().__init__(message)
        self.pattern = pattern


@dataclass(frozen=True)
class CompiledPatterns:
    """
    Opaque bundle of regexes built from one profile snapshot.

    ``signals`` holds the regexes for every enabled match kind. Each regex
    exposes the detected name through the ``name`` group, except pronoun
    regexes which expose a ``pronoun`` group.
    """
    fingerprint: str
    veto: Optional[Pattern]
    signals: Dict[MatchKind, Tuple[Pattern, ...]]
    canonical_names: Dict[str, str]
    ignored_names: FrozenSet[str] = frozenset()
    ignored_regexes: Tuple[Pattern, ...] = ()
    pronoun_requires_subject: bool = True
    names: Tuple[str, ...] = field(default_factory=tuple)

    def patterns_for(self, kind: MatchKind) -> Tuple[Pattern, ...]:
        return self.signals.get(kind, ())

    def canonical(self, matched: str) -> str:
        text = " ".join((matched or "").split())
        return self.canonical_names.get(text.lower(), text)

    def is_ignored(self, name: str) -> bool:
        lookup = (name or "").strip().lower()
        if not lookup:
            return True
        if lookup in self.ignored_names:
            return True
        return any(regex.fullmatch(name) for regex in self.ignored_regexes)

    def find_veto(self, text: str) -> Optional[re.Match]:
        if self.veto is None or not text:
            return None
        return self.veto.search(text)


def _alternation(words: List[str]) -> str:
    """One escaped alternation for a word list, longest entries first, duplicates merged."""
    unique = {}
    for word in words:
        cleaned = " ".join(str(word).split())
        if cleaned:
            unique.setdefault(cleaned.lower(), cleaned)
    ordered = sorted(unique.values(), key=lambda w: (-len(w), w.lower()))
    return "|".join(re.escape(word).replace(r"\ ", r"\s+") for word in ordered)


def _split_patterns(entries: List[str], label: str) -> Tuple[List[str], List[str]]:
    """Separate literal entries from ``/regex/`` entries (returned as validated bodies)."""
    literals, regex_bodies = [], []
    for entry in entries:
        text = str(entry).strip()
        if not text:
            continue
        if text.startswith("/") and len(text) > 1:
            try:
                regex = parse_regex_literal(text)
            except re.error as e:
                raise ProfileCompileError(f"Invalid {label} pattern {text!r}: {e}", pattern=text) from e
            if regex is None:
                raise ProfileCompileError(f"Unterminated {label} pattern {text!r}", pattern=text)
            regex_bodies.append(regex.pattern)
        else:
            literals.append(text)
    return literals, regex_bodies


def _compile(pattern: str, source: str, flags: int = _FLAGS) -> Pattern:
    try:
        return re.compile(pattern, flags)
    except re.error as e:
        raise ProfileCompileError(f"Failed to compile {source} pattern: {e}", pattern=pattern) from e


def compile_profile(profile: Profile) -> CompiledPatterns:
    """
    Build the detection regexes for ``profile``.

    Raises:
        ProfileCompileError: if a ``/regex/`` name, ignore or veto entry is
            invalid, or if an assembled signal regex fails to compile.
    """
    literal_names, regex_names = _split_patterns(profile.patterns, "name")
    name_parts = [_alternation(literal_names)] if literal_names else []
    name_parts.extend(f"(?:{body})" for body in regex_names)
    name_group = f"(?P<name>{'|'.join(name_parts)})" if name_parts else None

    veto_literals, veto_regexes = _split_patterns(profile.veto_patterns, "veto")
    veto_parts = [_alternation(veto_literals)] if veto_literals else []
    veto_parts.extend(f"(?:{body})" for body in veto_regexes)
    veto = _compile("|".join(veto_parts), "veto") if veto_parts else None

    ignore_literals, ignore_regexes = _split_patterns(profile.ignore_patterns, "ignore")

    attribution = _alternation(profile.attribution_verbs)
    action = _alternation(profile.action_verbs)
    all_verbs = _alternation(list(profile.attribution_verbs) + list(profile.action_verbs))
    pronouns = _alternation(profile.pronoun_vocabulary)
    gap = f"(?:\\s+[\\w'-]+){{0,{settings.MAX_ATTRIBUTION_GAP_WORDS}}}?"

    sources: Dict[MatchKind, List[str]] = {}
    if name_group:
        name = f"{BOUNDARY_START}{name_group}{BOUNDARY_END}"
        sources[MatchKind.SPEAKER] = [
            f"^[ \\t]*[\\[(\"'>-]*[ \\t]*{name}[\\])\"']*[ \\t]*:",
        ]
        if attribution:
            sources[MatchKind.ATTRIBUTION] = [
                f"{name}{gap},?\\s+(?:{attribution}){BOUNDARY_END}",
                f"{BOUNDARY_START}(?:{attribution})\\s+{name}",
            ]
        if action:
            sources[MatchKind.ACTION] = [
                f"{name}{gap}\\s+(?:{action}){BOUNDARY_END}",
            ]
        sources[MatchKind.VOCATIVE] = [
            f"[\"']\\s*{name}\\s*[,!?]",
            f",\\s*{name}[.!?]*\\s*[\"']",
        ]
        sources[MatchKind.POSSESSIVE] = [
            f"{BOUNDARY_START}{name_group}'s?{BOUNDARY_END}",
        ]
        sources[MatchKind.NAME] = [name]
    if pronouns and all_verbs:
        pronoun = f"{BOUNDARY_START}(?P<pronoun>{pronouns}){BOUNDARY_END}"
        sources[MatchKind.PRONOUN] = [
            f"{pronoun}(?:\\s+[\\w'-]+)?\\s+(?:{all_verbs}){BOUNDARY_END}",
        ]
        if attribution:
            sources[MatchKind.PRONOUN].append(f"{BOUNDARY_START}(?:{attribution})\\s+{pronoun}")

    signals: Dict[MatchKind, Tuple[Pattern, ...]] = {}
    for kind, patterns in sources.items():
        if not profile.is_enabled(kind):
            continue
        signals[kind] = tuple(_compile(p, kind.value) for p in patterns)

    canonical_names = {" ".join(n.split()).lower(): " ".join(n.split()) for n in reversed(literal_names)}

    return CompiledPatterns(
        fingerprint=PatternFingerprint.for_profile(profile),
        veto=veto,
        signals=signals,
        canonical_names=canonical_names,
        ignored_names=frozenset(" ".join(n.split()).lower() for n in ignore_literals),
        ignored_regexes=tuple(_compile(body, "ignore") for body in ignore_regexes),
        pronoun_requires_subject=profile.pronoun_requires_subject,
        names=tuple(literal_names),
    )


class PatternCompiler:
    """
    Holds the single active pattern bundle for the active profile.

    ``ensure`` recompiles only when the profile's pattern fingerprint changes.
    Compile failures are logged and recorded in ``last_error``; the active
    bundle is cleared so detection is disabled until the profile is fixed.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.active: Optional[CompiledPatterns] = None
        self.last_error: Optional[str] = None
        self._fingerprint: Optional[str] = None
        self.compile_count = 0

    def ensure(self, profile: Optional[Profile]) -> Optional[CompiledPatterns]:
        if profile is None:
            self.active = None
            self._fingerprint = None
            return None

        fingerprint = PatternFingerprint.for_profile(profile)
        if fingerprint == self._fingerprint:
            return self.active

        self._fingerprint = fingerprint
        try:
            self.active = compile_profile(profile)
            self.last_error = None
            self.compile_count += 1
            self.logger.info(
                f"Compiled profile '{profile.name}': {len(self.active.names)} names, "
                f"signals={[k.value for k in self.active.signals]}"
            )
        except ProfileCompileError as e:
            self.active = None
            self.last_error = str(e)
            self.logger.error(f"Profile '{profile.name}' failed to compile, detection disabled: {e}")
        return self.active

    def invalidate(self) -> None:
        self._fingerprint = None
        self.active = None
