import logging
from typing import Dict, List, Optional

from config import settings
from .pattern_compiler import CompiledPatterns
from ..models import Match, MatchKind

logger = logging.getLogger(__name__)

# Scan order; pronouns come last because they resolve against the others
_NAMED_KINDS = (
    MatchKind.SPEAKER,
    MatchKind.ATTRIBUTION,
    MatchKind.ACTION,
    MatchKind.VOCATIVE,
    MatchKind.POSSESSIVE,
    MatchKind.NAME,
)


def default_priorities() -> Dict[MatchKind, int]:
    return {kind: settings.DEFAULT_PRIORITY_WEIGHTS[kind.value] for kind in MatchKind}


def detect_matches(text: str, compiled: Optional[CompiledPatterns],
                   priorities: Optional[Dict[MatchKind, int]] = None,
                   last_subject: Optional[str] = None) -> List[Match]:
    """
    Find every candidate name mention in ``text``.

    Each enabled signal kind scans the whole buffer independently, so one
    scan can return several detections per kind and per name. Ignored names
    never produce a detection.

    Pronoun detections are resolved to the closest preceding non-pronoun
    detection in the same buffer, falling back to ``last_subject`` (the
    session's most recent subject). When neither exists the pronoun is
    dropped, unless the profile disabled ``pronoun_requires_subject``, in
    which case it is reported with an empty name. Scorers skip empty names.

    Args:
        text: Normalized buffer contents
        compiled: Pattern bundle; None means detection is disabled
        priorities: Priority per match kind (defaults from settings)
        last_subject: Most recent non-pronoun subject seen earlier in the session

    Returns:
        Detections in scan order (grouped by kind, not sorted by position)
    """
    if not text or compiled is None:
        return []
    priorities = priorities or default_priorities()

    matches: List[Match] = []
    for kind in _NAMED_KINDS:
        for regex in compiled.patterns_for(kind):
            for found in regex.finditer(text):
                name = compiled.canonical(found.group("name"))
                if compiled.is_ignored(name):
                    continue
                matches.append(Match(
                    name=name,
                    match_kind=kind,
                    match_index=found.start("name"),
                    priority=priorities.get(kind, 0),
                ))

    pronoun_patterns = compiled.patterns_for(MatchKind.PRONOUN)
    if pronoun_patterns:
        subjects = sorted(
            (m for m in matches if m.match_kind != MatchKind.PRONOUN),
            key=lambda m: m.match_index,
        )
        for regex in pronoun_patterns:
            for found in regex.finditer(text):
                position = found.start("pronoun")
                subject = _subject_before(subjects, position) or last_subject
                if not subject:
                    if compiled.pronoun_requires_subject:
                        logger.debug(f"Dropping unresolved pronoun '{found.group('pronoun')}' at {position}")
                        continue
                    subject = ""
                matches.append(Match(
                    name=subject,
                    match_kind=MatchKind.PRONOUN,
                    match_index=position,
                    priority=priorities.get(MatchKind.PRONOUN, 0),
                ))

    return matches


def _subject_before(subjects: List[Match], position: int) -> Optional[str]:
    candidate = None
    for match in subjects:
        if match.match_index >= position:
            break
        candidate = match.name
    return candidate


def latest_subject(matches: List[Match]) -> Optional[str]:
    """Name of the right-most non-pronoun detection, used as the next pronoun subject."""
    named = [m for m in matches if m.match_kind != MatchKind.PRONOUN and m.name]
    if not named:
        return None
    return max(named, key=lambda m: m.match_index).name


def mention_counts(matches: List[Match]) -> Dict[str, int]:
    """
    Mentions per character. Detections of different kinds at the same
    position are one mention ("Alice said" is both attribution and name).
    """
    names: Dict[str, str] = {}
    positions: Dict[str, set] = {}
    for match in matches:
        if not match.name:
            continue
        key = match.name.lower()
        names.setdefault(key, match.name)
        positions.setdefault(key, set()).add(match.match_index)
    return {names[key]: len(indexes) for key, indexes in positions.items()}
