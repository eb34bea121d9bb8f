import hashlib
import json
from typing import Any, Dict, Iterable, List

from config import settings


class PatternFingerprint:
    """
    Generates fingerprints for the parts of a profile that shape compiled patterns.

    Two profiles with the same fingerprint compile to identical pattern
    bundles, so the compiler can skip recompilation when only weights,
    cooldowns or mappings changed.

    Key Generation Strategy:
        - Only pattern-relevant fields are serialized (names, ignore list,
          veto phrases, detection toggles, vocabularies)
        - Lists are normalized (trimmed, lowercase where matching is
          case-insensitive) but keep their order, because name order decides
          alternation priority for same-length names
        - A version component invalidates fingerprints when the pattern
          construction itself changes
    """

    VERSION = "1.0"

    @staticmethod
    def _hash_content(content: str, length: int = settings.PATTERN_FINGERPRINT_LENGTH) -> str:
        return hashlib.sha256(content.encode('utf-8')).hexdigest()[:length]

    @staticmethod
    def _normalize_list(values: Iterable[str]) -> List[str]:
        return [str(v).strip() for v in values or [] if str(v).strip()]

    @classmethod
    def _serialize_profile(cls, profile) -> str:
        payload: Dict[str, Any] = {
            'patterns': cls._normalize_list(profile.patterns),
            'ignore': sorted(v.lower() for v in cls._normalize_list(profile.ignore_patterns)),
            'veto': cls._normalize_list(profile.veto_patterns),
            'detection': {k: bool(v) for k, v in sorted(profile.detection.items())},
            'pronouns': sorted(v.lower() for v in cls._normalize_list(profile.pronoun_vocabulary)),
            'attribution': sorted(v.lower() for v in cls._normalize_list(profile.attribution_verbs)),
            'action': sorted(v.lower() for v in cls._normalize_list(profile.action_verbs)),
            'pronoun_requires_subject': bool(profile.pronoun_requires_subject),
        }
        return json.dumps(payload, sort_keys=True)

    @classmethod
    def for_profile(cls, profile) -> str:
        """Fingerprint of everything that requires recompilation when it changes."""
        components = [
            f"patterns:{cls._hash_content(cls._serialize_profile(profile))}",
            f"v:{cls.VERSION}",
        ]
        return "|".join(components)
