import re
import logging
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Pattern

from fuzzywuzzy import fuzz, process

from config import settings
from .profile import Profile
from ..vocabulary import is_outfit_action_verb

logger = logging.getLogger(__name__)

_REGEX_LITERAL = re.compile(r"^/(.+)/([a-z]*)$", re.DOTALL)
_DUPLICATE_SLASHES = re.compile(r"/{2,}")

# JavaScript-style flags accepted after a /pattern/ literal
_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "u": 0,
    "g": 0,
    "y": 0,
}


class TriggerPattern(NamedTuple):
    """A parsed trigger: either a lowercase literal or a compiled regex."""
    type: str
    raw: str
    value: str = ""
    regex: Optional[Pattern] = None

    def search(self, text: str) -> bool:
        if self.type == "regex":
            return bool(self.regex.search(text or ""))
        return self.value in (text or "").lower()


def normalize_costume_folder(raw_folder: Any) -> str:
    """Trim a folder path: no leading/trailing slashes, forward slashes only, no duplicates."""
    if not raw_folder:
        return ""
    folder = str(raw_folder).strip()
    folder = folder.replace("\\", "/")
    folder = _DUPLICATE_SLASHES.sub("/", folder)
    return folder.strip("/").strip()


def compose_costume_path(base_folder: str = "", variant_folder: str = "") -> str:
    base = normalize_costume_folder(base_folder)
    variant = normalize_costume_folder(variant_folder)
    if base and variant:
        return _DUPLICATE_SLASHES.sub("/", f"{base}/{variant}")
    return variant or base


def parse_regex_literal(raw: str) -> Optional[Pattern]:
    """
    Compile a ``/body/flags`` literal with case-insensitivity always merged in.

    Returns None when ``raw`` is not a regex literal. Raises ``re.error`` when
    the body or the flags are invalid.
    """
    match = _REGEX_LITERAL.match(raw or "")
    if not match:
        return None
    body, flag_text = match.groups()
    flags = re.IGNORECASE
    for flag in flag_text:
        if flag not in _FLAG_MAP:
            raise re.error(f"unsupported regex flag '{flag}'")
        flags |= _FLAG_MAP[flag]
    return re.compile(body, flags)


def parse_trigger_pattern(raw: Any) -> Optional[TriggerPattern]:
    """
    Parse a trigger string.

    Plain strings become case-insensitive literals. ``/pattern/flags`` becomes a
    regex with the ``i`` flag always merged in. Invalid or unterminated regex
    triggers return None.
    """
    text = str(raw or "").strip()
    if not text:
        return None
    if text.startswith("/"):
        try:
            regex = parse_regex_literal(text)
        except re.error as e:
            logger.warning(f"Ignoring invalid regex trigger {text!r}: {e}")
            return None
        if regex is None:
            logger.warning(f"Ignoring unterminated regex trigger {text!r}")
            return None
        return TriggerPattern(type="regex", raw=text, regex=regex)
    return TriggerPattern(type="literal", raw=text, value=text.lower())


def _iter_trigger_entries(profile: Profile) -> Iterable[Dict[str, Any]]:
    for entry in profile.triggers or []:
        if isinstance(entry, dict):
            yield entry


def strip_action_verb(key: str) -> str:
    """Drop a leading outfit action verb: ``"change battle"`` -> ``"battle"``."""
    parts = str(key or "").strip().split(None, 1)
    if len(parts) == 2 and is_outfit_action_verb(parts[0]):
        return parts[1].strip()
    return str(key or "").strip()


def find_costume_for_trigger(profile: Profile, key: Any) -> str:
    """Exact, case-insensitive lookup of a manual trigger alias; returns the composed folder or ''."""
    if profile is None:
        return ""
    lookup = strip_action_verb(key).lower()
    if not lookup:
        return ""

    for entry in _iter_trigger_entries(profile):
        aliases = entry.get("triggers") or [entry.get("trigger", "")]
        if any(str(alias).strip().lower() == lookup for alias in aliases if alias):
            return compose_costume_path(profile.base_folder, entry.get("folder", ""))

    for variant in profile.variants or []:
        if variant.get("name", "").strip().lower() == lookup and variant.get("folder"):
            return compose_costume_path(profile.base_folder, variant["folder"])

    return ""


def find_costume_for_text(profile: Profile, text: str) -> Optional[Dict[str, str]]:
    """Return ``{costume, trigger, type}`` for the first trigger entry whose pattern occurs in ``text``."""
    if profile is None or not text:
        return None

    for entry in _iter_trigger_entries(profile):
        if not entry.get("folder"):
            continue
        for alias in entry.get("triggers") or [entry.get("trigger", "")]:
            pattern = parse_trigger_pattern(alias)
            if pattern and pattern.search(text):
                return {
                    "costume": compose_costume_path(profile.base_folder, entry["folder"]),
                    "trigger": pattern.raw,
                    "type": pattern.type,
                }
    return None


def known_trigger_names(profile: Profile) -> List[str]:
    names = []
    for entry in _iter_trigger_entries(profile):
        names.extend(alias for alias in entry.get("triggers") or [] if alias and not alias.startswith("/"))
    names.extend(v["name"] for v in profile.variants or [] if v.get("name"))
    return names


def suggest_trigger(profile: Profile, key: Any, cutoff: int = settings.TRIGGER_SUGGESTION_CUTOFF) -> Optional[str]:
    """Closest known trigger alias for a failed lookup, or None when nothing is close enough."""
    lookup = strip_action_verb(key)
    choices = known_trigger_names(profile) if profile else []
    if not lookup or not choices:
        return None
    best = process.extractOne(lookup, choices, scorer=fuzz.ratio)
    if best and best[1] >= cutoff:
        return best[0]
    return None
