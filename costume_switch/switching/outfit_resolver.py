import logging
from typing import Iterable, Optional, Set

from ..models import MatchKind, OutfitResolution, OutfitReason
from ..profiles.profile import CharacterMapping, OutfitVariant, Profile
from ..profiles.profile_utils import compose_costume_path, normalize_costume_folder, parse_trigger_pattern

logger = logging.getLogger(__name__)


def _lower_set(names: Iterable[str]) -> Set[str]:
    return {str(n).strip().lower() for n in names or () if str(n).strip()}


def _awareness_ok(variant: OutfitVariant, roster: Set[str]) -> bool:
    if variant.requires and not all(n.lower() in roster for n in variant.requires):
        return False
    if variant.requires_any and not any(n.lower() in roster for n in variant.requires_any):
        return False
    if variant.excludes and any(n.lower() in roster for n in variant.excludes):
        return False
    return True


def _first_trigger(variant: OutfitVariant, text: str) -> Optional[str]:
    for raw in variant.triggers:
        pattern = parse_trigger_pattern(raw)
        if pattern and pattern.search(text):
            return pattern.raw
    return None


def _default_resolution(name: str, profile: Profile, mapping: Optional[CharacterMapping]) -> OutfitResolution:
    folder = mapping.default_folder if mapping and mapping.default_folder else name
    return OutfitResolution(
        folder=compose_costume_path(profile.base_folder, folder),
        reason=OutfitReason.DEFAULT_FOLDER,
        mapping=mapping.to_dict() if mapping else None,
    )


def resolve_outfit(name: str, profile: Profile, text: str = "",
                   match_kind: Optional[MatchKind] = None,
                   roster: Optional[Iterable[str]] = None) -> OutfitResolution:
    """
    Pick the costume folder for ``name`` in the current context.

    Variants are tried in declared order. A variant is skipped when its
    folder is empty or its match-kind filter excludes ``match_kind``. Its
    triggers (case-insensitive literals or ``/regex/`` patterns) are checked
    against ``text``, first hit wins; its awareness predicates are checked
    against the scene ``roster``. The first variant passing both wins:

    - ``trigger-match`` when one of its triggers fired,
    - ``awareness-match`` when it has no triggers but awareness constraints held,
    - ``variant-default`` when it has neither (an unconditional variant).

    With outfits disabled, no mapping variants, or no matching variant the
    mapping's default folder is returned with reason ``default-folder``. An
    unmapped character uses its own name as the folder. Every folder is
    composed with the profile's base folder.
    """
    mapping = profile.find_mapping(name)
    if not profile.outfits_enabled or mapping is None or not mapping.variants:
        return _default_resolution(name, profile, mapping)

    roster_set = _lower_set(roster or ())
    kind = MatchKind.parse(match_kind) if match_kind is not None else None

    for variant in mapping.variants:
        folder = normalize_costume_folder(variant.folder)
        if not folder:
            continue
        if variant.match_kinds and kind not in variant.match_kinds:
            continue

        trigger = None
        if variant.triggers:
            trigger = _first_trigger(variant, text)
            if trigger is None:
                continue
        if not _awareness_ok(variant, roster_set):
            continue

        if trigger is not None:
            reason = OutfitReason.TRIGGER_MATCH
        elif variant.has_awareness:
            reason = OutfitReason.AWARENESS_MATCH
        else:
            reason = OutfitReason.VARIANT_DEFAULT

        logger.debug(f"Outfit for '{name}': {folder} ({reason.value})")
        return OutfitResolution(
            folder=compose_costume_path(profile.base_folder, folder),
            reason=reason,
            mapping=mapping.to_dict(),
            variant=variant.to_dict(),
            trigger=trigger,
            awareness={
                "requires": list(variant.requires),
                "requires_any": list(variant.requires_any),
                "excludes": list(variant.excludes),
            } if variant.has_awareness else {},
            label=variant.label or None,
        )

    return _default_resolution(name, profile, mapping)
