"""
Profile model, settings migrations and costume-path helpers.
"""

from .profile import (
    Profile,
    CharacterMapping,
    OutfitVariant,
    normalize_trigger_entry,
    normalize_variant_entry,
)
from .profile_utils import (
    TriggerPattern,
    normalize_costume_folder,
    compose_costume_path,
    parse_trigger_pattern,
    find_costume_for_trigger,
    find_costume_for_text,
    suggest_trigger,
)
from .migrations import (
    SettingsMigrationError,
    migrate,
    ensure_settings_shape,
    load_active_profile,
)

__all__ = [
    'Profile',
    'CharacterMapping',
    'OutfitVariant',
    'normalize_trigger_entry',
    'normalize_variant_entry',
    'TriggerPattern',
    'normalize_costume_folder',
    'compose_costume_path',
    'parse_trigger_pattern',
    'find_costume_for_trigger',
    'find_costume_for_text',
    'suggest_trigger',
    'SettingsMigrationError',
    'migrate',
    'ensure_settings_shape',
    'load_active_profile',
]
