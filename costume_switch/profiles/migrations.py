"""
Versioned settings migrations.

Each step is a pure function taking the record shape of version N and
returning the shape of version N + 1. ``migrate`` detects the starting
version when it is not supplied and runs the chain up to
``settings.SETTINGS_SCHEMA_VERSION``.

Schema history:
    1. Flat legacy record: ``enabled``, ``characterName``/``character``,
       ``defaultCostume``/``baseFolder``, ``variants``, ``triggers``.
    2. Single nested profile: ``{version, enabled, profile: {...}}``.
    3. Named profiles: ``{version, enabled, active_profile, profiles: {...}}``.
    4. Every profile carries the full detection/scoring shape; the legacy
       ``character`` field becomes a name pattern.
"""

import copy
import logging
from typing import Any, Callable, Dict, Optional

from config import settings
from .profile import Profile, normalize_trigger_entry, normalize_variant_entry

logger = logging.getLogger(__name__)

SettingsRecord = Dict[str, Any]


class SettingsMigrationError(ValueError):
    """Raised when a settings record claims a version this code cannot read."""


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def detect_version(raw: SettingsRecord) -> int:
    version = raw.get("version")
    if isinstance(version, int) and not isinstance(version, bool) and version > 0:
        return version
    if isinstance(raw.get("profiles"), dict):
        return 3
    if isinstance(raw.get("profile"), dict):
        return 2
    return 1


def _v1_to_v2(raw: SettingsRecord) -> SettingsRecord:
    base_folder = raw.get("baseFolder", raw.get("base_folder", raw.get("defaultCostume")))
    return {
        "version": 2,
        "enabled": bool(raw.get("enabled")),
        "profile": {
            "character": _clean(raw.get("character", raw.get("characterName"))),
            "base_folder": _clean(base_folder),
            "variants": [normalize_variant_entry(v) for v in raw.get("variants") or []],
            "triggers": [normalize_trigger_entry(t) for t in raw.get("triggers") or []],
        },
    }


def _v2_to_v3(raw: SettingsRecord) -> SettingsRecord:
    profile = copy.deepcopy(raw.get("profile") or {})
    if "baseFolder" in profile and "base_folder" not in profile:
        profile["base_folder"] = profile.pop("baseFolder")
    return {
        "version": 3,
        "enabled": bool(raw.get("enabled")),
        "active_profile": settings.DEFAULT_PROFILE_NAME,
        "profiles": {settings.DEFAULT_PROFILE_NAME: profile},
    }


def _v3_to_v4(raw: SettingsRecord) -> SettingsRecord:
    profiles = {}
    for name, record in (raw.get("profiles") or {}).items():
        record = copy.deepcopy(record) if isinstance(record, dict) else {}
        if "baseFolder" in record and "base_folder" not in record:
            record["base_folder"] = record.pop("baseFolder")
        character = _clean(record.pop("character", ""))
        patterns = list(record.get("patterns") or [])
        if character and character.lower() not in {str(p).lower() for p in patterns}:
            patterns.insert(0, character)
        record["patterns"] = patterns
        profiles[name] = record
    active = _clean(raw.get("active_profile", raw.get("activeProfile")))
    return {
        "version": 4,
        "enabled": bool(raw.get("enabled")),
        "active_profile": active or settings.DEFAULT_PROFILE_NAME,
        "profiles": profiles,
    }


MIGRATIONS: Dict[int, Callable[[SettingsRecord], SettingsRecord]] = {
    1: _v1_to_v2,
    2: _v2_to_v3,
    3: _v3_to_v4,
}


def migrate(raw: Optional[SettingsRecord], from_version: Optional[int] = None) -> SettingsRecord:
    """Run the migration chain from ``from_version`` (detected if omitted) to the current schema."""
    record = copy.deepcopy(raw) if isinstance(raw, dict) else {}
    version = from_version if from_version is not None else detect_version(record)
    if version < 1:
        raise SettingsMigrationError(f"Invalid settings version {version}")
    if version > settings.SETTINGS_SCHEMA_VERSION:
        raise SettingsMigrationError(
            f"Settings version {version} is newer than supported version {settings.SETTINGS_SCHEMA_VERSION}"
        )

    while version < settings.SETTINGS_SCHEMA_VERSION:
        step = MIGRATIONS[version]
        record = step(record)
        logger.debug(f"Migrated settings record from v{version} to v{record['version']}")
        version = record["version"]

    record["version"] = settings.SETTINGS_SCHEMA_VERSION
    return record


def ensure_settings_shape(raw: Optional[SettingsRecord] = None) -> SettingsRecord:
    """
    Migrate and normalize a settings record.

    Every profile is round-tripped through ``Profile`` so missing fields get
    defaults; keys the profile model does not know about are preserved.
    """
    record = migrate(raw)
    profiles = {}
    for name, profile_record in (record.get("profiles") or {}).items():
        profile_record = profile_record if isinstance(profile_record, dict) else {}
        normalized = Profile.from_dict(profile_record, name=name).to_dict()
        extras = {k: v for k, v in profile_record.items() if k not in normalized}
        normalized.update(extras)
        profiles[name] = normalized

    if not profiles:
        profiles[settings.DEFAULT_PROFILE_NAME] = Profile().to_dict()

    active = record.get("active_profile")
    if active not in profiles:
        active = next(iter(profiles))

    return {
        "version": settings.SETTINGS_SCHEMA_VERSION,
        "enabled": bool(record.get("enabled")),
        "active_profile": active,
        "profiles": profiles,
    }


def load_active_profile(raw: Optional[SettingsRecord]) -> Profile:
    """Return the active ``Profile`` from any supported settings record."""
    shaped = ensure_settings_shape(raw)
    name = shaped["active_profile"]
    return Profile.from_dict(shaped["profiles"][name], name=name)
