"""
Shared fixtures for the costume switch tests.

Profiles are built through ``make_profile`` so each test states only the
settings it cares about; everything else uses the engine defaults.
"""

import logging
from typing import Any, Callable, Dict, List

import pytest

from costume_switch.profiles.profile import CharacterMapping, OutfitVariant, Profile
from costume_switch.tester import SimulatedClock

logging.basicConfig(level=logging.INFO)


@pytest.fixture
def make_profile() -> Callable[..., Profile]:
    """Factory for profiles with Alice and Bob as known names."""

    def factory(**overrides: Any) -> Profile:
        values: Dict[str, Any] = {"patterns": ["Alice", "Bob"]}
        values.update(overrides)
        return Profile(**values)

    return factory


@pytest.fixture
def streaming_profile(make_profile) -> Profile:
    """Profile tuned for per-token tests: scan every token, no throttling."""
    return make_profile(
        token_process_threshold=0,
        global_cooldown_ms=0,
        per_trigger_cooldown_ms=0,
        repeat_suppress_ms=0,
    )


@pytest.fixture
def winter_mapping() -> CharacterMapping:
    return CharacterMapping(
        name="Alice",
        default_folder="alice/base",
        variants=[OutfitVariant(folder="alice/winter", label="Winter", triggers=["winter"])],
    )


@pytest.fixture
def fake_clock() -> SimulatedClock:
    """Millisecond clock that only moves when the test advances it."""
    return SimulatedClock(start_ms=10_000)


@pytest.fixture
def recorded_switches() -> List[str]:
    return []


@pytest.fixture
def async_executor(recorded_switches):
    """Async switch executor that records every folder it receives."""

    async def execute(folder: str) -> None:
        recorded_switches.append(folder)

    return execute
