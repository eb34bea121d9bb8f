"""
Streaming speaker attribution and costume switching.

Watches a language-model response as it streams in, works out which
character is speaking or acting, and switches the companion costume folder
to match.
"""

from .models import (
    MatchKind,
    SwitchReason,
    OutfitReason,
    Match,
    ScoredMatch,
    SceneRanking,
    OutfitResolution,
    SwitchDecision,
    SwitchEvent,
    TriggerResult,
)
from .profiles import Profile, migrate, ensure_settings_shape, load_active_profile
from .switching import CostumeSwitchEngine, SwitchDecisionEngine, RuntimeState, resolve_outfit
from .tester import SimulationReport, simulate_stream

__version__ = "1.0.0"

__all__ = [
    'MatchKind',
    'SwitchReason',
    'OutfitReason',
    'Match',
    'ScoredMatch',
    'SceneRanking',
    'OutfitResolution',
    'SwitchDecision',
    'SwitchEvent',
    'TriggerResult',
    'Profile',
    'migrate',
    'ensure_settings_shape',
    'load_active_profile',
    'CostumeSwitchEngine',
    'SwitchDecisionEngine',
    'RuntimeState',
    'resolve_outfit',
    'SimulationReport',
    'simulate_stream',
]
