"""
Switching layer: outfit resolution, switch decisions and the streaming engine.
"""

from .outfit_resolver import resolve_outfit
from .decision_engine import RuntimeState, SwitchDecisionEngine
from .message_state import SceneRoster, MessageState, MessageStateStore
from .stream_engine import CostumeSwitchEngine

__all__ = [
    'resolve_outfit',
    'RuntimeState',
    'SwitchDecisionEngine',
    'SceneRoster',
    'MessageState',
    'MessageStateStore',
    'CostumeSwitchEngine',
]
