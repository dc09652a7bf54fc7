"""
Runtime conversation engine and its ports
"""

from .availability import AvailabilityGate, PlayRecord
from .clock import Clock, FrameClock, ManualClock
from .conversation import ConversationEngine, ConversationSession, EndReason, Phase, Prompt
from .ports import ActionPort, ConditionPort, EventRecorder, PresentationPort
from .state import GameState

__all__ = [
    "ConversationEngine",
    "ConversationSession",
    "Phase",
    "Prompt",
    "EndReason",
    "AvailabilityGate",
    "PlayRecord",
    "Clock",
    "ManualClock",
    "FrameClock",
    "ConditionPort",
    "ActionPort",
    "PresentationPort",
    "EventRecorder",
    "GameState",
]
