"""
Dialogue Engine - branching NPC conversations for a life-simulation game
"""

__version__ = "0.1.0"

from .engine import AvailabilityGate, ConversationEngine, GameState, ManualClock
from .graph import DialogueGraph, GraphLoader, GraphValidator, load_graph

__all__ = [
    "DialogueGraph",
    "GraphLoader",
    "GraphValidator",
    "load_graph",
    "ConversationEngine",
    "AvailabilityGate",
    "GameState",
    "ManualClock",
]
