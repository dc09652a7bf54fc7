"""
Dialogue graph model, loading and validation
"""

from .loader import GraphLoader, load_directory, load_graph
from .model import (
    Choice,
    CompleteQuest,
    CustomCondition,
    CustomEvent,
    DialogueGraph,
    GiveItem,
    HasItem,
    MinimumLevel,
    Node,
    PresentRiddle,
    QuestActive,
    QuestCompleted,
    StartQuest,
    dispatch,
    evaluate,
)
from .validator import GraphValidator, ValidationReport, validate

__all__ = [
    "DialogueGraph",
    "Node",
    "Choice",
    # Preconditions
    "QuestActive",
    "QuestCompleted",
    "HasItem",
    "MinimumLevel",
    "CustomCondition",
    # Actions
    "StartQuest",
    "CompleteQuest",
    "GiveItem",
    "PresentRiddle",
    "CustomEvent",
    "evaluate",
    "dispatch",
    "GraphLoader",
    "load_graph",
    "load_directory",
    "GraphValidator",
    "ValidationReport",
    "validate",
]
