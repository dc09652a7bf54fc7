"""
Exception types raised by the dialogue engine
"""

from typing import List, Optional


class DialogueError(Exception):
    """Base class for every error raised by the engine"""


class ContentError(DialogueError):
    """A dialogue graph is malformed (missing node, bad reference, bad file)"""


class MissingNodeError(ContentError):
    """A node ID was dereferenced but does not exist in the graph"""

    def __init__(self, graph_id: str, node_id: str, referenced_from: Optional[str] = None):
        self.graph_id = graph_id
        self.node_id = node_id
        self.referenced_from = referenced_from
        if referenced_from:
            message = f"Dialogue '{graph_id}': node '{referenced_from}' references missing node '{node_id}'"
        else:
            message = f"Dialogue '{graph_id}': node '{node_id}' not found"
        super().__init__(message)


class GraphLoadError(ContentError):
    """A dialogue file could not be turned into a graph"""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = list(errors or [])
        super().__init__(message)


class IllegalStateError(DialogueError):
    """An engine operation was called in a phase where it is not legal"""


class InvalidChoiceError(IllegalStateError):
    """A choice that is not part of the presented set was selected"""


class DialogueUnavailableError(DialogueError):
    """A dialogue cannot start because of its replay policy"""

    def __init__(self, graph_id: str, remaining_cooldown: float = 0.0):
        self.graph_id = graph_id
        self.remaining_cooldown = remaining_cooldown
        message = f"Dialogue '{graph_id}' is not available"
        if remaining_cooldown > 0:
            message += f" ({remaining_cooldown:.1f}s cooldown remaining)"
        super().__init__(message)
