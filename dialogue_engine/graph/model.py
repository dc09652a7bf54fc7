"""
Dialogue graph classes: graphs, nodes, choices, actions and preconditions
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

if TYPE_CHECKING:
    from dialogue_engine.engine.ports import ActionPort, ConditionPort


CAMERA_MODES = ("default", "close_up", "medium_shot", "wide_shot", "custom")


# Preconditions

@dataclass(frozen=True)
class QuestActive:
    """Holds while the player has the quest active"""
    quest_id: str
    kind = "quest_active"

    def evaluate(self, port: "ConditionPort") -> bool:
        return port.is_quest_active(self.quest_id)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "quest": self.quest_id}

    def describe(self) -> str:
        return f"quest_active:{self.quest_id}"


@dataclass(frozen=True)
class QuestCompleted:
    """Holds once the player has completed the quest"""
    quest_id: str
    kind = "quest_done"

    def evaluate(self, port: "ConditionPort") -> bool:
        return port.is_quest_completed(self.quest_id)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "quest": self.quest_id}

    def describe(self) -> str:
        return f"quest_done:{self.quest_id}"


@dataclass(frozen=True)
class HasItem:
    """Holds when the player carries at least `quantity` of the item"""
    item_id: str
    quantity: int = 1
    kind = "has_item"

    def evaluate(self, port: "ConditionPort") -> bool:
        return port.item_count(self.item_id) >= self.quantity

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "item": self.item_id, "quantity": self.quantity}

    def describe(self) -> str:
        if self.quantity == 1:
            return f"has_item:{self.item_id}"
        return f"has_item:{self.item_id}*{self.quantity}"


@dataclass(frozen=True)
class MinimumLevel:
    """Holds when the player level is at least `level`"""
    level: int
    kind = "level"

    def evaluate(self, port: "ConditionPort") -> bool:
        return port.player_level() >= self.level

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "level": self.level}

    def describe(self) -> str:
        return f"level>={self.level}"


@dataclass(frozen=True)
class CustomCondition:
    """Game-specific predicate resolved by the host"""
    name: str
    payload: Tuple[Tuple[str, Any], ...] = ()
    kind = "custom"

    def evaluate(self, port: "ConditionPort") -> bool:
        return port.check_custom(self.name, dict(self.payload))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.kind, "name": self.name}
        if self.payload:
            data["payload"] = dict(self.payload)
        return data

    def describe(self) -> str:
        return f"custom:{self.name}"


# Actions

@dataclass(frozen=True)
class StartQuest:
    quest_id: str
    kind = "start_quest"

    def apply(self, port: "ActionPort") -> None:
        port.start_quest(self.quest_id)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "quest": self.quest_id}

    def describe(self) -> str:
        return f"start_quest {self.quest_id}"


@dataclass(frozen=True)
class CompleteQuest:
    quest_id: str
    kind = "complete_quest"

    def apply(self, port: "ActionPort") -> None:
        port.complete_quest(self.quest_id)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "quest": self.quest_id}

    def describe(self) -> str:
        return f"complete_quest {self.quest_id}"


@dataclass(frozen=True)
class GiveItem:
    item_id: str
    quantity: int = 1
    kind = "give_item"

    def apply(self, port: "ActionPort") -> None:
        port.give_item(self.item_id, self.quantity)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "item": self.item_id, "quantity": self.quantity}

    def describe(self) -> str:
        return f"give_item {self.item_id} {self.quantity}"


@dataclass(frozen=True)
class PresentRiddle:
    riddle_id: str
    kind = "present_riddle"

    def apply(self, port: "ActionPort") -> None:
        port.present_riddle(self.riddle_id)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "riddle": self.riddle_id}

    def describe(self) -> str:
        return f"present_riddle {self.riddle_id}"


@dataclass(frozen=True)
class CustomEvent:
    """Named game-specific hook, forwarded to the host's event sink"""
    name: str
    payload: Tuple[Tuple[str, Any], ...] = ()
    kind = "event"

    def apply(self, port: "ActionPort") -> None:
        port.custom_event(self.name, dict(self.payload))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.kind, "name": self.name}
        if self.payload:
            data["payload"] = dict(self.payload)
        return data

    def describe(self) -> str:
        return f"event {self.name}"


def evaluate(precondition, port: "ConditionPort") -> bool:
    """Evaluate a single precondition against the host's condition port"""
    return bool(precondition.evaluate(port))


def dispatch(action, port: "ActionPort") -> None:
    """Send a single action to the host's action port"""
    action.apply(port)


def all_met(conditions, port: "ConditionPort") -> bool:
    """True when every precondition holds (an empty set always holds)"""
    return all(evaluate(condition, port) for condition in conditions)


@dataclass(frozen=True)
class Choice:
    """Represents a player choice in dialogue"""
    text: str
    target_node_id: str
    conditions: Tuple[Any, ...] = ()
    style: Tuple[Tuple[str, Any], ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        data: Dict[str, Any] = {
            "text": self.text,
            "target": self.target_node_id,
        }
        if self.conditions:
            data["conditions"] = [c.to_dict() for c in self.conditions]
        if self.style:
            data["style"] = dict(self.style)
        return data


@dataclass(frozen=True)
class Node:
    """Represents a node in the dialogue graph"""
    node_id: str
    speaker: str = ""
    text: str = ""
    choices: Tuple[Choice, ...] = ()
    next_node_id: str = ""
    actions: Tuple[Any, ...] = ()
    conditions: Tuple[Any, ...] = ()
    portrait: Optional[str] = None
    voice_line: Optional[str] = None
    voice_blip: Optional[str] = None
    animation_trigger: str = ""
    delay_before_show: float = 0.0
    auto_advance: float = 0.0

    def is_branch(self) -> bool:
        """Check if this node has choices (is a branching point)"""
        return len(self.choices) > 0

    def is_terminal(self) -> bool:
        """Check if this node is terminal (no choices and no next node)"""
        return len(self.choices) == 0 and not self.next_node_id

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        data: Dict[str, Any] = {
            "id": self.node_id,
            "speaker": self.speaker,
            "text": self.text,
        }
        if self.choices:
            data["choices"] = [c.to_dict() for c in self.choices]
        if self.next_node_id:
            data["next"] = self.next_node_id
        if self.actions:
            data["actions"] = [a.to_dict() for a in self.actions]
        if self.conditions:
            data["conditions"] = [c.to_dict() for c in self.conditions]
        for key, value in (
            ("portrait", self.portrait),
            ("voice_line", self.voice_line),
            ("voice_blip", self.voice_blip),
            ("animation", self.animation_trigger),
        ):
            if value:
                data[key] = value
        if self.delay_before_show:
            data["delay"] = self.delay_before_show
        if self.auto_advance:
            data["auto_advance"] = self.auto_advance
        return data


@dataclass(frozen=True)
class DialogueGraph:
    """A complete dialogue tree for an NPC, shared read-only by conversations"""
    graph_id: str
    nodes: Tuple[Node, ...] = ()
    start_node_id: str = "start"
    name: str = ""
    description: str = ""
    repeatable: bool = True
    cooldown_seconds: float = 0.0
    once_per_session: bool = False
    background_music: Optional[str] = None
    ambient_sound: Optional[str] = None
    camera_mode: str = "default"
    camera_distance: float = 3.0
    _index: Dict[str, Node] = field(default=None, init=False, repr=False, compare=False, hash=False)

    def __post_init__(self):
        index: Dict[str, Node] = {}
        for node in self.nodes:
            # First declaration wins; later duplicates are a validator error
            index.setdefault(node.node_id, node)
        object.__setattr__(self, "_index", index)

    @property
    def display_name(self) -> str:
        return self.name or self.graph_id

    @property
    def node_ids(self) -> Tuple[str, ...]:
        return tuple(self._index)

    @property
    def start_node(self) -> Optional[Node]:
        return self.get_node(self.start_node_id)

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get a dialogue node by ID"""
        if not node_id:
            return None
        return self._index.get(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._index

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON structure understood by GraphLoader"""
        data: Dict[str, Any] = {
            "id": self.graph_id,
            "name": self.name,
            "description": self.description,
            "start": self.start_node_id,
            "repeatable": self.repeatable,
            "cooldown_seconds": self.cooldown_seconds,
            "once_per_session": self.once_per_session,
        }
        if self.background_music:
            data["background_music"] = self.background_music
        if self.ambient_sound:
            data["ambient_sound"] = self.ambient_sound
        if self.camera_mode != "default":
            data["camera_mode"] = self.camera_mode
        if self.camera_distance != 3.0:
            data["camera_distance"] = self.camera_distance
        data["nodes"] = [node.to_dict() for node in self.nodes]
        return data
