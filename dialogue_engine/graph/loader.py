"""
Loader for JSON dialogue files
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from dialogue_engine.errors import GraphLoadError
from dialogue_engine.graph.model import (
    CAMERA_MODES,
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
)

logger = logging.getLogger(__name__)


class GraphLoader:
    """Builds DialogueGraph values from JSON dialogue files.

    Problems that still leave a usable graph are collected in ``warnings``;
    problems that make a node or field unusable go to ``errors`` and raise
    GraphLoadError at the end of the load.
    """

    # Compact condition forms: quest_active:id, quest_done:id, has_item:id*3, level>=5, custom:name
    CONDITION_PATTERN = re.compile(r"^(quest_active|quest_done|has_item|custom):([\w.\-]+)(?:\*(\d+))?$")
    LEVEL_PATTERN = re.compile(r"^level\s*>=\s*(\d+)$")

    KNOWN_COMMANDS = {
        "start_quest": {"min_parts": 2, "syntax": "start_quest quest_id"},
        "complete_quest": {"min_parts": 2, "syntax": "complete_quest quest_id"},
        "give_item": {"min_parts": 2, "syntax": "give_item item_id [quantity]"},
        "present_riddle": {"min_parts": 2, "syntax": "present_riddle riddle_id"},
        "event": {"min_parts": 2, "syntax": "event event_name"},
    }

    TYPO_SUGGESTIONS = {
        "give": "give_item",
        "giveitem": "give_item",
        "startquest": "start_quest",
        "quest": "start_quest",
        "completequest": "complete_quest",
        "finish_quest": "complete_quest",
        "riddle": "present_riddle",
        "custom_event": "event",
        "trigger": "event",
    }

    def __init__(self):
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def load_file(self, file_path: Path) -> DialogueGraph:
        """Load a .json dialogue file"""
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"Dialogue file not found: {file_path}")

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise GraphLoadError(f"{file_path.name}: invalid JSON ({e})") from e
        except UnicodeDecodeError as e:
            raise GraphLoadError(f"{file_path.name}: not valid UTF-8 ({e.reason})") from e

        return self.load_data(data, default_id=file_path.stem)

    def load_data(self, data: Dict[str, Any], default_id: str = "dialogue") -> DialogueGraph:
        """Build a graph from already-decoded JSON data"""
        self.errors = []
        self.warnings = []

        if not isinstance(data, dict):
            raise GraphLoadError("Dialogue data must be a JSON object")

        graph_id = str(data.get("id") or default_id)
        raw_nodes = data.get("nodes", [])
        if not isinstance(raw_nodes, list):
            raise GraphLoadError(f"Dialogue '{graph_id}': 'nodes' must be a list")

        nodes = []
        for index, raw_node in enumerate(raw_nodes):
            node = self._parse_node(raw_node, index)
            if node is not None:
                nodes.append(node)

        cooldown = self._number(data.get("cooldown_seconds", 0.0), "cooldown_seconds", graph_id)
        if "cooldown_minutes" in data:
            cooldown = self._number(data["cooldown_minutes"], "cooldown_minutes", graph_id) * 60.0

        camera_mode = str(data.get("camera_mode", "default"))
        if camera_mode not in CAMERA_MODES:
            self.warnings.append(
                f"Dialogue '{graph_id}': unknown camera mode '{camera_mode}', using 'default'"
            )
            camera_mode = "default"

        graph = DialogueGraph(
            graph_id=graph_id,
            nodes=tuple(nodes),
            start_node_id=str(data.get("start", "start")),
            name=str(data.get("name", "")),
            description=str(data.get("description", "")),
            repeatable=self._flag(data.get("repeatable", True), "repeatable", graph_id),
            cooldown_seconds=max(0.0, cooldown),
            once_per_session=self._flag(data.get("once_per_session", False), "once_per_session", graph_id),
            background_music=data.get("background_music"),
            ambient_sound=data.get("ambient_sound"),
            camera_mode=camera_mode,
            camera_distance=self._number(data.get("camera_distance", 3.0), "camera_distance", graph_id),
        )

        for warning in self.warnings:
            logger.debug("%s", warning)

        if self.errors:
            raise GraphLoadError(
                f"Dialogue '{graph_id}' has {len(self.errors)} load error(s)", errors=self.errors
            )
        return graph

    def _parse_node(self, raw: Any, index: int) -> Optional[Node]:
        """Parse one node object, returns None if it is unusable"""
        if not isinstance(raw, dict):
            self.errors.append(f"Node #{index}: expected an object, got {type(raw).__name__}")
            return None

        node_id = raw.get("id")
        if not node_id:
            self.errors.append(f"Node #{index}: missing 'id'")
            return None
        node_id = str(node_id)

        raw_choices = raw.get("choices") or []
        if not isinstance(raw_choices, list):
            self.errors.append(f"Node '{node_id}': 'choices' must be a list, got {type(raw_choices).__name__}")
            raw_choices = []

        choices = []
        for choice_index, raw_choice in enumerate(raw_choices):
            choice = self._parse_choice(raw_choice, node_id, choice_index)
            if choice is not None:
                choices.append(choice)

        next_node_id = str(raw.get("next") or "")

        return Node(
            node_id=node_id,
            speaker=str(raw.get("speaker", "")),
            text=str(raw.get("text", "")),
            choices=tuple(choices),
            next_node_id=next_node_id,
            actions=self._parse_actions(raw.get("actions", []), node_id),
            conditions=self._parse_conditions(raw.get("conditions", []), f"Node '{node_id}'"),
            portrait=raw.get("portrait"),
            voice_line=raw.get("voice_line"),
            voice_blip=raw.get("voice_blip"),
            animation_trigger=str(raw.get("animation", "")),
            delay_before_show=self._number(raw.get("delay", 0.0), "delay", node_id),
            auto_advance=self._number(raw.get("auto_advance", 0.0), "auto_advance", node_id),
        )

    def _parse_choice(self, raw: Any, node_id: str, index: int) -> Optional[Choice]:
        if not isinstance(raw, dict):
            self.errors.append(f"Node '{node_id}' choice #{index + 1}: expected an object")
            return None

        target = raw.get("target")
        if not target:
            self.errors.append(f"Node '{node_id}' choice #{index + 1}: missing 'target'")
            return None

        style = raw.get("style") or {}
        if not isinstance(style, dict):
            self.warnings.append(f"Node '{node_id}' choice #{index + 1}: 'style' must be an object, ignored")
            style = {}

        return Choice(
            text=str(raw.get("text", "")),
            target_node_id=str(target),
            conditions=self._parse_conditions(
                raw.get("conditions", []), f"Node '{node_id}' choice #{index + 1}"
            ),
            style=tuple(style.items()),
        )

    def _parse_conditions(self, raw_list: Any, where: str) -> Tuple[Any, ...]:
        if isinstance(raw_list, (str, dict)):
            raw_list = [raw_list]
        elif raw_list and not isinstance(raw_list, list):
            self.errors.append(f"{where}: 'conditions' must be a list, got {type(raw_list).__name__}")
            return ()
        conditions = []
        for raw in raw_list or []:
            condition = self.parse_condition(raw, where)
            if condition is not None:
                conditions.append(condition)
        return tuple(conditions)

    def _parse_actions(self, raw_list: Any, node_id: str) -> Tuple[Any, ...]:
        if isinstance(raw_list, (str, dict)):
            raw_list = [raw_list]
        elif raw_list and not isinstance(raw_list, list):
            self.errors.append(f"Node '{node_id}': 'actions' must be a list, got {type(raw_list).__name__}")
            return ()
        actions = []
        for raw in raw_list or []:
            action = self.parse_action(raw, f"Node '{node_id}'")
            if action is not None:
                actions.append(action)
        return tuple(actions)

    def parse_condition(self, raw: Any, where: str = "Condition"):
        """Parse a condition object or compact string into a precondition"""
        if isinstance(raw, str):
            return self._parse_condition_string(raw.strip(), where)
        if not isinstance(raw, dict):
            self.errors.append(f"{where}: condition must be a string or object")
            return None

        kind = raw.get("type")
        if kind == "quest_active" and raw.get("quest"):
            return QuestActive(str(raw["quest"]))
        if kind == "quest_done" and raw.get("quest"):
            return QuestCompleted(str(raw["quest"]))
        if kind == "has_item" and raw.get("item"):
            return HasItem(str(raw["item"]), self._quantity(raw.get("quantity", 1), where))
        if kind == "level" and "level" in raw:
            return MinimumLevel(self._quantity(raw["level"], where, minimum=0))
        if kind == "custom" and raw.get("name"):
            return CustomCondition(str(raw["name"]), self._payload(raw.get("payload")))

        self.errors.append(f"{where}: unknown or incomplete condition {raw!r}")
        return None

    def _parse_condition_string(self, text: str, where: str):
        text = text.strip("{}").strip()

        # Common mistake: space instead of colon
        if re.match(r"^(has_item|quest_active|quest_done)\s+\w+", text):
            keyword = text.split()[0]
            self.errors.append(f"{where}: '{keyword}' should use colon syntax: {keyword}:id")
            return None

        match = self.LEVEL_PATTERN.match(text)
        if match:
            return MinimumLevel(int(match.group(1)))

        match = self.CONDITION_PATTERN.match(text)
        if not match:
            self.errors.append(f"{where}: cannot parse condition '{text}'")
            return None

        kind, target, quantity = match.groups()
        if kind == "quest_active":
            return QuestActive(target)
        if kind == "quest_done":
            return QuestCompleted(target)
        if kind == "has_item":
            return HasItem(target, int(quantity) if quantity else 1)
        return CustomCondition(target)

    def parse_action(self, raw: Any, where: str = "Action"):
        """Parse an action object or command string"""
        if isinstance(raw, str):
            return self._parse_command(raw.strip(), where)
        if not isinstance(raw, dict):
            self.errors.append(f"{where}: action must be a string or object")
            return None

        kind = raw.get("type")
        if kind == "start_quest" and raw.get("quest"):
            return StartQuest(str(raw["quest"]))
        if kind == "complete_quest" and raw.get("quest"):
            return CompleteQuest(str(raw["quest"]))
        if kind == "give_item" and raw.get("item"):
            return GiveItem(str(raw["item"]), self._quantity(raw.get("quantity", 1), where))
        if kind == "present_riddle" and raw.get("riddle"):
            return PresentRiddle(str(raw["riddle"]))
        if kind == "event" and raw.get("name"):
            return CustomEvent(str(raw["name"]), self._payload(raw.get("payload")))

        self.errors.append(f"{where}: unknown or incomplete action {raw!r}")
        return None

    def _parse_command(self, command: str, where: str):
        """Parse a command string such as 'give_item apple 3'"""
        warnings = self.validate_command_syntax(command, where)
        if warnings:
            self.errors.extend(warnings)
            return None

        parts = command.split()
        cmd = parts[0].lower()

        if cmd == "start_quest":
            return StartQuest(parts[1])
        if cmd == "complete_quest":
            return CompleteQuest(parts[1])
        if cmd == "give_item":
            quantity = self._quantity(parts[2], where) if len(parts) >= 3 else 1
            return GiveItem(parts[1], quantity)
        if cmd == "present_riddle":
            return PresentRiddle(parts[1])
        return CustomEvent(" ".join(parts[1:]))

    def validate_command_syntax(self, command: str, where: str) -> List[str]:
        """
        Validate command syntax and return a list of problems.
        Catches typos and missing arguments at load time.
        """
        problems = []
        parts = command.split()
        if not parts:
            return [f"{where}: empty action"]

        cmd = parts[0].lower()

        if cmd in self.KNOWN_COMMANDS:
            rule = self.KNOWN_COMMANDS[cmd]
            if len(parts) < rule["min_parts"]:
                problems.append(f"{where}: action '{cmd}' missing arguments. Expected: {rule['syntax']}")
            if cmd == "give_item" and len(parts) >= 3 and not parts[2].isdigit():
                problems.append(f"{where}: action 'give_item' requires a numeric quantity, got '{parts[2]}'")
        elif cmd in self.TYPO_SUGGESTIONS:
            problems.append(f"{where}: unknown action '{cmd}', did you mean '{self.TYPO_SUGGESTIONS[cmd]}'?")
        else:
            suggestion = None
            for known_cmd in self.KNOWN_COMMANDS:
                if self._string_similarity(cmd, known_cmd) > 0.7:
                    suggestion = known_cmd
                    break
            if suggestion:
                problems.append(f"{where}: unknown action '{cmd}', did you mean '{suggestion}'?")
            else:
                problems.append(f"{where}: unknown action '{cmd}'")

        return problems

    def _string_similarity(self, s1: str, s2: str) -> float:
        """Calculate simple string similarity ratio"""
        if not s1 or not s2:
            return 0.0
        matches = sum(1 for c1, c2 in zip(s1.lower(), s2.lower()) if c1 == c2)
        return matches / max(len(s1), len(s2))

    def _number(self, value: Any, name: str, owner: str) -> float:
        try:
            return float(value or 0.0)
        except (TypeError, ValueError):
            self.errors.append(f"'{owner}': '{name}' must be a number, got {value!r}")
            return 0.0

    def _flag(self, value: Any, name: str, owner: str) -> bool:
        if isinstance(value, bool):
            return value
        self.errors.append(f"Dialogue '{owner}': '{name}' must be true or false, got {value!r}")
        return False

    def _quantity(self, value: Any, where: str, minimum: int = 1) -> int:
        try:
            quantity = int(value)
        except (TypeError, ValueError):
            self.errors.append(f"{where}: quantity must be an integer, got {value!r}")
            return minimum
        if quantity < minimum:
            self.warnings.append(f"{where}: quantity {quantity} raised to {minimum}")
            return minimum
        return quantity

    def _payload(self, value: Any) -> Tuple[Tuple[str, Any], ...]:
        if not value:
            return ()
        if isinstance(value, dict):
            return tuple(value.items())
        return (("value", value),)


def load_graph(file_path: Path) -> DialogueGraph:
    """Load a single dialogue file"""
    return GraphLoader().load_file(Path(file_path))


def load_directory(root: Path) -> Dict[str, DialogueGraph]:
    """Load every *.json dialogue under a directory, keyed by graph ID"""
    root = Path(root)
    graphs: Dict[str, DialogueGraph] = {}
    for path in sorted(root.rglob("*.json")):
        graph = load_graph(path)
        if graph.graph_id in graphs:
            logger.warning("Dialogue ID '%s' in %s shadows an earlier file", graph.graph_id, path)
        graphs[graph.graph_id] = graph
    return graphs
