"""
In-memory game state implementing both capability ports.

Used by the console player, the playtest API and tests; a real game wires its
own quest and inventory systems into the ports instead.
"""

import logging
from collections import Counter
from typing import Any, Dict, List, Set, Tuple

from dialogue_engine.engine.ports import ActionPort, ConditionPort

logger = logging.getLogger(__name__)


class GameState(ConditionPort, ActionPort):
    """Tracks quests, inventory, level and fired events"""

    def __init__(self, level: int = 1):
        self.level = level
        self.active_quests: Set[str] = set()
        self.completed_quests: Set[str] = set()
        self.inventory: Counter = Counter()
        self.flags: Dict[str, bool] = {}
        self.riddles_presented: List[str] = []
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def copy(self) -> "GameState":
        """Create a deep copy of the state"""
        new_state = GameState(level=self.level)
        new_state.active_quests = set(self.active_quests)
        new_state.completed_quests = set(self.completed_quests)
        new_state.inventory = Counter(self.inventory)
        new_state.flags = dict(self.flags)
        new_state.riddles_presented = list(self.riddles_presented)
        new_state.events = list(self.events)
        return new_state

    def to_dict(self) -> Dict[str, Any]:
        """Convert state to JSON-serializable dict"""
        return {
            "level": self.level,
            "active_quests": sorted(self.active_quests),
            "completed_quests": sorted(self.completed_quests),
            "inventory": dict(sorted(self.inventory.items())),
            "flags": dict(sorted(self.flags.items())),
            "riddles_presented": list(self.riddles_presented),
            "events": [name for name, _ in self.events],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GameState":
        state = cls(level=int(data.get("level", 1)))
        state.active_quests = set(data.get("active_quests", []))
        state.completed_quests = set(data.get("completed_quests", []))
        state.inventory = Counter({k: int(v) for k, v in (data.get("inventory") or {}).items()})
        state.flags = {k: bool(v) for k, v in (data.get("flags") or {}).items()}
        return state

    # Condition port

    def is_quest_active(self, quest_id: str) -> bool:
        return quest_id in self.active_quests

    def is_quest_completed(self, quest_id: str) -> bool:
        return quest_id in self.completed_quests

    def item_count(self, item_id: str) -> int:
        return self.inventory[item_id]

    def player_level(self) -> int:
        return self.level

    def check_custom(self, name: str, payload: Dict[str, Any]) -> bool:
        # Unknown flags default to False
        return self.flags.get(name, False)

    # Action port

    def start_quest(self, quest_id: str) -> None:
        if quest_id in self.completed_quests:
            logger.info("Quest '%s' already completed, not restarting", quest_id)
            return
        self.active_quests.add(quest_id)

    def complete_quest(self, quest_id: str) -> None:
        self.active_quests.discard(quest_id)
        self.completed_quests.add(quest_id)

    def give_item(self, item_id: str, quantity: int) -> None:
        self.inventory[item_id] += quantity

    def present_riddle(self, riddle_id: str) -> None:
        self.riddles_presented.append(riddle_id)

    def custom_event(self, name: str, payload: Dict[str, Any]) -> None:
        self.events.append((name, dict(payload)))
