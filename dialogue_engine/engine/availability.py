"""
Replay eligibility for dialogues (cooldown, once-per-session, repeatability)
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from dialogue_engine.graph.model import DialogueGraph

logger = logging.getLogger(__name__)


@dataclass
class PlayRecord:
    """Per-dialogue play history"""

    last_played_time: Optional[float] = None
    played_this_session: bool = False

    @property
    def ever_played(self) -> bool:
        return self.last_played_time is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "last_played_time": self.last_played_time,
            "played_this_session": self.played_this_session,
        }


class AvailabilityGate:
    """Decides whether a dialogue may (re)start.

    Rules are checked in order and the first failing one wins:

    1. once-per-session dialogues that already played this session
    2. non-repeatable dialogues that have ever played
    3. dialogues still inside their cooldown window
    """

    def __init__(self):
        self._records: Dict[str, PlayRecord] = {}

    def record(self, graph: DialogueGraph) -> PlayRecord:
        return self._records.get(graph.graph_id) or PlayRecord()

    def can_start(self, graph: DialogueGraph, now: float) -> bool:
        return self.blocked_reason(graph, now) is None

    def blocked_reason(self, graph: DialogueGraph, now: float) -> Optional[str]:
        """Name of the first failing rule, or None when the dialogue is available"""
        record = self.record(graph)

        if graph.once_per_session and record.played_this_session:
            return "once_per_session"

        if not graph.repeatable and record.ever_played:
            return "not_repeatable"

        if self.remaining_cooldown(graph, now) > 0:
            return "cooldown"

        return None

    def remaining_cooldown(self, graph: DialogueGraph, now: float) -> float:
        """Seconds until the cooldown expires (0 when not cooling down)"""
        record = self.record(graph)
        if graph.cooldown_seconds <= 0 or not record.ever_played:
            return 0.0
        elapsed = now - record.last_played_time
        return max(0.0, graph.cooldown_seconds - elapsed)

    def mark_played(self, graph: DialogueGraph, now: float) -> None:
        self._records[graph.graph_id] = PlayRecord(last_played_time=now, played_this_session=True)

    def reset(self, graph: DialogueGraph) -> None:
        """Forget the play history of one dialogue"""
        self._records.pop(graph.graph_id, None)

    def reset_all(self) -> None:
        self._records.clear()

    def new_session(self) -> None:
        """Start a new game session; once-per-session dialogues become available again"""
        for record in self._records.values():
            record.played_this_session = False

    def export_state(self) -> Dict[str, Dict[str, Any]]:
        """Serializable play history, keyed by dialogue ID"""
        return {graph_id: record.to_dict() for graph_id, record in sorted(self._records.items())}

    def import_state(self, data: Dict[str, Dict[str, Any]]) -> None:
        """Replace the play history with data produced by export_state()"""
        records = {}
        for graph_id, raw in (data or {}).items():
            last_played = raw.get("last_played_time")
            records[graph_id] = PlayRecord(
                last_played_time=float(last_played) if last_played is not None else None,
                played_this_session=bool(raw.get("played_this_session", False)),
            )
        self._records = records
        logger.debug("Imported play history for %d dialogue(s)", len(records))
