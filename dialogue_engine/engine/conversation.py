"""
Conversation engine - walks a dialogue graph one node at a time.

Phases::

    IDLE -> DISPLAYING -> AWAITING_INPUT -> (TRANSITIONING -> DISPLAYING ...) -> IDLE

DISPLAYING covers the pre-display delay and the typing window of the current
node. Every wait is a timer on the host clock, tagged with the session that
scheduled it, so a timer can never touch a session that has been replaced or
ended.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from dialogue_engine.engine.availability import AvailabilityGate
from dialogue_engine.engine.clock import Clock
from dialogue_engine.engine.ports import ActionPort, ConditionPort, PresentationPort
from dialogue_engine.errors import (
    ContentError,
    DialogueUnavailableError,
    IllegalStateError,
    InvalidChoiceError,
    MissingNodeError,
)
from dialogue_engine.graph.model import Choice, DialogueGraph, Node, dispatch, evaluate

logger = logging.getLogger(__name__)


class Phase(Enum):
    IDLE = "idle"
    DISPLAYING = "displaying"
    TRANSITIONING = "transitioning"
    AWAITING_INPUT = "awaiting_input"


class Prompt(Enum):
    """What the player is being asked for while awaiting input"""
    CHOICES = "choices"
    CONTINUE = "continue"
    END = "end"


class EndReason(Enum):
    COMPLETED = "completed"
    SUPERSEDED = "superseded"
    FORCED = "forced"
    CONTENT_ERROR = "content_error"


@dataclass
class ConversationSession:
    """Runtime state of the one active conversation"""

    graph: DialogueGraph
    generation: int
    node: Optional[Node] = None
    phase: Phase = Phase.TRANSITIONING
    prompt: Optional[Prompt] = None
    valid_choices: Tuple[Choice, ...] = ()
    shown: bool = False
    timers: Dict[str, int] = field(default_factory=dict)


class ConversationEngine:
    """Drives a single active conversation.

    Handles:
    - availability gating and superseding a running conversation
    - node preconditions, skipping nodes whose conditions fail
    - node actions (quest, item, riddle, custom events)
    - delay, typing and auto-advance timers
    - choice filtering and player input (advance, choose, skip, end)
    """

    def __init__(
        self,
        clock: Clock,
        conditions: ConditionPort,
        actions: Optional[ActionPort] = None,
        presenter: Optional[PresentationPort] = None,
        gate: Optional[AvailabilityGate] = None,
        typing_speed: Optional[float] = None,
    ):
        if typing_speed is None:
            from dialogue_engine.config import get_settings

            typing_speed = get_settings().typing_speed

        self.clock = clock
        self.conditions = conditions
        self.actions = actions if actions is not None else conditions
        self.presenter = presenter or PresentationPort()
        self.gate = gate or AvailabilityGate()
        self.typing_speed = typing_speed

        self._session: Optional[ConversationSession] = None
        self._generation = 0

        self.end_reason: Optional[EndReason] = None
        self.last_error: Optional[ContentError] = None

    # State inspection

    @property
    def session(self) -> Optional[ConversationSession]:
        return self._session

    @property
    def is_active(self) -> bool:
        return self._session is not None

    @property
    def phase(self) -> Phase:
        return self._session.phase if self._session else Phase.IDLE

    @property
    def prompt(self) -> Optional[Prompt]:
        return self._session.prompt if self._session else None

    @property
    def current_graph(self) -> Optional[DialogueGraph]:
        return self._session.graph if self._session else None

    @property
    def current_node(self) -> Optional[Node]:
        return self._session.node if self._session else None

    @property
    def valid_choices(self) -> Tuple[Choice, ...]:
        return self._session.valid_choices if self._session else ()

    def can_start(self, graph: DialogueGraph) -> bool:
        return self.gate.can_start(graph, self.clock.now())

    def remaining_cooldown(self, graph: DialogueGraph) -> float:
        return self.gate.remaining_cooldown(graph, self.clock.now())

    def typing_duration(self, text: str) -> float:
        """Seconds needed to type out `text` (0 when typing is instant)"""
        if not text or self.typing_speed <= 0:
            return 0.0
        return len(text) / self.typing_speed

    # Transitions

    def start_dialogue(self, graph: DialogueGraph) -> ConversationSession:
        """Start a conversation, ending the active one first.

        Raises DialogueUnavailableError if the replay policy forbids it and
        MissingNodeError if the start node does not exist; neither touches
        the running conversation.
        """
        now = self.clock.now()
        if not self.gate.can_start(graph, now):
            remaining = self.gate.remaining_cooldown(graph, now)
            logger.info(
                "Dialogue '%s' is not available (%s)", graph.graph_id, self.gate.blocked_reason(graph, now)
            )
            raise DialogueUnavailableError(graph.graph_id, remaining)

        start_node = graph.start_node
        if start_node is None:
            error = MissingNodeError(graph.graph_id, graph.start_node_id)
            logger.error("Dialogue '%s' has no valid start node: %s", graph.graph_id, error)
            raise error

        # An end callback may start yet another dialogue; end those too
        while self._session is not None:
            logger.info(
                "Already in dialogue '%s', ending it before '%s'",
                self._session.graph.graph_id,
                graph.graph_id,
            )
            self._end(EndReason.SUPERSEDED)

        self._generation += 1
        session = ConversationSession(graph=graph, generation=self._generation)
        self._session = session
        self.end_reason = None
        self.last_error = None

        self.gate.mark_played(graph, now)
        logger.info("Dialogue '%s' started", graph.graph_id)

        self.presenter.on_dialogue_started(graph)
        if (graph.background_music or graph.ambient_sound) and self._session is session:
            self.presenter.on_music(graph.background_music, graph.ambient_sound)
        if self._session is session:
            self._enter(session, start_node)
        return session

    def select_choice(self, choice: Choice) -> None:
        """Pick one of the choices currently on screen"""
        session = self._require_session("select a choice")
        if session.phase is not Phase.AWAITING_INPUT or session.prompt is not Prompt.CHOICES:
            raise IllegalStateError(f"Cannot select a choice while {session.phase.value}")
        if not any(choice is valid for valid in session.valid_choices):
            raise InvalidChoiceError(f"Choice '{choice.text}' is not one of the presented choices")

        self._cancel_timers(session)
        session.phase = Phase.TRANSITIONING
        self.presenter.on_choice_selected(choice)
        self.presenter.on_hide_all()
        if self._session is not session:
            return

        target = session.graph.get_node(choice.target_node_id)
        if target is None:
            self._content_error(
                MissingNodeError(session.graph.graph_id, choice.target_node_id, session.node.node_id)
            )
            return
        self._enter(session, target)

    def select_choice_index(self, index: int) -> None:
        """Pick a presented choice by its on-screen position (0-based)"""
        session = self._require_session("select a choice")
        if not 0 <= index < len(session.valid_choices):
            raise InvalidChoiceError(f"Choice index {index} out of range")
        self.select_choice(session.valid_choices[index])

    def advance(self) -> None:
        """Continue past the current node (continue or end button)"""
        session = self._require_session("advance")
        if session.phase is not Phase.AWAITING_INPUT or session.prompt not in (Prompt.CONTINUE, Prompt.END):
            raise IllegalStateError(
                f"Cannot advance while {session.phase.value}"
                + (" with choices on screen" if session.prompt is Prompt.CHOICES else "")
            )
        self._advance(session)

    def skip_typing(self) -> None:
        """Show the whole node immediately and present its options"""
        session = self._require_session("skip typing")
        if session.phase is not Phase.DISPLAYING:
            raise IllegalStateError(f"Cannot skip typing while {session.phase.value}")

        self._cancel_timers(session)
        if not session.shown and not self._show_node(session, arm_auto_advance=False):
            return

        self.presenter.on_reveal_text(session.node.text)
        if self._session is session:
            self._present_options(session)

    def end_dialogue(self) -> None:
        """End the conversation.

        Counts as a natural completion only when the end button of a terminal
        node is on screen; anything else is an abrupt end.
        """
        session = self._require_session("end dialogue")
        natural = session.phase is Phase.AWAITING_INPUT and session.prompt is Prompt.END
        self._end(EndReason.COMPLETED if natural else EndReason.FORCED)

    # Internals

    def _require_session(self, what: str) -> ConversationSession:
        if self._session is None:
            raise IllegalStateError(f"Cannot {what}: no active dialogue")
        return self._session

    def _enter(self, session: ConversationSession, node: Node) -> None:
        """Resolve `node` (skipping nodes whose conditions fail) and start displaying it"""
        session.phase = Phase.TRANSITIONING
        graph = session.graph
        skipped = []

        while not self._conditions_met(node.conditions, f"node '{node.node_id}'"):
            logger.debug("Node '%s' conditions not met, skipping", node.node_id)
            skipped.append(node.node_id)
            if not node.next_node_id:
                self._end(EndReason.COMPLETED)
                return

            next_node = graph.get_node(node.next_node_id)
            if next_node is None:
                self._content_error(MissingNodeError(graph.graph_id, node.next_node_id, node.node_id))
                return
            if next_node.node_id in skipped:
                cycle = " -> ".join(skipped + [next_node.node_id])
                self._content_error(ContentError(f"Dialogue '{graph.graph_id}': skip cycle {cycle}"))
                return
            node = next_node

        session.node = node
        session.phase = Phase.DISPLAYING
        session.prompt = None
        session.valid_choices = ()
        session.shown = False

        self._run_actions(node)
        if self._session is not session:
            return

        if node.animation_trigger:
            self.presenter.on_animation(node.animation_trigger)
            if self._session is not session:
                return

        if node.delay_before_show > 0:
            self._schedule(session, "delay", node.delay_before_show, self._after_delay)
        else:
            self._after_delay(session)

    def _after_delay(self, session: ConversationSession) -> None:
        if not self._show_node(session):
            return

        typing = self.typing_duration(session.node.text)
        if typing > 0 and session.node.voice_blip:
            self.presenter.on_voice_blip(session.node.voice_blip, typing)
            if self._session is not session:
                return
        if typing > 0:
            self._schedule(session, "typing", typing, self._present_options)
        else:
            self._present_options(session)

    def _show_node(self, session: ConversationSession, arm_auto_advance: bool = True) -> bool:
        """Emit the node and arm auto-advance. False if the session went away meanwhile."""
        node = session.node
        session.shown = True
        self.presenter.on_show_node(node.speaker, node.text)
        if node.voice_line and self._session is session:
            self.presenter.on_voice_line(node.voice_line)
        if self._session is session:
            self.presenter.on_node_displayed(node)
        if self._session is not session:
            return False

        if arm_auto_advance and node.auto_advance > 0:
            self._schedule(session, "auto_advance", node.auto_advance, self._auto_advance)
        return True

    def _present_options(self, session: ConversationSession) -> None:
        node = session.node
        valid = tuple(
            choice
            for index, choice in enumerate(node.choices, 1)
            if self._conditions_met(choice.conditions, f"node '{node.node_id}' choice #{index}")
        )

        session.phase = Phase.AWAITING_INPUT
        session.valid_choices = valid
        if valid:
            session.prompt = Prompt.CHOICES
            self.presenter.on_show_choices(valid, self.select_choice)
        elif not node.is_terminal():
            session.prompt = Prompt.CONTINUE
            self.presenter.on_show_continue(self.advance)
        else:
            session.prompt = Prompt.END
            self.presenter.on_show_end(self.end_dialogue)

    def _auto_advance(self, session: ConversationSession) -> None:
        logger.debug("Auto-advancing from node '%s'", session.node.node_id)
        self._advance(session)

    def _advance(self, session: ConversationSession) -> None:
        self._cancel_timers(session)
        session.phase = Phase.TRANSITIONING
        node = session.node

        if not node.next_node_id:
            self._end(EndReason.COMPLETED)
            return

        self.presenter.on_hide_all()
        if self._session is not session:
            return

        target = session.graph.get_node(node.next_node_id)
        if target is None:
            self._content_error(MissingNodeError(session.graph.graph_id, node.next_node_id, node.node_id))
            return
        self._enter(session, target)

    def _end(self, reason: EndReason) -> None:
        session = self._session
        if session is None:
            return

        self._cancel_timers(session)
        session.phase = Phase.IDLE
        self._session = None
        self.end_reason = reason

        logger.info("Dialogue '%s' ended (%s)", session.graph.graph_id, reason.value)
        self.presenter.on_hide_all()
        self.presenter.on_stop_voice()
        self.presenter.on_dialogue_ended(session.graph, reason is EndReason.COMPLETED)

    def _content_error(self, error: ContentError) -> None:
        logger.error("Content error, ending dialogue: %s", error)
        self.last_error = error
        self._end(EndReason.CONTENT_ERROR)

    def _conditions_met(self, conditions, where: str) -> bool:
        for condition in conditions:
            try:
                if not evaluate(condition, self.conditions):
                    return False
            except Exception:
                # A broken lookup hides the node or choice instead of stalling the conversation
                logger.exception("Condition %s on %s failed to evaluate", condition.describe(), where)
                return False
        return True

    def _run_actions(self, node: Node) -> None:
        for action in node.actions:
            try:
                dispatch(action, self.actions)
            except Exception:
                logger.exception("Action '%s' on node '%s' failed, skipping", action.describe(), node.node_id)

    def _schedule(
        self,
        session: ConversationSession,
        name: str,
        delay: float,
        callback: Callable[[ConversationSession], None],
    ) -> None:
        generation = session.generation

        def fire():
            if self._session is not session or self._generation != generation:
                logger.debug("Dropping stale '%s' timer from generation %d", name, generation)
                return
            session.timers.pop(name, None)
            callback(session)

        self.clock.cancel(session.timers.get(name))
        session.timers[name] = self.clock.schedule(delay, fire)

    def _cancel_timers(self, session: ConversationSession) -> None:
        for handle in session.timers.values():
            self.clock.cancel(handle)
        session.timers.clear()
