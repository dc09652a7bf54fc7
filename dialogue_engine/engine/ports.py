"""
Boundary interfaces between the conversation engine and the host game.

The engine calls the capability ports synchronously and never awaits them.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from dialogue_engine.graph.model import Choice, DialogueGraph, Node


class ConditionPort:
    """Answers precondition lookups (quests, inventory, level)"""

    def is_quest_active(self, quest_id: str) -> bool:
        raise NotImplementedError

    def is_quest_completed(self, quest_id: str) -> bool:
        raise NotImplementedError

    def item_count(self, item_id: str) -> int:
        raise NotImplementedError

    def player_level(self) -> int:
        raise NotImplementedError

    def check_custom(self, name: str, payload: Dict[str, Any]) -> bool:
        raise NotImplementedError


class ActionPort:
    """Receives node side effects, fire-and-forget"""

    def start_quest(self, quest_id: str) -> None:
        raise NotImplementedError

    def complete_quest(self, quest_id: str) -> None:
        raise NotImplementedError

    def give_item(self, item_id: str, quantity: int) -> None:
        raise NotImplementedError

    def present_riddle(self, riddle_id: str) -> None:
        raise NotImplementedError

    def custom_event(self, name: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError


class PresentationPort:
    """Display requests and lifecycle notifications.

    Every method is a no-op so hosts only override what they render.
    """

    def on_dialogue_started(self, graph: DialogueGraph) -> None:
        pass

    def on_dialogue_ended(self, graph: DialogueGraph, was_natural: bool) -> None:
        pass

    def on_show_node(self, speaker: str, text: str) -> None:
        pass

    def on_reveal_text(self, text: str) -> None:
        pass

    def on_node_displayed(self, node: Node) -> None:
        pass

    def on_show_choices(self, choices: Sequence[Choice], select: Callable[[Choice], None]) -> None:
        pass

    def on_show_continue(self, advance: Callable[[], None]) -> None:
        pass

    def on_show_end(self, end: Callable[[], None]) -> None:
        pass

    def on_choice_selected(self, choice: Choice) -> None:
        pass

    def on_hide_all(self) -> None:
        pass

    def on_voice_line(self, voice_id: str) -> None:
        pass

    def on_stop_voice(self) -> None:
        pass

    def on_animation(self, trigger: str) -> None:
        pass

    def on_music(self, background_music: Optional[str], ambient_sound: Optional[str]) -> None:
        pass

    def on_voice_blip(self, blip_id: str, duration: float) -> None:
        """Play `blip_id` for the `duration` seconds the text takes to type out"""
        pass


class EventRecorder(PresentationPort):
    """Presentation port that records every call as (event, payload)"""

    def __init__(self):
        self.events: List[Tuple[str, Any]] = []
        self.select: Callable[[Choice], None] = None
        self.advance: Callable[[], None] = None
        self.end: Callable[[], None] = None

    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def of(self, name: str) -> List[Any]:
        return [payload for event, payload in self.events if event == name]

    def clear(self) -> None:
        self.events = []

    def on_dialogue_started(self, graph):
        self.events.append(("dialogue_started", graph.graph_id))

    def on_dialogue_ended(self, graph, was_natural):
        self.events.append(("dialogue_ended", (graph.graph_id, was_natural)))

    def on_show_node(self, speaker, text):
        self.events.append(("show_node", (speaker, text)))

    def on_reveal_text(self, text):
        self.events.append(("reveal_text", text))

    def on_node_displayed(self, node):
        self.events.append(("node_displayed", node.node_id))

    def on_show_choices(self, choices, select):
        self.select = select
        self.events.append(("show_choices", [choice.text for choice in choices]))

    def on_show_continue(self, advance):
        self.advance = advance
        self.events.append(("show_continue", None))

    def on_show_end(self, end):
        self.end = end
        self.events.append(("show_end", None))

    def on_choice_selected(self, choice):
        self.events.append(("choice_selected", choice.text))

    def on_hide_all(self):
        self.events.append(("hide_all", None))

    def on_voice_line(self, voice_id):
        self.events.append(("voice_line", voice_id))

    def on_stop_voice(self):
        self.events.append(("stop_voice", None))

    def on_animation(self, trigger):
        self.events.append(("animation", trigger))

    def on_music(self, background_music, ambient_sound):
        self.events.append(("music", (background_music, ambient_sound)))

    def on_voice_blip(self, blip_id, duration):
        self.events.append(("voice_blip", (blip_id, duration)))
