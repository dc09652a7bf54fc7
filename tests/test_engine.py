"""Tests for the conversation engine state machine."""

import pytest

from dialogue_engine.engine.clock import ManualClock
from dialogue_engine.engine.conversation import ConversationEngine, EndReason, Phase, Prompt
from dialogue_engine.engine.ports import ConditionPort, EventRecorder
from dialogue_engine.engine.state import GameState
from dialogue_engine.errors import (
    DialogueUnavailableError,
    IllegalStateError,
    InvalidChoiceError,
    MissingNodeError,
)
from dialogue_engine.graph.model import (
    Choice,
    CustomEvent,
    DialogueGraph,
    GiveItem,
    HasItem,
    Node,
    QuestActive,
    QuestCompleted,
    StartQuest,
)


def make_engine(state=None, typing_speed=0.0):
    clock = ManualClock()
    recorder = EventRecorder()
    state = state or GameState()
    engine = ConversationEngine(clock, state, presenter=recorder, typing_speed=typing_speed)
    return engine, clock, recorder, state


def hi_bye_graph(**policy):
    bye = Choice("Bye", "B")
    return DialogueGraph(
        "hi_bye",
        nodes=(
            Node("A", speaker="NPC", text="Hi", choices=(bye,)),
            Node("B", speaker="NPC", text="Bye!"),
        ),
        start_node_id="A",
        **policy,
    )


def linear_graph(graph_id="linear", **node_options):
    return DialogueGraph(
        graph_id,
        nodes=(
            Node("one", speaker="NPC", text="First", next_node_id="two", **node_options),
            Node("two", speaker="NPC", text="Second"),
        ),
        start_node_id="one",
    )


class TestConcreteScenario:
    """End-to-end walk through a two-node dialogue."""

    def test_hi_bye_event_sequence(self):
        """Test the full event sequence for choosing the only choice and ending."""
        engine, _, recorder, _ = make_engine()
        graph = hi_bye_graph()

        engine.start_dialogue(graph)
        assert engine.phase is Phase.AWAITING_INPUT
        assert engine.prompt is Prompt.CHOICES
        assert recorder.of("show_choices") == [["Bye"]]

        engine.select_choice(engine.valid_choices[0])
        assert engine.prompt is Prompt.END

        engine.end_dialogue()
        assert recorder.names() == [
            "dialogue_started",
            "show_node",
            "node_displayed",
            "show_choices",
            "choice_selected",
            "hide_all",
            "show_node",
            "node_displayed",
            "show_end",
            "hide_all",
            "stop_voice",
            "dialogue_ended",
        ]
        assert recorder.of("show_node") == [("NPC", "Hi"), ("NPC", "Bye!")]
        assert recorder.of("dialogue_ended") == [("hi_bye", True)]
        assert engine.end_reason is EndReason.COMPLETED
        assert engine.phase is Phase.IDLE

    def test_advance_past_terminal_node_is_natural(self):
        """Test that pressing the end button via advance() completes naturally."""
        engine, _, recorder, _ = make_engine()
        engine.start_dialogue(linear_graph())
        engine.advance()
        assert engine.prompt is Prompt.END

        engine.advance()
        assert not engine.is_active
        assert recorder.of("dialogue_ended") == [("linear", True)]


class TestStartDialogue:
    """Test starting and superseding conversations."""

    def test_start_marks_played_once(self):
        """Test that the availability gate records the start, not every node."""
        engine, clock, _, _ = make_engine()
        graph = linear_graph()
        clock.advance(12)

        engine.start_dialogue(graph)
        engine.advance()

        record = engine.gate.record(graph)
        assert record.last_played_time == 12
        assert record.played_this_session is True

    def test_unavailable_dialogue_raises_without_mutation(self):
        """Test that a blocked start leaves the running conversation alone."""
        engine, _, recorder, _ = make_engine()
        running = linear_graph("running")
        blocked = hi_bye_graph(repeatable=False)

        engine.start_dialogue(blocked)
        engine.end_dialogue()
        engine.start_dialogue(running)
        recorder.clear()

        with pytest.raises(DialogueUnavailableError):
            engine.start_dialogue(blocked)

        assert engine.current_graph is running
        assert engine.current_node.node_id == "one"
        assert recorder.events == []

    def test_cooldown_error_carries_remaining_time(self):
        """Test the remaining cooldown reported by DialogueUnavailableError."""
        engine, clock, _, _ = make_engine()
        graph = hi_bye_graph(cooldown_seconds=60)
        engine.start_dialogue(graph)
        engine.end_dialogue()
        clock.advance(20)

        with pytest.raises(DialogueUnavailableError) as exc_info:
            engine.start_dialogue(graph)
        assert exc_info.value.remaining_cooldown == pytest.approx(40)

    def test_missing_start_node_raises(self):
        """Test that a graph without its start node is rejected before anything happens."""
        engine, _, recorder, _ = make_engine()
        graph = DialogueGraph("broken", nodes=(Node("a", text="Hi"),), start_node_id="missing")

        with pytest.raises(MissingNodeError):
            engine.start_dialogue(graph)

        assert not engine.is_active
        assert recorder.events == []
        assert engine.gate.record(graph).ever_played is False

    def test_second_start_supersedes_first(self):
        """Test that the first conversation ends abruptly before the second displays."""
        engine, _, recorder, _ = make_engine()
        engine.start_dialogue(linear_graph("first"))
        recorder.clear()

        engine.start_dialogue(hi_bye_graph())

        names = recorder.names()
        ended = names.index("dialogue_ended")
        assert recorder.of("dialogue_ended") == [("first", False)]
        assert ended < names.index("dialogue_started") < names.index("show_node")
        assert engine.current_graph.graph_id == "hi_bye"

    def test_superseded_timers_never_fire(self):
        """Test that pending timers of a replaced conversation are dropped."""
        engine, clock, recorder, _ = make_engine()
        engine.start_dialogue(linear_graph("first", auto_advance=2.0))
        engine.start_dialogue(hi_bye_graph())
        recorder.clear()

        clock.advance(10)

        assert recorder.events == []
        assert engine.current_node.node_id == "A"
        assert clock.pending == 0

    def test_dialogue_chained_from_end_callback_is_superseded(self):
        """Test that a dialogue started while the previous one ends is ended too."""

        class ChainingRecorder(EventRecorder):
            def __init__(self, follow_ups):
                super().__init__()
                self.follow_ups = follow_ups
                self.engine = None

            def on_dialogue_ended(self, graph, was_natural):
                super().on_dialogue_ended(graph, was_natural)
                follow_up = self.follow_ups.pop(graph.graph_id, None)
                if follow_up is not None:
                    self.engine.start_dialogue(follow_up)

        recorder = ChainingRecorder({"first": linear_graph("chained")})
        engine = ConversationEngine(ManualClock(), GameState(), presenter=recorder, typing_speed=0.0)
        recorder.engine = engine

        engine.start_dialogue(linear_graph("first"))
        engine.start_dialogue(hi_bye_graph())

        assert recorder.of("dialogue_started") == ["first", "chained", "hi_bye"]
        assert recorder.of("dialogue_ended") == [("first", False), ("chained", False)]
        assert engine.current_graph.graph_id == "hi_bye"
        assert engine.current_node.node_id == "A"
        assert engine.end_reason is None


class TestPreconditions:
    """Test node skipping and choice filtering."""

    def test_unmet_node_is_skipped(self):
        """Test that a node with unmet conditions is never shown and its actions never run."""
        engine, _, recorder, state = make_engine()
        graph = DialogueGraph(
            "skip",
            nodes=(
                Node(
                    "secret",
                    text="Psst",
                    conditions=(QuestActive("spy"),),
                    actions=(GiveItem("coin"),),
                    next_node_id="normal",
                ),
                Node("normal", text="Hello"),
            ),
            start_node_id="secret",
        )

        engine.start_dialogue(graph)

        assert recorder.of("node_displayed") == ["normal"]
        assert state.inventory["coin"] == 0

    def test_unmet_node_without_next_ends_without_showing(self):
        """Test that an unmet dead-end node ends the conversation silently."""
        engine, _, recorder, _ = make_engine()
        graph = DialogueGraph(
            "gone",
            nodes=(Node("only", text="Never", conditions=(QuestCompleted("x"),)),),
            start_node_id="only",
        )

        engine.start_dialogue(graph)

        assert "show_node" not in recorder.names()
        assert not engine.is_active
        assert engine.end_reason is EndReason.COMPLETED

    def test_skip_cycle_ends_with_content_error(self):
        """Test that two unmet nodes pointing at each other stop instead of looping."""
        engine, _, recorder, _ = make_engine()
        graph = DialogueGraph(
            "loop",
            nodes=(
                Node("a", conditions=(QuestActive("q"),), next_node_id="b"),
                Node("b", conditions=(QuestActive("q"),), next_node_id="a"),
            ),
            start_node_id="a",
        )

        engine.start_dialogue(graph)

        assert not engine.is_active
        assert engine.end_reason is EndReason.CONTENT_ERROR
        assert "skip cycle" in str(engine.last_error)
        assert recorder.of("dialogue_ended") == [("loop", False)]

    def test_choices_filtered_in_declaration_order(self):
        """Test that only met choices are presented, in their original order."""
        state = GameState()
        state.inventory["apple"] = 3
        engine, _, recorder, _ = make_engine(state=state)
        graph = DialogueGraph(
            "shop",
            nodes=(
                Node(
                    "start",
                    text="Well?",
                    choices=(
                        Choice("First", "end"),
                        Choice("Locked", "end", conditions=(HasItem("apple", 5),)),
                        Choice("Apples", "end", conditions=(HasItem("apple", 3),)),
                        Choice("Last", "end"),
                    ),
                ),
                Node("end", text="Bye"),
            ),
        )

        engine.start_dialogue(graph)

        assert recorder.of("show_choices") == [["First", "Apples", "Last"]]

    def test_all_choices_filtered_shows_continue(self):
        """Test that a node whose choices are all hidden falls back to continue."""
        engine, _, recorder, _ = make_engine()
        graph = DialogueGraph(
            "hidden",
            nodes=(
                Node(
                    "start",
                    choices=(Choice("Secret", "end", conditions=(QuestActive("q"),)),),
                    next_node_id="end",
                ),
                Node("end"),
            ),
        )

        engine.start_dialogue(graph)

        assert engine.prompt is Prompt.CONTINUE
        assert "show_continue" in recorder.names()

    def test_raising_condition_counts_as_unmet(self):
        """Test that a condition port failure hides the choice instead of crashing."""

        class BrokenPort(GameState):
            def is_quest_active(self, quest_id):
                raise RuntimeError("quest system offline")

        engine, _, recorder, _ = make_engine(state=BrokenPort())
        graph = DialogueGraph(
            "broken_port",
            nodes=(
                Node(
                    "start",
                    choices=(Choice("Quest", "end", conditions=(QuestActive("q"),)), Choice("Plain", "end")),
                ),
                Node("end"),
            ),
        )

        engine.start_dialogue(graph)

        assert recorder.of("show_choices") == [["Plain"]]


class TestActions:
    """Test node action dispatch."""

    def test_actions_run_in_order(self):
        """Test that actions reach the action port in declaration order."""
        engine, _, _, state = make_engine()
        graph = DialogueGraph(
            "actions",
            nodes=(
                Node(
                    "start",
                    actions=(StartQuest("orchard"), GiveItem("basket", 2), CustomEvent("cheer")),
                ),
            ),
        )

        engine.start_dialogue(graph)

        assert state.active_quests == {"orchard"}
        assert state.inventory["basket"] == 2
        assert [name for name, _ in state.events] == ["cheer"]

    def test_failing_action_does_not_stop_the_rest(self):
        """Test that one broken action is skipped and the node still displays."""

        class FlakyState(GameState):
            def give_item(self, item_id, quantity):
                raise RuntimeError("inventory full")

        engine, _, recorder, state = make_engine(state=FlakyState())
        graph = DialogueGraph(
            "flaky",
            nodes=(Node("start", text="Here", actions=(GiveItem("sword"), StartQuest("duel"))),),
        )

        engine.start_dialogue(graph)

        assert state.active_quests == {"duel"}
        assert recorder.of("show_node") == [("", "Here")]

    def test_skip_does_not_rerun_actions(self):
        """Test that skipping typing does not dispatch node actions twice."""
        engine, _, _, state = make_engine(typing_speed=10.0)
        graph = DialogueGraph(
            "gift",
            nodes=(Node("start", text="A present for you", actions=(GiveItem("gem"),)),),
        )

        engine.start_dialogue(graph)
        engine.skip_typing()

        assert state.inventory["gem"] == 1

    def test_separate_action_port(self):
        """Test that conditions and actions may come from different objects."""

        class Conditions(ConditionPort):
            def is_quest_active(self, quest_id):
                return True

        actions = GameState()
        engine = ConversationEngine(ManualClock(), Conditions(), actions=actions, typing_speed=0)
        graph = DialogueGraph(
            "split",
            nodes=(Node("start", conditions=(QuestActive("q"),), actions=(GiveItem("key"),)),),
        )

        engine.start_dialogue(graph)

        assert actions.inventory["key"] == 1


class TestTiming:
    """Test delay, typing and auto-advance timers."""

    def test_delay_before_show(self):
        """Test that the node is only shown once its delay has elapsed."""
        engine, clock, recorder, _ = make_engine()
        engine.start_dialogue(linear_graph(delay_before_show=1.5))

        assert engine.phase is Phase.DISPLAYING
        assert "show_node" not in recorder.names()

        clock.advance(1.0)
        assert "show_node" not in recorder.names()

        clock.advance(0.5)
        assert recorder.of("show_node") == [("NPC", "First")]
        assert engine.phase is Phase.AWAITING_INPUT

    def test_negative_delay_means_no_delay(self):
        """Test that a negative delay shows the node immediately."""
        engine, _, recorder, _ = make_engine()
        engine.start_dialogue(linear_graph(delay_before_show=-3))

        assert recorder.of("show_node") == [("NPC", "First")]

    def test_typing_window(self):
        """Test that options appear after len(text) / typing_speed seconds."""
        engine, clock, recorder, _ = make_engine(typing_speed=10.0)
        engine.start_dialogue(linear_graph())

        assert engine.typing_duration("First") == pytest.approx(0.5)
        assert engine.phase is Phase.DISPLAYING
        assert "show_continue" not in recorder.names()

        clock.advance(0.5)
        assert engine.prompt is Prompt.CONTINUE

    def test_empty_text_has_normal_lifecycle(self):
        """Test that an empty node is still shown and presents its options."""
        engine, _, recorder, _ = make_engine(typing_speed=10.0)
        graph = DialogueGraph("empty", nodes=(Node("start", speaker="NPC", text=""),))

        engine.start_dialogue(graph)

        assert recorder.of("show_node") == [("NPC", "")]
        assert engine.prompt is Prompt.END

    def test_voice_blip_covers_typing_window(self):
        """Test that the voice blip plays for as long as the text types out."""
        engine, clock, recorder, _ = make_engine(typing_speed=10.0)
        engine.start_dialogue(linear_graph(voice_blip="blip_elder"))

        names = recorder.names()
        assert recorder.of("voice_blip") == [("blip_elder", pytest.approx(0.5))]
        assert names.index("node_displayed") < names.index("voice_blip")

        clock.advance(0.5)
        engine.advance()
        clock.advance(1.0)
        assert len(recorder.of("voice_blip")) == 1

    def test_no_voice_blip_when_text_is_instant(self):
        """Test that instant text has nothing to blip over."""
        engine, _, recorder, _ = make_engine(typing_speed=0.0)
        engine.start_dialogue(linear_graph(voice_blip="blip_elder"))

        assert "voice_blip" not in recorder.names()
        assert engine.prompt is Prompt.CONTINUE


class TestMusic:
    """Test the music request sent when a conversation starts."""

    def test_music_follows_dialogue_started(self):
        """Test that background music and ambient sound are requested once at start."""
        engine, _, recorder, _ = make_engine()
        engine.start_dialogue(hi_bye_graph(background_music="village_theme", ambient_sound="birds"))

        assert recorder.names()[:3] == ["dialogue_started", "music", "show_node"]
        assert recorder.of("music") == [("village_theme", "birds")]

        engine.select_choice(engine.valid_choices[0])
        assert len(recorder.of("music")) == 1

    def test_ambient_sound_alone(self):
        """Test that ambient sound without music is still requested."""
        engine, _, recorder, _ = make_engine()
        engine.start_dialogue(hi_bye_graph(ambient_sound="wind"))

        assert recorder.of("music") == [(None, "wind")]

    def test_auto_advance_counts_from_display(self):
        """Test that auto-advance starts when the node is shown, not when it is entered."""
        engine, clock, _, _ = make_engine()
        engine.start_dialogue(linear_graph(delay_before_show=1.0, auto_advance=2.0))

        clock.advance(2.5)
        assert engine.current_node.node_id == "one"

        clock.advance(0.5)
        assert engine.current_node.node_id == "two"

    def test_auto_advance_on_terminal_node_ends(self):
        """Test that auto-advance past the last node completes the conversation."""
        engine, clock, recorder, _ = make_engine()
        graph = DialogueGraph("timed", nodes=(Node("start", text="Bye", auto_advance=1.0),))

        engine.start_dialogue(graph)
        clock.advance(1.0)

        assert not engine.is_active
        assert recorder.of("dialogue_ended") == [("timed", True)]

    def test_choice_cancels_auto_advance(self):
        """Test that answering before the auto-advance timer fires cancels it."""
        engine, clock, _, _ = make_engine()
        graph = DialogueGraph(
            "hurry",
            nodes=(
                Node("start", choices=(Choice("Go", "left"),), next_node_id="right", auto_advance=5.0),
                Node("left", text="Left"),
                Node("right", text="Right"),
            ),
        )

        engine.start_dialogue(graph)
        engine.select_choice_index(0)
        clock.advance(10)

        assert engine.current_node.node_id == "left"
        assert clock.pending == 0

    def test_end_cancels_all_timers(self):
        """Test that ending a conversation leaves no live timers behind."""
        engine, clock, _, _ = make_engine(typing_speed=5.0)
        engine.start_dialogue(linear_graph(delay_before_show=1.0, auto_advance=3.0))
        clock.advance(1.0)
        assert clock.pending > 0

        engine.end_dialogue()

        assert clock.pending == 0
        assert engine.end_reason is EndReason.FORCED


class TestSkipTyping:
    """Test skipping the delay and typing window."""

    def test_skip_during_typing(self):
        """Test that skipping reveals the text and presents options at once."""
        engine, clock, recorder, _ = make_engine(typing_speed=1.0)
        engine.start_dialogue(linear_graph())

        engine.skip_typing()

        assert recorder.of("reveal_text") == ["First"]
        assert engine.prompt is Prompt.CONTINUE
        assert clock.pending == 0

    def test_skip_during_delay_shows_node(self):
        """Test that skipping the delay shows the node exactly once."""
        engine, clock, recorder, _ = make_engine()
        engine.start_dialogue(linear_graph(delay_before_show=4.0))

        engine.skip_typing()
        clock.advance(10)

        assert recorder.of("show_node") == [("NPC", "First")]
        assert engine.phase is Phase.AWAITING_INPUT

    def test_skip_then_advance_matches_waiting(self):
        """Test that skip followed by advance lands on the same node as waiting would."""
        skipped, _, _, _ = make_engine(typing_speed=2.0)
        skipped.start_dialogue(linear_graph())
        skipped.skip_typing()
        skipped.advance()

        waited, clock, _, _ = make_engine(typing_speed=2.0)
        waited.start_dialogue(linear_graph())
        clock.advance(waited.typing_duration("First"))
        waited.advance()

        assert skipped.current_node.node_id == waited.current_node.node_id == "two"

    def test_skip_outside_displaying_is_illegal(self):
        """Test that skip_typing is rejected once options are on screen."""
        engine, _, _, _ = make_engine()
        engine.start_dialogue(linear_graph())

        with pytest.raises(IllegalStateError):
            engine.skip_typing()


class TestIllegalCalls:
    """Test that misuse is rejected without corrupting state."""

    def test_calls_without_session(self):
        """Test every input operation while idle."""
        engine, _, _, _ = make_engine()
        for operation in (engine.advance, engine.skip_typing, engine.end_dialogue):
            with pytest.raises(IllegalStateError):
                operation()
        with pytest.raises(IllegalStateError):
            engine.select_choice(Choice("Nope", "x"))

    def test_stale_choice_rejected(self):
        """Test that a choice from outside the presented set is refused."""
        engine, _, recorder, _ = make_engine()
        engine.start_dialogue(hi_bye_graph())
        before = list(recorder.events)

        with pytest.raises(InvalidChoiceError):
            engine.select_choice(Choice("Bye", "B"))

        assert recorder.events == before
        assert engine.current_node.node_id == "A"
        assert engine.prompt is Prompt.CHOICES

    def test_choice_index_out_of_range(self):
        """Test that an out-of-range index is an invalid choice."""
        engine, _, _, _ = make_engine()
        engine.start_dialogue(hi_bye_graph())

        with pytest.raises(InvalidChoiceError):
            engine.select_choice_index(3)

    def test_select_while_displaying(self):
        """Test that choosing during the typing window is illegal."""
        engine, _, _, _ = make_engine(typing_speed=1.0)
        engine.start_dialogue(hi_bye_graph())

        with pytest.raises(IllegalStateError):
            engine.select_choice(hi_bye_graph().nodes[0].choices[0])
        assert engine.phase is Phase.DISPLAYING

    def test_advance_with_choices_on_screen(self):
        """Test that continue is refused while choices are presented."""
        engine, _, _, _ = make_engine()
        engine.start_dialogue(hi_bye_graph())

        with pytest.raises(IllegalStateError):
            engine.advance()
        assert engine.prompt is Prompt.CHOICES


class TestContentErrors:
    """Test missing nodes discovered during traversal."""

    def test_dangling_choice_target(self):
        """Test that a choice pointing nowhere ends the conversation with a diagnostic."""
        engine, _, recorder, _ = make_engine()
        graph = DialogueGraph("dangling", nodes=(Node("start", choices=(Choice("Go", "void"),)),))

        engine.start_dialogue(graph)
        engine.select_choice_index(0)

        assert not engine.is_active
        assert isinstance(engine.last_error, MissingNodeError)
        assert engine.last_error.node_id == "void"
        assert recorder.of("dialogue_ended") == [("dangling", False)]

    def test_dangling_next_node(self):
        """Test that a next-node pointing nowhere is reported, not ignored."""
        engine, _, _, _ = make_engine()
        graph = DialogueGraph("dangling_next", nodes=(Node("start", next_node_id="void"),))

        engine.start_dialogue(graph)
        engine.advance()

        assert engine.end_reason is EndReason.CONTENT_ERROR
        assert engine.last_error.referenced_from == "start"

    def test_new_start_clears_last_error(self):
        """Test that a fresh conversation starts without the previous diagnostic."""
        engine, _, _, _ = make_engine()
        engine.start_dialogue(DialogueGraph("bad", nodes=(Node("start", next_node_id="void"),)))
        engine.advance()
        assert engine.last_error is not None

        engine.start_dialogue(hi_bye_graph())

        assert engine.last_error is None
        assert engine.end_reason is None
