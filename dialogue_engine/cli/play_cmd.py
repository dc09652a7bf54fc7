"""
Interactive Dialogue Player - walk through a dialogue with the real engine
"""

import shutil
import sys
import textwrap
from pathlib import Path
from typing import Iterable, Optional

from dialogue_engine.engine.clock import ManualClock
from dialogue_engine.engine.conversation import ConversationEngine, Phase, Prompt
from dialogue_engine.engine.ports import PresentationPort
from dialogue_engine.engine.state import GameState
from dialogue_engine.errors import ContentError, DialogueError
from dialogue_engine.graph.loader import load_graph
from dialogue_engine.graph.model import DialogueGraph


# ANSI color codes for terminal output
class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    ITALIC = "\033[3m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"

    BRIGHT_BLACK = "\033[90m"
    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_BLUE = "\033[94m"
    BRIGHT_MAGENTA = "\033[95m"
    BRIGHT_CYAN = "\033[96m"
    BRIGHT_WHITE = "\033[97m"


def format_dialogue_box(text: str, speaker: str, color: str, max_width: int = 60, term_width: int = 80) -> str:
    """Format dialogue text in a nice box"""
    actual_max = max(20, min(max_width, term_width - 8))

    lines = []
    for paragraph in text.split("\n"):
        if paragraph:
            lines.extend(textwrap.wrap(paragraph, width=actual_max))
        else:
            lines.append("")

    box_width = max(len(line) for line in lines) if lines else 20
    box_width = max(box_width, len(speaker) + 2)

    result = [f"\n  {color}╭─ {speaker} {'─' * (box_width - len(speaker) - 1)}╮{Colors.RESET}"]
    for line in lines:
        result.append(f"  {color}│{Colors.RESET} {line.ljust(box_width)} {color}│{Colors.RESET}")
    result.append(f"  {color}╰{'─' * (box_width + 2)}╯{Colors.RESET}")
    return "\n".join(result)


class ConsolePresenter(PresentationPort):
    """Renders engine display requests to the terminal"""

    def __init__(self, echo=print, verbose: bool = False):
        self.echo = echo
        self.verbose = verbose
        try:
            self.term_width = shutil.get_terminal_size().columns
        except OSError:
            self.term_width = 80
        self.choices = ()
        self.ended_naturally: Optional[bool] = None

    def on_dialogue_started(self, graph):
        self.echo(f"\n{Colors.BRIGHT_CYAN}{'=' * 70}{Colors.RESET}")
        self.echo(f"{Colors.BRIGHT_YELLOW}{Colors.BOLD}🎭 {graph.display_name}{Colors.RESET}")
        if graph.description:
            self.echo(f"{Colors.DIM}{graph.description}{Colors.RESET}")
        self.echo(f"{Colors.BRIGHT_CYAN}{'=' * 70}{Colors.RESET}")

    def on_show_node(self, speaker, text):
        if not speaker or speaker.lower() == "narrator":
            wrapped = textwrap.fill(text, width=min(70, self.term_width - 6), break_long_words=False)
            self.echo(f"\n{Colors.ITALIC}{Colors.BRIGHT_BLACK}📖 {wrapped}{Colors.RESET}")
        else:
            self.echo(format_dialogue_box(text, speaker, Colors.BRIGHT_CYAN, term_width=self.term_width))

    def on_node_displayed(self, node):
        if self.verbose:
            self.echo(f"  {Colors.DIM}[{node.node_id}]{Colors.RESET}")

    def on_voice_line(self, voice_id):
        if self.verbose:
            self.echo(f"  {Colors.DIM}♪ {voice_id}{Colors.RESET}")

    def on_animation(self, trigger):
        if self.verbose:
            self.echo(f"  {Colors.DIM}(animation: {trigger}){Colors.RESET}")

    def on_music(self, background_music, ambient_sound):
        if self.verbose:
            sounds = ", ".join(s for s in (background_music, ambient_sound) if s)
            self.echo(f"  {Colors.DIM}(music: {sounds}){Colors.RESET}")

    def on_voice_blip(self, blip_id, duration):
        if self.verbose:
            self.echo(f"  {Colors.DIM}(blip: {blip_id} {duration:.1f}s){Colors.RESET}")

    def on_show_choices(self, choices, select):
        self.choices = tuple(choices)
        self.echo(f"\n{Colors.DIM}{'─' * 50}{Colors.RESET}")
        for i, choice in enumerate(self.choices, 1):
            cond_indicator = f" {Colors.BRIGHT_YELLOW}✓{Colors.RESET}" if choice.conditions else ""
            self.echo(f"  {Colors.BRIGHT_YELLOW}[{i}]{Colors.RESET} {Colors.YELLOW}{choice.text}{Colors.RESET}{cond_indicator}")

    def on_show_continue(self, advance):
        self.echo(f"\n  {Colors.DIM}[Enter] Continue{Colors.RESET}")

    def on_show_end(self, end):
        self.echo(f"\n  {Colors.DIM}[Enter] End conversation{Colors.RESET}")

    def on_choice_selected(self, choice):
        self.echo(format_dialogue_box(choice.text, "You", Colors.BRIGHT_GREEN, term_width=self.term_width))

    def on_dialogue_ended(self, graph, was_natural):
        self.ended_naturally = was_natural
        self.echo(f"\n{Colors.BRIGHT_CYAN}{'=' * 70}{Colors.RESET}")
        if was_natural:
            self.echo(f"{Colors.BRIGHT_YELLOW}{Colors.BOLD}🎬 THE END{Colors.RESET}")
        else:
            self.echo(f"{Colors.BRIGHT_YELLOW}📍 Conversation interrupted.{Colors.RESET}")
        self.echo(f"{Colors.BRIGHT_CYAN}{'=' * 70}{Colors.RESET}")


def parse_items(items: Iterable[str]):
    """Parse 'apple' / 'apple*3' / 'apple=3' into (item, quantity) pairs"""
    for raw in items:
        for sep in ("*", "="):
            if sep in raw:
                item, quantity = raw.split(sep, 1)
                yield item.strip(), int(quantity)
                break
        else:
            yield raw.strip(), 1


class DialoguePlayer:
    """Interactive dialogue player"""

    def __init__(
        self,
        graph: DialogueGraph,
        state: Optional[GameState] = None,
        verbose: bool = False,
        echo=print,
        read=input,
    ):
        self.graph = graph
        self.state = state or GameState()
        self.echo = echo
        self.read = read
        self.clock = ManualClock()
        self.presenter = ConsolePresenter(echo=echo, verbose=verbose)
        self.engine = ConversationEngine(self.clock, self.state, presenter=self.presenter)
        self.visited_nodes = set()

    def play(self) -> bool:
        """Play the dialogue to the end; returns True on a natural ending"""
        self.echo(f"\n{Colors.BRIGHT_WHITE}Controls:{Colors.RESET}")
        self.echo(f"  {Colors.CYAN}•{Colors.RESET} Enter the number to select a choice, Enter to continue")
        self.echo(f"  {Colors.CYAN}•{Colors.RESET} Type {Colors.YELLOW}'state'{Colors.RESET} to see the game state")
        self.echo(f"  {Colors.CYAN}•{Colors.RESET} Type {Colors.YELLOW}'quit'{Colors.RESET} to stop")

        try:
            self.engine.start_dialogue(self.graph)
        except DialogueError as e:
            self.echo(f"{Colors.RED}❌ {e}{Colors.RESET}")
            return False

        while self.engine.is_active:
            if self.engine.current_node is not None:
                self.visited_nodes.add(self.engine.current_node.node_id)

            if self.engine.phase is Phase.DISPLAYING:
                # Nothing to ask yet: jump to the end of the delay/typing window
                if not self.clock.run_next():
                    self.engine.skip_typing()
                continue

            session = self.engine.session
            if "auto_advance" in session.timers and self.engine.prompt is not Prompt.CHOICES:
                self.echo(f"  {Colors.DIM}(auto){Colors.RESET}")
                self.clock.run_next()
                continue

            self._prompt()

        if self.engine.last_error is not None:
            self.echo(f"{Colors.RED}❌ Content error: {self.engine.last_error}{Colors.RESET}")

        self.show_final_state()
        return bool(self.presenter.ended_naturally)

    def _prompt(self):
        """Read one command from the player and apply it"""
        try:
            user_input = self.read(f"\n{Colors.BRIGHT_MAGENTA}>{Colors.RESET} ").strip().lower()
        except (KeyboardInterrupt, EOFError):
            self.echo(f"\n\n{Colors.BRIGHT_YELLOW}👋 Thanks for playing!{Colors.RESET}")
            self.engine.end_dialogue()
            return

        if user_input in ("quit", "exit", "q"):
            self.echo("\n👋 Thanks for playing!")
            self.engine.end_dialogue()
            return

        if user_input == "state":
            self.show_state()
            return

        prompt = self.engine.prompt
        if prompt is Prompt.CHOICES:
            try:
                choice_num = int(user_input)
            except ValueError:
                self.echo(f"{Colors.RED}❌ Please enter a valid number or command.{Colors.RESET}")
                return
            if 1 <= choice_num <= len(self.engine.valid_choices):
                self.engine.select_choice_index(choice_num - 1)
            else:
                self.echo(f"{Colors.RED}❌ Invalid choice. Please enter a number from the list.{Colors.RESET}")
        elif prompt is Prompt.CONTINUE:
            self.engine.advance()
        else:
            self.engine.end_dialogue()

    def show_state(self):
        """Display current game state"""
        data = self.state.to_dict()
        self.echo(f"\n{Colors.BRIGHT_BLUE}{'=' * 50}{Colors.RESET}")
        self.echo(f"{Colors.BRIGHT_BLUE}📊 CURRENT GAME STATE{Colors.RESET}")
        self.echo(f"{Colors.BRIGHT_BLUE}{'=' * 50}{Colors.RESET}")
        self.echo(f"\n⭐ Level: {data['level']}")
        self.echo("\n📜 Active quests: " + (", ".join(data["active_quests"]) or "(none)"))
        self.echo("✅ Completed quests: " + (", ".join(data["completed_quests"]) or "(none)"))
        self.echo("\n🎒 Inventory:")
        if data["inventory"]:
            for item, count in data["inventory"].items():
                self.echo(f"  • {item} x{count}")
        else:
            self.echo("  (empty)")
        node = self.engine.current_node
        self.echo("\n📍 Current Node: " + (node.node_id if node else "None"))
        self.echo("=" * 50)

    def show_final_state(self):
        """Show final game state summary"""
        data = self.state.to_dict()
        self.echo(f"\n{Colors.BRIGHT_MAGENTA}{Colors.BOLD}📊 FINAL STATS{Colors.RESET}")
        self.echo(f"\n📝 Nodes Visited: {len(self.visited_nodes)}/{len(self.graph.nodes)}")
        if data["active_quests"]:
            self.echo(f"📜 Active quests: {', '.join(data['active_quests'])}")
        if data["completed_quests"]:
            self.echo(f"✅ Completed quests: {', '.join(data['completed_quests'])}")
        if data["inventory"]:
            items = ", ".join(f"{item} x{count}" for item, count in data["inventory"].items())
            self.echo(f"🎒 Inventory: {items}")
        if data["riddles_presented"]:
            self.echo(f"❓ Riddles: {', '.join(data['riddles_presented'])}")
        if data["events"]:
            self.echo(f"✨ Events: {', '.join(data['events'])}")


def main():
    """Main entry point"""
    args = [arg for arg in sys.argv[1:] if not arg.startswith("-")]
    if not args:
        print("Usage: dlg-play <dialogue_file.json> [--verbose]")
        sys.exit(1)

    dialogue_path = Path(args[0])
    if not dialogue_path.exists():
        print(f"❌ File not found: {dialogue_path}")
        sys.exit(1)

    try:
        graph = load_graph(dialogue_path)
    except ContentError as e:
        print(f"❌ {e}")
        sys.exit(1)

    verbose = "--verbose" in sys.argv or "-v" in sys.argv
    player = DialoguePlayer(graph, verbose=verbose)
    player.play()


if __name__ == "__main__":
    main()
