"""
CLI commands for the dialogue engine
"""

import logging
import sys
from pathlib import Path

import click

from dialogue_engine.cli.export_cmd import FORMATS, export_graph
from dialogue_engine.cli.play_cmd import DialoguePlayer, parse_items
from dialogue_engine.cli.validate_cmd import validate_files
from dialogue_engine.config import get_settings
from dialogue_engine.engine.state import GameState
from dialogue_engine.errors import ContentError
from dialogue_engine.graph.loader import load_graph
from dialogue_engine.graph.validator import GraphValidator


def _load_or_exit(path: Path):
    try:
        return load_graph(path)
    except ContentError as e:
        click.echo(f"\n❌ Error: {e}", err=True)
        for error in getattr(e, "errors", []):
            click.echo(f"  • {error}", err=True)
        sys.exit(1)


@click.group()
@click.option("--log-level", default=None, help="Logging level (defaults to DIALOGUE_LOG_LEVEL)")
def cli(log_level):
    """Dialogue Engine - author, check and play NPC conversations"""
    level = (log_level or get_settings().log_level).upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@cli.command()
@click.argument("file_paths", nargs=-1, required=True, type=click.Path(exists=True))
@click.option("--strict", is_flag=True, help="Treat warnings as failures")
def validate(file_paths, strict):
    """Validate one or more dialogue files"""
    if not validate_files([Path(p) for p in file_paths], strict=strict, echo=click.echo):
        sys.exit(1)


@cli.command()
@click.argument("file_path", type=click.Path(exists=True))
def stats(file_path):
    """Show statistics for a dialogue file"""
    path = Path(file_path)
    graph = _load_or_exit(path)
    stats = GraphValidator().stats(graph)
    report = GraphValidator().check(graph)

    click.echo(f"\n📊 Statistics for {path.name}")
    click.echo("=" * 50)

    click.echo("\n📝 Content:")
    click.echo(f"  Nodes:          {stats['nodes']:>6}")
    click.echo(f"  Speakers:       {stats['speakers']:>6}")
    click.echo(f"  Choices:        {stats['choices']:>6}")
    click.echo(f"  Actions:        {stats['actions']:>6}")
    click.echo(f"  Conditions:     {stats['conditions']:>6}")
    click.echo(f"  Timed nodes:    {stats['timed_nodes']:>6}")

    avg_choices = stats["choices"] / stats["nodes"] if stats["nodes"] > 0 else 0
    click.echo("\n📈 Averages:")
    click.echo(f"  Choices per node: {avg_choices:>6.1f}")

    click.echo("\n🌳 Structure:")
    click.echo(f"  Branching nodes: {stats['branching_nodes']:>6}")
    click.echo(f"  Linear nodes:    {stats['linear_nodes']:>6}")
    click.echo(f"  End nodes:       {stats['end_nodes']:>6}")

    if stats["action_kinds"]:
        click.echo("\n⚡ Actions by kind:")
        for kind, count in sorted(stats["action_kinds"].items()):
            click.echo(f"  {kind:<16} {count:>6}")

    if report.errors or report.warnings:
        click.echo("\n⚠️  Issues:")
        click.echo(f"  Errors:   {len(report.errors):>6}")
        click.echo(f"  Warnings: {len(report.warnings):>6}")

    click.echo()


@cli.command()
@click.argument("file_path", type=click.Path(exists=True))
@click.argument("node_id")
def show_node(file_path, node_id):
    """Display a specific node from a dialogue file"""
    path = Path(file_path)
    graph = _load_or_exit(path)

    node = graph.get_node(node_id)
    if node is None:
        click.echo(f"❌ Node '{node_id}' not found in {path.name}", err=True)
        click.echo("\nAvailable nodes:")
        node_ids = graph.node_ids
        for nid in sorted(node_ids)[:20]:
            click.echo(f"  • {nid}")
        if len(node_ids) > 20:
            click.echo(f"  ... and {len(node_ids) - 20} more")
        sys.exit(1)

    marker = " (start)" if node.node_id == graph.start_node_id else ""
    click.echo(f"\n📍 Node: [{node.node_id}]{marker}")
    click.echo("=" * 50)

    if node.conditions:
        click.echo("\n🔒 Conditions:")
        for condition in node.conditions:
            click.echo(f"  {condition.describe()}")

    if node.actions:
        click.echo("\n⚡ Actions:")
        for action in node.actions:
            click.echo(f"  {action.describe()}")

    click.echo("\n💬 Dialogue:")
    click.echo(f"  {node.speaker or 'Narrator'}: \"{node.text}\"")

    timing = []
    if node.delay_before_show > 0:
        timing.append(f"delay {node.delay_before_show:g}s")
    if node.auto_advance > 0:
        timing.append(f"auto-advance {node.auto_advance:g}s")
    if timing:
        click.echo(f"\n⏱  {', '.join(timing)}")

    if node.choices:
        click.echo("\n🔀 Choices:")
        for choice in node.choices:
            cond_str = ""
            if choice.conditions:
                cond_str = " {" + ", ".join(c.describe() for c in choice.conditions) + "}"
            click.echo(f"  -> {choice.target_node_id}: \"{choice.text}\"{cond_str}")
    elif node.next_node_id:
        click.echo(f"\n➡️  Next: {node.next_node_id}")
    else:
        click.echo("\n🏁 End of conversation")

    click.echo()


@cli.command()
@click.argument("file_path", type=click.Path(exists=True))
@click.option("--quest", "quests", multiple=True, help="Quest that is already active")
@click.option("--done", "done", multiple=True, help="Quest that is already completed")
@click.option("--item", "items", multiple=True, help="Inventory item, e.g. apple or apple*3")
@click.option("--flag", "flags", multiple=True, help="Custom condition flag set to true")
@click.option("--level", default=1, show_default=True, type=int, help="Player level")
@click.option("--verbose", "-v", is_flag=True, help="Show node ids, voice lines and animations")
def play(file_path, quests, done, items, flags, level, verbose):
    """Play through a dialogue file interactively"""
    graph = _load_or_exit(Path(file_path))

    state = GameState(level=level)
    state.active_quests.update(quests)
    state.completed_quests.update(done)
    try:
        for item, quantity in parse_items(items):
            state.give_item(item, quantity)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--item")
    for flag in flags:
        state.flags[flag] = True

    player = DialoguePlayer(graph, state=state, verbose=verbose, echo=click.echo, read=input)
    player.play()


@cli.command()
@click.argument("file_path", type=click.Path(exists=True))
@click.option("--format", "fmt", type=click.Choice(FORMATS), default="json", show_default=True)
@click.option("--output", "-o", type=click.Path(), default=None, help="Output file path")
def export(file_path, fmt, output):
    """Export a dialogue file to JSON or CSV"""
    try:
        export_graph(Path(file_path), Path(output) if output else None, fmt=fmt, echo=click.echo)
    except ContentError as e:
        click.echo(f"\n❌ Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option("--content-root", "-d", type=click.Path(), default=None, help="Path to dialogue content")
@click.option("--host", default=None, help="Interface to bind (defaults to DIALOGUE_WEB_HOST)")
@click.option("--port", "-p", default=None, type=int, help="Port to run on (defaults to DIALOGUE_WEB_PORT)")
@click.option("--debug", is_flag=True, help="Run in debug mode")
def serve(content_root, host, port, debug):
    """Run the playtest HTTP API"""
    from dialogue_engine.web.app import run_server

    run_server(content_root=content_root, host=host, port=port, debug=debug)


if __name__ == "__main__":
    cli()
