"""
Export dialogue files to JSON or CSV
"""

import logging
from pathlib import Path
from typing import Optional

from dialogue_engine.export.exporter import DialogueExporter
from dialogue_engine.graph.loader import load_graph
from dialogue_engine.graph.validator import GraphValidator

logger = logging.getLogger(__name__)

FORMATS = ("json", "csv")


def export_graph(dialogue_path: Path, output_path: Optional[Path] = None, fmt: str = "json", echo=print) -> Path:
    """Load, validate and export one dialogue file"""
    if fmt not in FORMATS:
        raise ValueError(f"Unknown export format '{fmt}', expected one of {', '.join(FORMATS)}")

    dialogue_path = Path(dialogue_path)
    graph = load_graph(dialogue_path)

    report = GraphValidator().check(graph)
    if not report.ok:
        echo("⚠️  Warning: Dialogue has validation issues:")
        for error in report.errors:
            echo(f"  • {error}")

    if output_path is None:
        output_path = dialogue_path.with_suffix(f".export.{fmt}")
    output_path = Path(output_path)

    exporter = DialogueExporter()
    if fmt == "csv":
        exporter.export_to_csv(graph, output_path)
    else:
        exporter.export_to_json(graph, output_path)
    logger.info("Exported %s to %s", graph.graph_id, output_path)

    choices = sum(len(node.choices) for node in graph.nodes)
    echo(f"✅ Exported to: {output_path}")
    echo(f"   • {len(graph.nodes)} nodes")
    echo(f"   • {choices} choices")
    return output_path
