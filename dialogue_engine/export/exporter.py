"""
Export dialogue graphs to various formats
"""

import csv
import json
from pathlib import Path

from ..graph.model import DialogueGraph


class DialogueExporter:
    """Export dialogue graphs to various formats"""

    CSV_FIELDS = [
        "ID", "Node", "Actor", "Conversant", "Dialogue Text", "Menu Text",
        "Target", "Conditions", "Script", "Is Root", "Is End",
        "Delay", "Auto Advance", "Voice Line", "Animation",
    ]

    def export_to_csv(self, graph: DialogueGraph, output_path: Path):
        """Export one row per node followed by one row per choice"""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, "w", newline="", encoding="utf-8") as csvfile:
            writer = csv.DictWriter(csvfile, fieldnames=self.CSV_FIELDS)
            writer.writeheader()

            for i, node in enumerate(graph.nodes):
                writer.writerow({
                    "ID": i + 1,
                    "Node": node.node_id,
                    "Actor": node.speaker,
                    "Conversant": "Player",
                    "Dialogue Text": node.text,
                    "Menu Text": "",
                    "Target": node.next_node_id,
                    "Conditions": "; ".join(c.describe() for c in node.conditions),
                    "Script": "; ".join(a.describe() for a in node.actions),
                    "Is Root": "True" if node.node_id == graph.start_node_id else "False",
                    "Is End": "True" if node.is_terminal() else "False",
                    "Delay": node.delay_before_show,
                    "Auto Advance": node.auto_advance,
                    "Voice Line": node.voice_line or "",
                    "Animation": node.animation_trigger,
                })

                for j, choice in enumerate(node.choices):
                    writer.writerow({
                        "ID": f"{i + 1}.{j + 1}",
                        "Node": node.node_id,
                        "Actor": "Player",
                        "Conversant": node.speaker,
                        "Dialogue Text": choice.text,
                        "Menu Text": choice.text,
                        "Target": choice.target_node_id,
                        "Conditions": "; ".join(c.describe() for c in choice.conditions),
                        "Script": "",
                        "Is Root": "False",
                        "Is End": "False",
                        "Delay": "",
                        "Auto Advance": "",
                        "Voice Line": "",
                        "Animation": "",
                    })

    def export_to_json(self, graph: DialogueGraph, output_path: Path):
        """Export to the JSON format read by GraphLoader"""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(graph.to_dict(), f, indent=2, ensure_ascii=False)
