"""
Flask web application for the Dialogue Engine - playtest API

Serves the dialogue files under the content root and lets a browser (or a
script) drive one conversation through the real engine. Time only moves when
the client calls /api/play/tick, so a playtest is fully reproducible.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from flask import Flask, jsonify, request

from dialogue_engine.config import get_settings
from dialogue_engine.engine.availability import AvailabilityGate
from dialogue_engine.engine.clock import ManualClock
from dialogue_engine.engine.conversation import ConversationEngine
from dialogue_engine.engine.ports import EventRecorder
from dialogue_engine.engine.state import GameState
from dialogue_engine.errors import ContentError, DialogueUnavailableError, IllegalStateError
from dialogue_engine.graph.loader import load_graph
from dialogue_engine.graph.model import DialogueGraph
from dialogue_engine.graph.validator import GraphValidator

logger = logging.getLogger(__name__)


class Playtest:
    """The single conversation a playtest server drives"""

    def __init__(self, typing_speed: Optional[float] = None):
        self.clock = ManualClock()
        self.recorder = EventRecorder()
        self.gate = AvailabilityGate()
        self.state = GameState()
        self.engine = ConversationEngine(
            self.clock,
            self.state,
            presenter=self.recorder,
            gate=self.gate,
            typing_speed=typing_speed,
        )

    def use_state(self, state: GameState):
        self.state = state
        self.engine.conditions = state
        self.engine.actions = state

    def snapshot(self) -> Dict[str, Any]:
        """JSON-serializable view of the engine and game state"""
        engine = self.engine
        session = engine.session
        node = engine.current_node
        return {
            "active": engine.is_active,
            "graph_id": session.graph.graph_id if session else None,
            "node_id": node.node_id if node else None,
            "phase": engine.phase.value,
            "prompt": engine.prompt.value if engine.prompt else None,
            "choices": [choice.text for choice in engine.valid_choices],
            "timers": sorted(session.timers) if session else [],
            "clock": self.clock.now(),
            "end_reason": engine.end_reason.value if engine.end_reason else None,
            "last_error": str(engine.last_error) if engine.last_error else None,
            "state": self.state.to_dict(),
        }


def _events(recorder: EventRecorder) -> List[Dict[str, Any]]:
    return [{"event": name, "payload": payload} for name, payload in recorder.events]


def graph_to_view(graph: DialogueGraph) -> Dict[str, Any]:
    """Convert a graph to nodes/edges for a graph view"""
    nodes = []
    edges = []
    for node in graph.nodes:
        nodes.append(
            {
                "id": node.node_id,
                "label": node.node_id,
                "speaker": node.speaker,
                "text": node.text,
                "is_start": node.node_id == graph.start_node_id,
                "is_end": node.is_terminal(),
                "choices_count": len(node.choices),
                "actions": [action.describe() for action in node.actions],
                "conditions": [condition.describe() for condition in node.conditions],
            }
        )
        if node.next_node_id:
            edges.append({"source": node.node_id, "target": node.next_node_id, "type": "next", "label": ""})
        for choice in node.choices:
            edges.append(
                {
                    "source": node.node_id,
                    "target": choice.target_node_id,
                    "type": "choice",
                    "label": choice.text,
                    "conditions": [condition.describe() for condition in choice.conditions],
                }
            )
    return {"nodes": nodes, "edges": edges}


def create_app(content_root=None, typing_speed: Optional[float] = None):
    """Create and configure the Flask application"""
    app = Flask(__name__)

    if content_root is None:
        content_root = get_settings().content_root
    app.config["CONTENT_ROOT"] = Path(content_root).resolve()

    playtest = Playtest(typing_speed=typing_speed)
    app.extensions["playtest"] = playtest

    def resolve(relative: str) -> Optional[Path]:
        """Map a client path to a file under the content root, or None"""
        root = app.config["CONTENT_ROOT"]
        file_path = (root / relative).resolve()
        if not file_path.is_relative_to(root) or not file_path.is_file():
            return None
        return file_path

    def play_call(operation):
        """Run one engine operation and report what it emitted"""
        playtest.recorder.clear()
        try:
            operation()
        except IllegalStateError as e:
            return jsonify({"error": str(e), "session": playtest.snapshot()}), 409
        return jsonify({"events": _events(playtest.recorder), "session": playtest.snapshot()})

    @app.route("/api/graphs")
    def list_graphs():
        """List all dialogue files"""
        root = app.config["CONTENT_ROOT"]
        files = []

        if root.exists():
            for json_file in sorted(root.rglob("*.json")):
                rel_path = json_file.relative_to(root)
                files.append(
                    {
                        "path": rel_path.as_posix(),
                        "name": json_file.stem,
                        "category": rel_path.parent.name if str(rel_path.parent) != "." else "root",
                    }
                )

        return jsonify({"files": files})

    @app.route("/api/graphs/<path:filename>")
    def get_graph(filename):
        """Load a dialogue file and return its graph view and validation report"""
        file_path = resolve(filename)
        if file_path is None:
            return jsonify({"error": "File not found"}), 404

        try:
            graph = load_graph(file_path)
        except ContentError as e:
            logger.warning("Could not load %s: %s", filename, e)
            return jsonify({"error": str(e), "errors": getattr(e, "errors", [])}), 422

        validator = GraphValidator()
        report = validator.check(graph)
        return jsonify(
            {
                "graph": graph.to_dict(),
                **graph_to_view(graph),
                "validation": {"ok": report.ok, "errors": report.errors, "warnings": report.warnings},
                "stats": validator.stats(graph),
            }
        )

    @app.route("/api/play/start", methods=["POST"])
    def play_start():
        """Start (or restart) the playtest conversation"""
        data = request.get_json(silent=True) or {}
        file_path = resolve(data.get("path", ""))
        if file_path is None:
            return jsonify({"error": "File not found"}), 404

        try:
            graph = load_graph(file_path)
        except ContentError as e:
            return jsonify({"error": str(e), "errors": getattr(e, "errors", [])}), 422

        if "state" in data:
            playtest.use_state(GameState.from_dict(data["state"] or {}))
        logger.info("Playtest start: %s", file_path.relative_to(app.config["CONTENT_ROOT"]))

        playtest.recorder.clear()
        try:
            playtest.engine.start_dialogue(graph)
        except DialogueUnavailableError as e:
            return (
                jsonify(
                    {
                        "error": str(e),
                        "reason": playtest.gate.blocked_reason(graph, playtest.clock.now()),
                        "remaining_cooldown": e.remaining_cooldown,
                    }
                ),
                403,
            )
        except ContentError as e:
            return jsonify({"error": str(e)}), 422

        return jsonify({"events": _events(playtest.recorder), "session": playtest.snapshot()})

    @app.route("/api/play/advance", methods=["POST"])
    def play_advance():
        return play_call(playtest.engine.advance)

    @app.route("/api/play/choose", methods=["POST"])
    def play_choose():
        data = request.get_json(silent=True) or {}
        try:
            index = int(data.get("index", -1))
        except (TypeError, ValueError):
            return jsonify({"error": "'index' must be an integer"}), 400
        return play_call(lambda: playtest.engine.select_choice_index(index))

    @app.route("/api/play/skip", methods=["POST"])
    def play_skip():
        return play_call(playtest.engine.skip_typing)

    @app.route("/api/play/end", methods=["POST"])
    def play_end():
        return play_call(playtest.engine.end_dialogue)

    @app.route("/api/play/tick", methods=["POST"])
    def play_tick():
        """Move the playtest clock; without 'seconds' jump to the next timer"""
        data = request.get_json(silent=True) or {}
        seconds = data.get("seconds")
        if seconds is None:
            return play_call(playtest.clock.run_next)
        try:
            seconds = float(seconds)
        except (TypeError, ValueError):
            return jsonify({"error": "'seconds' must be a number"}), 400
        if seconds < 0:
            return jsonify({"error": "'seconds' must not be negative"}), 400
        return play_call(lambda: playtest.clock.advance(seconds))

    @app.route("/api/play/state")
    def play_state():
        return jsonify({"session": playtest.snapshot()})

    return app


def run_server(content_root=None, host: Optional[str] = None, port: Optional[int] = None, debug: bool = False):
    """Create the app and run the development server"""
    settings = get_settings()
    host = host or settings.web_host
    port = port or settings.web_port

    app = create_app(content_root=content_root)

    print(f"\n{'=' * 60}")
    print("🎭 Dialogue Engine Playtest API")
    print(f"{'=' * 60}")
    print(f"\n📂 Content directory: {app.config['CONTENT_ROOT']}")
    print(f"🌐 Server running at: http://{host}:{port}")
    print("\nPress Ctrl+C to stop\n")

    app.run(host=host, port=port, debug=debug)


def main():
    """Run the development server"""
    import argparse

    parser = argparse.ArgumentParser(description="Dialogue Engine Playtest API")
    parser.add_argument("--dialogues", "-d", help="Path to dialogues directory", default=None)
    parser.add_argument("--host", help="Interface to bind", default=None)
    parser.add_argument("--port", "-p", help="Port to run on", type=int, default=None)
    parser.add_argument("--debug", help="Run in debug mode", action="store_true")

    args = parser.parse_args()
    logging.basicConfig(level=get_settings().log_level.upper())
    run_server(content_root=args.dialogues, host=args.host, port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
