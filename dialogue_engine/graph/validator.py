"""
Structural validation for dialogue graphs.

Run it over every graph at build/test time; the conversation engine does not
re-validate at runtime.
"""

from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Any, Dict, List, Set

from dialogue_engine.graph.model import DialogueGraph


@dataclass
class ValidationReport:
    """Errors fail a build, warnings are advisory"""

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class GraphValidator:
    """Offline checker for dialogue graphs (no runtime state)"""

    def validate(self, graph: DialogueGraph) -> List[str]:
        """Return every structural error in the graph"""
        errors: List[str] = []
        errors.extend(self._check_start_node(graph))
        errors.extend(self._check_duplicates(graph))
        errors.extend(self._check_references(graph))
        errors.extend(self._check_reachability(graph))
        return errors

    def check(self, graph: DialogueGraph) -> ValidationReport:
        """Errors plus authoring warnings"""
        report = ValidationReport(errors=self.validate(graph))
        report.warnings.extend(self._check_skip_cycles(graph))
        for node in graph.nodes:
            if node.choices and node.next_node_id:
                report.warnings.append(
                    f"Node '{node.node_id}' has choices and next node '{node.next_node_id}'; "
                    f"the next node is ignored"
                )
            for index, choice in enumerate(node.choices, 1):
                if not choice.text.strip():
                    report.warnings.append(f"Node '{node.node_id}' choice #{index} has no text")
        return report

    def _check_start_node(self, graph: DialogueGraph) -> List[str]:
        if graph.has_node(graph.start_node_id):
            return []
        return [f"Start node '{graph.start_node_id}' not found"]

    def _check_duplicates(self, graph: DialogueGraph) -> List[str]:
        errors = []
        seen: Set[str] = set()
        for node in graph.nodes:
            if node.node_id in seen:
                errors.append(f"Duplicate node ID: '{node.node_id}'")
            else:
                seen.add(node.node_id)
        return errors

    def _check_references(self, graph: DialogueGraph) -> List[str]:
        errors = []
        for node in graph.nodes:
            if node.next_node_id and not graph.has_node(node.next_node_id):
                errors.append(f"Node '{node.node_id}' references missing node '{node.next_node_id}'")
            for choice in node.choices:
                if not graph.has_node(choice.target_node_id):
                    errors.append(
                        f"Node '{node.node_id}' choice '{choice.text}' references missing node "
                        f"'{choice.target_node_id}'"
                    )
        return errors

    def _check_reachability(self, graph: DialogueGraph) -> List[str]:
        reachable = self.find_reachable_nodes(graph)
        errors = []
        reported: Set[str] = set()
        for node in graph.nodes:
            if node.node_id not in reachable and node.node_id not in reported:
                reported.add(node.node_id)
                errors.append(f"Node '{node.node_id}' is unreachable from start node")
        return errors

    def find_reachable_nodes(self, graph: DialogueGraph) -> Set[str]:
        """Breadth-first walk over next-node and choice edges from the start node"""
        visited: Set[str] = set()
        if not graph.has_node(graph.start_node_id):
            return visited

        to_visit = deque([graph.start_node_id])
        while to_visit:
            current = to_visit.popleft()
            if current in visited:
                continue
            node = graph.get_node(current)
            if node is None:
                continue

            visited.add(current)
            targets = [choice.target_node_id for choice in node.choices]
            if node.next_node_id:
                targets.append(node.next_node_id)
            for target in targets:
                if target not in visited:
                    to_visit.append(target)

        return visited

    def _check_skip_cycles(self, graph: DialogueGraph) -> List[str]:
        """Find loops of conditional nodes linked by next-node edges.

        When every condition on such a loop fails, the engine would skip from
        node to node forever.
        """
        warnings = []
        reported: Set[str] = set()
        for node in graph.nodes:
            if node.node_id in reported or not node.conditions:
                continue

            path: List[str] = []
            current = node
            while current is not None and current.conditions and current.node_id not in path:
                path.append(current.node_id)
                current = graph.get_node(current.next_node_id)

            if current is not None and current.node_id == node.node_id:
                reported.update(path)
                cycle = " -> ".join(path + [node.node_id])
                warnings.append(f"Skip cycle among conditional nodes: {cycle}")
        return warnings

    def stats(self, graph: DialogueGraph) -> Dict[str, Any]:
        """Get statistics about a graph"""
        kinds = Counter(action.kind for node in graph.nodes for action in node.actions)
        return {
            "nodes": len(graph.nodes),
            "speakers": len({node.speaker for node in graph.nodes if node.speaker}),
            "choices": sum(len(node.choices) for node in graph.nodes),
            "actions": sum(len(node.actions) for node in graph.nodes),
            "conditions": sum(
                len(node.conditions) + sum(len(c.conditions) for c in node.choices)
                for node in graph.nodes
            ),
            "branching_nodes": sum(1 for node in graph.nodes if len(node.choices) > 1),
            "linear_nodes": sum(
                1 for node in graph.nodes if len(node.choices) == 1 or (not node.choices and node.next_node_id)
            ),
            "end_nodes": sum(1 for node in graph.nodes if node.is_terminal()),
            "timed_nodes": sum(1 for node in graph.nodes if node.auto_advance > 0),
            "action_kinds": dict(sorted(kinds.items())),
        }


def validate(graph: DialogueGraph) -> List[str]:
    """Shortcut for GraphValidator().validate(graph)"""
    return GraphValidator().validate(graph)
