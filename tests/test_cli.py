"""Tests for the command line tools."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from dialogue_engine.cli.commands import cli
from dialogue_engine.cli.play_cmd import DialoguePlayer, parse_items
from dialogue_engine.cli.validate_cmd import DialogueFileValidator
from dialogue_engine.engine.state import GameState
from dialogue_engine.graph.loader import load_graph

SAMPLE = Path(__file__).parent.parent / "resources" / "dialogue" / "village" / "elder.json"


@pytest.fixture
def runner():
    return CliRunner()


def write_json(tmp_path, data, name="dialogue.json"):
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestValidateCommand:
    """Test the validate command and DialogueFileValidator."""

    def test_sample_passes(self, runner):
        """Test that the bundled dialogue validates cleanly."""
        result = runner.invoke(cli, ["validate", str(SAMPLE)])
        assert result.exit_code == 0
        assert "VALIDATION PASSED" in result.output

    def test_dangling_reference_fails(self, runner, tmp_path):
        """Test that a structural error fails the command."""
        path = write_json(tmp_path, {"nodes": [{"id": "start", "next": "nowhere"}]})
        result = runner.invoke(cli, ["validate", str(path)])
        assert result.exit_code == 1
        assert "references missing node 'nowhere'" in result.output

    def test_load_errors_reported(self, tmp_path):
        """Test that loader errors show up in the validator's error list."""
        path = write_json(tmp_path, {"nodes": [{"id": "start", "actions": ["giveitem apple"]}]})
        validator = DialogueFileValidator(path, echo=lambda *_: None)
        assert validator.validate() is False
        assert any("did you mean 'give_item'" in error for error in validator.errors)

    def test_strict_fails_on_warnings(self, runner, tmp_path):
        """Test that --strict turns warnings into failures."""
        path = write_json(
            tmp_path,
            {"nodes": [{"id": "start", "choices": [{"text": "Go", "target": "end"}], "next": "end"}, {"id": "end"}]},
        )
        assert runner.invoke(cli, ["validate", str(path)]).exit_code == 0
        assert runner.invoke(cli, ["validate", "--strict", str(path)]).exit_code == 1

    def test_missing_file(self):
        """Test validation of a non-existent file."""
        validator = DialogueFileValidator(Path("/nonexistent/file.json"), echo=lambda *_: None)
        assert validator.validate() is False


class TestInspectCommands:
    """Test stats and show-node."""

    def test_stats(self, runner):
        """Test the statistics output."""
        result = runner.invoke(cli, ["stats", str(SAMPLE)])
        assert result.exit_code == 0
        assert "Statistics for elder.json" in result.output
        assert "Branching nodes" in result.output

    def test_show_node(self, runner):
        """Test displaying a node with its choices."""
        result = runner.invoke(cli, ["show-node", str(SAMPLE), "offer"])
        assert result.exit_code == 0
        assert "[offer]" in result.output
        assert "-> deliver" in result.output
        assert "has_item:apple*3" in result.output

    def test_show_missing_node(self, runner):
        """Test asking for a node that does not exist."""
        result = runner.invoke(cli, ["show-node", str(SAMPLE), "nope"])
        assert result.exit_code == 1
        assert "greeting" in result.output


class TestExportCommand:
    """Test the export command."""

    def test_export_csv(self, runner, tmp_path):
        """Test exporting to CSV at a chosen path."""
        output = tmp_path / "elder.csv"
        result = runner.invoke(cli, ["export", str(SAMPLE), "--format", "csv", "-o", str(output)])
        assert result.exit_code == 0
        assert output.exists()
        assert "Exported to" in result.output

    def test_export_json(self, runner, tmp_path):
        """Test that the JSON export loads back."""
        output = tmp_path / "elder.json"
        result = runner.invoke(cli, ["export", str(SAMPLE), "-o", str(output)])
        assert result.exit_code == 0
        assert load_graph(output).graph_id == "village_elder"

    def test_export_reports_validation_issues(self, runner, tmp_path):
        """Test that a graph with a dangling reference still exports, with a warning."""
        path = write_json(tmp_path, {"id": "loose", "nodes": [{"id": "start", "text": "Hi", "next": "ghost"}]})
        output = tmp_path / "loose.csv"
        result = runner.invoke(cli, ["export", str(path), "--format", "csv", "-o", str(output)])
        assert result.exit_code == 0
        assert "validation issues" in result.output
        assert "ghost" in result.output
        assert output.exists()

    def test_export_undecodable_file(self, runner, tmp_path):
        """Test that a file that is not UTF-8 fails with a message instead of a traceback."""
        path = tmp_path / "bad.json"
        path.write_bytes(b"\xff\xfe")
        result = runner.invoke(cli, ["export", str(path)])
        assert result.exit_code == 1
        assert "not valid UTF-8" in result.output


class TestPlay:
    """Test the console player."""

    def test_parse_items(self):
        """Test the --item formats."""
        assert list(parse_items(["apple", "pear*3", "gem=2"])) == [("apple", 1), ("pear", 3), ("gem", 2)]

    def test_play_accept_path(self, runner):
        """Test playing through to the quest offer and accepting it."""
        result = runner.invoke(cli, ["play", str(SAMPLE)], input="\n1\n\n")
        assert result.exit_code == 0
        assert "THE END" in result.output
        assert "Active quests: orchard_help" in result.output
        assert "Here are the apples" not in result.output

    def test_play_with_items_unlocks_choice(self, runner):
        """Test that seeded inventory reveals the delivery choice."""
        result = runner.invoke(
            cli, ["play", str(SAMPLE), "--quest", "orchard_help", "--item", "apple*3"], input="\n2\n\n"
        )
        assert result.exit_code == 0
        assert "Here are the apples" in result.output
        assert "Completed quests: orchard_help" in result.output
        assert "festival_unlocked" in result.output

    def test_player_quit(self):
        """Test that quitting ends the conversation abruptly."""
        output = []
        answers = iter(["quit"])
        player = DialoguePlayer(
            load_graph(SAMPLE), state=GameState(), echo=output.append, read=lambda _: next(answers)
        )
        assert player.play() is False
        assert any("interrupted" in line for line in output)

    def test_auto_advance_runs_without_input(self):
        """Test that timed nodes move on by themselves."""
        state = GameState()
        state.completed_quests.add("orchard_help")
        answers = iter(["", "2", ""])
        output = []
        player = DialoguePlayer(load_graph(SAMPLE), state=state, echo=output.append, read=lambda _: next(answers))

        assert player.play() is True
        assert "returning_hero" in player.visited_nodes
        assert any("(auto)" in line for line in output)

    def test_verbose_shows_music(self):
        """Test that verbose play reports the dialogue's music."""
        output = []
        answers = iter(["quit"])
        player = DialoguePlayer(
            load_graph(SAMPLE), state=GameState(), verbose=True, echo=output.append, read=lambda _: next(answers)
        )
        player.play()
        assert any("(music: village_theme)" in line for line in output)
