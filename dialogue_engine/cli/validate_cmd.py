"""
Validation report for dialogue files.

Loads each file with GraphLoader, runs GraphValidator over the graph and
prints errors, warnings and statistics.
"""

import sys
from pathlib import Path
from typing import List, Optional

from dialogue_engine.errors import GraphLoadError
from dialogue_engine.graph.loader import GraphLoader
from dialogue_engine.graph.model import DialogueGraph
from dialogue_engine.graph.validator import GraphValidator


# ANSI color codes for terminal output
class Colors:
    RED = "\033[91m"
    YELLOW = "\033[93m"
    GREEN = "\033[92m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    BOLD = "\033[1m"
    RESET = "\033[0m"


class DialogueFileValidator:
    """Validates one dialogue file and reports the results"""

    def __init__(self, file_path: Path, strict: bool = False, echo=print):
        self.file_path = Path(file_path)
        self.strict = strict
        self.echo = echo
        self.graph: Optional[DialogueGraph] = None
        self.errors: List[str] = []
        self.warnings: List[str] = []

    @property
    def passed(self) -> bool:
        if self.errors:
            return False
        return not (self.strict and self.warnings)

    def validate(self) -> bool:
        """Main validation method"""
        if not self.file_path.exists():
            self.errors.append(f"File not found: {self.file_path}")
            self._report_results()
            return False

        loader = GraphLoader()
        try:
            self.graph = loader.load_file(self.file_path)
        except GraphLoadError as e:
            self.errors.append(str(e))
            self.errors.extend(e.errors)
        self.warnings.extend(loader.warnings)

        if self.graph is not None:
            report = GraphValidator().check(self.graph)
            self.errors.extend(report.errors)
            self.warnings.extend(report.warnings)

        self._report_results()
        return self.passed

    def _report_results(self):
        """Report validation results"""
        self.echo(f"\n{Colors.BOLD}{'=' * 80}{Colors.RESET}")
        self.echo(f"{Colors.BOLD}VALIDATION REPORT: {Colors.CYAN}{self.file_path.name}{Colors.RESET}")
        self.echo(f"{Colors.BOLD}{'=' * 80}{Colors.RESET}")

        if not self.errors and not self.warnings:
            self.echo(f"\n{Colors.GREEN}{Colors.BOLD}✅ VALIDATION PASSED - No issues found!{Colors.RESET}")
            self._print_statistics()
            return

        if self.errors:
            self.echo(f"\n{Colors.RED}{Colors.BOLD}❌ ERRORS ({len(self.errors)}):{Colors.RESET}")
            for error in self.errors:
                self.echo(f"  {Colors.RED}•{Colors.RESET} {error}")

        if self.warnings:
            self.echo(f"\n{Colors.YELLOW}{Colors.BOLD}⚠️  WARNINGS ({len(self.warnings)}):{Colors.RESET}")
            for warning in self.warnings:
                self.echo(f"  {Colors.YELLOW}•{Colors.RESET} {warning}")

        self.echo(f"\n{Colors.BOLD}{'=' * 80}{Colors.RESET}")
        error_text = f"{Colors.RED}{len(self.errors)} error(s){Colors.RESET}"
        warning_text = f"{Colors.YELLOW}{len(self.warnings)} warning(s){Colors.RESET}"
        self.echo(f"{Colors.BOLD}Summary:{Colors.RESET} {error_text}, {warning_text}")

        if not self.passed:
            self.echo(f"{Colors.RED}{Colors.BOLD}❌ VALIDATION FAILED{Colors.RESET}")
        else:
            self.echo(f"{Colors.GREEN}{Colors.BOLD}✅ VALIDATION PASSED WITH WARNINGS{Colors.RESET}")

        self._print_statistics()

    def _print_statistics(self):
        """Print graph statistics"""
        if self.graph is None:
            return

        stats = GraphValidator().stats(self.graph)
        self.echo(f"\n{Colors.BOLD}{Colors.BLUE}📊 STATISTICS:{Colors.RESET}")
        self.echo(f"{Colors.BLUE}{'─' * 40}{Colors.RESET}")
        self.echo(f"  • Nodes: {Colors.CYAN}{stats['nodes']}{Colors.RESET}")
        self.echo(f"  • Speakers: {Colors.CYAN}{stats['speakers']}{Colors.RESET}")
        self.echo(f"  • Choices: {Colors.CYAN}{stats['choices']}{Colors.RESET}")
        self.echo(f"  • Actions: {Colors.CYAN}{stats['actions']}{Colors.RESET}")
        self.echo(f"  • Conditions: {Colors.CYAN}{stats['conditions']}{Colors.RESET}")
        self.echo(f"  • End nodes: {Colors.CYAN}{stats['end_nodes']}{Colors.RESET}")


def validate_files(paths: List[Path], strict: bool = False, echo=print) -> bool:
    """Validate every file; True only if all of them pass"""
    results = [DialogueFileValidator(path, strict=strict, echo=echo).validate() for path in paths]
    return all(results)


def main():
    """Main entry point"""
    args = [arg for arg in sys.argv[1:] if not arg.startswith("--")]
    if not args:
        print("Usage: dlg-validate <dialogue_file.json> [more files...] [--strict]")
        print("\nExample:")
        print("  dlg-validate resources/dialogue/village/elder.json")
        sys.exit(1)

    success = validate_files([Path(arg) for arg in args], strict="--strict" in sys.argv)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
