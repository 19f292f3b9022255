"""
Command-line interface for quizflow

Validates quiz definitions, replays answer files through a run and
previews which transition a node would take.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from .config import Config, config
from .errors import SchemaError
from .loader import load_answers, load_quiz
from .quiz.schema import encode_value
from .rules.conditions import evaluate_transition, resolve_next_node
from .rules.structure import QuizReport, check_quiz
from .runner import StepOutcome, StepResult, run_answers


GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
RESET = "\033[0m"


def format_report(report: QuizReport) -> str:
    """Format a structure report for terminal output."""
    if report.is_valid:
        lines = [f"{GREEN}✓ {report.quiz_id}: valid{RESET}"]
    else:
        lines = [f"{RED}✗ {report.quiz_id}: {len(report.errors)} error(s){RESET}"]
    for issue in report.errors:
        lines.append(f"  {RED}error{RESET}   {issue}")
    for issue in report.warnings:
        lines.append(f"  {YELLOW}warning{RESET} {issue}")
    return "\n".join(lines)


def format_run(result: StepResult) -> str:
    """Format the final state of a replayed run."""
    state = result.state
    if result.outcome == StepOutcome.COMPLETED or state.completed:
        header = f"{GREEN}✓ COMPLETED at {state.end_node_id}{RESET}"
    else:
        header = f"{YELLOW}■ {result.outcome.value.upper()} at {state.current_node_id}{RESET}"
        if result.message:
            header += f"\n    {result.message}"

    lines = [header, f"  Path: {' → '.join(state.visited_nodes)}"]
    if state.responses:
        lines.append("  Answers:")
        for question_id, response in state.responses.items():
            mark = "✓" if response.is_valid else "✗"
            lines.append(f"    {mark} {question_id} = {response.value!r}")
            for error in response.validation_errors:
                lines.append(f"        {error}")
    return "\n".join(lines)


def _load(path: str):
    try:
        return load_quiz(path)
    except SchemaError as e:
        for issue in e.issues:
            print(f"{RED}error{RESET} {issue}", file=sys.stderr)
        return None


def cmd_validate(args) -> int:
    quiz = _load(args.quiz)
    if quiz is None:
        return 1
    report = check_quiz(quiz)
    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print(format_report(report))
    return 0 if report.is_valid else 1


def cmd_run(args, cfg: Config) -> int:
    quiz = _load(args.quiz)
    if quiz is None:
        return 1
    answers = load_answers(args.answers, quiz)

    try:
        result = run_answers(quiz, answers, cfg=cfg)
    except SchemaError as e:
        print(format_report(QuizReport(quiz_id=quiz.id, issues=e.issues)), file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(format_run(result))
    return 0 if result.state.completed else 2


def cmd_preview(args) -> int:
    quiz = _load(args.quiz)
    if quiz is None:
        return 1
    node = quiz.get_node(args.node)
    if node is None:
        print(f"Unknown node: {args.node}", file=sys.stderr)
        return 1
    answers = load_answers(args.answers, quiz)

    results = [
        {
            "index": index,
            "next_node_id": transition.next_node_id,
            "combination": transition.combination_type.value,
            "matched": evaluate_transition(transition, answers),
        }
        for index, transition in enumerate(node.transitions)
    ]
    next_id = resolve_next_node(node, answers)

    if args.json:
        print(json.dumps({
            "node": node.id,
            "answers": {k: encode_value(v) for k, v in answers.items()},
            "transitions": results,
            "next_node_id": next_id,
        }, indent=2))
    else:
        print(f"Node {node.id}: {node.title}")
        for r in results:
            mark = f"{GREEN}✓{RESET}" if r["matched"] else f"{RED}✗{RESET}"
            print(f"  {mark} [{r['index']}] {r['combination']} → {r['next_node_id']}")
        if next_id:
            print(f"Next: {next_id}")
        else:
            print(f"{YELLOW}No transition matches{RESET}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="quizflow",
        description="Validate and step through branching quizzes",
        epilog="Example: quizflow run intake.json answers.json",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log engine decisions to stderr",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Validate command
    validate_parser = subparsers.add_parser("validate", help="Check a quiz definition")
    validate_parser.add_argument("quiz", help="Path to quiz JSON")
    validate_parser.add_argument(
        "--json",
        action="store_true",
        help="Output the report as JSON",
    )

    # Run command
    run_parser = subparsers.add_parser("run", help="Replay answers through a run")
    run_parser.add_argument("quiz", help="Path to quiz JSON")
    run_parser.add_argument("answers", help="Path to answers JSON (question id -> value)")
    run_parser.add_argument(
        "--lenient",
        action="store_true",
        help="Allow advancing past required questions without a valid answer",
    )
    run_parser.add_argument(
        "--json",
        action="store_true",
        help="Output the final state as JSON",
    )

    # Preview command
    preview_parser = subparsers.add_parser("preview", help="Show which transition a node takes")
    preview_parser.add_argument("quiz", help="Path to quiz JSON")
    preview_parser.add_argument("answers", help="Path to answers JSON (question id -> value)")
    preview_parser.add_argument("--node", required=True, help="Node id to evaluate")
    preview_parser.add_argument(
        "--json",
        action="store_true",
        help="Output transition results as JSON",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.logging.level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if not args.command:
        parser.print_help()
        return 1

    try:
        if args.command == "validate":
            return cmd_validate(args)
        if args.command == "run":
            cfg = Config.lenient_mode() if args.lenient else config
            return cmd_run(args, cfg)
        if args.command == "preview":
            return cmd_preview(args)
    except (OSError, SchemaError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 1


if __name__ == "__main__":
    sys.exit(main())
