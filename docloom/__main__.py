import argparse
import json
import logging
import sys
from collections import Counter
from typing import List, Optional

from .core.ast_parser import AnalysisResult, analyze_source
from .core.placement import (
    BatchItem,
    PlacementEngine,
    PlacementOutcome,
    PlacementStatus,
    TextDocument,
)
from .setting import get_settings, load_settings


def setup_logging(log_level: str = "INFO") -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )
    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("backoff").setLevel(logging.ERROR)


logger = logging.getLogger(__name__)


def summarize(result: AnalysisResult) -> dict:
    """Element statistics for the ``analyze`` command."""
    elements = result.elements
    documented = sum(1 for e in elements if e.has_leading_comment)
    return {
        "language": result.language,
        "tier": result.tier.value,
        "line_count": result.line_count,
        "total": len(elements),
        "documented": documented,
        "undocumented": len(elements) - documented,
        "average_complexity": round(sum(e.complexity for e in elements) / len(elements), 2) if elements else 0.0,
        "by_kind": dict(Counter(e.kind.value for e in elements)),
        "errors": [f"{err.line + 1}: {err.message}" for err in result.errors],
    }


def _cmd_analyze(args) -> int:
    document = TextDocument.from_file(args.file, args.language)
    result = analyze_source(document.get_text(), document.language_id)
    stats = summarize(result)

    if args.json:
        stats["elements"] = [
            {
                "kind": e.kind.value,
                "name": e.name,
                "start_line": e.start_line + 1,
                "end_line": e.end_line + 1,
                "complexity": e.complexity,
                "scope": e.scope.value,
                "documented": e.has_leading_comment,
                "parameters": [p.name for p in e.parameters],
                "return_type": e.return_type,
            }
            for e in result.elements
        ]
        print(json.dumps(stats, indent=2))
        return 0

    print(f"{args.file}: {stats['language']} ({stats['tier']} analysis), {stats['line_count']} lines")
    for e in result.elements:
        mark = "documented" if e.has_leading_comment else "undocumented"
        print(f"  {e.start_line + 1:>5}  {e.kind.value:<14} {e.name:<30} complexity={e.complexity:<3} {mark}")
    print(
        f"{stats['total']} elements, {stats['documented']} documented, "
        f"{stats['undocumented']} undocumented, average complexity {stats['average_complexity']}"
    )
    for message in stats["errors"]:
        print(f"  parse error at {message}")
    return 0


def _print_outcome(outcome: PlacementOutcome) -> None:
    placement = outcome.placement
    if placement is None:
        print(f"[{outcome.status.value}] {outcome.message}")
        return
    print(
        f"[{outcome.status.value}] line {placement.insert_line + 1} "
        f"(declaration at {placement.target_line + 1}, {outcome.strategy}): {outcome.message}"
    )
    if outcome.status in (PlacementStatus.PREVIEW, PlacementStatus.INSERTED):
        print(placement.comment_text)


def _parse_item(value: str) -> BatchItem:
    line, sep, text = value.partition(":")
    if not sep or not line.strip().isdigit() or not text.strip():
        raise argparse.ArgumentTypeError(f"expected LINE:TEXT, got {value!r}")
    return BatchItem(cursor_line=int(line) - 1, description=text.strip())


def _cmd_place(args, engine: PlacementEngine, has_credential: bool) -> int:
    document = TextDocument.from_file(args.file, args.language)
    run = engine.preview if args.dry_run else engine.place
    outcome = run(
        document,
        args.line - 1,
        args.text,
        has_credential=has_credential,
        has_connectivity=not args.offline,
    )
    _print_outcome(outcome)
    if outcome.succeeded:
        document.save()
        logger.info(f"Saved {args.file}")
    return 0 if outcome.status in (PlacementStatus.INSERTED, PlacementStatus.PREVIEW) else 1


def _cmd_batch(args, engine: PlacementEngine, has_credential: bool) -> int:
    document = TextDocument.from_file(args.file, args.language)
    report = engine.place_batch(
        document,
        args.item,
        has_credential=has_credential,
        has_connectivity=not args.offline,
        dry_run=args.dry_run,
    )
    for outcome in report.outcomes:
        _print_outcome(outcome)
    print(f"{report.inserted} inserted, {report.failed} not placed, {report.skipped} skipped")
    if report.inserted and not args.dry_run:
        document.save()
        logger.info(f"Saved {args.file}")
    return 0 if report.failed == 0 else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="docloom - structural comment placement")
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default from settings)"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a docloom.yaml file"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    analyze_cmd = sub.add_parser("analyze", help="List structural elements of a file")
    analyze_cmd.add_argument("file")
    analyze_cmd.add_argument("--language", default=None, help="Override language detection")
    analyze_cmd.add_argument("--json", action="store_true", help="Print JSON")

    place_cmd = sub.add_parser("place", help="Place one comment")
    place_cmd.add_argument("file")
    place_cmd.add_argument("--line", type=int, required=True, help="Cursor line (1-based)")
    place_cmd.add_argument("--text", required=True, help="What the comment should say")
    place_cmd.add_argument("--language", default=None, help="Override language detection")
    place_cmd.add_argument("--offline", action="store_true", help="Never call the remote assistant")
    place_cmd.add_argument("--dry-run", action="store_true", help="Show the placement without editing")

    batch_cmd = sub.add_parser("batch", help="Place several comments in one pass")
    batch_cmd.add_argument("file")
    batch_cmd.add_argument(
        "--item",
        type=_parse_item,
        action="append",
        required=True,
        help="LINE:TEXT (1-based line); repeatable"
    )
    batch_cmd.add_argument("--language", default=None, help="Override language detection")
    batch_cmd.add_argument("--offline", action="store_true", help="Never call the remote assistant")
    batch_cmd.add_argument("--dry-run", action="store_true", help="Show placements without editing")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for docloom."""
    args = build_parser().parse_args(argv)

    if args.config:
        settings = load_settings(args.config)
    else:
        settings = get_settings()
    setup_logging(args.log_level or settings.log_level)

    if args.command == "analyze":
        return _cmd_analyze(args)

    api_key = settings.api_key()
    engine = PlacementEngine.from_settings(settings, api_key=api_key)
    if args.command == "place":
        return _cmd_place(args, engine, has_credential=api_key is not None)
    return _cmd_batch(args, engine, has_credential=api_key is not None)


if __name__ == "__main__":
    sys.exit(main())
