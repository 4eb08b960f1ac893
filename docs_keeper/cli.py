"""CLI entry point for the documentation example harness."""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, TextIO

from docs_keeper.book import collect_tests, load_pages, parse_book
from docs_keeper.config import KeeperConfig, load_config, parse_config
from docs_keeper.models.outcome import TestOutcome, meets_expectations
from docs_keeper.models.test import Test
from docs_keeper.runner import run_book

PREPROCESSOR_NAME = "keeper"
UNSUPPORTED_RENDERER = "not-supported"

STATUS_SYMBOLS = {
    True: "✅",
    False: "❌",
}


def describe_outcome(outcome: TestOutcome, test: Test) -> str:
    """Return a short human-readable label for an outcome."""
    match outcome.status:
        case "compile_failed" if test.compile_fail:
            return "Failed to compile as expected"
        case "compile_failed":
            return "Failed to compile"
        case "run_failed" if test.should_panic:
            return "Panicked as expected"
        case "run_failed":
            return "Panicked"
        case "successful" if test.should_panic or test.compile_fail:
            return "Unexpectedly succeeded"
        case "successful":
            return "Passed"
        case _:
            return "Cached"


def log_test_output(log: logging.Logger, test: Test, outcome: TestOutcome) -> None:
    """Log the captured output of a test that missed its expectations."""
    log.error("%s Start of test log: %s %s", "-" * 15, test.name, "-" * 15)
    output = outcome.output
    if output is not None and output.stdout:
        log.error("----- Stdout -----\n%s", output.stdout.decode(errors="replace"))
    else:
        log.error("No stdout was captured.")
    if output is not None and output.stderr:
        log.error("----- Stderr -----\n%s", output.stderr.decode(errors="replace"))
    else:
        log.error("No stderr was captured.")
    log.error("%s End of test %s", "-" * 15, "-" * 15)


def log_results_summary(
    log: logging.Logger, results: Mapping[Test, TestOutcome]
) -> None:
    """Log each executed test, the output of failures, and the totals."""
    summary = summarize(results)

    for test, outcome in results.items():
        if outcome.status == "cached":
            continue
        met = meets_expectations(outcome, test)
        log.info(
            "%s %s (%s)",
            STATUS_SYMBOLS[met],
            test.name,
            describe_outcome(outcome, test),
        )
        if not met:
            log_test_output(log, test, outcome)

    log.info(
        "%d passed, %d failed, %d skipped",
        summary["passed"],
        summary["failed"],
        summary["cached"],
    )
    if summary["cached"]:
        log.info(
            "Skipped %d test(s) which had identical code, and previously passed.",
            summary["cached"],
        )


def summarize(results: Mapping[Test, TestOutcome]) -> dict[str, int]:
    """Count executed-and-passed, executed-and-failed and cached tests."""
    cached = sum(1 for outcome in results.values() if outcome.status == "cached")
    passed = sum(
        1
        for test, outcome in results.items()
        if outcome.status != "cached" and meets_expectations(outcome, test)
    )
    return {
        "total": len(results),
        "passed": passed,
        "failed": len(results) - passed - cached,
        "cached": cached,
    }


def format_output(results: Mapping[Test, TestOutcome]) -> dict[str, Any]:
    """Format results for JSON output."""
    return {
        **summarize(results),
        "results": [
            {
                "test": test.name,
                "hash": test.hash,
                "status": outcome.status,
                "met_expectations": meets_expectations(outcome, test),
            }
            for test, outcome in results.items()
        ],
    }


def has_failures(results: Mapping[Test, TestOutcome]) -> bool:
    return any(
        not meets_expectations(outcome, test) for test, outcome in results.items()
    )


async def preprocess(stdin: TextIO, stdout: TextIO) -> int:
    """Act as an mdBook preprocessor: test the book, pass it through unchanged."""
    log = logging.getLogger("docs_keeper")

    context, raw_book = json.load(stdin)
    root = Path(context["root"])
    table = context.get("config", {}).get("preprocessor", {}).get(PREPROCESSOR_NAME)
    settings = parse_config(table).resolve(root)

    book = parse_book(raw_book)
    tests = collect_tests(book.chapters())
    results = await run_book(settings, tests)
    log_results_summary(log, results)

    json.dump(raw_book, stdout)
    return 0


async def run(
    src_dir: Path,
    root: Path,
    config_path: Path | None = None,
    emit_json: bool = False,
) -> int:
    """Test a directory of Markdown pages and return exit code."""
    log = logging.getLogger("docs_keeper")

    config = load_config(config_path) if config_path else KeeperConfig()
    settings = config.resolve(root)

    tests = load_pages(src_dir)
    log.info("Found %d example(s) in %s", len(tests), src_dir)

    results = await run_book(settings, tests)
    log_results_summary(log, results)

    if emit_json:
        print(json.dumps(format_output(results), indent=2))

    return 1 if has_failures(results) else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compile and run the Rust examples in documentation"
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Enable debug logging"
    )
    subparsers = parser.add_subparsers(dest="command")

    supports = subparsers.add_parser(
        "supports", help="Tell mdBook whether a renderer is supported"
    )
    supports.add_argument("renderer", help="Renderer name")

    subparsers.add_parser(
        "preprocess", help="Run as an mdBook preprocessor (the default)"
    )

    run_parser = subparsers.add_parser(
        "run", help="Test a directory of Markdown pages"
    )
    run_parser.add_argument(
        "--src",
        type=Path,
        required=True,
        help="Directory containing Markdown pages",
    )
    run_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML configuration file",
    )
    run_parser.add_argument(
        "--root",
        type=Path,
        default=Path.cwd(),
        help="Directory relative paths in the configuration start from",
    )
    run_parser.add_argument(
        "--json",
        action="store_true",
        help="Print a JSON summary to stdout",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    match args.command:
        case "supports":
            exit_code = 0 if args.renderer != UNSUPPORTED_RENDERER else 1
        case "run":
            exit_code = asyncio.run(
                run(
                    src_dir=args.src,
                    root=args.root,
                    config_path=args.config,
                    emit_json=args.json,
                )
            )
        case _:
            exit_code = asyncio.run(preprocess(sys.stdin, sys.stdout))
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
