"""
Command line entry point.

Usage:
    retail-e2e run [PATHS...] [--tag smoke] [--base-url URL] [--headed]
    retail-e2e list [PATHS...]
    retail-e2e validate PATHS...
    retail-e2e serve-stub [--host HOST] [--port PORT]
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config_loader import BROWSERS, ConfigError, load_settings
from .loader import (
    SuiteLoadError,
    filter_suites_by_tag,
    load_suites,
    read_suite_data,
    suite_files,
    validate_test_suite,
)
from .models import SuiteResult, TestStatus
from .runner import TestRunner

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_LOAD_ERROR = 2

_STATUS_MARKS = {
    TestStatus.PASSED: "PASS",
    TestStatus.FAILED: "FAIL",
    TestStatus.ERROR: "ERROR",
    TestStatus.SKIPPED: "SKIP",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="retail-e2e", description="Run declarative browser suites against a storefront"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--env", default=None, help="Config environment (default: E2E_ENV)")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run suites")
    run.add_argument("paths", nargs="*", help="Suite files or directories (default: built-in)")
    run.add_argument("--tag", help="Only suites or cases with this tag")
    run.add_argument("--base-url", help="Override each suite's target_url")
    run.add_argument("--browser", choices=BROWSERS, help="Browser engine")
    run.add_argument("--headed", action="store_true", help="Show the browser window")
    run.add_argument("--screenshot-dir", help="Save failure screenshots here")
    run.add_argument("--json", dest="json_path", help="Write a JSON report to this file")

    list_cmd = sub.add_parser("list", help="List suites and their cases")
    list_cmd.add_argument("paths", nargs="*")

    validate = sub.add_parser("validate", help="Validate suite files")
    validate.add_argument("paths", nargs="+")

    serve = sub.add_parser("serve-stub", help="Serve the stub storefront")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    return parser


def print_suite_result(result: SuiteResult) -> None:
    print(f"\n{result.suite.name}")
    for label, steps in (("setup", result.setup_results), ("teardown", result.teardown_results)):
        for step_result in steps:
            if step_result.status != TestStatus.PASSED:
                print(f"  [{label}] {step_result.step.label()}: {step_result.error}")
    for test_result in result.test_results:
        mark = _STATUS_MARKS.get(test_result.status, test_result.status.value.upper())
        line = f"  [{mark}] {test_result.test_case.name} ({test_result.duration:.2f}s)"
        if test_result.retry_count:
            line += f" after {test_result.retry_count} retries"
        print(line)
        if test_result.error:
            print(f"         {test_result.error}")
    print(
        f"  {result.passed} passed, {result.failed} failed, "
        f"{result.errored} errors, {result.skipped} skipped"
    )


async def run_suites(suites, settings, args) -> List[SuiteResult]:
    results = []
    for suite in suites:
        runner = TestRunner(
            browser_name=args.browser or settings.browser,
            headless=settings.headless and not args.headed,
            slow_mo=settings.slow_mo,
            base_url=args.base_url or settings.base_url,
            screenshot_dir=args.screenshot_dir,
            default_timeout=settings.default_timeout,
            navigation_timeout=settings.navigation_timeout,
        )
        results.append(await runner.execute_suite(suite))
    return results


def cmd_run(args, settings) -> int:
    try:
        suites = load_suites(args.paths)
    except SuiteLoadError as e:
        logger.error(str(e))
        return EXIT_LOAD_ERROR

    if args.tag:
        suites = filter_suites_by_tag(suites, args.tag)
    if not suites:
        print("No suites to run")
        return EXIT_OK

    results = asyncio.run(run_suites(suites, settings, args))
    for result in results:
        print_suite_result(result)

    if args.json_path:
        report = {
            "settings": settings.to_dict(),
            "suites": [r.to_dict() for r in results],
        }
        Path(args.json_path).parent.mkdir(parents=True, exist_ok=True)
        with open(args.json_path, "w") as f:
            json.dump(report, f, indent=2)
        logger.info(f"Report written to {args.json_path}")

    ok = all(r.status == TestStatus.PASSED for r in results)
    return EXIT_OK if ok else EXIT_FAILED


def cmd_list(args) -> int:
    try:
        suites = load_suites(args.paths)
    except SuiteLoadError as e:
        logger.error(str(e))
        return EXIT_LOAD_ERROR

    for suite in suites:
        tags = f" [{', '.join(suite.tags)}]" if suite.tags else ""
        print(f"{suite.name}{tags}  ({suite.source})")
        for tc in suite.test_cases:
            print(f"  - {tc.name}")
    return EXIT_OK


def cmd_validate(args) -> int:
    files = []
    for p in args.paths:
        files.extend(suite_files(p) if Path(p).is_dir() else [Path(p)])

    failed = False
    for path in files:
        try:
            errors = validate_test_suite(read_suite_data(str(path)))
        except SuiteLoadError as e:
            errors = e.errors
        if errors:
            failed = True
            print(f"{path}: INVALID")
            for error in errors:
                print(f"  - {error}")
        else:
            print(f"{path}: OK")
    return EXIT_FAILED if failed else EXIT_OK


def cmd_serve_stub(args, settings) -> int:
    from .stub_store import main as serve

    serve(host=args.host or settings.host, port=args.port or settings.port)
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings(environment=args.env)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_LOAD_ERROR

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    if args.command == "run":
        return cmd_run(args, settings)
    if args.command == "list":
        return cmd_list(args)
    if args.command == "validate":
        return cmd_validate(args)
    return cmd_serve_stub(args, settings)
