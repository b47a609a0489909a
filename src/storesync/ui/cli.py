# ruff: noqa: T201

from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from storesync.app import deploy_configuration, diff_configuration
from storesync.config import ConfigurationError, configure_logging, get_sync_config
from storesync.domain.diff import format_detailed, format_json, format_summary
from storesync.domain.entities import EntityType
from storesync.errors import BatchOperationError, EntityValidationError
from storesync.resilience import classify_error

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from storesync.domain.reconciliation import DeploymentReport

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_UNEXPECTED = 1
EXIT_USAGE = 2
EXIT_NETWORK = 3
EXIT_VALIDATION = 4
EXIT_PARTIAL_FAILURE = 5

_ENTITY_TYPE_NAMES = ", ".join(entity_type.value for entity_type in EntityType)


def _add_selection_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        required=True,
        help="Path to the desired-state YAML file",
    )
    parser.add_argument(
        "--include",
        nargs="+",
        metavar="TYPE",
        help=f"Only these entity types ({_ENTITY_TYPE_NAMES})",
    )
    parser.add_argument(
        "--exclude",
        nargs="+",
        metavar="TYPE",
        help="Skip these entity types",
    )


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Synchronise store configuration")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    diff = subparsers.add_parser("diff", help="Show differences between configuration and store")
    _add_selection_arguments(diff)
    diff.add_argument(
        "--format",
        choices=("text", "json"),
        default="text",
        help="Output format (default: %(default)s)",
    )

    deploy = subparsers.add_parser("deploy", help="Apply configuration to the store")
    _add_selection_arguments(deploy)
    deploy.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute the changes without applying them",
    )
    deploy.add_argument(
        "--allow-deletes",
        action="store_true",
        help="Delete store entities that are absent from the configuration",
    )
    deploy.add_argument(
        "--no-fail-on-partial",
        action="store_true",
        help="Exit successfully even if some entities failed to deploy",
    )
    deploy.add_argument(
        "--chunk-size",
        type=int,
        help="Entities per chunk for bulk operations (defaults to config)",
    )
    deploy.add_argument(
        "--report-path",
        type=str,
        help="Write a JSON deployment report to this path",
    )

    return parser.parse_args(list(argv))


def exit_code_for(exc: BaseException) -> int:
    """Map an error that ended a command onto the process exit code."""

    if isinstance(exc, EntityValidationError):
        return EXIT_VALIDATION
    if isinstance(exc, ConfigurationError | ValueError):
        return EXIT_USAGE
    if isinstance(exc, BatchOperationError):
        return EXIT_PARTIAL_FAILURE
    if classify_error(exc).retryable:
        return EXIT_NETWORK
    return EXIT_UNEXPECTED


def _run_diff(args: argparse.Namespace) -> int:
    summary = diff_configuration(args.config, include=args.include, exclude=args.exclude)
    if args.format == "json":
        print(format_json(summary))
    else:
        print(format_detailed(summary))
    return EXIT_OK


def _print_deployment(report: DeploymentReport) -> None:
    print(format_summary(report.summary))
    for stage in report.stages:
        status = "ok" if stage.succeeded else "FAILED"
        print(
            f"{stage.name}: {status} ({stage.created} created, {stage.updated} updated, "
            f"{stage.deleted} deleted, {stage.duration_seconds:.1f}s)"
        )
        if stage.skipped_deletes:
            print(f"  skipped deletes: {', '.join(stage.skipped_deletes)}")
        for key, message in stage.failures:
            print(f"  {key}: {message}")
        if stage.error and not stage.failures:
            print(f"  {stage.error}")


def _run_deploy(args: argparse.Namespace) -> int:
    defaults = get_sync_config()
    sync_config = defaults.with_overrides(
        chunk_size=args.chunk_size,
        allow_deletes=True if args.allow_deletes else None,
        fail_on_partial=False if args.no_fail_on_partial else None,
    )
    report = deploy_configuration(
        args.config,
        include=args.include,
        exclude=args.exclude,
        dry_run=args.dry_run,
        sync_config=sync_config,
        report_path=args.report_path,
    )
    _print_deployment(report)
    if report.has_failures and sync_config.fail_on_partial:
        return EXIT_PARTIAL_FAILURE
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        if parsed_args.command == "diff":
            code = _run_diff(parsed_args)
        elif parsed_args.command == "deploy":
            code = _run_deploy(parsed_args)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except Exception as exc:
        code = exit_code_for(exc)
        if code == EXIT_UNEXPECTED:
            log.exception("Fatal error during %s", parsed_args.command)
        else:
            log.error("%s failed: %s", parsed_args.command, exc)  # noqa: TRY400
        sys.exit(code)

    sys.exit(code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
