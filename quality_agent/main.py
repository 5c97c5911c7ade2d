#!/usr/bin/env python3
"""
Quality Agent - Main Entry Point

Scans a source tree with the analyzer roster, or with an agentic loop over a
reasoning backend when one is configured, and reports the merged issues.

Usage:
    quality-agent scan ./my-project
    quality-agent scan ./my-project --no-llm --db issues.db --json
    quality-agent stats --db issues.db --session 20260101-120000
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from datetime import datetime
from enum import Enum

from .analyzers import default_registry, load_plugins_from_directory
from .config import OrchestratorConfig
from .errors import QualityAgentError
from .models import AnalysisResult, ProgressEvent, ProgressStatus
from .orchestrator import AnalysisOrchestrator
from .tools import GitHubReporter
from .tracker import IssueTracker, SqliteDatabaseAdapter
from .utils import format_report, get_logger, setup_logging


def _json_default(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Not JSON serializable: {type(value).__name__}")


def result_to_json(result: AnalysisResult) -> str:
    return json.dumps(asdict(result), default=_json_default, indent=2)


def build_config(args) -> OrchestratorConfig:
    """Environment defaults, overridden by command-line flags."""
    config = OrchestratorConfig.from_env()

    if args.max_issues is not None:
        config.max_issues = args.max_issues
    if args.concurrency is not None:
        config.concurrency = args.concurrency
    if args.no_llm:
        config.use_llm = False
    if args.provider:
        config.llm.provider = args.provider
    if args.model:
        config.llm.model = args.model
    if args.analyzers:
        config.analyzers = [name.strip() for name in args.analyzers.split(",") if name.strip()]
    if args.agent_timeout:
        config.agent_timeout = args.agent_timeout
    return config


def log_progress(event: ProgressEvent):
    logger = get_logger()
    if event.status == ProgressStatus.FAILED:
        logger.warning(f"  {event.analyzer_name}: failed ({event.error})")
    elif event.status == ProgressStatus.COMPLETED:
        logger.info(f"  {event.analyzer_name}: {event.issue_count} issues")


def cmd_scan(args):
    """Handle 'scan' subcommand."""
    # Logs share stdout with the report; keep them quiet for --json
    quiet = logging.WARNING if args.json else logging.INFO
    setup_logging(level=logging.DEBUG if args.debug else quiet)
    logger = get_logger()

    config = build_config(args)
    registry = default_registry()
    reporter = None
    try:
        if args.plugins:
            for plugin in load_plugins_from_directory(args.plugins):
                registry.register(plugin)
                logger.info(f"Loaded plugin {plugin.manifest.name} {plugin.manifest.version}")
        if args.github_repo:
            reporter = GitHubReporter(args.github_repo)
    except (QualityAgentError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(2)

    orchestrator = AnalysisOrchestrator(config, registry=registry)

    try:
        result = asyncio.run(orchestrator.analyze(
            args.path,
            include=args.include,
            exclude=args.exclude,
            on_progress=log_progress,
        ))
    except QualityAgentError as e:
        logger.error(f"Scan failed: {e}")
        sys.exit(2)
    except Exception as e:
        logger.exception(f"Scan failed: {e}")
        sys.exit(1)

    if args.db:
        session_id = args.session or datetime.now().strftime("%Y%m%d-%H%M%S")
        db = SqliteDatabaseAdapter(args.db)
        try:
            tracker = IssueTracker(session_id, db)
            tracker.add_issues(result.issues)
            tracker.prioritize()
            logger.info(f"Stored {len(result.issues)} issues in {args.db} (session {session_id})")
        finally:
            db.close()

    if reporter is not None:
        reporter.publish_report(result)

    print(result_to_json(result) if args.json else format_report(result))
    sys.exit(0)


def cmd_stats(args):
    """Handle 'stats' subcommand."""
    setup_logging(level=logging.DEBUG if args.debug else logging.WARNING)

    db = SqliteDatabaseAdapter(args.db)
    try:
        tracker = IssueTracker(args.session, db)
        stats = tracker.get_stats()
    finally:
        db.close()

    print(json.dumps(stats, indent=2))
    sys.exit(0)


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Multi-analyzer code quality agent"
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # scan command
    scan_parser = subparsers.add_parser("scan", help="Analyze a source tree")
    scan_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Project root (default: current directory)"
    )
    scan_parser.add_argument(
        "--max-issues",
        type=int,
        help="Keep at most N issues after sorting (default: unlimited)"
    )
    scan_parser.add_argument(
        "--concurrency",
        type=int,
        help="Analyzers per parallel batch (default: 4)"
    )
    scan_parser.add_argument(
        "--analyzers",
        type=str,
        help="Comma-separated analyzers for the static path (default: all)"
    )
    scan_parser.add_argument(
        "--include",
        action="append",
        help="Glob of files to include (repeatable)"
    )
    scan_parser.add_argument(
        "--exclude",
        action="append",
        help="Glob of files to exclude (repeatable)"
    )
    scan_parser.add_argument(
        "--no-llm",
        action="store_true",
        help="Skip the reasoning backend and run static analyzers only"
    )
    scan_parser.add_argument(
        "--provider",
        type=str,
        help="Reasoning backend provider (claude, openai, ollama, ...)"
    )
    scan_parser.add_argument(
        "--model",
        type=str,
        help="Model name (provider default when omitted)"
    )
    scan_parser.add_argument(
        "--agent-timeout",
        type=float,
        help="Wall-clock limit in seconds for the agentic run before falling back"
    )
    scan_parser.add_argument(
        "--plugins",
        type=str,
        help="Directory of analyzer plugins to load"
    )
    scan_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON instead of markdown"
    )
    scan_parser.add_argument(
        "--db",
        type=str,
        help="SQLite file to store issues in through the issue tracker"
    )
    scan_parser.add_argument(
        "--session",
        type=str,
        help="Tracker session id (default: timestamp)"
    )
    scan_parser.add_argument(
        "--github-repo",
        type=str,
        help="Publish the report as an issue in owner/repo (needs GITHUB_TOKEN)"
    )
    scan_parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    # stats command
    stats_parser = subparsers.add_parser("stats", help="Show tracker statistics for a session")
    stats_parser.add_argument(
        "--db",
        type=str,
        required=True,
        help="SQLite file written by 'scan --db'"
    )
    stats_parser.add_argument(
        "--session",
        type=str,
        required=True,
        help="Tracker session id"
    )
    stats_parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args()

    # Route to subcommand
    if args.command == "scan":
        cmd_scan(args)
    elif args.command == "stats":
        cmd_stats(args)
    else:
        # No subcommand - show help
        parser.print_help()


if __name__ == "__main__":
    main()
