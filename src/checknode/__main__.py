"""
checknode CLI entry point.

Check the health and sync status of one or all configured nodes.

Usage::

    python -m checknode
    python -m checknode eth
    python -m checknode --config ./nodes_conf.yaml --json
    python -m checknode --metrics-file /var/lib/node_exporter/checknode.prom

Arguments:
    chain                  Chain identifier to check (default: every configured node)

Options:
    --config               Path to the node registry YAML file
    --kubectl              kubectl binary used for port-forwards
    --base-port            First local port handed out to tunnels (default: 8080)
    --ready-timeout        Seconds to wait for a tunnel to become ready (default: 10)
    --json                 Print results as JSON
    --metrics-file         Write Prometheus metrics to this file after the run
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from checknode.config import CHECKNODE_CONFIG, CHECKNODE_KUBECTL, CheckSettings
from checknode.errors import ConfigError, UnknownChainError
from checknode.metrics import write_metrics
from checknode.models import NodeResult, NodeTarget
from checknode.orchestrator import Orchestrator, allocate_local_ports
from checknode.registry import NodeRegistry
from checknode.report import format_json, format_report
from checknode.tunnel import TunnelManager

logger = logging.getLogger(__name__)

EXIT_OK = 0
"""Run completed. Failed nodes are absent from the report, not an error."""

EXIT_CONFIG_ERROR = 1
"""Registry could not be loaded."""

EXIT_INTERRUPTED = 130
"""Interrupted by SIGINT."""

DEFAULT_SETTINGS = CheckSettings()
"""Settings used when no option overrides them."""

LOG_HANDLER_NAME = "checknode"
"""Name of the stderr handler installed on the root logger."""


class ColoredFormatter(logging.Formatter):
    """Logging formatter with ANSI colors for better readability."""

    # ANSI color codes
    GREY = "\x1b[38;5;244m"
    BLUE = "\x1b[38;5;39m"
    GREEN = "\x1b[38;5;40m"
    YELLOW = "\x1b[38;5;220m"
    RED = "\x1b[38;5;196m"
    BOLD_RED = "\x1b[38;5;196;1m"
    CYAN = "\x1b[38;5;51m"
    RESET = "\x1b[0m"

    LEVEL_COLORS = {
        logging.DEBUG: GREY,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: BOLD_RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors."""
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)
        timestamp = f"{self.CYAN}{self.formatTime(record, self.datefmt)}{self.RESET}"
        levelname = f"{color}{record.levelname:8}{self.RESET}"
        name = f"{self.BLUE}{record.name}{self.RESET}"
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return f"{timestamp} {levelname} {name}: {message}"


def setup_logging(verbose: bool = False, no_color: bool = False) -> None:
    """
    Configure logging on stderr with optional colors.

    Logs are a side channel. The report itself goes to stdout.

    Calling it again replaces the handler installed by the previous call.
    """
    level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(LOG_HANDLER_NAME)
    handler.setLevel(level)

    if no_color:
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = ColoredFormatter(datefmt="%Y-%m-%d %H:%M:%S")

    handler.setFormatter(formatter)

    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == LOG_HANDLER_NAME]:
        root.removeHandler(existing)
        existing.close()
    root.setLevel(level)
    root.addHandler(handler)


async def run_checks(
    targets: list[NodeTarget],
    settings: CheckSettings,
    kubectl: str = CHECKNODE_KUBECTL,
) -> dict[str, NodeResult]:
    """Check all targets concurrently and return the successful results."""
    orchestrator = Orchestrator(
        settings=settings,
        tunnels=TunnelManager(settings=settings, kubectl=kubectl),
    )
    return await orchestrator.run_all(targets)


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="checknode",
        description="Check health and sync status of blockchain nodes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "chain",
        nargs="?",
        default=None,
        help="Chain identifier to check (default: every configured node)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=CHECKNODE_CONFIG,
        help=f"Path to the node registry YAML file (default: {CHECKNODE_CONFIG})",
    )
    parser.add_argument(
        "--kubectl",
        default=CHECKNODE_KUBECTL,
        help=f"kubectl binary used for port-forwards (default: {CHECKNODE_KUBECTL})",
    )
    parser.add_argument(
        "--base-port",
        type=int,
        default=DEFAULT_SETTINGS.base_local_port,
        help=f"First local port for tunnels (default: {DEFAULT_SETTINGS.base_local_port})",
    )
    parser.add_argument(
        "--ready-timeout",
        type=float,
        default=DEFAULT_SETTINGS.ready_timeout,
        help=f"Seconds to wait for a tunnel (default: {DEFAULT_SETTINGS.ready_timeout})",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON",
    )
    parser.add_argument(
        "--metrics-file",
        type=Path,
        default=None,
        help="Write Prometheus metrics to this file after the run",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored logging output",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.no_color)

    try:
        settings = CheckSettings(
            base_local_port=args.base_port,
            ready_timeout=args.ready_timeout,
        )
    except ValueError as e:
        parser.error(str(e))

    try:
        registry = NodeRegistry.from_yaml_file(args.config)
        targets = registry.targets(args.chain)
        allocate_local_ports(len(targets), settings.base_local_port)
    except UnknownChainError as e:
        parser.error(e.message)
    except ValueError as e:
        # Port range does not fit the selected nodes.
        parser.error(str(e))
    except ConfigError as e:
        logger.error("Error reading configuration: %s", e)
        return EXIT_CONFIG_ERROR

    try:
        results = asyncio.run(run_checks(targets, settings, args.kubectl))
    except KeyboardInterrupt:
        # asyncio.run() cancels the checks; their tunnels close on the way out.
        logger.info("Interrupted")
        return EXIT_INTERRUPTED

    if args.json:
        print(format_json(results))
    else:
        print(format_report(results), end="")

    if args.metrics_file is not None:
        write_metrics(args.metrics_file)
        logger.info("Metrics written to %s", args.metrics_file)

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
