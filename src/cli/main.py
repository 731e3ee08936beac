# SPDX-License-Identifier: MIT
"""Command-line interface for exercising the request pool."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import platform
import random
import signal
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any, Coroutine

import logfire
from tqdm import tqdm

from constants import AUTO_PREFETCH, INTERACTION, PREFETCH, THUMBNAIL
from io_utils.loader import load_workload
from models import LoadOptions, Workload
from observability.monitoring import init_logfire
from pool import CachingLoaderGateway, RequestPool, register_default_classes
from runtime.settings import Settings, load_settings
from utils import RecordingErrorHandler

LOG_LEVELS = ["fatal", "error", "warn", "notice", "info", "debug", "trace"]

# Module logger for CLI diagnostics mirroring
logger = logging.getLogger(__name__)


class SimulatedFetchError(RuntimeError):
    """Raised by the simulated loader for items marked as failing."""


def _print_version() -> None:
    """Print the installed package version."""
    try:
        pkg_version = version("image-request-pool")
    except PackageNotFoundError:  # pragma: no cover - fallback for editable installs
        pkg_version = "unknown"
    line = f"image-request-pool {pkg_version}"
    print(line)
    logger.info(line)


def _print_diagnostics() -> None:
    """Output basic environment information for health checks."""
    _print_version()
    py = f"Python {platform.python_version()}"
    plat = f"Platform {platform.platform()}"
    print(py)
    print(plat)
    logger.info(py)
    logger.info(plat)
    overrides = sorted(var for var in os.environ if var.startswith("RP_"))
    line = (
        "Environment overrides: " + ", ".join(overrides)
        if overrides
        else "No RP_ environment overrides"
    )
    print(line)
    logger.info(line)


def _configure_logging(args: argparse.Namespace, settings: Settings) -> None:
    """Configure Logfire based on verbosity flags."""
    index = 2 + args.verbose - args.quiet
    index = max(0, min(len(LOG_LEVELS) - 1, index))
    init_logfire(
        settings.logfire_token,
        LOG_LEVELS[index],  # type: ignore[arg-type]
        system_metrics=settings.diagnostics,
    )


def _workload_from_args(args: argparse.Namespace) -> Workload:
    """Return the workload file contents or a generated request mix."""
    if args.workload:
        return load_workload(args.workload)
    counts = {
        INTERACTION: args.interaction,
        THUMBNAIL: args.thumbnail,
        PREFETCH: args.prefetch,
        AUTO_PREFETCH: args.auto_prefetch,
    }
    requests = {
        name: [f"{name}-{index}" for index in range(count)]
        for name, count in counts.items()
        if count > 0
    }
    all_items = [item for items in requests.values() for item in items]
    failures = [item for item in all_items if random.random() < args.fail_rate]
    return Workload(requests=requests, failures=failures, latency=args.latency)


def build_simulated_pool(
    workload: Workload, settings: Settings, *, ceiling: int | None = None
) -> tuple[RequestPool, CachingLoaderGateway, RecordingErrorHandler]:
    """Create a pool with the default classes over a simulated loader."""
    failing = set(workload.failures)

    async def fetch(item_id: str, options: LoadOptions) -> dict[str, Any]:
        # Higher priority hints are served slightly faster.
        jitter = 1 + random.random() * 0.25
        boost = 1 + max(options.priority, 0) / 10
        await asyncio.sleep(workload.latency * jitter / boost)
        if item_id in failing:
            raise SimulatedFetchError(f"simulated failure for {item_id}")
        return {"item_id": item_id, "class_name": options.class_name}

    gateway = CachingLoaderGateway(fetch)
    errors = RecordingErrorHandler()
    limit = ceiling if ceiling is not None else settings.max_simultaneous_requests
    pool = RequestPool(
        gateway,
        ceiling=lambda: limit,
        configuration=settings.pool_configuration(),
        error_handler=errors,
    )
    register_default_classes(pool)
    return pool, gateway, errors


async def _cmd_simulate(args: argparse.Namespace, settings: Settings) -> None:
    """Replay a workload through the default classes and report metrics."""
    workload = _workload_from_args(args)
    pool, gateway, _ = build_simulated_pool(workload, settings, ceiling=args.ceiling)
    outcomes = {"ok": 0, "failed": 0}
    with tqdm(
        total=workload.total(), desc="requests", disable=args.no_progress
    ) as progress:

        def _ok(_payload: Any) -> None:
            outcomes["ok"] += 1
            progress.update(1)

        def _failed(_error: BaseException) -> None:
            outcomes["failed"] += 1
            progress.update(1)

        with logfire.span(
            "cli.simulate", attributes={"requests": workload.total()}
        ):
            for class_name, items in workload.requests.items():
                for item_id in items:
                    pool.enqueue(item_id, class_name, _ok, _failed)
            await pool.drain()

    pool.telemetry.print_summary()
    print(
        f"Outcomes: ok={outcomes['ok']} failed={outcomes['failed']} "
        f"loads={gateway.loads}"
    )
    if args.snapshot:
        print(pool.snapshot().model_dump_json(indent=2))


async def _cmd_classes(args: argparse.Namespace, settings: Settings) -> None:
    """Print the default demand classes resolved against the ceiling."""
    pool, _, _ = build_simulated_pool(Workload(), settings, ceiling=args.ceiling)
    print(pool.snapshot().model_dump_json(indent=2))


def _add_common_args(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a YAML configuration file (default config/app.yaml)",
    )
    parser.add_argument(
        "--ceiling",
        type=int,
        default=None,
        help="Override the global concurrency ceiling",
    )
    parser.add_argument(
        "--max-retries",
        type=int,
        default=None,
        help="Re-fetch attempts allowed per failed item",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help=(
            "Increase logging verbosity (-v notice, -vv info, -vvv debug, -vvvv trace)"
        ),
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Decrease logging verbosity (-q error, -qq fatal)",
    )
    return parser


def _add_simulate_subparser(
    subparsers: argparse._SubParsersAction, common: argparse.ArgumentParser
) -> None:
    parser = subparsers.add_parser(
        "simulate",
        parents=[common],
        help="Replay a synthetic workload through the request pool",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--workload", type=Path, help="YAML workload file")
    parser.add_argument("--interaction", type=int, default=1)
    parser.add_argument("--thumbnail", type=int, default=0)
    parser.add_argument("--prefetch", type=int, default=10)
    parser.add_argument("--auto-prefetch", type=int, default=0)
    parser.add_argument(
        "--latency", type=float, default=0.05, help="Simulated fetch latency"
    )
    parser.add_argument(
        "--fail-rate",
        type=float,
        default=0.0,
        help="Probability that a generated item fails to load",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument(
        "--snapshot", action="store_true", help="Print the final pool snapshot"
    )
    parser.add_argument(
        "--no-progress", action="store_true", help="Disable the progress bar"
    )
    parser.set_defaults(func=_cmd_simulate)


def _add_classes_subparser(
    subparsers: argparse._SubParsersAction, common: argparse.ArgumentParser
) -> None:
    parser = subparsers.add_parser(
        "classes",
        parents=[common],
        help="Show the default demand classes and their resolved limits",
    )
    parser.set_defaults(func=_cmd_classes)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="request-pool",
        description="Prioritised request pool for content loading",
    )
    parser.add_argument(
        "--version", action="store_true", help="Print the version and exit."
    )
    parser.add_argument(
        "--diagnostics",
        action="store_true",
        help="Print environment diagnostics and exit.",
    )
    common = _add_common_args(argparse.ArgumentParser(add_help=False))
    subparsers = parser.add_subparsers(dest="command")
    _add_simulate_subparser(subparsers, common)
    _add_classes_subparser(subparsers, common)
    return parser


def _apply_args_to_settings(args: argparse.Namespace, settings: Settings) -> None:
    """Override settings fields based on CLI arguments."""
    arg_mapping = {
        "ceiling": "max_simultaneous_requests",
        "max_retries": "max_retries",
    }
    for arg_name, attr in arg_mapping.items():
        value = getattr(args, arg_name, None)
        if value is not None:  # branch: override settings when flag provided
            setattr(settings, attr, value)


def _run_async_with_signals(coro: Coroutine[Any, Any, Any]) -> Any:
    """Execute ``coro`` and cancel on SIGINT or SIGTERM.

    Raises:
        asyncio.CancelledError: Propagated when a termination signal is received.
    """

    async def _runner() -> Any:
        loop = asyncio.get_running_loop()
        task = asyncio.create_task(coro)
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, task.cancel)
        try:
            return await task
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)

    return asyncio.run(_runner())


def main(argv: list[str] | None = None) -> None:
    """Parse arguments and dispatch to the requested subcommand."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.version:
        _print_version()
        return
    if args.diagnostics:
        _print_diagnostics()
        return
    if args.command is None:
        parser.print_help()
        raise SystemExit(1)
    settings = load_settings(args.config)
    _apply_args_to_settings(args, settings)
    if getattr(args, "seed", None) is not None:
        random.seed(args.seed)
    _configure_logging(args, settings)
    try:
        _run_async_with_signals(args.func(args, settings))
    finally:
        logfire.force_flush()


if __name__ == "__main__":
    # Allow module to be executed as a standalone script
    main()
