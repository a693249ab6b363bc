from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from tdrs.config import configure_logging, load_engine_config
from tdrs.engines import SimulationScheduler, SocialEngine
from tdrs.errors import ConfigurationError
from tdrs.output.render import GraphRenderer
from tdrs.world.loaders import read_scenario
from tdrs.world.scenario import parse_scenario

logger = logging.getLogger(__name__)


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid tick count '{value}'.") from exc
    if parsed < 0:
        raise argparse.ArgumentTypeError("Tick count must not be negative.")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Trait-driven social relationship engine",
    )
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser(
        "run",
        help="Run a scripted scenario against the engine",
    )
    run_parser.add_argument(
        "--definitions",
        nargs="+",
        type=Path,
        help="Definition documents or directories (default: TDRS_DEFINITIONS or the bundled library)",
    )
    run_parser.add_argument(
        "--scenario",
        type=Path,
        help="Scenario YAML (default: TDRS_SCENARIO or the bundled scenario)",
    )
    run_parser.add_argument(
        "--ticks",
        type=_positive_int,
        help="Override the scenario's tick count",
    )
    run_parser.add_argument(
        "--verbosity",
        choices=("quiet", "normal", "detailed"),
        default="normal",
        help="Controls how many notifications each tick reports (default: normal)",
    )
    run_parser.add_argument(
        "--max-lines",
        type=int,
        default=80,
        help="Maximum lines to render per tick (default: 80)",
    )
    run_parser.add_argument(
        "--fast",
        action="store_true",
        help="Print only tick headers and the final graph",
    )
    run_parser.add_argument("--log-level", help="Logging level (default: TDRS_LOG_LEVEL or INFO)")

    validate_parser = subparsers.add_parser(
        "validate",
        help="Load definition documents and report what they contain",
    )
    validate_parser.add_argument("--definitions", nargs="+", type=Path, required=True)
    validate_parser.add_argument("--log-level", help="Logging level (default: TDRS_LOG_LEVEL or INFO)")

    return parser


def _handle_run(args: argparse.Namespace) -> None:
    config = load_engine_config()
    if args.definitions:
        config.definitions = list(args.definitions)
    configure_logging(args.log_level or config.log_level)

    engine = SocialEngine.from_config(config)
    scenario = parse_scenario(read_scenario(args.scenario or config.scenario))
    if args.ticks is not None:
        scenario.ticks = args.ticks
    renderer = GraphRenderer(fast=args.fast, verbosity=args.verbosity, max_lines=args.max_lines)

    logger.info("tdrs.scenario.started", extra={"scenario": scenario.name, "ticks": scenario.ticks})
    scheduler = SimulationScheduler(engine=engine, scenario=scenario, renderer=renderer)
    scheduler.run()


def _handle_validate(args: argparse.Namespace) -> None:
    config = load_engine_config()
    configure_logging(args.log_level or config.log_level)
    engine = SocialEngine(config)
    engine.load_definition_files(args.definitions)
    print(f"OK: {len(engine.traits)} traits, {len(engine.social_events)} social events")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.command == "run":
            _handle_run(args)
        elif args.command == "validate":
            _handle_validate(args)
        else:
            parser.print_help()
    except (ConfigurationError, FileNotFoundError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
