#!/usr/bin/env python3
"""
Run Placement Script.

Compile an image into a placement path, split it across agents and place
it on the canvas.

Usage:
    canvas-placer --image art.png --origin 527 346
    canvas-placer --image art.png --strategy left-to-right --agents 5 --headless
    canvas-placer --image art.png --check --preview outputs/preview.png
    python -m canvas_placer.scripts.run_placement --config my_placer.yaml

Strategies:
    top-to-bottom, bottom-to-top, left-to-right, right-to-left

Exit status is 1 when the configuration is invalid or the image cannot be
decoded; agent failures are reported but do not change the exit status.
"""

from __future__ import annotations

import argparse
import logging
import sys

from canvas_placer.compiler.image_path import (
    STRATEGIES,
    CompiledImage,
    compile_image_file,
    render_preview,
)
from canvas_placer.compiler.partition import partition_path
from canvas_placer.configs.loader import (
    ConfigError,
    PlacerConfig,
    apply_env_overrides,
    load_config,
)
from canvas_placer.identities.pool import IdentityPool, load_identity_file
from canvas_placer.job_ir.operations import Chunk, path_travel
from canvas_placer.session.orchestrator import AgentOrchestrator, AgentResult
from canvas_placer.utils.fs import ImageDecodeError, atomic_save_image
from canvas_placer.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="canvas-placer",
        description="Place an image on a shared pixel canvas with concurrent agents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"Strategies: {', '.join(STRATEGIES)}",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        help="Configuration file path (default: bundled placer.yaml)",
    )

    # Image
    parser.add_argument("--image", "-i", type=str, help="Source image path")
    parser.add_argument(
        "--origin",
        type=int,
        nargs=2,
        metavar=("X", "Y"),
        help="Canvas coordinate of the image's top-left pixel",
    )
    parser.add_argument(
        "--strategy",
        "-s",
        type=str,
        help="Traversal strategy",
    )

    # Timing
    parser.add_argument(
        "--action-delay",
        type=float,
        help="Seconds to wait after each commit and after a failed attempt",
    )
    parser.add_argument(
        "--key-delay",
        type=float,
        help="Seconds to wait after each move / color key",
    )
    parser.add_argument(
        "--settle",
        type=float,
        help="Seconds to wait after page load before the first key",
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        help="Give up on a pixel after this many failed attempts (default: never)",
    )

    # Agents
    parser.add_argument("--agents", "-n", type=int, help="Number of concurrent agents")
    parser.add_argument(
        "--identities",
        type=str,
        help="File of host:port:principal:secret lines (replaces configured identities)",
    )
    parser.add_argument(
        "--page-script",
        type=str,
        help="JavaScript file evaluated in each page after focusing the canvas",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--headless",
        dest="headless",
        action="store_const",
        const=True,
        help="Run browsers headless",
    )
    mode.add_argument(
        "--headful",
        dest="headless",
        action="store_const",
        const=False,
        help="Show browser windows",
    )
    parser.add_argument(
        "--no-wait",
        dest="wait",
        action="store_const",
        const=False,
        help="Return once all agents are launched instead of joining them",
    )

    # Dry run
    parser.add_argument(
        "--check",
        "--dry-run",
        dest="check",
        action="store_true",
        help="Compile and partition only; do not open any session",
    )
    parser.add_argument(
        "--preview",
        type=str,
        help="Write the palette-quantized image to this PNG path",
    )

    # Logging
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default from config)",
    )
    parser.add_argument("--log-file", type=str, help="Also log to this file")
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines",
    )
    return parser


def _configure_logging(config: PlacerConfig | None, args: argparse.Namespace) -> None:
    lc = config.logging if config is not None else None
    setup_logging(
        log_level=args.log_level or (lc.level if lc else "INFO"),
        log_file=args.log_file or (lc.file if lc else None),
        json=args.json_logs or (lc.json if lc else False),
        color=lc.color if lc else True,
        quiet_libs=["PIL", "asyncio"],
        context={"app": "placer"},
    )


def resolve_config(args: argparse.Namespace) -> PlacerConfig:
    """Config file → environment variables → command-line flags."""
    config = apply_env_overrides(load_config(args.config))

    identities = None
    if args.identities:
        identities = load_identity_file(args.identities)

    return config.with_overrides(
        image_path=args.image,
        origin=tuple(args.origin) if args.origin else None,
        strategy=args.strategy,
        action_delay_s=args.action_delay,
        key_delay_s=args.key_delay,
        settle_s=args.settle,
        max_attempts=args.max_attempts,
        agents=args.agents,
        identities=identities,
        page_script=args.page_script,
        headless=args.headless,
        wait=args.wait,
    )


def log_configuration(config: PlacerConfig) -> None:
    t = config.timing
    logger.info(
        "Configuration:\n"
        "- Image Path: %s\n"
        "- Target Start Coordinates: (%d, %d)\n"
        "- Placement Strategy: %s\n"
        "- Initial Wait Time: %.1f seconds\n"
        "- Delay between actions: %.0fms\n"
        "- Delay between keys: %.0fms\n"
        "- Retry: %s\n"
        "- Headless: %s\n"
        "- Browsers: %d\n"
        "- Identities: %d",
        config.image.path,
        config.image.origin_x,
        config.image.origin_y,
        config.image.strategy,
        t.settle_s,
        t.action_delay_s * 1000.0,
        t.key_delay_s * 1000.0,
        "unbounded" if config.retry.unbounded else f"{config.retry.max_attempts} attempts",
        config.browser.headless,
        config.agents.count,
        len(config.identities),
    )


def report_plan(compiled: CompiledImage, chunks: list[Chunk]) -> None:
    """Log per-chunk sizes and the cursor travel each agent will need."""
    logger.info(
        "Generated coordinate path with %d pixels using %s strategy",
        len(compiled), compiled.strategy,
    )
    for chunk in chunks:
        logger.info(
            "Browser %d: %d pixels (%d to %d), %d cursor moves",
            chunk.index + 1,
            len(chunk),
            chunk.start,
            chunk.end,
            path_travel(chunk.targets, compiled.origin),
        )


def report_results(results: list[AgentResult]) -> None:
    for r in results:
        who = r.identity.label if r.identity else "-"
        status = r.state.name if r.state else "UNKNOWN"
        suffix = f" ({r.error})" if r.error else ""
        logger.info(
            "Browser %d [%s]: %s, placed %d/%d%s",
            r.index + 1, who, status, r.placed, r.total, suffix,
        )


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(None, args)

    try:
        config = resolve_config(args)
    except (ConfigError, FileNotFoundError) as e:
        logger.error("Error loading config: %s", e)
        return 1

    _configure_logging(config, args)
    log_configuration(config)

    try:
        compiled = compile_image_file(
            config.image.path,
            config.image.origin,
            config.image.strategy,
            config.palette,
        )
    except ImageDecodeError as e:
        logger.error("%s", e)
        logger.error("Failed to process image. Exiting.")
        return 1

    if args.preview:
        atomic_save_image(render_preview(compiled, config.palette), args.preview)
        logger.info("Wrote preview to %s", args.preview)

    chunks = partition_path(compiled.path, config.agents.count)
    report_plan(compiled, chunks)

    if args.check:
        logger.info("--check complete. Exiting without launching browsers.")
        return 0

    if not config.identities:
        logger.error("No identities configured; pass --identities or set them in the config")
        return 1

    orchestrator = AgentOrchestrator(config, IdentityPool(config.identities))
    outcome = orchestrator.run(chunks)
    if config.agents.wait:
        report_results(outcome)  # type: ignore[arg-type]
    else:
        logger.info("Launched %d agents; not waiting for completion", len(outcome))
    return 0


if __name__ == "__main__":
    sys.exit(main())
