"""CLI entrypoint for the Portuguese postal code and boundary lookup builder."""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

from geoapi_pt.common.config_loader import ConfigBundle, load_config, resolve_data_path
from geoapi_pt.common.constants import (
    EXIT_HARD_FAIL,
    EXIT_NOT_FOUND,
    EXIT_PARTIAL,
    EXIT_SUCCESS,
    HARD_FAIL_ERROR_CODES,
    QUERY_COMMANDS,
    STAGES,
)
from geoapi_pt.common.errors import PipelineError
from geoapi_pt.common.fs import dump_json
from geoapi_pt.common.ids import generate_run_id
from geoapi_pt.common.logging import build_logger, log_event
from geoapi_pt.common.time_utils import elapsed_ms
from geoapi_pt.pipeline.aggregate import run_assemble
from geoapi_pt.pipeline.artifact_store import ArtifactStore
from geoapi_pt.pipeline.reports import write_boundary_report, write_run_summary
from geoapi_pt.resolver.lookup import GeoContext


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=[*STAGES, "all", *QUERY_COMMANDS])
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--strict", action="store_true")
    parser.add_argument("--workers", type=int, default=None)
    parser.add_argument("--only-cp4", nargs="+", default=None, metavar="CP4")
    only = parser.add_mutually_exclusive_group()
    only.add_argument("--only-cp3", action="store_true", help="only write CP4-CP3 artifacts")
    only.add_argument("--only-prefix", action="store_true", help="only write CP4 summary artifacts")
    parser.add_argument("--lat", type=float, default=None)
    parser.add_argument("--lon", type=float, default=None)
    parser.add_argument("--code", default=None)
    return parser.parse_args(argv)


def run_check_boundaries(config: ConfigBundle, data_dir: Path, run_id: str, logger) -> dict:
    started = time.monotonic()
    context = GeoContext.build(config, data_dir, logger=logger, run_id=run_id)
    payload = {
        "run_id": run_id,
        "status": "success",
        "counts": {
            "freguesias": len(context.tables.freguesias),
            "concelhos": len(context.tables.concelhos),
            "distritos": len(context.tables.distritos),
        },
        "index": context.index.stats(),
        "duration_ms": elapsed_ms(started),
    }
    write_boundary_report(data_dir, payload)
    return payload


def execute_stage(stage: str, args: argparse.Namespace, config: ConfigBundle, data_dir: Path, run_id: str, logger) -> dict:
    if stage == "assemble":
        return run_assemble(
            config,
            data_dir,
            run_id,
            logger=logger,
            workers=args.workers,
            only_cp4=args.only_cp4,
            only_cp3=args.only_cp3,
            only_prefix=args.only_prefix,
        )
    if stage == "check-boundaries":
        return run_check_boundaries(config, data_dir, run_id, logger)
    raise ValueError(f"Unknown stage: {stage}")


def run_query(args: argparse.Namespace, config: ConfigBundle, data_dir: Path, run_id: str, logger) -> int:
    if args.command == "resolve":
        if args.lat is None or args.lon is None:
            raise SystemExit("resolve requires --lat and --lon")
        result = GeoContext.build(config, data_dir, logger=logger, run_id=run_id).gps(args.lat, args.lon)
    else:
        if not args.code:
            raise SystemExit("lookup requires --code")
        store = ArtifactStore(resolve_data_path(data_dir, config.artifacts["root"]), config.precision)
        result = store.get(args.code)

    sys.stdout.write(dump_json(result))
    return EXIT_SUCCESS if result is not None else EXIT_NOT_FOUND


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    config_dir = Path(args.config_dir)
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None
    data_dir = Path(args.data_dir)

    is_query = args.command in QUERY_COMMANDS
    logger = build_logger(run_id, data_dir=None if is_query else data_dir, level=args.log_level)
    config = load_config(config_dir, overlay_config_dir=overlay_config_dir)

    if is_query:
        return run_query(args, config, data_dir, run_id, logger)

    stages = list(STAGES) if args.command == "all" else [args.command]
    had_partial_failure = False

    for stage in stages:
        started = time.monotonic()
        log_event(logger, "stage start", run_id=run_id, stage=stage, event="STAGE_START", status="ok")
        try:
            result = execute_stage(stage, args, config, data_dir, run_id, logger)
        except PipelineError as exc:
            log_event(
                logger,
                f"stage failed: {exc}",
                run_id=run_id,
                stage=stage,
                event="STAGE_FAIL",
                status="error",
                error_code=exc.error_code,
                duration_ms=elapsed_ms(started),
            )
            if exc.error_code in HARD_FAIL_ERROR_CODES or args.strict:
                return EXIT_HARD_FAIL
            had_partial_failure = True
            continue
        except Exception as exc:
            log_event(
                logger,
                f"unexpected failure: {exc}",
                run_id=run_id,
                stage=stage,
                event="STAGE_FAIL",
                status="error",
                error_code="UNEXPECTED_ERROR",
                duration_ms=elapsed_ms(started),
            )
            return EXIT_HARD_FAIL

        if result.get("status") == "partial":
            had_partial_failure = True
            if args.strict:
                return EXIT_HARD_FAIL
        log_event(
            logger,
            "stage end",
            run_id=run_id,
            stage=stage,
            event="STAGE_END",
            status=result.get("status", "ok"),
            duration_ms=elapsed_ms(started),
        )

    write_run_summary(data_dir, run_id=run_id, stages=stages)
    if had_partial_failure:
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        return run_command(args)
    except PipelineError:
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
