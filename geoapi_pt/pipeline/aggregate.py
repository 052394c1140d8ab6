"""Group address points by postal code and assemble per-code geodata artifacts."""

from __future__ import annotations

import logging
import time
from collections import Counter, defaultdict
from concurrent.futures import Executor, Future, ProcessPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Sequence

from geoapi_pt.common.config_loader import ConfigBundle, resolve_data_path
from geoapi_pt.common.constants import CENTER_OF_MASS_POLICIES
from geoapi_pt.common.errors import AssemblyError, ConfigError, InsufficientDataError, StageError, UnknownCodeError
from geoapi_pt.common.geometry import convex_hull, mean_coordinate, ring_area_centroid, weighted_mean_coordinate
from geoapi_pt.common.logging import log_event
from geoapi_pt.common.models import AddressPoint, LatLon, PostalCodePrefixRecord, PostalCodeRecord, Ring
from geoapi_pt.common.time_utils import elapsed_ms
from geoapi_pt.pipeline.address_feed import load_address_feed
from geoapi_pt.pipeline.artifact_store import ArtifactStore
from geoapi_pt.pipeline.registry import PostalRegistry, load_postal_registry
from geoapi_pt.pipeline.reports import write_assembly_report

_module_logger = logging.getLogger(__name__)


def group_by_code(points: Iterable[AddressPoint]) -> dict[str, tuple[AddressPoint, ...]]:
    """Partition points by exact CP4-CP3 code.

    Keys come out sorted and each group is sorted by coordinates then street,
    so the result does not depend on input order.
    """
    grouped: dict[str, list[AddressPoint]] = defaultdict(list)
    for point in points:
        grouped[point.code].append(point)
    return {code: tuple(sorted(grouped[code], key=AddressPoint.sort_key)) for code in sorted(grouped)}


def group_by_prefix(groups: dict[str, Sequence[AddressPoint]]) -> dict[str, tuple[AddressPoint, ...]]:
    """Truncate CP4-CP3 groups to their CP4 prefix."""
    grouped: dict[str, list[AddressPoint]] = defaultdict(list)
    for code in sorted(groups):
        grouped[code[:4]].extend(groups[code])
    return {cp4: tuple(sorted(grouped[cp4], key=AddressPoint.sort_key)) for cp4 in sorted(grouped)}


def compute_center(points: Sequence[AddressPoint]) -> LatLon:
    if not points:
        raise InsufficientDataError("compute_center called on an empty point set")
    lat, lon = mean_coordinate([point.coordinate for point in points])
    return LatLon(lat, lon)


def _occurrence_center_of_mass(points: Sequence[AddressPoint], boundary: Ring | None) -> LatLon:
    coords = [point.coordinate for point in points]
    occurrences = Counter(coords)
    lat, lon = weighted_mean_coordinate(coords, [occurrences[coord] for coord in coords])
    return LatLon(lat, lon)


def _uniform_center_of_mass(points: Sequence[AddressPoint], boundary: Ring | None) -> LatLon:
    return compute_center(points)


def _area_center_of_mass(points: Sequence[AddressPoint], boundary: Ring | None) -> LatLon:
    if boundary is None:
        boundary = compute_boundary(points)
    if boundary is None:
        return _occurrence_center_of_mass(points, None)
    lat, lon = ring_area_centroid(boundary)
    return LatLon(lat, lon)


CenterOfMassPolicy = Callable[[Sequence[AddressPoint], "Ring | None"], LatLon]

CENTER_OF_MASS_POLICY_FUNCS: dict[str, CenterOfMassPolicy] = {
    "occurrence": _occurrence_center_of_mass,
    "uniform": _uniform_center_of_mass,
    "area": _area_center_of_mass,
}


def compute_center_of_mass(
    points: Sequence[AddressPoint],
    policy: str = "occurrence",
    *,
    boundary: Ring | None = None,
) -> LatLon:
    """Density-weighted center of a point set.

    ``occurrence`` weights every point by how many points share its exact
    coordinates, pulling the result towards stacked addresses (apartment
    blocks); with all-distinct coordinates it equals ``compute_center``.
    ``uniform`` is the plain mean and ``area`` the area centroid of the hull.
    """
    if not points:
        raise InsufficientDataError("compute_center_of_mass called on an empty point set")
    func = CENTER_OF_MASS_POLICY_FUNCS.get(policy)
    if func is None:
        raise ConfigError(f"Unknown center of mass policy: {policy} (expected one of {', '.join(CENTER_OF_MASS_POLICIES)})")
    return func(points, boundary)


def compute_boundary(points: Sequence[AddressPoint]) -> Ring | None:
    return convex_hull(point.coordinate for point in points)


def build_code_record(code: str, points: Sequence[AddressPoint], registry_fields: dict, policy: str) -> PostalCodeRecord:
    boundary = compute_boundary(points)
    return PostalCodeRecord(
        code=code,
        registry_fields=registry_fields,
        points=tuple(points),
        center=compute_center(points),
        center_of_mass=compute_center_of_mass(points, policy, boundary=boundary),
        boundary=boundary,
    )


def build_prefix_record(cp4: str, points: Sequence[AddressPoint], registry_fields: dict, policy: str) -> PostalCodePrefixRecord:
    boundary = compute_boundary(points)
    return PostalCodePrefixRecord(
        code=cp4,
        registry_fields=registry_fields,
        points=tuple(points),
        center=compute_center(points),
        center_of_mass=compute_center_of_mass(points, policy, boundary=boundary),
        boundary=boundary,
        cp3=tuple(sorted({point.cp3 for point in points})),
    )


def assemble_code(code: str, points: Sequence[AddressPoint], registry: PostalRegistry, policy: str = "occurrence") -> PostalCodeRecord:
    return build_code_record(code, points, registry.fields_for(code), policy)


def assemble_prefix(cp4: str, points: Sequence[AddressPoint], registry: PostalRegistry, policy: str = "occurrence") -> PostalCodePrefixRecord:
    return build_prefix_record(cp4, points, registry.fields_for(cp4), policy)


@dataclass(frozen=True)
class AssemblyTask:
    kind: str
    code: str
    points: tuple[AddressPoint, ...]
    registry_fields: dict
    policy: str


def run_assembly_task(task: AssemblyTask, store: ArtifactStore) -> str:
    if task.kind == "prefix":
        record = build_prefix_record(task.code, task.points, task.registry_fields, task.policy)
    else:
        record = build_code_record(task.code, task.points, task.registry_fields, task.policy)
    store.put(task.code, record)
    return task.code


class _InlineExecutor(Executor):
    """Runs submitted work immediately in the calling process."""

    def submit(self, fn, /, *args, **kwargs) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


def _build_tasks(
    kind: str,
    groups: dict[str, tuple[AddressPoint, ...]],
    registry: PostalRegistry,
    policy: str,
    unknown_codes: list[str],
    logger: logging.Logger,
    run_id: str,
) -> list[AssemblyTask]:
    tasks: list[AssemblyTask] = []
    for code, points in groups.items():
        try:
            registry_fields = registry.fields_for(code)
        except UnknownCodeError as exc:
            unknown_codes.append(code)
            log_event(
                logger,
                str(exc),
                level=logging.WARNING,
                run_id=run_id,
                stage="assemble",
                code=code,
                event="UNKNOWN_CODE",
                status="skipped",
                error_code=exc.error_code,
            )
            continue
        tasks.append(AssemblyTask(kind=kind, code=code, points=points, registry_fields=registry_fields, policy=policy))
    return tasks


def _execute_tasks(tasks: list[AssemblyTask], store: ArtifactStore, workers: int) -> tuple[list[str], dict[str, str]]:
    written: list[str] = []
    failed: dict[str, str] = {}
    executor: Executor = ProcessPoolExecutor(max_workers=workers) if workers > 1 else _InlineExecutor()
    with executor:
        futures = {executor.submit(run_assembly_task, task, store): task.code for task in tasks}
        for future, code in futures.items():
            exc = future.exception()
            if exc is None:
                written.append(future.result())
            else:
                failed[code] = f"{type(exc).__name__}: {exc}"
    return sorted(written), failed


def run_assemble(
    config: ConfigBundle,
    data_dir: Path,
    run_id: str,
    *,
    logger: logging.Logger | None = None,
    workers: int | None = None,
    only_cp4: Iterable[str] | None = None,
    only_cp3: bool = False,
    only_prefix: bool = False,
    store: ArtifactStore | None = None,
) -> dict:
    """Batch run: feed + registry -> grouped geometry -> artifacts -> report.

    Codes unknown to the registry are skipped and reported. Any other per-code
    failure is collected and, once every code has been attempted, raised as a
    single AssemblyError.
    """
    logger = logger or _module_logger
    workers = workers or int(config.aggregation.get("workers", 1))
    policy = config.aggregation["center_of_mass_policy"]
    if only_cp3 and only_prefix:
        raise ConfigError("only_cp3 and only_prefix are mutually exclusive")

    feed_path = resolve_data_path(data_dir, config.address_feed["path"])
    registry_path = resolve_data_path(data_dir, config.postal_registry["path"])
    if feed_path is None or registry_path is None:
        raise StageError("address_feed.path and postal_registry.path must be set")
    store = store or ArtifactStore(resolve_data_path(data_dir, config.artifacts["root"]), config.precision)

    started = time.monotonic()
    feed = load_address_feed(feed_path, config.address_feed, config.bbox)
    log_event(
        logger,
        "address feed loaded",
        run_id=run_id,
        stage="assemble",
        source=str(feed_path),
        event="FEED_LOADED",
        status="ok",
        rows_in=feed.rows_in,
        rows_out=len(feed.points),
        duration_ms=elapsed_ms(started),
    )

    started = time.monotonic()
    registry = load_postal_registry(registry_path, config.postal_registry)
    log_event(
        logger,
        "postal registry loaded",
        run_id=run_id,
        stage="assemble",
        source=str(registry_path),
        event="REGISTRY_LOADED",
        status="ok",
        rows_out=len(registry.rows_by_code),
        duration_ms=elapsed_ms(started),
    )

    code_groups = group_by_code(feed.points)
    if only_cp4:
        wanted = set(only_cp4)
        code_groups = {code: points for code, points in code_groups.items() if code[:4] in wanted}
    prefix_groups = group_by_prefix(code_groups)

    unknown_codes: list[str] = []
    tasks: list[AssemblyTask] = []
    if not only_prefix:
        tasks.extend(_build_tasks("code", code_groups, registry, policy, unknown_codes, logger, run_id))
    if not only_cp3:
        tasks.extend(_build_tasks("prefix", prefix_groups, registry, policy, unknown_codes, logger, run_id))

    started = time.monotonic()
    written, failed = _execute_tasks(tasks, store, workers)
    for code, reason in sorted(failed.items()):
        log_event(
            logger,
            f"artifact failed for {code}: {reason}",
            level=logging.ERROR,
            run_id=run_id,
            stage="assemble",
            code=code,
            event="ARTIFACT_FAIL",
            status="error",
            error_code="ARTIFACT_FAILED",
        )
    log_event(
        logger,
        "artifacts written",
        run_id=run_id,
        stage="assemble",
        event="ARTIFACTS_WRITTEN",
        status="ok" if not failed else "error",
        rows_in=len(tasks),
        rows_out=len(written),
        duration_ms=elapsed_ms(started),
    )

    report = {
        "run_id": run_id,
        "status": "error" if failed else ("partial" if unknown_codes else "success"),
        "center_of_mass_policy": policy,
        "counts": {
            "feed_rows": feed.rows_in,
            "address_points": len(feed.points),
            "codes": len(code_groups),
            "prefixes": len(prefix_groups),
            "artifacts_written": len(written),
            "registry_invalid_rows": registry.invalid_rows,
        },
        "skipped_feed_rows": feed.skipped,
        "invalid_samples": list(feed.invalid_samples),
        "unknown_codes": sorted(unknown_codes),
        "failed_codes": dict(sorted(failed.items())),
    }
    report["report_path"] = str(write_assembly_report(data_dir, report))

    if failed:
        raise AssemblyError(failed)
    return report
