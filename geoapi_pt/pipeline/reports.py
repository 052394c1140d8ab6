"""Run report writing."""

from __future__ import annotations

from pathlib import Path

from geoapi_pt.common.fs import read_json, write_json

ASSEMBLY_REPORT = "assembly_report.json"
BOUNDARY_REPORT = "boundary_report.json"
RUN_SUMMARY = "run_summary.json"


def reports_dir(data_dir: Path) -> Path:
    return data_dir / "out" / "reports"


def write_assembly_report(data_dir: Path, payload: dict) -> Path:
    path = reports_dir(data_dir) / ASSEMBLY_REPORT
    write_json(path, payload)
    return path


def write_boundary_report(data_dir: Path, payload: dict) -> Path:
    path = reports_dir(data_dir) / BOUNDARY_REPORT
    write_json(path, payload)
    return path


def write_run_summary(data_dir: Path, run_id: str, stages: list[str]) -> Path:
    stage_reports = {}
    error_count = 0
    warning_count = 0

    report_files = {"assemble": ASSEMBLY_REPORT, "check-boundaries": BOUNDARY_REPORT}
    for stage in stages:
        report_path = reports_dir(data_dir) / report_files[stage]
        if not report_path.exists():
            stage_reports[stage] = {"status": "missing_report"}
            error_count += 1
            continue

        report = read_json(report_path)
        stage_reports[stage] = {
            "status": report.get("status"),
            "counts": report.get("counts", {}),
        }
        if report.get("status") == "error":
            error_count += 1
        elif report.get("status") == "partial":
            warning_count += 1

    status = "success"
    if error_count > 0:
        status = "error"
    elif warning_count > 0:
        status = "partial"

    summary_path = reports_dir(data_dir) / RUN_SUMMARY
    write_json(
        summary_path,
        {
            "run_id": run_id,
            "status": status,
            "stages": stages,
            "warning_count": warning_count,
            "error_count": error_count,
            "stage_reports": stage_reports,
        },
    )
    return summary_path
