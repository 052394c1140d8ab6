import json
import logging
from pathlib import Path

from geoapi_pt.common.constants import JSON_LOG_FIELDS
from geoapi_pt.common.errors import AssemblyError, UnknownCodeError
from geoapi_pt.common.fs import dump_json, read_json, write_json_atomic
from geoapi_pt.common.ids import generate_run_id
from geoapi_pt.common.logging import JsonLineFormatter, build_logger, log_event


def test_generate_run_id_prefix():
    assert generate_run_id().startswith("run-")
    assert generate_run_id() != generate_run_id()


def test_dump_json_is_sorted_with_trailing_newline():
    text = dump_json({"b": 1, "a": "Condeixa-a-Nova"})

    assert text.endswith("}\n")
    assert text.index('"a"') < text.index('"b"')


def test_write_json_atomic_replaces_and_leaves_no_temp_files(tmp_path: Path):
    target = tmp_path / "nested" / "x.json"
    write_json_atomic(target, {"v": 1})
    write_json_atomic(target, {"v": 2})

    assert read_json(target) == {"v": 2}
    assert [p.name for p in target.parent.iterdir()] == ["x.json"]


def test_json_line_formatter_emits_schema_fields():
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "hello", None, None)
    record.event = "FEED_LOADED"
    record.rows_in = 3

    payload = json.loads(JsonLineFormatter().format(record))

    assert payload["message"] == "hello"
    assert payload["level"] == "INFO"
    assert payload["event"] == "FEED_LOADED"
    assert payload["rows_in"] == 3
    assert payload["stage"] is None
    assert set(JSON_LOG_FIELDS) <= set(payload)


def test_build_logger_writes_run_log_file(tmp_path: Path):
    logger = build_logger("run-test", data_dir=tmp_path)
    log_event(logger, "stage start", run_id="run-test", stage="assemble", event="STAGE_START")
    for handler in logger.handlers:
        handler.flush()

    lines = (tmp_path / "run_meta" / "run-test.log.jsonl").read_text(encoding="utf-8").splitlines()

    assert json.loads(lines[-1])["event"] == "STAGE_START"


def test_errors_carry_codes():
    assert UnknownCodeError("9999-999").code == "9999-999"
    assert UnknownCodeError("9999-999").error_code == "UNKNOWN_CODE"
    failure = AssemblyError({"3150-012": "disk full"})
    assert failure.error_code == "ASSEMBLY_FAILED"
    assert failure.failed_codes == {"3150-012": "disk full"}
