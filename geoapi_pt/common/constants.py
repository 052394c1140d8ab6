"""Application constants."""

STAGES = (
    "assemble",
    "check-boundaries",
)
QUERY_COMMANDS = (
    "resolve",
    "lookup",
)
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
EXIT_NOT_FOUND = 1
HARD_FAIL_ERROR_CODES = frozenset({"ASSEMBLY_FAILED", "MALFORMED_BOUNDARY", "CONFIG_ERROR"})
CONFIG_FILENAME = "geoapi.yml"
CENTER_OF_MASS_POLICIES = ("occurrence", "uniform", "area")
WGS84_EPSG = 4326
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "code",
    "source",
    "event",
    "status",
    "duration_ms",
    "rows_in",
    "rows_out",
    "error_code",
    "message",
)
