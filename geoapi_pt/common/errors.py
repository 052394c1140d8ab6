"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for pipeline and lookup failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class StageError(PipelineError):
    """Raised for stage failures that should halt the stage."""

    error_code = "STAGE_ERROR"


class InsufficientDataError(PipelineError):
    """Raised when geometry is requested on an empty point set."""

    error_code = "INSUFFICIENT_DATA"


class UnknownCodeError(PipelineError):
    """Raised when address data references a postal code missing from the registry."""

    error_code = "UNKNOWN_CODE"

    def __init__(self, code: str) -> None:
        super().__init__(f"Postal code {code} not found in registry")
        self.code = code


class MalformedBoundaryError(PipelineError):
    """Raised when a boundary ring is open or has fewer than 3 distinct vertices."""

    error_code = "MALFORMED_BOUNDARY"


class AssemblyError(StageError):
    """Raised at the end of an assembly run when one or more codes failed."""

    error_code = "ASSEMBLY_FAILED"

    def __init__(self, failed_codes: dict[str, str]) -> None:
        listed = ", ".join(sorted(failed_codes))
        super().__init__(f"Assembly failed for {len(failed_codes)} code(s): {listed}")
        self.failed_codes = dict(failed_codes)
