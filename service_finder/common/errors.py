"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for service finder failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class ContractError(PipelineError):
    """Raised when strict output contracts are broken."""

    error_code = "CONTRACT_ERROR"


class StageError(PipelineError):
    """Raised for command failures that should halt in strict mode."""

    error_code = "STAGE_ERROR"


class RegistryError(PipelineError):
    """Raised when the service registry cannot be read or written."""

    error_code = "REGISTRY_ERROR"


class DataSourceMissing(PipelineError):
    """A boundary source is absent or unreadable; treated as an empty dataset."""

    error_code = "DATA_SOURCE_MISSING"


class CodeNotResolved(PipelineError):
    """An area code matched no boundary dataset."""

    error_code = "CODE_NOT_RESOLVED"


class UnexpectedGeometryShape(PipelineError):
    """A boundary feature is neither a Polygon nor a MultiPolygon. Aborts the build."""

    error_code = "UNEXPECTED_GEOMETRY_SHAPE"

    def __init__(self, dataset: str, code: str, geometry_type: object) -> None:
        super().__init__(
            f"Feature {code!r} in dataset {dataset!r} has geometry type {geometry_type!r}; "
            "expected Polygon or MultiPolygon"
        )
        self.dataset = dataset
        self.code = code
        self.geometry_type = geometry_type


class GeocodingError(PipelineError):
    """Base class for failures reported by the geocoding collaborator."""

    error_code = "GEOCODING_ERROR"

    def __init__(self, message: str, *, query: str, expected_format: str | None = None) -> None:
        super().__init__(message)
        self.query = query
        self.expected_format = expected_format


class GeocodingNotFound(GeocodingError):
    error_code = "GEOCODING_NOT_FOUND"


class GeocodingTimeout(GeocodingError):
    error_code = "GEOCODING_TIMEOUT"


class InvalidLocationError(GeocodingError):
    error_code = "INVALID_LOCATION"
