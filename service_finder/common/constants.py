"""Application constants."""

USER_AGENT = "nhs-service-finder/2.1 (+coverage; contact: configured-email)"
COMMANDS = (
    "build",
    "validate",
    "lookup",
    "audit-codes",
    "apply-codes",
    "verify-codes",
    "postcode-codes",
)
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "command",
    "category",
    "service_id",
    "dataset",
    "code",
    "event",
    "status",
    "duration_ms",
    "count",
    "error_code",
    "message",
)
WGS84_EPSG = 4326
COORDINATE_PRECISION = 6
SERVICE_ID_PROPERTY = "serviceId"
