"""Internal constants shared across the library."""

USER_AGENT = "pygeotrack"

#: Key of the persisted "permission previously granted" flag.
PERMISSION_FLAG_KEY = "locationPermissionGranted"
#: Key of the persisted device identity.
DEVICE_ID_KEY = "device_id"
STATE_FILE_NAME = "state.json"

DEFAULT_BACKSTOP_INTERVAL_S: float = 300.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_HISTORY_LIMIT = 50

# ------------------------------------------------------------------
# Human-readable failure messages
# ------------------------------------------------------------------

MSG_PERMISSION_DENIED = "Location access denied by user"
MSG_UNAVAILABLE = "Location information unavailable"
MSG_TIMEOUT = "Location request timed out"


def unknown_error_message(detail: str) -> str:
    return f"Geolocation error: {detail}"


# ------------------------------------------------------------------
# Recency label thresholds (seconds)
# ------------------------------------------------------------------

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400
JUST_NOW_LABEL = "just now"
