"""Default values shared across chatflow components."""

DEFAULT_MAX_RETRIES = 3
DEFAULT_FLOW_TIMEOUT_SECONDS = 30 * 60
DEFAULT_SWEEP_INTERVAL_SECONDS = 5 * 60
DEFAULT_SUBMIT_TIMEOUT_SECONDS = 10.0

# Events may be scheduled up to this many years ahead of the current year.
DEFAULT_EVENT_YEAR_WINDOW = 10
DEFAULT_BIRTHDAY_MIN_YEAR = 1800

MAX_NAME_LENGTH = 100
MAX_EMAIL_LENGTH = 254
