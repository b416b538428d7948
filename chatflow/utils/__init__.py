from .logging import log_tool_call, redact_fields
from .retry import compute_backoff, sleep_before_retry

__all__ = ["compute_backoff", "sleep_before_retry", "log_tool_call", "redact_fields"]
