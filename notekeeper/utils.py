import time
from datetime import datetime, timezone

def make_id(prefix: str) -> str:
    """Generate an ID like ``n_1714564800123`` from the current epoch milliseconds."""
    return f"{prefix}_{int(time.time() * 1000)}"

def time_now() -> str:
    """Return the current UTC time in ISO format with milliseconds and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"
