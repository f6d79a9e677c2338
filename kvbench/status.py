from enum import Enum


class Status(str, Enum):
    """Per-call outcome reported to the benchmark harness."""

    OK = "OK"
    ERROR = "ERROR"
    NOT_FOUND = "NOT_FOUND"
    # Accepted into the batch buffer, not yet committed.
    BATCHED_OK = "BATCHED_OK"

    @property
    def is_ok(self) -> bool:
        return self in (Status.OK, Status.BATCHED_OK)
