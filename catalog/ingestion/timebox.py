"""Wall-clock budget for the batch jobs."""

import time


class Deadline:
    """Tracks elapsed time against a fixed budget in seconds."""

    def __init__(self, seconds: float):
        self.start = time.monotonic()
        self.seconds = seconds

    @property
    def expired(self) -> bool:
        return time.monotonic() - self.start > self.seconds

    @property
    def elapsed(self) -> int:
        return round(time.monotonic() - self.start)
