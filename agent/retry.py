import time
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional


@dataclass
class RetryPolicy:
    """Bounded retry schedule shared by the generation poller and the code extractor.

    Stops after `max_attempts` attempts or once `deadline` seconds have elapsed
    since the first attempt, whichever comes first. Sleeps `interval` seconds
    between attempts; the sleep before the deadline is shortened so the loop
    ends exactly at the deadline.
    """
    interval: float
    max_attempts: Optional[int] = None
    deadline: Optional[float] = None
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def __post_init__(self):
        if self.max_attempts is None and self.deadline is None:
            raise ValueError("RetryPolicy needs max_attempts or deadline")

    def _remaining(self, started: float) -> Optional[float]:
        if self.deadline is None:
            return None
        return self.deadline - (self.clock() - started)

    def _exhausted(self, attempt: int, started: float) -> bool:
        if self.max_attempts is not None and attempt >= self.max_attempts:
            return True
        remaining = self._remaining(started)
        return remaining is not None and remaining <= 0

    def attempts(self) -> Iterator[int]:
        """Yields 1-based attempt numbers. Callers break out once they succeed."""
        started = self.clock()
        attempt = 0
        while not self._exhausted(attempt, started):
            attempt += 1
            yield attempt
            if self._exhausted(attempt, started):
                break
            remaining = self._remaining(started)
            self.sleep(self.interval if remaining is None else min(self.interval, remaining))

    def elapsed_since(self, started: float) -> float:
        return self.clock() - started
