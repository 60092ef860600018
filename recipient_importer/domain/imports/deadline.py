import time
from typing import Any, Callable

DEFAULT_EXECUTION_THRESHOLD_MS = 60000


class DeadlineTracker:
    """Answers whether the current execution may start another chunk."""

    def __init__(self, remaining_time_ms: Callable[[], int], threshold_ms: int = DEFAULT_EXECUTION_THRESHOLD_MS):
        self._remaining_time_ms = remaining_time_ms
        self.threshold_ms = threshold_ms

    def remaining_ms(self) -> int:
        return int(self._remaining_time_ms())

    def has_time(self) -> bool:
        return self.remaining_ms() > self.threshold_ms


class LambdaContextClock:
    """Remaining time as reported by a Lambda-style invocation context."""

    def __init__(self, context: Any):
        self.context = context

    def __call__(self) -> int:
        return int(self.context.get_remaining_time_in_millis())


class BudgetClock:
    """Remaining time of a fixed budget that starts when the clock is created."""

    def __init__(self, budget_seconds: float, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._deadline = clock() + budget_seconds

    def __call__(self) -> int:
        return max(0, int((self._deadline - self._clock()) * 1000))
