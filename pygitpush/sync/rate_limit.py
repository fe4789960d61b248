"""Rate limit handling for the write phase of a sync.

Two independent controls live here:

- a pre-flight budget check against ``GET /rate_limit`` that warns, waits
  for a near reset, or aborts the sync;
- pacing of mutating requests (minimum spacing, burst-then-pause) plus
  exponential backoff when the API throttles a write anyway.

State is per instance. Concurrent syncs each observe the limit on their
own and do not coordinate.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ..api import GitHubClient
from ..exceptions import GitPushRateLimitError, GitPushThrottlingError
from ..models import RateBudget
from ..utils import (
    BURST_PAUSE_SECONDS,
    BURST_SIZE,
    MIN_WRITE_INTERVAL_SECONDS,
    RATE_LIMIT_HARD_FLOOR,
    RATE_LIMIT_SAFETY_MARGIN,
    RATE_LIMIT_SHORT_WAIT_SECONDS,
    THROTTLE_BASE_DELAY_SECONDS,
    THROTTLE_MAX_DELAY_SECONDS,
)

logger = logging.getLogger(__name__)


@dataclass
class BudgetDecision:
    """Outcome of a pre-flight budget check."""

    proceed: bool
    """True if writes may start now"""

    wait_seconds: float = 0.0
    """Seconds to wait before checking again (when not proceeding)"""

    fatal: bool = False
    """True if the sync must abort"""

    warning: Optional[str] = None
    """Low-budget warning for the user, if any"""

    message: str = ""
    """Explanation of a wait or abort"""


def _format_wait(seconds: float) -> str:
    minutes = int(seconds // 60)
    if minutes >= 1:
        return f"{minutes} minute(s)"
    return f"{int(seconds)} second(s)"


class RateGovernor:
    """Decides when the write path may send the next request."""

    def __init__(
        self,
        client: GitHubClient,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
        safety_margin: int = RATE_LIMIT_SAFETY_MARGIN,
        hard_floor: int = RATE_LIMIT_HARD_FLOOR,
        short_wait_seconds: float = RATE_LIMIT_SHORT_WAIT_SECONDS,
        min_write_interval: float = MIN_WRITE_INTERVAL_SECONDS,
        burst_size: int = BURST_SIZE,
        burst_pause: float = BURST_PAUSE_SECONDS,
        base_delay: float = THROTTLE_BASE_DELAY_SECONDS,
        max_delay: float = THROTTLE_MAX_DELAY_SECONDS,
    ):
        """Initialize rate governor.

        Args:
            client: GitHub API client used to read the budget
            clock: Returns the current Unix time
            sleep: Blocks for the given number of seconds
            safety_margin: Extra requests wanted on top of the file count
            hard_floor: Below this many remaining requests writes cannot start
            short_wait_seconds: Longest reset we are willing to wait for
            min_write_interval: Minimum spacing between two writes
            burst_size: Writes per burst before a pause
            burst_pause: Pause inserted after each burst
            base_delay: First backoff delay after throttling
            max_delay: Backoff ceiling
        """
        self.client = client
        self._clock = clock
        self._sleep = sleep
        self.safety_margin = safety_margin
        self.hard_floor = hard_floor
        self.short_wait_seconds = short_wait_seconds
        self.min_write_interval = min_write_interval
        self.burst_size = burst_size
        self.burst_pause = burst_pause
        self.base_delay = base_delay
        self.max_delay = max_delay

        self.budget: Optional[RateBudget] = None
        self.budget_reads = 0
        self.writes_recorded = 0
        self.total_wait_seconds = 0.0
        self._writes_in_burst = 0
        self._last_write_at: Optional[float] = None

    def _wait(self, seconds: float) -> None:
        if seconds <= 0:
            return
        self.total_wait_seconds += seconds
        self._sleep(seconds)

    # =========================
    # Pre-flight budget check
    # =========================

    def refresh_budget(self) -> RateBudget:
        """Read the remaining budget from the API (one request)."""
        self.budget = self.client.get_rate_limit()
        self.budget_reads += 1
        logger.debug(
            f"Rate limit: {self.budget.remaining} remaining, "
            f"resets at {self.budget.reset_epoch_seconds}"
        )
        return self.budget

    def check_budget(self, files_to_write: int) -> BudgetDecision:
        """Decide whether a write phase of ``files_to_write`` blobs may start.

        Args:
            files_to_write: Number of blobs about to be created

        Returns:
            BudgetDecision
        """
        budget = self.budget if self.budget is not None else self.refresh_budget()
        remaining = budget.remaining

        warning = None
        if remaining < files_to_write + self.safety_margin:
            warning = (
                f"Rate limit warning: only {remaining} API requests remaining "
                f"for {files_to_write} file(s)"
            )

        if remaining >= self.hard_floor:
            return BudgetDecision(proceed=True, warning=warning)

        wait = budget.seconds_until_reset(self._clock())
        if wait <= self.short_wait_seconds:
            return BudgetDecision(
                proceed=False,
                wait_seconds=wait,
                warning=warning,
                message=(
                    f"Rate limit nearly exhausted ({remaining} remaining), "
                    f"waiting {_format_wait(wait)} for reset"
                ),
            )

        return BudgetDecision(
            proceed=False,
            fatal=True,
            warning=warning,
            message=(
                f"Insufficient API rate limit remaining ({remaining} requests). "
                f"Rate limit resets in {_format_wait(wait)}"
            ),
        )

    def ensure_budget(
        self,
        files_to_write: int,
        on_warning: Optional[Callable[[str], None]] = None,
    ) -> RateBudget:
        """Run the pre-flight policy: warn, wait once, or abort.

        Args:
            files_to_write: Number of blobs about to be created
            on_warning: Called with the low-budget warning text

        Returns:
            The budget writes will start with

        Raises:
            GitPushRateLimitError: If the budget is insufficient
        """
        self.refresh_budget()
        decision = self.check_budget(files_to_write)

        if decision.warning:
            logger.warning(decision.warning)
            if on_warning is not None:
                on_warning(decision.warning)

        if decision.proceed:
            return self._current_budget()

        if decision.fatal:
            raise GitPushRateLimitError(
                decision.message, self._current_budget().reset_epoch_seconds
            )

        logger.info(decision.message)
        self._wait(decision.wait_seconds)

        self.refresh_budget()
        recheck = self.check_budget(files_to_write)
        if not recheck.proceed:
            budget = self._current_budget()
            raise GitPushRateLimitError(
                f"Insufficient API rate limit remaining ({budget.remaining} "
                "requests) after waiting for reset",
                budget.reset_epoch_seconds,
            )
        return self._current_budget()

    def _current_budget(self) -> RateBudget:
        if self.budget is None:
            return self.refresh_budget()
        return self.budget

    # =========================
    # Write pacing
    # =========================

    def before_write(self) -> None:
        """Enforce the minimum spacing before a mutating request."""
        now = self._clock()
        if self._last_write_at is not None:
            elapsed = now - self._last_write_at
            if elapsed < self.min_write_interval:
                self._wait(self.min_write_interval - elapsed)
        self._last_write_at = self._clock()

    def record_write(self) -> None:
        """Account for a successful write.

        Every ``burst_size`` writes the burst counter resets and a short
        pause is inserted.
        """
        self.writes_recorded += 1
        if self.budget is not None:
            self.budget.remaining = max(0, self.budget.remaining - 1)

        self._writes_in_burst += 1
        if self._writes_in_burst >= self.burst_size:
            self._writes_in_burst = 0
            logger.debug(f"Burst of {self.burst_size} writes done, pausing")
            self._wait(self.burst_pause)

    def throttle_delay(
        self, attempt: int, error: Optional[GitPushThrottlingError] = None
    ) -> float:
        """Backoff delay after the ``attempt``-th throttled try (1-based).

        ``min(base * 2**(attempt - 1), max)``, raised to the server's
        Retry-After when the error carries one.
        """
        delay = min(self.base_delay * (2 ** max(0, attempt - 1)), self.max_delay)
        if error is not None and error.retry_after is not None:
            delay = max(delay, error.retry_after)
        return delay

    def backoff(
        self, attempt: int, error: Optional[GitPushThrottlingError] = None
    ) -> float:
        """Sleep for the throttling backoff delay and return it."""
        delay = self.throttle_delay(attempt, error)
        logger.warning(f"Throttled by API, backing off {delay:.1f}s")
        self._wait(delay)
        return delay
