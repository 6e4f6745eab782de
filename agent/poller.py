"""Generation completion detection.

The remote site offers no push notification, so completion is inferred from the
labels of the interactive elements visible at each poll. `classify` holds all
the label-matching rules; `GenerationPoller` only drives the loop.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

from agent.errors import GenerationFailedError, GenerationTimeoutError
from agent.retry import RetryPolicy
from browser.driver import ObservableAction, PageDriver
from browser.utils import scrape_code_blocks

logger = logging.getLogger(__name__)

ERROR_MARKERS = ("error", "failed")
COMPLETION_MARKERS = ("copy code", "preview", "download", "save to project")
GENERATING_MARKERS = ("generating", "loading", "thinking", "stop")


class Classification(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    PENDING = "pending"


def _matching(actions: Sequence[ObservableAction], markers: Sequence[str]) -> Optional[str]:
    for action in actions:
        label = action.description.lower()
        if any(marker in label for marker in markers):
            return action.description
    return None


def classify(actions: Sequence[ObservableAction]) -> Classification:
    # Error markers win over completion markers in the same poll
    if _matching(actions, ERROR_MARKERS):
        return Classification.FAILED
    if _matching(actions, COMPLETION_MARKERS):
        return Classification.COMPLETED
    return Classification.PENDING


def is_generating(actions: Sequence[ObservableAction]) -> bool:
    return _matching(actions, GENERATING_MARKERS) is not None


def code_content_probe(driver: PageDriver) -> bool:
    """Fallback completion signal: the rendered page already holds code blocks."""
    return bool(scrape_code_blocks(driver.content()))


@dataclass
class PollOutcome:
    status: str  # "completed" | "failed" | "timed_out"
    reason: str = ""
    elapsed: float = 0.0
    polls: int = 0


class GenerationPoller:
    def __init__(
        self,
        driver: PageDriver,
        policy: RetryPolicy,
        probe: Optional[Callable[[PageDriver], bool]] = code_content_probe,
    ):
        self.driver = driver
        self.policy = policy
        self.probe = probe

    def _probe_completed(self) -> bool:
        if not self.probe:
            return False
        try:
            return self.probe(self.driver)
        except Exception as e:
            logger.debug(f"Completion probe failed: {e}")
            return False

    def wait(self) -> PollOutcome:
        started = self.policy.clock()
        polls = 0
        for polls in self.policy.attempts():
            actions = self.driver.observe_actions()
            classification = classify(actions)

            if classification is Classification.FAILED:
                reason = _matching(actions, ERROR_MARKERS)
                logger.warning(f"Generation failed after {polls} polls: {reason!r}")
                return PollOutcome("failed", f"Generation failed: {reason}", self.policy.elapsed_since(started), polls)

            if classification is Classification.COMPLETED:
                logger.info(f"Generation completed after {polls} polls")
                return PollOutcome("completed", "", self.policy.elapsed_since(started), polls)

            if not is_generating(actions) and self._probe_completed():
                logger.info(f"Generation completed (code found on page) after {polls} polls")
                return PollOutcome("completed", "code content detected", self.policy.elapsed_since(started), polls)

            logger.debug(f"Poll {polls}: generation still pending")

        elapsed = self.policy.elapsed_since(started)
        logger.warning(f"Generation timed out after {elapsed:.0f}s ({polls} polls)")
        return PollOutcome("timed_out", "Generation timed out", elapsed, polls)


def raise_for_outcome(outcome: PollOutcome) -> None:
    if outcome.status == "failed":
        raise GenerationFailedError(outcome.reason or "Generation failed")
    if outcome.status == "timed_out":
        raise GenerationTimeoutError(f"Generation timed out after {outcome.elapsed:.0f} seconds")
