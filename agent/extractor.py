import time
import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Sequence

from agent.errors import ExtractionError
from agent.retry import RetryPolicy
from browser.driver import ObservableAction, PageDriver
from browser.utils import DEFAULT_FILENAME, find_filename, scrape_code_blocks

logger = logging.getLogger(__name__)


def resolve_filename(actions: Sequence[ObservableAction], default: str = DEFAULT_FILENAME) -> str:
    """Filename shown on the active file tab, or `default` when none can be found."""
    tabs = [
        action for action in actions
        if (action.role == "tab" or "tab" in action.description.lower())
        and "click" not in action.description.lower()
        and find_filename(action.description)
    ]
    for tab in sorted(tabs, key=lambda t: not t.selected):
        return find_filename(tab.description)
    return default


class ExtractionStrategy(ABC):
    """Base for extraction strategies. All share one constructor so they can be
    built from configuration interchangeably."""
    name = "base"

    def __init__(self, settle_time: float = 2.0, sleep: Callable[[float], None] = time.sleep):
        self.settle_time = settle_time
        self.sleep = sleep

    @abstractmethod
    def attempt(self, driver: PageDriver) -> Dict[str, str]:
        """One extraction try. An empty mapping means "nothing yet, try again"."""


class ClipboardExtraction(ExtractionStrategy):
    """Copies the active file through the UI copy button and reads the clipboard back.

    Waits `settle_time` after switching to the Code tab before copying.
    """
    name = "clipboard"

    def attempt(self, driver: PageDriver) -> Dict[str, str]:
        driver.act("click the Code tab")
        self.sleep(self.settle_time)

        filename = resolve_filename(driver.observe_actions())
        driver.act("click the copy button")
        content = driver.read_clipboard()
        if content and content.strip():
            return {filename: content}
        return {}


class StructuralExtraction(ExtractionStrategy):
    """Reads filenames and source text straight from the rendered code blocks."""
    name = "structural"

    def attempt(self, driver: PageDriver) -> Dict[str, str]:
        return scrape_code_blocks(driver.content())


STRATEGIES = {
    ClipboardExtraction.name: ClipboardExtraction,
    StructuralExtraction.name: StructuralExtraction,
}


def build_strategy(
    name: str, settle_time: float = 2.0, sleep: Callable[[float], None] = time.sleep
) -> ExtractionStrategy:
    try:
        strategy_cls = STRATEGIES[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown extraction strategy: {name!r} (expected one of {sorted(STRATEGIES)})")
    return strategy_cls(settle_time=settle_time, sleep=sleep)


class CodeExtractor:
    def __init__(self, driver: PageDriver, strategy: ExtractionStrategy, policy: RetryPolicy):
        self.driver = driver
        self.strategy = strategy
        self.policy = policy

    def extract(self) -> Dict[str, str]:
        last_error: Optional[Exception] = None
        attempts = 0
        for attempts in self.policy.attempts():
            try:
                files = self.strategy.attempt(self.driver)
            except Exception as e:
                last_error = e
                logger.warning(f"{self.strategy.name} extraction attempt {attempts} failed: {e}")
                continue

            files = {name: code for name, code in files.items() if code and code.strip()}
            if files:
                logger.info(f"Extracted {len(files)} file(s) on attempt {attempts}: {', '.join(files)}")
                return files
            logger.info(f"{self.strategy.name} extraction attempt {attempts} returned no code")

        message = f"Failed to extract code after {attempts} attempts"
        if last_error:
            message += f" (last error: {last_error})"
        raise ExtractionError(message)
