"""Page driver abstraction and its Playwright implementation.

The orchestration code only talks to `PageDriver`; one driver instance owns one
browser session for the duration of a single prompt request.
"""
import re
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode, urlparse

from playwright.sync_api import sync_playwright, Error as PlaywrightError

from agent.errors import ConfigurationError, TransientDriverError
from agent.llm import choose_element
from browser.utils import resolve_action_target
from config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ObservableAction:
    """An interactive element currently visible on the page."""
    description: str
    selector: Optional[str] = None
    role: Optional[str] = None
    tag: Optional[str] = None
    selected: bool = False


class PageDriver(ABC):
    """Capability interface for automating one browser page."""

    @abstractmethod
    def navigate(self, url: str) -> None: ...

    @abstractmethod
    def observe_actions(self) -> List[ObservableAction]: ...

    @abstractmethod
    def act(self, instruction: str, variables: Optional[Dict[str, str]] = None) -> None:
        """Performs a labeled action such as "click the Code tab" or
        "enter %prompt% into the prompt textarea"."""

    @abstractmethod
    def press(self, key: str) -> None: ...

    @abstractmethod
    def read_clipboard(self) -> str: ...

    @abstractmethod
    def evaluate(self, expression: str) -> Any: ...

    @abstractmethod
    def content(self) -> str:
        """Rendered HTML of the current page, used for structural queries."""

    @abstractmethod
    def screenshot(self, path: Path) -> None: ...

    @abstractmethod
    def cookies(self) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def add_cookies(self, cookies: List[Dict[str, Any]]) -> None: ...

    @abstractmethod
    def close(self) -> None:
        """Releases the browser session. Must be safe to call more than once."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


_OBSERVE_SCRIPT = """
() => {
  const selector = 'a, button, input, textarea, select, [role="button"], [role="tab"], [role="menuitem"], [contenteditable="true"]';
  const results = [];
  let next = Number(document.body.dataset.agentNext || 0);
  document.querySelectorAll(selector).forEach((el) => {
    const rect = el.getBoundingClientRect();
    const style = window.getComputedStyle(el);
    if (rect.width === 0 || rect.height === 0 || style.visibility === 'hidden' || style.display === 'none') return;
    if (!el.dataset.agentId) { next += 1; el.dataset.agentId = String(next); }
    const isInputButton = el.tagName === 'INPUT' && ['submit', 'button'].includes(el.type);
    const text = ((isInputButton ? el.value : el.innerText) || '').trim().replace(/\\s+/g, ' ');
    const labelText = el.labels && el.labels.length ? el.labels[0].innerText.trim() : '';
    const label = text || el.getAttribute('aria-label') || labelText || el.getAttribute('placeholder')
      || el.getAttribute('name') || el.getAttribute('title') || '';
    results.push({
      id: el.dataset.agentId,
      tag: el.isContentEditable ? 'editable' : (isInputButton ? 'button' : el.tagName.toLowerCase()),
      label: label.slice(0, 200),
      role: el.getAttribute('role'),
      selected: el.getAttribute('aria-selected') === 'true' || el.getAttribute('data-state') === 'active',
    });
  });
  document.body.dataset.agentNext = String(next);
  return results;
}
"""

_CLICK_PATTERN = re.compile(r"^\s*click\s+(?:on\s+)?(?:the\s+)?(?P<target>.+?)\s*$", re.IGNORECASE)
_FILL_PATTERN = re.compile(
    r"^\s*(?:enter|type|fill)\s+(?P<value>.+?)\s+into\s+(?:the\s+)?(?P<target>.+?)\s*$", re.IGNORECASE
)
_FILLABLE_TAGS = {"input", "textarea", "editable"}


def substitute_variables(value: str, variables: Optional[Dict[str, str]]) -> str:
    """Replaces %name% placeholders. Unknown placeholders are left as-is."""
    if not variables:
        return value
    return re.sub(r"%(\w+)%", lambda m: variables.get(m.group(1), m.group(0)), value)


def parse_instruction(instruction: str) -> Dict[str, str]:
    fill = _FILL_PATTERN.match(instruction)
    if fill:
        return {"type": "fill", "target": fill.group("target"), "value": fill.group("value")}
    click = _CLICK_PATTERN.match(instruction)
    if click:
        return {"type": "click", "target": click.group("target")}
    raise TransientDriverError(f"Unsupported action instruction: {instruction!r}")


class PlaywrightPageDriver(PageDriver):
    """Sync Playwright driver. Launches Chromium locally or connects to Browserbase over CDP."""

    def __init__(self, browser_env: str = None, headless: bool = None, target_url: str = None):
        self.browser_env = (browser_env or settings.BROWSER_ENV).upper()
        self.headless = settings.HEADLESS if headless is None else headless
        self.target_url = target_url or settings.TARGET_URL
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None
        self._closed = False

    # --- Lifecycle ---

    def _connect_url(self) -> str:
        if not (settings.BROWSERBASE_API_KEY and settings.BROWSERBASE_PROJECT_ID):
            raise ConfigurationError(
                "BROWSERBASE_API_KEY and BROWSERBASE_PROJECT_ID are required when BROWSER_ENV=BROWSERBASE"
            )
        query = urlencode({"apiKey": settings.BROWSERBASE_API_KEY, "projectId": settings.BROWSERBASE_PROJECT_ID})
        return f"{settings.BROWSERBASE_CONNECT_URL}?{query}"

    def open(self) -> "PlaywrightPageDriver":
        connect_url = self._connect_url() if self.browser_env == "BROWSERBASE" else None
        try:
            with self._driver_errors("browser launch"):
                self._playwright = sync_playwright().start()
                if connect_url:
                    self._browser = self._playwright.chromium.connect_over_cdp(connect_url)
                    logger.info("Connected to Browserbase session")
                else:
                    self._browser = self._playwright.chromium.launch(headless=self.headless)
                    logger.info(f"Launched local Chromium (headless={self.headless})")

                if self._browser.contexts:
                    self._context = self._browser.contexts[0]
                else:
                    self._context = self._browser.new_context(
                        viewport=settings.VIEWPORT_SIZE, user_agent=settings.USER_AGENT
                    )
                parsed = urlparse(self.target_url)
                self._context.grant_permissions(
                    ["clipboard-read", "clipboard-write"], origin=f"{parsed.scheme}://{parsed.netloc}"
                )
                self._page = self._context.pages[0] if self._context.pages else self._context.new_page()
        except Exception:
            self.close()
            raise
        return self

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._browser:
            try:
                self._browser.close()
            except PlaywrightError as e:
                logger.warning(f"Error while closing browser: {e}")
        if self._playwright:
            try:
                self._playwright.stop()
            except PlaywrightError as e:
                logger.warning(f"Error while stopping Playwright: {e}")
        logger.info("Browser session released")

    @contextmanager
    def _driver_errors(self, operation: str):
        try:
            yield
        except PlaywrightError as e:
            message = str(e).splitlines()[0] if str(e) else type(e).__name__
            raise TransientDriverError(f"{operation} failed: {message}") from e

    @property
    def page(self):
        if self._page is None or self._closed:
            raise TransientDriverError("Page driver is not open")
        return self._page

    # --- Capabilities ---

    def navigate(self, url: str) -> None:
        with self._driver_errors(f"navigation to {url}"):
            self.page.goto(url, wait_until="domcontentloaded", timeout=90000)
            self.page.wait_for_selector("body", timeout=15000)
            self.page.wait_for_timeout(3000)

    def _observe_elements(self) -> List[Dict[str, Any]]:
        with self._driver_errors("observe"):
            return self.page.evaluate(_OBSERVE_SCRIPT) or []

    def observe_actions(self) -> List[ObservableAction]:
        return [
            ObservableAction(
                description=element["label"],
                selector=f"[data-agent-id='{element['id']}']",
                role=element.get("role"),
                tag=element.get("tag"),
                selected=bool(element.get("selected")),
            )
            for element in self._observe_elements()
            if element.get("label") or element.get("tag") in _FILLABLE_TAGS
        ]

    def _resolve_element(self, action: Dict[str, str], instruction: str) -> Dict[str, Any]:
        elements = self._observe_elements()
        if action["type"] == "fill":
            elements = [e for e in elements if e.get("tag") in _FILLABLE_TAGS]

        index = resolve_action_target(action["target"], [e.get("label", "") for e in elements])
        if index is not None:
            return elements[index]

        if action["type"] == "fill":
            wanted = {"textarea", "editable"} if "textarea" in action["target"].lower() else _FILLABLE_TAGS
            candidates = [e for e in elements if e.get("tag") in wanted]
            if len(candidates) == 1 or (candidates and "textarea" in action["target"].lower()):
                return candidates[0]

        # Label matching failed; let the configured LLM pick an element
        element_id = choose_element(instruction, elements)
        for element in elements:
            if element["id"] == element_id:
                return element
        raise TransientDriverError(f"No element on the page matches action: {instruction!r}")

    def act(self, instruction: str, variables: Optional[Dict[str, str]] = None) -> None:
        action = parse_instruction(instruction)
        element = self._resolve_element(action, instruction)
        logger.info(f"Action '{instruction}' -> element {element['id']} ({element.get('label', '')[:60]!r})")

        locator = self.page.locator(f"[data-agent-id='{element['id']}']").first
        with self._driver_errors(f"action '{instruction}'"):
            locator.wait_for(state="visible", timeout=30000)
            if action["type"] == "fill":
                locator.fill(substitute_variables(action["value"], variables), timeout=30000)
            else:
                locator.click(timeout=30000)
                self.page.wait_for_load_state("domcontentloaded", timeout=30000)

    def press(self, key: str) -> None:
        with self._driver_errors(f"key press {key}"):
            self.page.keyboard.press(key)

    def read_clipboard(self) -> str:
        return self.evaluate("() => navigator.clipboard.readText()") or ""

    def evaluate(self, expression: str) -> Any:
        with self._driver_errors("evaluate"):
            return self.page.evaluate(expression)

    def content(self) -> str:
        with self._driver_errors("page content"):
            return self.page.content()

    def screenshot(self, path: Path) -> None:
        with self._driver_errors("screenshot"):
            self.page.screenshot(path=path, full_page=True)

    def cookies(self) -> List[Dict[str, Any]]:
        with self._driver_errors("read cookies"):
            return self._context.cookies()

    def add_cookies(self, cookies: List[Dict[str, Any]]) -> None:
        with self._driver_errors("restore cookies"):
            self._context.add_cookies(cookies)


def create_page_driver() -> PageDriver:
    """Acquires a fresh, opened page driver. Never shared between requests."""
    return PlaywrightPageDriver().open()
