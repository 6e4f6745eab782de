import time
import uuid
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from langchain_core.runnables import RunnableConfig
from langgraph.graph import StateGraph

from agent.auth import AuthenticationFlow
from agent.errors import TransientDriverError, ValidationError
from agent.extractor import CodeExtractor, build_strategy
from agent.poller import GenerationPoller, raise_for_outcome
from agent.retry import RetryPolicy
from agent.state import Credentials, GenerationState, initial_state, summarize
from browser.driver import PageDriver, create_page_driver
from browser.session import SessionStore
from browser.utils import resize_image_if_needed
from config import settings

logger = logging.getLogger(__name__)


@dataclass
class RunOptions:
    """Timing and strategy knobs for one generation run."""
    target_url: str = field(default_factory=lambda: settings.TARGET_URL)
    max_generation_time: float = field(default_factory=lambda: settings.MAX_GENERATION_TIME)
    poll_interval: float = field(default_factory=lambda: settings.POLL_INTERVAL)
    extract_max_attempts: int = field(default_factory=lambda: settings.EXTRACT_MAX_ATTEMPTS)
    extract_retry_delay: float = field(default_factory=lambda: settings.EXTRACT_RETRY_DELAY)
    extraction_strategy: str = field(default_factory=lambda: settings.EXTRACTION_STRATEGY)
    login_settle_time: float = field(default_factory=lambda: settings.LOGIN_SETTLE_TIME)
    clipboard_settle_time: float = field(default_factory=lambda: settings.CLIPBOARD_SETTLE_TIME)
    screenshots_dir: Path = field(default_factory=lambda: settings.SCREENSHOTS_DIR)
    clock: Callable[[], float] = time.monotonic
    sleep: Callable[[float], None] = time.sleep

    def poll_policy(self) -> RetryPolicy:
        return RetryPolicy(interval=self.poll_interval, deadline=self.max_generation_time, clock=self.clock, sleep=self.sleep)

    def extract_policy(self) -> RetryPolicy:
        return RetryPolicy(interval=self.extract_retry_delay, max_attempts=self.extract_max_attempts, clock=self.clock, sleep=self.sleep)


def get_page_from_config(config: RunnableConfig) -> PageDriver:
    page = config.get("configurable", {}).get("page")
    if not page:
        raise ValueError("Page driver not found in configuration.")
    return page


def _configurable(config: RunnableConfig, key: str) -> Any:
    return config.get("configurable", {})[key]


def restore_session_node(state: GenerationState, config: RunnableConfig) -> GenerationState:
    page = get_page_from_config(config)
    cookies = _configurable(config, "session_store").load()
    if cookies:
        page.add_cookies(cookies)
        state['session_restored'] = True
    summarize(state, "session", f"restored {len(cookies)} cookies" if cookies else "no saved session")
    return state


def navigate_node(state: GenerationState, config: RunnableConfig) -> GenerationState:
    page = get_page_from_config(config)
    logger.info(f"[{state['job_id']}] Navigating to {state['target_url']}")
    page.navigate(state['target_url'])
    summarize(state, "navigate", state['target_url'])
    return state


def authenticate_node(state: GenerationState, config: RunnableConfig) -> GenerationState:
    page = get_page_from_config(config)
    options: RunOptions = _configurable(config, "options")
    flow = AuthenticationFlow(
        page,
        _configurable(config, "session_store"),
        _configurable(config, "credentials_provider"),
        settle_time=options.login_settle_time,
        sleep=options.sleep,
    )
    try:
        state['auth_state'] = flow.run().value
    finally:
        summarize(state, "authenticate", flow.state.value)
    return state


def submit_prompt_node(state: GenerationState, config: RunnableConfig) -> GenerationState:
    page = get_page_from_config(config)
    page.act("enter %prompt% into the prompt textarea", {"prompt": state['prompt']})
    page.press("Enter")
    logger.info(f"[{state['job_id']}] Prompt submitted ({len(state['prompt'])} chars)")
    summarize(state, "submit")
    return state


def await_generation_node(state: GenerationState, config: RunnableConfig) -> GenerationState:
    page = get_page_from_config(config)
    options: RunOptions = _configurable(config, "options")
    outcome = GenerationPoller(page, options.poll_policy()).wait()
    state['polls'] = outcome.polls
    summarize(state, "generation", f"{outcome.status} after {outcome.polls} polls")
    raise_for_outcome(outcome)
    return state


def extract_code_node(state: GenerationState, config: RunnableConfig) -> GenerationState:
    page = get_page_from_config(config)
    options: RunOptions = _configurable(config, "options")
    strategy = build_strategy(options.extraction_strategy, settle_time=options.clipboard_settle_time, sleep=options.sleep)
    state['files'] = CodeExtractor(page, strategy, options.extract_policy()).extract()
    summarize(state, "extract", ", ".join(state['files']))
    return state


def persist_session_node(state: GenerationState, config: RunnableConfig) -> GenerationState:
    page = get_page_from_config(config)
    try:
        cookies = page.cookies()
    except TransientDriverError as e:
        logger.error(f"[{state['job_id']}] Could not read cookies to persist: {e}")
        state['session_saved'] = False
    else:
        state['session_saved'] = _configurable(config, "session_store").save(cookies)
    summarize(state, "persist", "saved" if state['session_saved'] else "not saved")
    return state


def create_graph() -> StateGraph:
    builder = StateGraph(GenerationState)
    builder.add_node("restore_session", restore_session_node)
    builder.add_node("navigate", navigate_node)
    builder.add_node("authenticate", authenticate_node)
    builder.add_node("submit_prompt", submit_prompt_node)
    builder.add_node("await_generation", await_generation_node)
    builder.add_node("extract_code", extract_code_node)
    builder.add_node("persist_session", persist_session_node)

    builder.set_entry_point("restore_session")
    builder.add_edge("restore_session", "navigate")
    builder.add_edge("navigate", "authenticate")
    builder.add_edge("authenticate", "submit_prompt")
    builder.add_edge("submit_prompt", "await_generation")
    builder.add_edge("await_generation", "extract_code")
    builder.add_edge("extract_code", "persist_session")
    builder.set_finish_point("persist_session")
    return builder.compile()


generation_graph = create_graph()


def validate_prompt(prompt: Any) -> str:
    if not isinstance(prompt, str) or not prompt.strip():
        raise ValidationError("prompt must be a non-empty string")
    return prompt


def run_summary(state: Dict[str, Any]) -> str:
    return (
        f"auth={state['auth_state']} session_restored={state['session_restored']} "
        f"polls={state['polls']} steps: {' -> '.join(state['history'])}"
    )


def capture_failure_screenshot(page: PageDriver, job_artifacts_dir: Path) -> Optional[Path]:
    """Best-effort screenshot of the page state at the moment a run failed."""
    path = job_artifacts_dir / "failure.png"
    try:
        job_artifacts_dir.mkdir(parents=True, exist_ok=True)
        page.screenshot(path)
    except (TransientDriverError, OSError) as e:
        logger.warning(f"Could not capture failure screenshot: {e}")
        return None
    resize_image_if_needed(path)
    logger.info(f"Failure screenshot saved to {path}")
    return path


def run_generation(
    prompt: str,
    driver_factory: Callable[[], PageDriver] = create_page_driver,
    session_store: Optional[SessionStore] = None,
    credentials_provider: Callable[[], Optional[Credentials]] = settings.load_credentials,
    options: Optional[RunOptions] = None,
    job_id: Optional[str] = None,
) -> Dict[str, Dict[str, str]]:
    """Runs one prompt through the remote site and returns {"files": {filename: source}}.

    The page driver is acquired here and released on every exit path.
    """
    prompt = validate_prompt(prompt)
    options = options or RunOptions()
    session_store = session_store or SessionStore(settings.COOKIE_FILE)
    job_id = job_id or str(uuid.uuid4())
    job_artifacts_dir = options.screenshots_dir / job_id

    logger.info(f"[{job_id}] Starting generation")
    with driver_factory() as page:
        config = {
            "configurable": {
                "page": page,
                "session_store": session_store,
                "credentials_provider": credentials_provider,
                "options": options,
            }
        }
        try:
            final_state = generation_graph.invoke(
                initial_state(job_id, prompt, options.target_url, job_artifacts_dir), config=config
            )
        except Exception as e:
            logger.error(f"[{job_id}] Generation run failed: {e}")
            capture_failure_screenshot(page, job_artifacts_dir)
            raise

    logger.info(f"[{job_id}] Generation finished with {len(final_state['files'])} file(s): {run_summary(final_state)}")
    return {"files": final_state["files"]}
