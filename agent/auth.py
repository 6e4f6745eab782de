import time
import logging
from enum import Enum
from typing import Callable, List, Optional, Sequence

from agent.errors import AuthenticationError
from agent.state import Credentials
from browser.driver import ObservableAction, PageDriver
from browser.session import SessionStore

logger = logging.getLogger(__name__)

LOGIN_MARKERS = ("sign in", "login")


class AuthState(str, Enum):
    UNKNOWN = "unknown"
    CHECKING_LOGIN_REQUIRED = "checking_login_required"
    NOT_REQUIRED = "not_required"
    LOGGING_IN = "logging_in"
    AUTHENTICATED = "authenticated"
    LOGIN_FAILED = "login_failed"


def needs_login(actions: Sequence[ObservableAction]) -> bool:
    return any(
        marker in action.description.lower()
        for action in actions
        for marker in LOGIN_MARKERS
    )


class AuthenticationFlow:
    """Drives the GitHub federated login when the page asks for it.

    Cookies are only persisted after the post-login check no longer finds any
    login markers. Failed logins are never retried.
    """

    def __init__(
        self,
        driver: PageDriver,
        session_store: SessionStore,
        credentials_provider: Callable[[], Optional[Credentials]],
        settle_time: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.driver = driver
        self.session_store = session_store
        self.credentials_provider = credentials_provider
        self.settle_time = settle_time
        self.sleep = sleep
        self.state = AuthState.UNKNOWN

    def _fail(self, reason: str):
        self.state = AuthState.LOGIN_FAILED
        logger.error(f"Login failed: {reason}")
        raise AuthenticationError(reason)

    def run(self, actions: Optional[List[ObservableAction]] = None) -> AuthState:
        self.state = AuthState.CHECKING_LOGIN_REQUIRED
        if actions is None:
            actions = self.driver.observe_actions()
        if not needs_login(actions):
            self.state = AuthState.NOT_REQUIRED
            logger.info("Already signed in, skipping login")
            return self.state

        self.state = AuthState.LOGGING_IN
        logger.info("Login required, starting GitHub sign-in")
        self.driver.act("click the sign in button")
        self.driver.act("click sign in with github")

        credentials = self.credentials_provider()
        if credentials is None:
            self._fail("no credentials configured")

        self.driver.act("enter %email% into the email field", {"email": credentials.identity})
        self.driver.act("enter %password% into the password field", {"password": credentials.secret})
        self.driver.act("click the sign in button")
        self.sleep(self.settle_time)

        if needs_login(self.driver.observe_actions()):
            self._fail("post-login verification failed")

        self.state = AuthState.AUTHENTICATED
        logger.info("Login succeeded")
        self.session_store.save(self.driver.cookies())
        return self.state
