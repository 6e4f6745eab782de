import pytest
from unittest.mock import MagicMock

from agent.auth import AuthState, AuthenticationFlow, needs_login
from agent.errors import AuthenticationError
from agent.state import Credentials
from fakes import FakeDriver, actions


@pytest.fixture
def store():
    return MagicMock()


@pytest.fixture
def credentials():
    return Credentials(identity="dev@example.com", secret="hunter2")


def make_flow(driver, store, provider):
    return AuthenticationFlow(driver, store, provider, settle_time=2, sleep=lambda s: None)


def test_needs_login_markers():
    assert needs_login(actions("Sign In"))
    assert needs_login(actions("Login with email"))
    assert not needs_login(actions("New chat", "Copy code"))


def test_skipped_when_no_login_markers(store):
    driver = FakeDriver(observations=[actions("New chat", "Submit")])
    provider = MagicMock()

    flow = make_flow(driver, store, provider)
    assert flow.run() is AuthState.NOT_REQUIRED

    provider.assert_not_called()
    assert driver.acts == []
    store.save.assert_not_called()


def test_successful_login_saves_session(store, credentials):
    driver = FakeDriver(observations=[actions("Sign in"), actions("New chat")])

    flow = make_flow(driver, store, lambda: credentials)
    assert flow.run() is AuthState.AUTHENTICATED

    assert driver.acts == [
        "click the sign in button",
        "click sign in with github",
        "enter %email% into the email field",
        "enter %password% into the password field",
        "click the sign in button",
    ]
    assert driver.variables[2] == {"email": "dev@example.com"}
    assert driver.variables[3] == {"password": "hunter2"}
    store.save.assert_called_once_with(driver.cookies())


def test_missing_credentials_fails(store):
    driver = FakeDriver(observations=[actions("Sign in")])

    flow = make_flow(driver, store, lambda: None)
    with pytest.raises(AuthenticationError, match="no credentials configured"):
        flow.run()

    assert flow.state is AuthState.LOGIN_FAILED
    assert not any("%email%" in a for a in driver.acts)
    store.save.assert_not_called()


def test_post_login_verification_failure_does_not_persist(store, credentials):
    driver = FakeDriver(observations=[actions("Sign in"), actions("Sign in", "Incorrect password")])

    flow = make_flow(driver, store, lambda: credentials)
    with pytest.raises(AuthenticationError, match="post-login verification failed"):
        flow.run()

    assert flow.state is AuthState.LOGIN_FAILED
    store.save.assert_not_called()


def test_uses_given_actions_without_observing(store):
    driver = FakeDriver()
    flow = make_flow(driver, store, MagicMock())

    assert flow.run(actions("Copy code")) is AuthState.NOT_REQUIRED
    assert driver.observe_calls == 0


def test_credentials_repr_hides_secret(credentials):
    assert "hunter2" not in repr(credentials)
