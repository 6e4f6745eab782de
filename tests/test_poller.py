import pytest

from agent.errors import GenerationFailedError, GenerationTimeoutError
from agent.poller import (
    Classification,
    GenerationPoller,
    PollOutcome,
    classify,
    raise_for_outcome,
)
from agent.retry import RetryPolicy
from fakes import FakeClock, FakeDriver, actions


def make_poller(driver, clock, deadline=180, interval=5, probe=None):
    policy = RetryPolicy(interval=interval, deadline=deadline, clock=clock, sleep=clock.sleep)
    return GenerationPoller(driver, policy, probe=probe)


@pytest.mark.parametrize(
    "labels, expected",
    [
        (["Copy code", "New chat"], Classification.COMPLETED),
        (["Open Preview"], Classification.COMPLETED),
        (["Download ZIP"], Classification.COMPLETED),
        (["Save to Project"], Classification.COMPLETED),
        (["Generation failed, try again"], Classification.FAILED),
        (["An error occurred"], Classification.FAILED),
        (["Generating...", "Stop"], Classification.PENDING),
        ([], Classification.PENDING),
    ],
)
def test_classify(labels, expected):
    assert classify(actions(*labels)) is expected


def test_error_marker_wins_over_completion_marker():
    assert classify(actions("Copy code", "Error: rate limited")) is Classification.FAILED


def test_completes_when_marker_appears():
    clock = FakeClock()
    driver = FakeDriver(observations=[actions("Generating..."), actions("Generating..."), actions("Copy code")])

    outcome = make_poller(driver, clock).wait()

    assert outcome.status == "completed"
    assert outcome.polls == 3
    assert clock.now == 10


def test_failed_outcome_carries_marker_label():
    clock = FakeClock()
    driver = FakeDriver(observations=[actions("Generating..."), actions("Preview", "Generation failed")])

    outcome = make_poller(driver, clock).wait()

    assert outcome.status == "failed"
    assert "Generation failed" in outcome.reason


def test_times_out_exactly_at_deadline():
    clock = FakeClock()
    driver = FakeDriver(observations=[actions("Generating...", "Stop")])

    outcome = make_poller(driver, clock, deadline=180, interval=5).wait()

    assert outcome.status == "timed_out"
    assert clock.now == 180
    assert outcome.elapsed == 180
    assert outcome.polls == 36


def test_timeout_with_interval_not_dividing_deadline():
    clock = FakeClock()
    driver = FakeDriver(observations=[actions("Thinking")])

    outcome = make_poller(driver, clock, deadline=10, interval=3).wait()

    assert outcome.status == "timed_out"
    assert clock.now == 10


def test_probe_signals_completion_when_idle():
    clock = FakeClock()
    driver = FakeDriver(observations=[actions("Generating..."), actions("New chat")])
    probed = []

    def probe(d):
        probed.append(d)
        return True

    outcome = make_poller(driver, clock, probe=probe).wait()

    assert outcome.status == "completed"
    assert outcome.polls == 2
    # Not consulted while a generating marker is visible
    assert len(probed) == 1


def test_default_probe_reads_code_from_page():
    clock = FakeClock()
    driver = FakeDriver(
        observations=[actions("New chat")],
        html='<div><pre data-filename="app.tsx">export default function App() {}</pre></div>',
    )
    policy = RetryPolicy(interval=5, deadline=30, clock=clock, sleep=clock.sleep)

    outcome = GenerationPoller(driver, policy).wait()

    assert outcome.status == "completed"
    assert outcome.polls == 1


def test_probe_errors_do_not_end_polling():
    clock = FakeClock()
    driver = FakeDriver(observations=[actions("New chat"), actions("Copy code")])

    def probe(d):
        raise RuntimeError("detached")

    outcome = make_poller(driver, clock, probe=probe).wait()

    assert outcome.status == "completed"
    assert outcome.polls == 2


def test_raise_for_outcome():
    raise_for_outcome(PollOutcome("completed"))
    with pytest.raises(GenerationFailedError):
        raise_for_outcome(PollOutcome("failed", "Generation failed: Error"))
    with pytest.raises(GenerationTimeoutError):
        raise_for_outcome(PollOutcome("timed_out", elapsed=180))
