import pytest
from arm_poller.config import ResourceTimeouts, Settings, configure_logging
from arm_poller.models import ApiResponse, Deadline, PollingConfig, PollState
from pydantic import ValidationError


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Succeeded", PollState.succeeded),
        ("completed", PollState.succeeded),
        ("FAILED", PollState.failed),
        ("Canceled", PollState.cancelled),
        ("Cancelled", PollState.cancelled),
        ("InProgress", PollState.in_progress),
        ("Updating", PollState.in_progress),
        (None, PollState.in_progress),
    ],
)
def test_poll_state_from_status(raw, expected):
    assert PollState.from_status(raw) is expected


def test_terminal_states():
    assert not PollState.in_progress.is_terminal
    assert all(s.is_terminal for s in (PollState.succeeded, PollState.failed, PollState.cancelled))


def test_delay_backs_off_with_a_floor():
    config = PollingConfig(
        min_interval=0.5, initial_delay=0.1, max_delay=4.0, backoff_factor=2.0, jitter=False
    )

    assert config.delay_for(0) == 0.5
    assert config.delay_for(3) == 0.8
    assert config.delay_for(10) == 4.0
    assert config.delay_for(0, retry_after=2.0) == 2.0


def test_jitter_stays_within_twenty_percent():
    config = PollingConfig(min_interval=0.1, initial_delay=1.0, jitter=True)

    for _ in range(50):
        assert 1.0 <= config.delay_for(0) <= 1.2


def test_retry_after_can_be_ignored():
    config = PollingConfig(
        min_interval=0.1, initial_delay=1.0, jitter=False, honor_retry_after=False
    )

    assert config.delay_for(0, retry_after=30) == 1.0


def test_min_interval_must_be_positive():
    with pytest.raises(ValidationError):
        PollingConfig(min_interval=0)


def test_api_response_headers():
    response = ApiResponse(status=202, headers={"Retry-After": "5", "Location": "x"})

    assert response.header("retry-after") == "5"
    assert response.header("LOCATION") == "x"
    assert response.retry_after == 5.0
    assert ApiResponse(status=202, headers={"Retry-After": "soon"}).retry_after is None


@pytest.mark.asyncio
async def test_deadline():
    deadline = Deadline.after(60)

    assert not deadline.expired()
    assert 59 < deadline.remaining() <= 60
    assert Deadline.after(0).expired()
    assert Deadline.after(-1).remaining() == 0.0


@pytest.mark.asyncio
async def test_resource_timeouts():
    timeouts = ResourceTimeouts(create=10, read=1)

    assert timeouts.for_create().timeout == 10
    assert timeouts.for_read().timeout == 1
    assert timeouts.for_delete(override=3).timeout == 3


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("ARM_POLLER_BASE_URL", "http://localhost:9000")
    monkeypatch.setenv("ARM_POLLER_MIN_POLL_INTERVAL", "0.25")

    settings = Settings()

    assert settings.base_url == "http://localhost:9000"
    assert settings.polling_config().min_interval == 0.25
    assert settings.timeouts().delete == 30 * 60.0


def test_configure_logging():
    configure_logging("debug")
