"""
Unit tests for the mockup poll loop.

The fulfillment client is a mock and sleep is replaced by a recorder, so
the tests check cadence and attempt counts without waiting.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from core.exceptions import FulfillmentError, MockupError, MockupTimeoutError
from models.mockup import MockupStatus, MockupTask
from modules.mockup_poller import MockupPoller


PENDING = MockupTask("tk1", MockupStatus.PENDING)
COMPLETED = MockupTask("tk1", MockupStatus.COMPLETED, ["https://h/mock.png"])


# Fixtures

@pytest.fixture
def client():
    """Mock fulfillment client with a task that is created successfully."""
    mock_client = MagicMock()
    mock_client.create_mockup_task = AsyncMock(return_value="tk1")
    mock_client.poll_mockup_task = AsyncMock(return_value=PENDING)
    return mock_client


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def poller(client, sleeps):
    async def record_sleep(seconds):
        sleeps.append(seconds)

    return MockupPoller(client, interval_seconds=2.0, max_attempts=30, sleep=record_sleep)


class TestMockupPoller:
    """Tests for MockupPoller termination rules."""

    @pytest.mark.anyio
    async def test_completes_on_fifth_attempt(self, poller, client, sleeps):
        client.poll_mockup_task.side_effect = [PENDING] * 4 + [COMPLETED]

        urls = await poller.generate("https://h/x.png", "MUG")

        assert urls == ["https://h/mock.png"]
        assert client.poll_mockup_task.await_count == 5
        assert sleeps == [2.0] * 5
        client.create_mockup_task.assert_awaited_once_with("https://h/x.png", "MUG")

    @pytest.mark.anyio
    async def test_always_pending_times_out_after_thirty_polls(self, poller, client, sleeps):
        with pytest.raises(MockupTimeoutError) as exc_info:
            await poller.generate("https://h/x.png", "MUG")

        assert client.poll_mockup_task.await_count == 30
        assert len(sleeps) == 30
        assert exc_info.value.attempts == 30
        assert exc_info.value.task_key == "tk1"
        assert exc_info.value.message == "Mockup generation timed out"

    @pytest.mark.anyio
    async def test_wait_precedes_every_poll(self, client):
        events = []

        async def record_sleep(seconds):
            events.append("sleep")

        async def poll(task_key):
            events.append("poll")
            return COMPLETED if events.count("poll") == 2 else PENDING

        client.poll_mockup_task.side_effect = poll
        poller = MockupPoller(client, sleep=record_sleep)

        await poller.wait_for_completion("tk1")

        assert events == ["sleep", "poll", "sleep", "poll"]

    @pytest.mark.anyio
    async def test_failed_status_raises(self, poller, client):
        client.poll_mockup_task.side_effect = [
            PENDING,
            MockupTask("tk1", MockupStatus.FAILED, error="Image too small"),
        ]

        with pytest.raises(MockupError) as exc_info:
            await poller.generate("https://h/x.png", "MUG")

        assert not isinstance(exc_info.value, MockupTimeoutError)
        assert exc_info.value.message == "Image too small"
        assert client.poll_mockup_task.await_count == 2

    @pytest.mark.anyio
    async def test_failed_status_without_message(self, poller, client):
        client.poll_mockup_task.return_value = MockupTask("tk1", MockupStatus.FAILED)

        with pytest.raises(MockupError, match="Mockup generation failed"):
            await poller.wait_for_completion("tk1")

    @pytest.mark.anyio
    async def test_poll_failures_are_tolerated(self, poller, client):
        client.poll_mockup_task.side_effect = [
            FulfillmentError("Failed to poll mockup task: timeout"),
            FulfillmentError("Service unavailable", http_status=503),
            COMPLETED,
        ]

        urls = await poller.wait_for_completion("tk1")

        assert urls == ["https://h/mock.png"]
        assert client.poll_mockup_task.await_count == 3

    @pytest.mark.anyio
    async def test_poll_failures_still_count_toward_cap(self, client, sleeps):
        client.poll_mockup_task.side_effect = FulfillmentError("down", http_status=502)

        async def record_sleep(seconds):
            sleeps.append(seconds)

        poller = MockupPoller(client, interval_seconds=0.5, max_attempts=3, sleep=record_sleep)

        with pytest.raises(MockupTimeoutError):
            await poller.wait_for_completion("tk1")

        assert client.poll_mockup_task.await_count == 3
        assert sleeps == [0.5, 0.5, 0.5]

    @pytest.mark.anyio
    async def test_rejected_creation_is_not_polled(self, poller, client):
        client.create_mockup_task.side_effect = FulfillmentError("Invalid image URL", http_status=400)

        with pytest.raises(MockupError, match="Failed to create mockup task: Invalid image URL"):
            await poller.generate("https://h/x.png", "MUG")

        client.poll_mockup_task.assert_not_awaited()

    def test_max_attempts_must_be_positive(self, client):
        with pytest.raises(ValueError):
            MockupPoller(client, max_attempts=0)

    def test_default_logger_is_namespaced(self, client):
        assert MockupPoller(client).logger.name == "art_print_web.modules.mockup_poller"
