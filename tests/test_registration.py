import asyncio
from unittest.mock import MagicMock

import requests

from countrygen.discord_api import DiscordAPIError
from countrygen.registration import EndpointRegistration, RegistrationState

URL = "https://bot.example.com/"


class _Sleeps:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


def _registration(client, **kwargs) -> tuple[EndpointRegistration, _Sleeps]:
    sleeps = _Sleeps()
    reg = EndpointRegistration(client, URL, sleep=sleeps, **kwargs)
    return reg, sleeps


class TestEndpointRegistration:
    def test_succeeds_first_try(self):
        client = MagicMock()
        reg, sleeps = _registration(client, initial_delay_seconds=0)

        assert reg.state == RegistrationState.PENDING
        assert asyncio.run(reg.run()) == RegistrationState.REGISTERED

        client.set_interactions_endpoint_url.assert_called_once_with(URL)
        assert reg.attempts == 1
        assert reg.last_error is None
        assert sleeps.calls == []

    def test_retries_with_exponential_backoff(self):
        client = MagicMock()
        client.set_interactions_endpoint_url.side_effect = [
            requests.ConnectionError("down"),
            DiscordAPIError(400, "endpoint did not answer PING"),
            None,
        ]
        reg, sleeps = _registration(client, max_attempts=5, backoff_seconds=2.0, initial_delay_seconds=1.0)

        assert asyncio.run(reg.run()) == RegistrationState.REGISTERED
        assert reg.attempts == 3
        assert sleeps.calls == [1.0, 2.0, 4.0]

    def test_gives_up_without_raising(self, caplog):
        client = MagicMock()
        client.set_interactions_endpoint_url.side_effect = RuntimeError("boom")
        reg, sleeps = _registration(client, max_attempts=3, backoff_seconds=0.5, initial_delay_seconds=0)

        with caplog.at_level("WARNING", logger="countrygen.registration"):
            assert asyncio.run(reg.run()) == RegistrationState.FAILED

        assert client.set_interactions_endpoint_url.call_count == 3
        # no sleep after the final attempt
        assert sleeps.calls == [0.5, 1.0]
        assert reg.last_error == "RuntimeError: boom"
        assert any(r.levelname == "ERROR" for r in caplog.records)

    def test_max_attempts_floor(self):
        reg, _ = _registration(MagicMock(), max_attempts=0)
        assert reg.max_attempts == 1

    def test_start_and_stop(self):
        async def scenario():
            gate = asyncio.Event()

            async def slow_sleep(seconds):
                await gate.wait()

            reg = EndpointRegistration(MagicMock(), URL, sleep=slow_sleep)
            task = reg.start()
            await asyncio.sleep(0)
            assert not task.done()
            await reg.stop()
            return task, reg

        task, reg = asyncio.run(scenario())
        assert task.cancelled()
        assert reg.state == RegistrationState.PENDING

    def test_stop_without_start(self):
        reg, _ = _registration(MagicMock())
        asyncio.run(reg.stop())
