import httpx
import pytest

from tasksync.errors import ConfigError, NotFoundError, PollTimeoutError, RemoteError
from tasksync.services.poller import JobPoller

from conftest import ScriptedTransport

STATUS = "https://automation.example/trigger/status"


def running():
    return httpx.Response(200, json={"status": "running"})


async def test_waits_then_returns_on_terminal_status(recording_sleep):
    results = [{"recordId": f"rec{i}", "status": "success"} for i in range(1, 6)]
    transport = ScriptedTransport(
        running(),
        httpx.Response(200, json={"status": "success", "results": results, "completedAt": 9}),
    )
    async with transport.client() as client:
        response = await JobPoller(client, STATUS, sleep=recording_sleep).poll("job1")

    assert response.status == "success"
    assert response.job_id == "job1"
    assert len(response.results) == 5
    assert response.completed_at == 9
    assert recording_sleep.calls == [3.0, 5.0]
    assert [str(r.url) for r in transport.requests] == [f"{STATUS}/job1"] * 2


@pytest.mark.parametrize("status", ["success", "accepted", "partial", "error"])
async def test_every_terminal_status_stops_polling(recording_sleep, status):
    transport = ScriptedTransport(httpx.Response(200, json={"status": status}))
    async with transport.client() as client:
        response = await JobPoller(client, STATUS, sleep=recording_sleep).poll("job1")
    assert response.status == status
    assert len(transport.requests) == 1


async def test_non_terminal_statuses_keep_polling(recording_sleep):
    transport = ScriptedTransport(
        httpx.Response(200, json={"status": "pending"}),
        httpx.Response(200, json={}),  # no status at all reads as unknown
        httpx.Response(200, text="still working"),
        httpx.Response(200, json={"status": "error", "results": [{"recordId": "r1", "message": "bad format"}]}),
    )
    async with transport.client() as client:
        response = await JobPoller(client, STATUS, sleep=recording_sleep).poll("job1", interval_ms=1000)
    assert response.status == "error"
    assert response.results[0].message == "bad format"
    assert recording_sleep.calls == [3.0, 1.0, 1.0, 1.0]


async def test_exhausted_attempts_time_out(recording_sleep):
    transport = ScriptedTransport(*[httpx.Response(200, json={"status": "pending"}) for _ in range(12)])
    async with transport.client() as client:
        with pytest.raises(PollTimeoutError) as exc_info:
            await JobPoller(client, STATUS, sleep=recording_sleep).poll("job1")
    assert isinstance(exc_info.value, TimeoutError)
    assert len(transport.requests) == 12
    assert recording_sleep.calls == [3.0] + [5.0] * 11


async def test_not_found_fails_immediately(recording_sleep):
    transport = ScriptedTransport(httpx.Response(404, json={"message": "gone"}), running())
    async with transport.client() as client:
        with pytest.raises(NotFoundError):
            await JobPoller(client, STATUS, sleep=recording_sleep).poll("job1")
    assert len(transport.requests) == 1


async def test_error_response_aborts_the_poll(recording_sleep):
    transport = ScriptedTransport(running(), httpx.Response(500, json={"detail": "db down"}), running())
    async with transport.client() as client:
        with pytest.raises(RemoteError) as exc_info:
            await JobPoller(client, STATUS, sleep=recording_sleep).poll("job1")
    assert str(exc_info.value) == "HTTP 500: db down"
    assert len(transport.requests) == 2


async def test_empty_error_body_uses_default_message(recording_sleep):
    transport = ScriptedTransport(httpx.Response(503))
    async with transport.client() as client:
        with pytest.raises(RemoteError) as exc_info:
            await JobPoller(client, STATUS, sleep=recording_sleep).poll("job1")
    assert str(exc_info.value) == "HTTP 503: status query failed"


async def test_job_id_is_url_encoded(recording_sleep):
    transport = ScriptedTransport(httpx.Response(200, json={"status": "success"}))
    async with transport.client() as client:
        await JobPoller(client, STATUS + "/", sleep=recording_sleep).poll("batch 7/a")
    assert transport.requests[0].url.raw_path == b"/trigger/status/batch%207%2Fa"


async def test_missing_status_endpoint_is_a_config_error(recording_sleep):
    transport = ScriptedTransport()
    async with transport.client() as client:
        with pytest.raises(ConfigError):
            await JobPoller(client, " ", sleep=recording_sleep).poll("job1")
    assert recording_sleep.calls == []
