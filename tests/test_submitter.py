import httpx
import orjson
import pytest

from tasksync.errors import ConfigError, ProtocolError, RemoteError
from tasksync.services.submitter import BatchSubmitter
from tasksync.services.webhook import StaticWebhookLookup, WebhookResolver

from conftest import ScriptedTransport

TRIGGER = "https://automation.example/trigger"


async def submit_with(response, entries, resolver):
    transport = ScriptedTransport(response)
    async with transport.client() as client:
        result = await BatchSubmitter(client, resolver, TRIGGER).submit(entries)
    return result, transport


async def test_posts_whole_batch_with_webhook_url(entries, resolver):
    _, transport = await submit_with(httpx.Response(202, json={"jobId": "job1"}), entries, resolver)

    [request] = transport.requests
    assert request.method == "POST"
    assert str(request.url) == TRIGGER
    body = orjson.loads(request.content)
    assert body["webhookUrl"] == "https://automation.example/hook/abc"
    assert [r["recordId"] for r in body["records"]] == ["rec1", "rec2", "rec3", "rec4", "rec5"]
    assert body["records"][0]["payload"] == {"taskName": "task 1"}


async def test_accepted_returns_job_handle_and_no_results(entries, resolver):
    result, _ = await submit_with(
        httpx.Response(202, json={"jobId": "job1", "createdAt": 1700000000000}), entries, resolver
    )
    assert result.status == "accepted"
    assert result.job_id == "job1"
    assert result.results == []
    assert result.created_at == 1700000000000


async def test_accepted_keeps_remote_status(entries, resolver):
    result, _ = await submit_with(httpx.Response(202, json={"jobId": "job1", "status": "pending"}), entries, resolver)
    assert result.status == "pending"


@pytest.mark.parametrize("body", [{"status": "accepted"}, {"jobId": ""}, {"raw": "queued"}])
async def test_accepted_without_job_id_is_a_protocol_error(entries, resolver, body):
    with pytest.raises(ProtocolError):
        await submit_with(httpx.Response(202, json=body), entries, resolver)


async def test_synchronous_results(entries, resolver):
    results = [{"recordId": e.record_id, "status": "success"} for e in entries]
    result, _ = await submit_with(
        httpx.Response(200, json={"results": results, "completedAt": 5}), entries, resolver
    )
    assert result.status == "success"
    assert result.job_id is None
    assert len(result.results) == len(entries)
    assert result.completed_at == 5


async def test_synchronous_non_json_body_is_not_an_error(entries, resolver):
    result, _ = await submit_with(httpx.Response(200, text="OK"), entries, resolver)
    assert result.status == "success"
    assert result.results == []


@pytest.mark.parametrize(
    "response, message",
    [
        (httpx.Response(400, json={"message": "records missing", "detail": "x"}), "HTTP 400: records missing"),
        (httpx.Response(422, json={"detail": "bad payload"}), "HTTP 422: bad payload"),
        (httpx.Response(500, json={"error": "flow crashed"}), "HTTP 500: flow crashed"),
        (httpx.Response(502, text="Bad Gateway"), "HTTP 502: Bad Gateway"),
        (httpx.Response(503), "HTTP 503: submission failed"),
    ],
)
async def test_non_2xx_raises_remote_error(entries, resolver, response, message):
    with pytest.raises(RemoteError) as exc_info:
        await submit_with(response, entries, resolver)
    assert str(exc_info.value) == message
    assert exc_info.value.status_code == response.status_code


@pytest.mark.parametrize("trigger", ["", "   "])
async def test_missing_trigger_endpoint_fails_before_network(entries, resolver, trigger):
    transport = ScriptedTransport()
    async with transport.client() as client:
        with pytest.raises(ConfigError):
            await BatchSubmitter(client, resolver, trigger).submit(entries)
    assert transport.requests == []


async def test_blank_webhook_url_fails_before_network(entries):
    transport = ScriptedTransport()
    async with transport.client() as client:
        submitter = BatchSubmitter(client, WebhookResolver(StaticWebhookLookup("")), TRIGGER)
        with pytest.raises(ConfigError):
            await submitter.submit(entries)
    assert transport.requests == []
