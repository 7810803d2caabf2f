from pathlib import Path
import sys

import httpx
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from tasksync.models import TaskSyncEntry
from tasksync.services.webhook import StaticWebhookLookup, WebhookResolver


class RecordingSleep:
    """Stands in for asyncio.sleep and remembers every requested delay (seconds)."""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


class ScriptedTransport:
    """Answers requests from a list of responses, in order, and records the requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"Unexpected request {request.method} {request.url}")
        return self.responses.pop(0)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def resolver():
    return WebhookResolver(StaticWebhookLookup("https://automation.example/hook/abc"))


@pytest.fixture
def entries():
    return [TaskSyncEntry(record_id=f"rec{i}", payload={"taskName": f"task {i}"}) for i in range(1, 6)]
