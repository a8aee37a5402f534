# tests/conftest.py
# Shared fixtures: in-memory store, merchant settings and a fake PAYONE gateway

from typing import Any, Dict, List
from urllib.parse import parse_qsl

import httpx
import pytest

from app.core.store import InMemoryStore
from app.schemas.payone import MerchantSettings
from app.services.payone_service import PayoneService
from app.services.settings_service import SETTINGS_KEY

MERCHANT = {
    "aid": "12345",
    "portalid": "2030000",
    "mid": "42000",
    "key": "secret-portal-key",
    "mode": "test",
}

APPROVED_BODY = "status=APPROVED\ntxid=987654321\nuserid=111222"


class FakeGateway:
    """
    Stand-in for the PAYONE post-gateway behind httpx.MockTransport.

    Responses are consumed in order; once the queue is empty every call
    gets ``default``. Queue an exception instance to make the call fail.
    """

    def __init__(self, default: str = APPROVED_BODY):
        self.default = default
        self.queue: List[Any] = []
        self.requests: List[httpx.Request] = []

    def respond(self, body: Any, status_code: int = 200) -> None:
        self.queue.append((status_code, body))

    def fail(self, exc: Exception) -> None:
        self.queue.append(exc)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.queue.pop(0) if self.queue else (200, self.default)
        if isinstance(item, Exception):
            raise item
        status_code, body = item
        return httpx.Response(status_code, text=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def sent_params(self, index: int = -1) -> Dict[str, str]:
        return dict(parse_qsl(self.requests[index].content.decode(), keep_blank_values=True))


@pytest.fixture
def store():
    return InMemoryStore("test-plugin")


@pytest.fixture
def merchant():
    return MerchantSettings(**MERCHANT)


@pytest.fixture
async def configured_store(store, merchant):
    await store.set(SETTINGS_KEY, merchant.model_dump(by_alias=True))
    return store


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def payone(configured_store, gateway):
    return PayoneService(configured_store, transport=gateway.transport)


@pytest.fixture
def unconfigured_payone(store, gateway):
    return PayoneService(store, transport=gateway.transport)
