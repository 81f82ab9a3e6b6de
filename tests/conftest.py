"""
Shared fixtures: an in-memory database and a scripted Shopee transport.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("LOG_TO_FILE", "false")

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union
from urllib.parse import urlparse

import pytest
from sqlalchemy.orm import sessionmaker

from shopsync.connectors.shopee_client import ShopeeClient
from shopsync.models.base import Base, build_engine, init_db
from shopsync.services.credential_store import CredentialStore
from shopsync.services.reconciler import Reconciler
from shopsync.utils.cache import ResponseCache

SHOP_ID = 1001
PARTNER_ID = 2001
PARTNER_KEY = "test-partner-key"
BASE_URL = "https://partner.test"


@dataclass
class SentRequest:
    method: str
    path: str
    params: Dict[str, str]
    body: Optional[Dict[str, Any]]


Handler = Union[Dict[str, Any], Callable[[SentRequest], Dict[str, Any]]]


class FakeTransport:
    """Answers requests by API path from queued responses or handlers.

    Queued responses are consumed in order and the last one repeats.
    """

    def __init__(self):
        self.routes: Dict[str, List[Handler]] = {}
        self.requests: List[SentRequest] = []

    def add(self, path: str, *responses: Handler) -> "FakeTransport":
        self.routes.setdefault(path, []).extend(responses)
        return self

    def calls(self, path: str) -> List[SentRequest]:
        return [r for r in self.requests if r.path == path]

    async def send(self, method, url, params, body=None):
        request = SentRequest(method, urlparse(url).path, dict(params), body)
        self.requests.append(request)
        queue = self.routes.get(request.path)
        if not queue:
            return {"error": "error_not_found", "message": f"no fake route for {request.path}"}
        handler = queue.pop(0) if len(queue) > 1 else queue[0]
        return handler(request) if callable(handler) else handler


async def no_sleep(_seconds):
    return None


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    init_db(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def cache():
    return ResponseCache(ttl=300)


@pytest.fixture
def credential_store(session_factory, cache):
    return CredentialStore(session_factory, cache=cache)


@pytest.fixture
def connected_shop(credential_store):
    return credential_store.connect_shop(
        shop_id=SHOP_ID,
        partner_id=PARTNER_ID,
        partner_key=PARTNER_KEY,
        access_token="access-1",
        refresh_token="refresh-1",
        expire_in=14400,
        shop_name="Test Shop",
    )


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def client(credential_store, transport, connected_shop):
    return ShopeeClient(credential_store, transport=transport, base_url=BASE_URL)


@pytest.fixture
def reconciler(session_factory, cache):
    return Reconciler(session_factory, cache=cache)
