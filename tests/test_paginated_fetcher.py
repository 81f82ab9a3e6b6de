"""
Paginated fetcher tests.

Guards against:
1. Paging past the last page (or stopping before it)
2. One failing detail batch discarding the batches that succeeded
3. Unpaced call bursts against the partner API
"""
import asyncio

import pytest

from shopsync.connectors.paginated_fetcher import DetailBatch, ListPage, PaginatedFetcher
from shopsync.exceptions import ShopeeAPIError

LIST = ListPage(path="/list", list_key="item", id_key="item_id", status_param="item_status")
DETAIL = DetailBatch(path="/detail", id_param="item_id_list", list_key="item_list")


def _run(coro):
    """Run an async coroutine in a sync test."""
    return asyncio.run(coro)


class ScriptedClient:
    """Client stand-in answering with handler(path, params)"""

    def __init__(self, handler):
        self.handler = handler
        self.calls = []

    async def call(self, shop_id, path, method="GET", params=None, body=None):
        self.calls.append((path, dict(params or {})))
        return self.handler(path, dict(params or {}))


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def _paged_items(total, page_size):
    """Handler serving item ids 1..total with has_next_page/next_offset"""
    def handler(path, params):
        if path == "/list":
            offset = params["offset"]
            ids = list(range(offset + 1, min(offset + page_size, total) + 1))
            more = offset + page_size < total
            body = {"item": [{"item_id": i} for i in ids], "has_next_page": more}
            if more:
                body["next_offset"] = offset + page_size
            return {"error": "", "response": body}
        return {"error": "", "response": {"item_list": [{"item_id": i} for i in params["item_id_list"]]}}
    return handler


# ---------------------------------------------------------------------------
# Paging
# ---------------------------------------------------------------------------

def test_pages_until_has_next_page_false():
    client = ScriptedClient(_paged_items(total=250, page_size=100))
    fetcher = PaginatedFetcher(client, delay_ms=0, page_size=100)

    entries = _run(fetcher.fetch_list(1, LIST))

    assert [e["item_id"] for e in entries] == list(range(1, 251))
    assert [p["offset"] for _, p in client.calls] == [0, 100, 200]
    assert all(p["page_size"] == 100 for _, p in client.calls)


def test_missing_next_offset_stops_paging():
    def handler(path, params):
        return {"error": "", "response": {"item": [{"item_id": 1}], "has_next_page": True}}

    client = ScriptedClient(handler)
    entries = _run(PaginatedFetcher(client, delay_ms=0).fetch_list(1, LIST))

    assert len(entries) == 1
    assert len(client.calls) == 1


def test_total_count_paging():
    page = ListPage(path="/list", list_key="rows", id_key="id", limit_param="limit",
                    more_key=None, total_key="total_count")

    def handler(path, params):
        offset = params["offset"]
        rows = [{"id": i} for i in range(offset, min(offset + 2, 5))]
        return {"error": "", "response": {"rows": rows, "total_count": 5}}

    client = ScriptedClient(handler)
    entries = _run(PaginatedFetcher(client, delay_ms=0, page_size=2).fetch_list(1, page))

    assert [e["id"] for e in entries] == [0, 1, 2, 3, 4]
    assert [p["limit"] for _, p in client.calls] == [2, 2, 2]


def test_ids_collected_across_statuses_then_batched():
    def handler(path, params):
        if path == "/list":
            start = 1 if params["item_status"] == "NORMAL" else 51
            ids = range(start, start + 60)
            return {"error": "", "response": {"item": [{"item_id": i} for i in ids], "has_next_page": False}}
        return {"error": "", "response": {"item_list": [{"item_id": i} for i in params["item_id_list"]]}}

    client = ScriptedClient(handler)
    fetcher = PaginatedFetcher(client, delay_ms=0, batch_size=50)

    details = _run(fetcher.fetch_all_list(1, LIST, DETAIL, ["NORMAL", "UNLIST"]))

    # 1..60 and 51..110 overlap on 51..60
    assert [d["item_id"] for d in details] == list(range(1, 111))
    batches = [p["item_id_list"] for path, p in client.calls if path == "/detail"]
    assert [len(b) for b in batches] == [50, 50, 10]


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

def test_failed_batch_is_skipped():
    def handler(path, params):
        if 51 in params["item_id_list"]:
            return {"error": "error_server", "message": "busy"}
        return {"error": "", "response": {"item_list": [{"item_id": i} for i in params["item_id_list"]]}}

    client = ScriptedClient(handler)
    fetcher = PaginatedFetcher(client, delay_ms=0, batch_size=50)

    details = _run(fetcher.fetch_details(1, DETAIL, range(1, 121)))

    assert len(details) == 70
    assert len(fetcher.failures) == 1
    assert "error_server" in fetcher.failures[0]


def test_failed_page_ends_listing():
    def handler(path, params):
        if params["offset"] == 0:
            return {"error": "", "response": {"item": [{"item_id": 1}], "has_next_page": True, "next_offset": 1}}
        return {"error": "error_server", "message": "busy"}

    entries = _run(PaginatedFetcher(ScriptedClient(handler), delay_ms=0).fetch_list(1, LIST))
    assert entries == [{"item_id": 1}]


def test_raise_on_error_propagates():
    client = ScriptedClient(lambda path, params: {"error": "error_param", "message": "bad"})
    fetcher = PaginatedFetcher(client, delay_ms=0)

    with pytest.raises(ShopeeAPIError):
        _run(fetcher.fetch_list(1, LIST, raise_on_error=True))


def test_fetch_each_keys_by_id():
    def handler(path, params):
        if params["item_id"] == 2:
            return {"error": "error_not_found", "message": "gone"}
        return {"error": "", "response": {"model": [{"model_id": params["item_id"] * 10}]}}

    fetcher = PaginatedFetcher(ScriptedClient(handler), delay_ms=0)
    result = _run(fetcher.fetch_each(1, "/models", "item_id", [1, 2, 3, 1]))

    assert set(result) == {1, 3}
    assert result[3]["model"] == [{"model_id": 30}]


# ---------------------------------------------------------------------------
# Pacing
# ---------------------------------------------------------------------------

def test_pause_between_calls_not_before_first():
    sleep = RecordingSleep()
    client = ScriptedClient(_paged_items(total=30, page_size=10))
    fetcher = PaginatedFetcher(client, delay_ms=100, page_size=10, sleep=sleep)

    _run(fetcher.fetch_list(1, LIST))

    assert len(client.calls) == 3
    assert sleep.delays == [0.1, 0.1]
