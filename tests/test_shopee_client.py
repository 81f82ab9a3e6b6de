"""
Shopee client tests.

Guards against:
1. Token refresh loops (an auth error earns exactly one refresh and one retry)
2. Refreshed tokens not being persisted before the retry
3. Auth errors expressed only in the message text going unrecognised
4. Empty gateway responses crashing the client instead of reading as an error
"""
import asyncio

import pytest
from aiohttp import web
from aiohttp import test_utils

from shopsync.connectors.shopee_client import (
    REFRESH_TOKEN_PATH,
    AiohttpTransport,
    ShopeeClient,
    raise_for_error,
)
from shopsync.exceptions import CredentialError, ShopeeAPIError
from shopsync.utils.retry import DEFAULT_REFRESH_POLICY, RefreshRetryPolicy

from conftest import PARTNER_ID, SHOP_ID

ITEM_PATH = "/api/v2/product/get_item_list"
AUTH_ERROR = {"error": "error_auth", "message": "Invalid access_token."}
REFRESHED = {"access_token": "access-2", "refresh_token": "refresh-2", "expire_in": 14400}


def _run(coro):
    """Run an async coroutine in a sync test."""
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Retry policy
# ---------------------------------------------------------------------------

def test_policy_matches_code_or_message():
    policy = DEFAULT_REFRESH_POLICY
    assert policy.is_auth_error({"error": "error_auth", "message": ""})
    assert policy.is_auth_error({"error": "error_param", "message": "Invalid access_token"})
    assert not policy.is_auth_error({"error": "error_param", "message": "bad item_id"})
    assert not policy.is_auth_error({})


def test_policy_allows_single_retry():
    policy = RefreshRetryPolicy()
    assert policy.should_retry(AUTH_ERROR, 0)
    assert not policy.should_retry(AUTH_ERROR, 1)


# ---------------------------------------------------------------------------
# Signed calls
# ---------------------------------------------------------------------------

def test_call_sends_signed_shop_query(client, transport):
    transport.add(ITEM_PATH, {"error": "", "response": {"item": []}})

    _run(client.call(SHOP_ID, ITEM_PATH, params={"item_status": ["NORMAL", "UNLIST"], "offset": 0}))

    sent = transport.calls(ITEM_PATH)[0]
    assert sent.method == "GET"
    assert sent.params["partner_id"] == str(PARTNER_ID)
    assert sent.params["shop_id"] == str(SHOP_ID)
    assert sent.params["access_token"] == "access-1"
    assert sent.params["item_status"] == "NORMAL,UNLIST"
    assert sent.params["offset"] == "0"
    assert "sign" in sent.params


def test_unknown_shop_raises_credential_error(client, transport):
    with pytest.raises(CredentialError):
        _run(client.call(9999, ITEM_PATH))
    assert transport.requests == []


# ---------------------------------------------------------------------------
# Refresh once
# ---------------------------------------------------------------------------

def test_auth_error_refreshes_and_retries_once(client, transport, credential_store):
    transport.add(ITEM_PATH, AUTH_ERROR, {"error": "", "response": {"item": [{"item_id": 1}]}})
    transport.add(REFRESH_TOKEN_PATH, REFRESHED)

    response = _run(client.call(SHOP_ID, ITEM_PATH))

    assert response["response"]["item"] == [{"item_id": 1}]
    assert len(transport.calls(REFRESH_TOKEN_PATH)) == 1
    calls = transport.calls(ITEM_PATH)
    assert len(calls) == 2
    assert calls[1].params["access_token"] == "access-2"

    creds = credential_store.get_credentials(SHOP_ID)
    assert creds.access_token == "access-2"
    assert creds.refresh_token == "refresh-2"
    assert client.retry_count == 1


def test_refresh_request_is_signed_without_token(client, transport):
    transport.add(ITEM_PATH, AUTH_ERROR, {"error": "", "response": {}})
    transport.add(REFRESH_TOKEN_PATH, REFRESHED)

    _run(client.call(SHOP_ID, ITEM_PATH))

    refresh = transport.calls(REFRESH_TOKEN_PATH)[0]
    assert refresh.method == "POST"
    assert "access_token" not in refresh.params
    assert "shop_id" not in refresh.params
    assert refresh.body == {"refresh_token": "refresh-1", "partner_id": PARTNER_ID, "shop_id": SHOP_ID}


def test_second_auth_error_is_returned(client, transport):
    transport.add(ITEM_PATH, AUTH_ERROR)
    transport.add(REFRESH_TOKEN_PATH, REFRESHED)

    response = _run(client.call(SHOP_ID, ITEM_PATH))

    assert response["error"] == "error_auth"
    assert len(transport.calls(REFRESH_TOKEN_PATH)) == 1
    assert len(transport.calls(ITEM_PATH)) == 2


def test_message_only_auth_error_triggers_refresh(client, transport):
    transport.add(
        ITEM_PATH,
        {"error": "error_param", "message": "Invalid access_token for shop"},
        {"error": "", "response": {}},
    )
    transport.add(REFRESH_TOKEN_PATH, REFRESHED)

    response = _run(client.call(SHOP_ID, ITEM_PATH))

    assert not response["error"]
    assert len(transport.calls(REFRESH_TOKEN_PATH)) == 1


def test_failed_refresh_returns_original_error(client, transport, credential_store):
    transport.add(ITEM_PATH, AUTH_ERROR)
    transport.add(REFRESH_TOKEN_PATH, {"error": "error_auth", "message": "refresh_token expired"})

    response = _run(client.call(SHOP_ID, ITEM_PATH))

    assert response == AUTH_ERROR
    assert len(transport.calls(ITEM_PATH)) == 1
    assert credential_store.get_credentials(SHOP_ID).access_token == "access-1"


def test_other_errors_are_not_retried(client, transport):
    transport.add(ITEM_PATH, {"error": "error_param", "message": "bad offset"})

    response = _run(client.call(SHOP_ID, ITEM_PATH))

    assert response["error"] == "error_param"
    assert transport.calls(REFRESH_TOKEN_PATH) == []
    assert client.error_count == 1


def test_raise_for_error():
    assert raise_for_error({"error": "", "response": {}}) == {"error": "", "response": {}}
    with pytest.raises(ShopeeAPIError) as exc:
        raise_for_error({"error": "error_param", "message": "bad", "request_id": "r1"}, ITEM_PATH)
    assert exc.value.error == "error_param"


# ---------------------------------------------------------------------------
# Real transport
# ---------------------------------------------------------------------------

async def _call_against(handler, credential_store):
    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", handler)
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        client = ShopeeClient(
            credential_store,
            transport=AiohttpTransport(proxy_url=""),
            base_url=f"http://{server.host}:{server.port}",
        )
        response = await client.call(SHOP_ID, ITEM_PATH)
        return client, response
    finally:
        await server.close()


def test_empty_gateway_body_reads_as_error(credential_store, connected_shop):
    async def bad_gateway(request):
        return web.Response(status=502, body=b"")

    client, response = _run(_call_against(bad_gateway, credential_store))

    assert response["error"] == "invalid_response"
    assert "HTTP 502" in response["message"]
    assert client.error_count == 1


def test_transport_decodes_json_body(credential_store, connected_shop):
    async def ok(request):
        assert request.query["shop_id"] == str(SHOP_ID)
        return web.json_response({"error": "", "response": {"item": []}})

    client, response = _run(_call_against(ok, credential_store))

    assert response == {"error": "", "response": {"item": []}}
    assert client.error_count == 0
