"""
Authenticated Shopee partner API v2 client.

Every call is signed with the shop's partner key. When Shopee rejects the
access token the client refreshes the token pair once, persists it, and
replays the request once with the new token. A second rejection is handed
back to the caller unchanged.
"""
from typing import Any, Dict, Optional, Protocol
from urllib.parse import quote, urlencode
import aiohttp

from shopsync.config import get_settings
from shopsync.connectors.base_connector import BaseConnector
from shopsync.connectors.signing import signed_query
from shopsync.exceptions import ShopeeAPIError
from shopsync.services.credential_store import CredentialStore, ShopCredentials
from shopsync.utils.logger import log
from shopsync.utils.retry import DEFAULT_REFRESH_POLICY, RefreshRetryPolicy, RetryStats

settings = get_settings()

REFRESH_TOKEN_PATH = "/api/v2/auth/access_token/get"
SHOP_INFO_PATH = "/api/v2/shop/get_shop_info"


class Transport(Protocol):
    async def send(
        self,
        method: str,
        url: str,
        params: Dict[str, str],
        body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        ...


class AiohttpTransport:
    """Sends one request per session, optionally through a forwarding proxy"""

    def __init__(self, timeout_seconds: float = None, proxy_url: Optional[str] = None):
        self.timeout = aiohttp.ClientTimeout(
            total=timeout_seconds or settings.shopee_request_timeout_seconds
        )
        self.proxy_url = proxy_url if proxy_url is not None else settings.shopee_proxy_url

    def _target(self, url: str, params: Dict[str, str]) -> str:
        full_url = f"{url}?{urlencode(params)}"
        if self.proxy_url:
            return f"{self.proxy_url}?url={quote(full_url, safe='')}"
        return full_url

    async def send(self, method, url, params, body=None):
        target = self._target(url, params)
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.request(
                method,
                target,
                json=body if method.upper() != "GET" else None,
                headers={"Content-Type": "application/json"},
            ) as response:
                try:
                    payload = await response.json(content_type=None)
                except ValueError:
                    text = await response.text()
                    return {
                        "error": "invalid_response",
                        "message": f"HTTP {response.status}: {text[:200]}",
                    }
                if not isinstance(payload, dict):
                    return {
                        "error": "invalid_response",
                        "message": f"HTTP {response.status}: empty or non-object body",
                    }
                return payload


def _encode_params(params: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Shopee expects lists comma-joined and booleans lowercase"""
    encoded = {}
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            encoded[key] = "true" if value else "false"
        elif isinstance(value, (list, tuple, set)):
            encoded[key] = ",".join(str(v) for v in value)
        else:
            encoded[key] = str(value)
    return encoded


def raise_for_error(response: Dict[str, Any], api_path: Optional[str] = None) -> Dict[str, Any]:
    """Raise ShopeeAPIError if the response carries an error, else return it"""
    if response.get("error"):
        raise ShopeeAPIError.from_response(response, api_path)
    return response


class ShopeeClient(BaseConnector):
    """Signed partner API calls with a single refresh-and-retry on token rejection"""

    def __init__(
        self,
        credentials: CredentialStore,
        transport: Optional[Transport] = None,
        base_url: Optional[str] = None,
        retry_policy: RefreshRetryPolicy = DEFAULT_REFRESH_POLICY,
    ):
        super().__init__("Shopee")
        self.credentials = credentials
        self.transport = transport or AiohttpTransport()
        self.base_url = (base_url or settings.shopee_base_url).rstrip("/")
        self.retry_policy = retry_policy

    async def call(
        self,
        shop_id: int,
        api_path: str,
        method: str = "GET",
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Call a shop-scoped endpoint.

        Raises:
            CredentialError: shop is not connected or its credentials are incomplete

        Returns:
            The decoded JSON body. API-level errors are returned, not raised;
            use raise_for_error() where an error must abort.
        """
        creds = self.credentials.get_credentials(shop_id)
        stats = RetryStats()

        response = await self._send(creds, api_path, method, params, body)
        stats.record_attempt(response.get("error"))

        while self.retry_policy.should_retry(response, stats.attempts - 1):
            log.warning(f"Shop {shop_id} {api_path}: access token rejected ({response.get('error')}), refreshing")
            refreshed = await self.refresh_access_token(creds)
            if refreshed is None:
                break
            stats.refreshed = True
            self.retry_count += 1
            creds = refreshed
            response = await self._send(creds, api_path, method, params, body)
            stats.record_attempt(response.get("error"))

        error = response.get("error") or None
        self.record_call(error)
        if error:
            log.error(f"Shop {shop_id} {api_path} failed: {error} {response.get('message', '')} ({stats.to_dict()})")
        return response

    async def refresh_access_token(self, creds: ShopCredentials) -> Optional[ShopCredentials]:
        """Exchange the refresh token for a new pair; None if Shopee refuses"""
        query = signed_query(creds.partner_key, creds.partner_id, REFRESH_TOKEN_PATH)
        body = {
            "refresh_token": creds.refresh_token,
            "partner_id": int(creds.partner_id),
            "shop_id": int(creds.shop_id),
        }
        response = await self.transport.send("POST", f"{self.base_url}{REFRESH_TOKEN_PATH}", query, body)
        if response.get("error") or not response.get("access_token"):
            log.error(
                f"Token refresh failed for shop {creds.shop_id}: "
                f"{response.get('error')} {response.get('message', '')}"
            )
            return None
        return self.credentials.save_refreshed_token(
            creds.shop_id,
            response["access_token"],
            response.get("refresh_token") or creds.refresh_token,
            response.get("expire_in"),
        )

    async def validate_connection(self, shop_id: int) -> bool:
        response = await self.call(shop_id, SHOP_INFO_PATH)
        return not response.get("error")

    async def _send(self, creds, api_path, method, params, body) -> Dict[str, Any]:
        query = signed_query(
            creds.partner_key,
            creds.partner_id,
            api_path,
            access_token=creds.access_token,
            shop_id=creds.shop_id,
        )
        query.update(_encode_params(params))
        return await self.transport.send(method.upper(), f"{self.base_url}{api_path}", query, body)
