"""
Shopee partner API v2 request signing

Every call carries partner_id, timestamp and sign in the query string; shop
calls also carry access_token and shop_id. The signature is an HMAC-SHA256
(hex) keyed by the partner key over:

    partner_id + path + timestamp [+ access_token] [+ shop_id]
"""
import hashlib
import hmac
import time
from typing import Dict, Optional, Union


def sign(
    secret: str,
    partner_id: Union[int, str],
    path: str,
    timestamp: int,
    access_token: Optional[str] = None,
    shop_id: Optional[Union[int, str]] = None,
) -> str:
    """Return the hex signature for one request"""
    if not secret:
        raise ValueError("partner key is required for signing")
    base_string = f"{partner_id}{path}{timestamp}"
    if access_token:
        base_string += access_token
    if shop_id is not None and shop_id != "":
        base_string += str(shop_id)
    return hmac.new(secret.encode("utf-8"), base_string.encode("utf-8"), hashlib.sha256).hexdigest()


def signed_query(
    secret: str,
    partner_id: Union[int, str],
    path: str,
    access_token: Optional[str] = None,
    shop_id: Optional[Union[int, str]] = None,
    timestamp: Optional[int] = None,
) -> Dict[str, str]:
    """Common query parameters for a signed call.

    The token refresh call is signed without access_token/shop_id; leave
    both as None for it.
    """
    timestamp = int(time.time()) if timestamp is None else timestamp
    query = {
        "partner_id": str(partner_id),
        "timestamp": str(timestamp),
        "sign": sign(secret, partner_id, path, timestamp, access_token, shop_id),
    }
    if access_token:
        query["access_token"] = access_token
    if shop_id is not None and shop_id != "":
        query["shop_id"] = str(shop_id)
    return query
