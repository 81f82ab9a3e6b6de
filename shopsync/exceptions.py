"""
Error types raised by the sync engine
"""
from typing import Optional


class ShopSyncError(Exception):
    """Base class for sync engine failures"""


class CredentialError(ShopSyncError):
    """Shop is not connected or its credentials are incomplete"""

    def __init__(self, shop_id: int, reason: str):
        self.shop_id = shop_id
        self.reason = reason
        super().__init__(f"Shop {shop_id}: {reason}")


class ShopeeAPIError(ShopSyncError):
    """The partner API answered with a non-empty error field"""

    def __init__(self, error: str, message: Optional[str] = None, request_id: Optional[str] = None,
                 api_path: Optional[str] = None):
        self.error = error
        self.message = message or error
        self.request_id = request_id
        self.api_path = api_path
        text = f"{error}: {self.message}" if message else error
        if api_path:
            text = f"{api_path} -> {text}"
        super().__init__(text)

    @classmethod
    def from_response(cls, response: dict, api_path: Optional[str] = None) -> "ShopeeAPIError":
        return cls(
            error=response.get("error") or "unknown_error",
            message=response.get("message"),
            request_id=response.get("request_id"),
            api_path=api_path,
        )


class ReconcileError(ShopSyncError):
    """Writing fetched records into the local store failed"""
