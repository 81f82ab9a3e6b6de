"""
Base connector class for partner API clients
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
from datetime import datetime


class BaseConnector(ABC):
    """Base class for outbound API connectors"""

    def __init__(self, name: str):
        self.name = name
        self.last_call = None
        self.call_count = 0
        self.error_count = 0
        self.retry_count = 0  # token refresh retries across all calls
        self.last_error: Optional[str] = None

    @abstractmethod
    async def validate_connection(self, shop_id: int) -> bool:
        """Validate credentials for a shop are accepted"""
        pass

    def record_call(self, error: Optional[str] = None):
        self.last_call = datetime.utcnow()
        self.call_count += 1
        if error:
            self.error_count += 1
            self.last_error = error

    def get_status(self) -> Dict[str, Any]:
        """Get connector status"""
        return {
            "name": self.name,
            "last_call": self.last_call,
            "call_count": self.call_count,
            "error_count": self.error_count,
            "retry_count": self.retry_count,
            "last_error": self.last_error,
            "error_rate": self.error_count / max(self.call_count, 1),
        }
