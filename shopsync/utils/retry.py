"""
Retry policy for partner API calls rejected because of an expired access token.

The partner API signals an expired or revoked token in two forms: an
``error_auth`` error code, or a message containing "Invalid access_token".
Both are matched. A matching response earns exactly one token refresh and
one retried request; anything after that is returned to the caller as-is.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


AUTH_ERROR_CODES: Tuple[str, ...] = ("error_auth",)
AUTH_ERROR_MESSAGES: Tuple[str, ...] = ("Invalid access_token",)


@dataclass
class RetryStats:
    """Tracks refresh attempts made for a single call."""
    attempts: int = 0
    refreshed: bool = False
    last_error: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    def record_attempt(self, error: Optional[str] = None):
        self.attempts += 1
        if error:
            self.last_error = error
            self.errors.append(error)

    def to_dict(self) -> dict:
        return {
            "attempts": self.attempts,
            "refreshed": self.refreshed,
            "last_error": self.last_error,
            "errors": self.errors[:5],
        }


@dataclass(frozen=True)
class RefreshRetryPolicy:
    """Decides whether a response warrants a token refresh and a retry."""
    max_retries: int = 1
    error_codes: Tuple[str, ...] = AUTH_ERROR_CODES
    message_substrings: Tuple[str, ...] = AUTH_ERROR_MESSAGES

    def is_auth_error(self, response: Optional[Dict[str, Any]]) -> bool:
        if not response:
            return False
        error = response.get("error") or ""
        message = response.get("message") or ""
        if error in self.error_codes:
            return True
        return any(s in message for s in self.message_substrings)

    def should_retry(self, response: Optional[Dict[str, Any]], retries_done: int) -> bool:
        return retries_done < self.max_retries and self.is_auth_error(response)


DEFAULT_REFRESH_POLICY = RefreshRetryPolicy()
