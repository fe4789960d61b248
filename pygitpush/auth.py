"""Credential handling and authentication-failure detection."""

import logging
import re
from typing import Callable, Optional

from .config import config
from .exceptions import GitPushAuthenticationError, GitPushConfigError

logger = logging.getLogger(__name__)

# Heuristic table of messages that mean "the credential is no longer good".
# It approximates GitHub's error vocabulary and can both over- and
# under-match; keep additions here rather than at call sites.
AUTH_FAILURE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"bad credentials", re.IGNORECASE),
    re.compile(r"requires authentication", re.IGNORECASE),
    re.compile(r"\bunauthori[sz]ed\b", re.IGNORECASE),
    re.compile(r"\btoken\b.*\b(expired|invalid|revoked)\b", re.IGNORECASE),
    re.compile(r"\b(expired|invalid|revoked)\b.*\btoken\b", re.IGNORECASE),
    re.compile(r"re-?authenticat", re.IGNORECASE),
)


def is_authentication_failure(error: BaseException) -> bool:
    """Check whether an error means the credential must be renewed.

    Args:
        error: Any exception raised during a sync

    Returns:
        True for GitPushAuthenticationError, any error carrying HTTP status
        401, or a message matching AUTH_FAILURE_PATTERNS
    """
    if isinstance(error, GitPushAuthenticationError):
        return True
    if getattr(error, "status_code", None) == 401:
        return True
    message = str(error)
    return any(pattern.search(message) for pattern in AUTH_FAILURE_PATTERNS)


def require_token(token: Optional[str] = None) -> str:
    """Return a usable token or fail with a configuration error.

    Args:
        token: Explicit token (falls back to configuration)

    Raises:
        GitPushConfigError: If no token is available
    """
    resolved = token or config.token
    if not resolved:
        raise GitPushConfigError(
            "GitHub token not configured. Run 'pygitpush init' or set the "
            "GITHUB_TOKEN environment variable."
        )
    return resolved


class TokenProvider:
    """Supplies the bearer token and handles invalidation.

    ``clear()`` drops the cached token and notifies listeners so that the
    next sync starts with a fresh credential. It never retries a sync.
    """

    def __init__(self, token: Optional[str] = None):
        """Initialize the provider.

        Args:
            token: Explicit token; when omitted the configuration is used
        """
        self._explicit_token = token
        self._cached: Optional[str] = None
        self._listeners: list[Callable[[], None]] = []

    def get_token(self) -> str:
        """Return the current token.

        Raises:
            GitPushConfigError: If no token is available
        """
        if self._cached is None:
            self._cached = require_token(self._explicit_token)
        return self._cached

    def add_listener(self, callback: Callable[[], None]) -> None:
        """Register a callback invoked when the credential is cleared."""
        self._listeners.append(callback)

    def clear(self) -> None:
        """Forget the cached token and notify listeners."""
        self._cached = None
        self._explicit_token = None
        for callback in list(self._listeners):
            try:
                callback()
            except Exception as e:
                logger.warning(f"Credential listener failed: {e}")
