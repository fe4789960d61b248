"""Exceptions raised by pygitpush.

The sync engine reports failures through a small taxonomy. Every class
carries a message that names the concrete cause, so callers (and the
authentication classifier in :mod:`pygitpush.auth`) can tell them apart
by text as well as by type.
"""

from typing import Optional


class GitPushError(Exception):
    """Base exception for all pygitpush errors."""


# =============================================================================
# Transport errors (raised by GitHubClient)
# =============================================================================


class GitPushAPIError(GitPushError):
    """A request to the GitHub API failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class GitPushAuthenticationError(GitPushAPIError):
    """The credential was rejected (expired, revoked or missing)."""


class GitPushPermissionError(GitPushAPIError):
    """The credential is valid but lacks access to the resource."""


class GitPushNotFoundError(GitPushAPIError):
    """The requested resource does not exist."""


class GitPushValidationError(GitPushAPIError):
    """The API rejected the request payload (HTTP 422)."""


class GitPushInvalidResponseError(GitPushAPIError):
    """The API returned something that is not valid JSON."""


class GitPushThrottlingError(GitPushAPIError):
    """The API asked us to slow down (secondary rate limit or HTTP 429).

    Retryable: the upload pipeline backs off and retries the same item.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, status_code)
        self.retry_after = retry_after


class GitPushTransientError(GitPushAPIError):
    """A failure that is expected to go away on retry."""


class GitPushNetworkError(GitPushTransientError):
    """The request never got a response (connection reset, timeout...)."""


class GitPushServerError(GitPushTransientError):
    """The API answered with a 5xx status."""


# =============================================================================
# Sync errors (raised by the sync engine and its components)
# =============================================================================


class GitPushConfigError(GitPushError):
    """Required configuration (token, repository coordinates) is missing."""


class GitPushSizeLimitError(GitPushError):
    """The archive exceeds the maximum accepted size."""


class GitPushExtractionError(GitPushError):
    """The archive could not be read."""


class GitPushRepositoryNotFoundError(GitPushNotFoundError):
    """The target repository does not exist or is invisible to the token."""


class GitPushRepositoryAccessError(GitPushPermissionError):
    """The token cannot write to the target repository."""


class GitPushRateLimitError(GitPushError):
    """Not enough API budget left and the reset is too far away to wait."""

    def __init__(self, message: str, reset_epoch_seconds: Optional[int] = None):
        super().__init__(message)
        self.reset_epoch_seconds = reset_epoch_seconds


class GitPushUploadError(GitPushError):
    """A blob could not be created after all retry attempts."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class GitPushNonFastForwardError(GitPushAPIError):
    """The branch moved on the remote; the ref update was rejected."""


class GitPushComparisonError(GitPushError):
    """Comparing local files against the remote tree failed."""
