"""pygitpush - push project exports to a GitHub branch."""

from .api import GitHubClient
from .auth import TokenProvider, is_authentication_failure
from .exceptions import (
    GitPushAPIError,
    GitPushAuthenticationError,
    GitPushComparisonError,
    GitPushConfigError,
    GitPushError,
    GitPushExtractionError,
    GitPushInvalidResponseError,
    GitPushNetworkError,
    GitPushNonFastForwardError,
    GitPushNotFoundError,
    GitPushPermissionError,
    GitPushRateLimitError,
    GitPushRepositoryAccessError,
    GitPushRepositoryNotFoundError,
    GitPushServerError,
    GitPushSizeLimitError,
    GitPushThrottlingError,
    GitPushTransientError,
    GitPushUploadError,
    GitPushValidationError,
)
from .models import RepositoryTarget, UploadOutcome
from .utils import calculate_git_blob_hash, normalize_content_for_comparison

__version__ = "0.1.0"

__all__ = [
    "GitHubClient",
    "TokenProvider",
    "RepositoryTarget",
    "UploadOutcome",
    "is_authentication_failure",
    "GitPushError",
    "GitPushAPIError",
    "GitPushAuthenticationError",
    "GitPushComparisonError",
    "GitPushConfigError",
    "GitPushExtractionError",
    "GitPushInvalidResponseError",
    "GitPushNetworkError",
    "GitPushNonFastForwardError",
    "GitPushNotFoundError",
    "GitPushPermissionError",
    "GitPushRateLimitError",
    "GitPushRepositoryAccessError",
    "GitPushRepositoryNotFoundError",
    "GitPushServerError",
    "GitPushSizeLimitError",
    "GitPushThrottlingError",
    "GitPushTransientError",
    "GitPushUploadError",
    "GitPushValidationError",
    "calculate_git_blob_hash",
    "normalize_content_for_comparison",
]
