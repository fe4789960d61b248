"""API client for the GitHub REST API (Git data endpoints)."""

from __future__ import annotations

import logging
import random
import time
from typing import Any
from urllib.parse import quote

import httpx

from .auth import TokenProvider
from .config import config
from .exceptions import (
    GitPushAPIError,
    GitPushAuthenticationError,
    GitPushInvalidResponseError,
    GitPushNetworkError,
    GitPushNonFastForwardError,
    GitPushNotFoundError,
    GitPushPermissionError,
    GitPushServerError,
    GitPushThrottlingError,
    GitPushValidationError,
)
from .models import RateBudget, TreeItem
from .utils import decode_base64_content, encode_base64_content

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"

# Methods that may be repeated without side effects
IDEMPOTENT_METHODS = frozenset({"GET", "HEAD"})


class GitHubClient:
    """Client for the parts of the GitHub API used to push files."""

    def __init__(
        self,
        token: str | None = None,
        api_url: str | None = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 30.0,
        token_provider: TokenProvider | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize GitHub API client.

        Args:
            token: Optional token (uses config if not provided)
            api_url: Optional API URL (uses config if not provided)
            max_retries: Maximum number of retry attempts for reads (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 30.0)
            token_provider: Credential source; takes precedence over ``token``
            transport: Custom httpx transport (used by tests)
        """
        self.token_provider = token_provider or TokenProvider(token)
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._transport = transport

        # Fail early if no credential is available at all
        self.token_provider.get_token()
        # A cleared credential must not keep living in the connection headers
        self.token_provider.add_listener(self.close)

        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                headers={
                    "Authorization": f"Bearer {self.token_provider.get_token()}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": GITHUB_API_VERSION,
                },
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
        self._client = None

    def __enter__(self) -> GitHubClient:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def _should_retry(self, exception: Exception, attempt: int, method: str) -> bool:
        """Determine if a request should be retried.

        Only idempotent requests are retried here. Writes are retried by
        the upload pipeline, which knows which file failed.

        Args:
            exception: The exception that occurred
            attempt: Current attempt number (0-based)
            method: HTTP method of the request

        Returns:
            True if the request should be retried, False otherwise
        """
        if attempt >= self.max_retries:
            return False

        if method.upper() not in IDEMPOTENT_METHODS:
            return False

        # Network errors and 5xx responses are transient
        return isinstance(exception, (GitPushNetworkError, GitPushServerError))

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # Add jitter: +/- 25% of base delay
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    @staticmethod
    def _extract_error_message(response: httpx.Response) -> str:
        """Pull the ``message`` field out of an error body, if any."""
        try:
            if response.content:
                error_data = response.json()
                if isinstance(error_data, dict):
                    msg = error_data.get("message") or error_data.get("error")
                    if msg:
                        return str(msg)
        except ValueError:
            # Not JSON; fall back to the status-based message
            pass
        return ""

    @staticmethod
    def _retry_after(response: httpx.Response) -> float | None:
        """Seconds the server asked us to wait, if it said so."""
        retry_after = response.headers.get("Retry-After")
        if retry_after and retry_after.isdigit():
            return float(retry_after)
        if response.headers.get("X-RateLimit-Remaining") == "0":
            reset = response.headers.get("X-RateLimit-Reset")
            if reset and reset.isdigit():
                return max(0.0, float(reset) - time.time())
        return None

    def _handle_http_error(self, e: httpx.HTTPStatusError) -> GitPushAPIError:
        """Translate an HTTP error status into a typed exception.

        Args:
            e: The HTTP error exception

        Returns:
            Exception to raise
        """
        response = e.response
        status_code = response.status_code
        detail = self._extract_error_message(response)
        suffix = f": {detail}" if detail else ""

        if status_code == 401:
            return GitPushAuthenticationError(
                f"Bad credentials - token is invalid or expired{suffix}", status_code
            )
        if status_code == 403:
            lowered = detail.lower()
            if (
                "rate limit" in lowered
                or "abuse" in lowered
                or response.headers.get("X-RateLimit-Remaining") == "0"
            ):
                return GitPushThrottlingError(
                    f"API rate limit hit{suffix}",
                    status_code,
                    retry_after=self._retry_after(response),
                )
            return GitPushPermissionError(f"Access forbidden{suffix}", status_code)
        if status_code == 404:
            return GitPushNotFoundError(f"Resource not found{suffix}", status_code)
        if status_code == 422:
            return GitPushValidationError(
                f"Validation failed{suffix}", status_code
            )
        if status_code == 429:
            return GitPushThrottlingError(
                f"Too many requests{suffix}",
                status_code,
                retry_after=self._retry_after(response),
            )
        if 500 <= status_code < 600:
            return GitPushServerError(
                f"API request failed with status {status_code}{suffix}", status_code
            )
        return GitPushAPIError(
            f"API request failed with status {status_code}{suffix}", status_code
        )

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Make an API request with retry logic.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response JSON data ({} for empty responses)

        Raises:
            GitPushAPIError: If the request fails after all retries
        """
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        client = self._get_client()

        for attempt in range(self.max_retries + 1):
            try:
                logger.debug("%s %s (attempt %d)", method, endpoint, attempt + 1)
                response = client.request(method, url, **kwargs)
                response.raise_for_status()

                if not response.content:
                    return {}
                try:
                    return response.json()
                except ValueError as e:
                    raise GitPushInvalidResponseError(
                        f"Invalid JSON response from {endpoint}"
                    ) from e

            except httpx.HTTPStatusError as e:
                error: GitPushAPIError = self._handle_http_error(e)
                if self._should_retry(error, attempt, method):
                    delay = self._calculate_retry_delay(attempt)
                    logger.debug(f"Retrying {endpoint} in {delay:.2f}s: {error}")
                    time.sleep(delay)
                    continue
                raise error from e
            except httpx.RequestError as e:
                error = GitPushNetworkError(f"Network request failed: {e}")
                if self._should_retry(error, attempt, method):
                    delay = self._calculate_retry_delay(attempt)
                    logger.debug(f"Retrying {endpoint} in {delay:.2f}s: {error}")
                    time.sleep(delay)
                    continue
                raise error from e

        raise GitPushAPIError("Request failed after all retry attempts")

    def request(self, method: str, path: str, body: Any = None) -> Any:
        """Call an API endpoint.

        This is the single network seam of the package: every typed helper
        below goes through it.

        Args:
            method: HTTP method
            path: Endpoint path, e.g. "/repos/octo/demo/git/blobs"
            body: Optional JSON body

        Returns:
            Parsed JSON response
        """
        if body is None:
            return self._request(method, path)
        return self._request(method, path, json=body)

    # =========================
    # User & Rate Limit
    # =========================

    def get_authenticated_user(self) -> Any:
        """Get the user the token belongs to."""
        return self.request("GET", "/user")

    def get_rate_limit(self) -> RateBudget:
        """Read the core rate limit budget.

        Returns:
            RateBudget with remaining requests and reset time
        """
        data = self.request("GET", "/rate_limit")
        core = data.get("resources", {}).get("core") or data.get("rate") or {}
        return RateBudget(
            remaining=int(core.get("remaining", 0)),
            reset_epoch_seconds=int(core.get("reset", 0)),
            limit=core.get("limit"),
        )

    # =========================
    # Repository Operations
    # =========================

    def get_repository(self, owner: str, repo: str) -> Any:
        """Get repository metadata."""
        return self.request("GET", f"/repos/{owner}/{repo}")

    def get_branch_head(self, owner: str, repo: str, branch: str) -> str | None:
        """Get the commit sha a branch points to.

        Returns:
            Commit sha, or None if the branch does not exist (or the
            repository is empty)
        """
        try:
            data = self.request("GET", f"/repos/{owner}/{repo}/git/refs/heads/{branch}")
        except GitPushNotFoundError:
            return None
        except GitPushAPIError as e:
            # GitHub answers 409 "Git Repository is empty" for empty repos
            if e.status_code == 409:
                return None
            raise
        if isinstance(data, list):
            # A prefix match returns a list of refs
            for ref in data:
                if ref.get("ref") == f"refs/heads/{branch}":
                    return str(ref["object"]["sha"])
            return None
        return str(data["object"]["sha"])

    def get_commit(self, owner: str, repo: str, sha: str) -> Any:
        """Get a Git commit object."""
        return self.request("GET", f"/repos/{owner}/{repo}/git/commits/{sha}")

    def get_tree(
        self, owner: str, repo: str, tree_sha: str, recursive: bool = True
    ) -> Any:
        """Get a Git tree, recursively by default."""
        endpoint = f"/repos/{owner}/{repo}/git/trees/{tree_sha}"
        if recursive:
            endpoint += "?recursive=1"
        return self.request("GET", endpoint)

    def get_blob(self, owner: str, repo: str, sha: str) -> bytes:
        """Download a blob by sha."""
        data = self.request("GET", f"/repos/{owner}/{repo}/git/blobs/{sha}")
        return decode_base64_content(data.get("content", ""))

    def get_file_content(self, owner: str, repo: str, path: str, ref: str) -> bytes:
        """Download the content of a file on a branch.

        The contents endpoint omits the payload for files over 1 MB; those
        are fetched through the blob endpoint instead.

        Returns:
            Raw file content
        """
        endpoint = f"/repos/{owner}/{repo}/contents/{quote(path)}?ref={quote(ref)}"
        data = self.request("GET", endpoint)
        if not isinstance(data, dict):
            raise GitPushInvalidResponseError(f"{path} is not a file")
        encoded = data.get("content")
        if encoded:
            return decode_base64_content(encoded)
        if data.get("sha"):
            return self.get_blob(owner, repo, data["sha"])
        return b""

    # =========================
    # Git Data Writes
    # =========================

    def create_blob(self, owner: str, repo: str, content: bytes) -> str:
        """Create a blob and return its sha."""
        data = self.request(
            "POST",
            f"/repos/{owner}/{repo}/git/blobs",
            {"content": encode_base64_content(content), "encoding": "base64"},
        )
        return str(data["sha"])

    def create_tree(
        self,
        owner: str,
        repo: str,
        items: list[TreeItem],
        base_tree: str | None = None,
    ) -> str:
        """Create a tree and return its sha.

        Args:
            owner: Repository owner
            repo: Repository name
            items: Tree entries
            base_tree: Tree the new entries are applied on top of
        """
        payload: dict[str, Any] = {"tree": [item.to_dict() for item in items]}
        if base_tree:
            payload["base_tree"] = base_tree
        data = self.request("POST", f"/repos/{owner}/{repo}/git/trees", payload)
        return str(data["sha"])

    def create_commit(
        self,
        owner: str,
        repo: str,
        message: str,
        tree_sha: str,
        parents: list[str],
    ) -> str:
        """Create a commit and return its sha."""
        data = self.request(
            "POST",
            f"/repos/{owner}/{repo}/git/commits",
            {"message": message, "tree": tree_sha, "parents": parents},
        )
        return str(data["sha"])

    def update_ref(
        self, owner: str, repo: str, branch: str, sha: str, force: bool = False
    ) -> Any:
        """Move a branch to a new commit.

        Raises:
            GitPushNonFastForwardError: If the update is not a fast-forward
        """
        try:
            return self.request(
                "PATCH",
                f"/repos/{owner}/{repo}/git/refs/heads/{branch}",
                {"sha": sha, "force": force},
            )
        except GitPushValidationError as e:
            raise GitPushNonFastForwardError(
                f"Update of branch '{branch}' is not a fast-forward; the remote "
                f"branch has new commits ({e})",
                e.status_code,
            ) from e

    def create_ref(self, owner: str, repo: str, branch: str, sha: str) -> Any:
        """Create a branch pointing at a commit."""
        return self.request(
            "POST",
            f"/repos/{owner}/{repo}/git/refs",
            {"ref": f"refs/heads/{branch}", "sha": sha},
        )
