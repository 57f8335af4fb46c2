"""GitHub API client for the first-contribution workflow.

This module provides an async wrapper around the GitHub REST API for:
- Forking the upstream repository
- Reading and writing a file through the contents API
- Opening a pull request from the learner's fork
- Resolving the authenticated learner and searching repositories/issues

Every operation returns a ServiceOutcome instead of raising on HTTP
failures. The client performs no retries; retry policy belongs to the
caller (see the workflow engine's fork readiness polling).

Source:
- src/oslearn/github/models.py (ServiceOutcome, OutcomeKind, payload models)
- src/oslearn/config.py (github_base_url, request_timeout_seconds)
"""

import base64
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx
from pydantic import ValidationError

from oslearn.github.models import (
    CommitResult,
    FileContent,
    ForkResult,
    GitHubUser,
    OutcomeKind,
    PullRequestResult,
    ServiceOutcome,
)


logger = logging.getLogger(__name__)


class GitHubClient:
    """Async GitHub API client that translates HTTP status into outcomes.

    Status mapping shared by all operations:

    - 2xx: SUCCESS
    - 401, 403: AUTH_FAILURE (403 with an exhausted rate limit is
      TRANSIENT_FAILURE instead)
    - 404: NOT_FOUND
    - 409: CONFLICT
    - 408, 429, 5xx, timeouts, connection errors: TRANSIENT_FAILURE
    - any other status: TRANSIENT_FAILURE carrying GitHub's message

    Operations then adjust the polarity where the workflow needs it: a
    conflicting fork is a success, a 422 "pull request already exists"
    is a CONFLICT.

    Attributes:
        token: GitHub token from the learner's session.
        base_url: Base URL for GitHub API (default: https://api.github.com).
        timeout: Request timeout in seconds.

    Example:
        >>> async with GitHubClient(token="ghp_xxx") as client:
        ...     outcome = await client.read_file("octocat", "repo", "README.md")
        ...     if outcome.ok:
        ...         print(outcome.value.content)
    """

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            token: Learner's personal access token. May be empty for
                   search-only use.
            base_url: API root; tests point this at a fake host.
            timeout: Per-request timeout in seconds.
            transport: httpx transport override for canned responses.
        """
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Underlying AsyncClient, opened lazily and reopened after close()."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._default_headers(),
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _default_headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "oslearn/1.0",
        }
        # Search works anonymously, at a lower rate limit
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def close(self) -> None:
        client, self._client = self._client, None
        if client is not None and not client.is_closed:
            await client.aclose()

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    @staticmethod
    def _header_int(headers: httpx.Headers, name: str) -> Optional[int]:
        """Integer value of a response header; None when absent or malformed."""
        raw = headers.get(name)
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            return None

    def _is_rate_limited(self, response: httpx.Response) -> bool:
        """Check whether a 403/429 response is a rate limit rejection."""
        if response.status_code == 429:
            return True
        if response.status_code == 403:
            remaining = self._header_int(
                response.headers,
                "x-ratelimit-remaining",
            )
            return remaining == 0
        return False

    def _error_message(self, response: httpx.Response) -> str:
        """Extract GitHub's error message from a failed response."""
        try:
            data = response.json()
        except ValueError:
            return response.text[:500] or f"HTTP {response.status_code}"
        if isinstance(data, dict) and data.get("message"):
            message = str(data["message"])
            errors = data.get("errors") or []
            details = [
                str(error.get("message"))
                for error in errors
                if isinstance(error, dict) and error.get("message")
            ]
            if details:
                message = f"{message}: {'; '.join(details)}"
            return message
        return f"HTTP {response.status_code}"

    def _classify_failure(self, response: httpx.Response) -> OutcomeKind:
        """Map a non-2xx response to an outcome kind."""
        status = response.status_code
        if self._is_rate_limited(response):
            logger.warning(
                "GitHub API rate limit exceeded",
                extra={
                    "reset_at": self._header_int(
                        response.headers, "x-ratelimit-reset"
                    ),
                    "limit": self._header_int(
                        response.headers, "x-ratelimit-limit"
                    ),
                },
            )
            return OutcomeKind.TRANSIENT_FAILURE
        if status in (401, 403):
            return OutcomeKind.AUTH_FAILURE
        if status == 404:
            return OutcomeKind.NOT_FOUND
        if status == 409:
            return OutcomeKind.CONFLICT
        return OutcomeKind.TRANSIENT_FAILURE

    async def _execute(
        self,
        method: str,
        path: str,
        parse: Optional[Callable[[Any], Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> ServiceOutcome:
        """Send one request and translate the exchange into an outcome.

        Args:
            method: HTTP method (GET, POST, PUT).
            path: API path (e.g., /repos/owner/repo/forks).
            parse: Converts the decoded JSON body of a 2xx response into
                   the outcome value.
            json_data: Optional JSON body for the request.
            params: Optional query parameters.

        Returns:
            The classified outcome. Never raises for HTTP or transport
            failures.
        """
        try:
            response = await self.client.request(
                method=method,
                url=path,
                json=json_data,
                params=params,
            )
        except httpx.TimeoutException as e:
            logger.warning(
                "GitHub API request timed out",
                extra={"path": path, "method": method, "error": str(e)},
            )
            return ServiceOutcome.failure(
                OutcomeKind.TRANSIENT_FAILURE,
                message=f"Request timed out: {e}",
            )
        except httpx.RequestError as e:
            logger.warning(
                "GitHub API request failed",
                extra={"path": path, "method": method, "error": str(e)},
            )
            return ServiceOutcome.failure(
                OutcomeKind.TRANSIENT_FAILURE,
                message=f"Request failed: {e}",
            )

        if response.is_success:
            if parse is None:
                return ServiceOutcome.success(status_code=response.status_code)
            try:
                value = parse(response.json())
            except (KeyError, TypeError, ValueError, ValidationError) as e:
                logger.error(
                    "Unexpected GitHub API response body",
                    extra={
                        "path": path,
                        "status_code": response.status_code,
                        "error": str(e),
                    },
                )
                return ServiceOutcome.failure(
                    OutcomeKind.TRANSIENT_FAILURE,
                    status_code=response.status_code,
                    message=f"Unexpected response from GitHub: {e}",
                )
            return ServiceOutcome.success(
                value=value,
                status_code=response.status_code,
            )

        kind = self._classify_failure(response)
        message = self._error_message(response)
        logger.info(
            "GitHub API request unsuccessful",
            extra={
                "path": path,
                "method": method,
                "status_code": response.status_code,
                "outcome": kind.value,
                "response_message": message,
            },
        )
        return ServiceOutcome.failure(
            kind,
            status_code=response.status_code,
            message=message,
        )

    async def fork_repository(
        self,
        owner: str,
        repo: str,
    ) -> ServiceOutcome[ForkResult]:
        """Fork a repository into the authenticated account.

        A 409 means the fork already exists; it is reported as SUCCESS with
        no payload since forking is idempotent from the caller's view.

        Args:
            owner: Upstream repository owner.
            repo: Upstream repository name.

        Returns:
            SUCCESS with the fork (or None when it already existed),
            AUTH_FAILURE, NOT_FOUND or TRANSIENT_FAILURE.
        """
        path = f"/repos/{owner}/{repo}/forks"

        logger.info(
            "Forking repository",
            extra={"owner": owner, "repo": repo},
        )

        outcome = await self._execute(
            "POST",
            path,
            parse=ForkResult.from_github_response,
        )
        if outcome.kind == OutcomeKind.CONFLICT:
            logger.info(
                "Fork already exists",
                extra={"owner": owner, "repo": repo},
            )
            return ServiceOutcome.success(
                status_code=outcome.status_code,
                message="Fork already exists",
            )
        return outcome

    async def read_file(
        self,
        owner: str,
        repo: str,
        path: str,
    ) -> ServiceOutcome[FileContent]:
        """Read a text file through the contents API.

        Args:
            owner: Repository owner.
            repo: Repository name.
            path: File path inside the repository.

        Returns:
            SUCCESS with the decoded content and blob sha, NOT_FOUND,
            AUTH_FAILURE or TRANSIENT_FAILURE.
        """
        logger.debug(
            "Reading repository file",
            extra={"owner": owner, "repo": repo, "file_path": path},
        )

        return await self._execute(
            "GET",
            f"/repos/{owner}/{repo}/contents/{path}",
            parse=_decode_file_content,
        )

    async def write_file(
        self,
        owner: str,
        repo: str,
        path: str,
        new_content: str,
        previous_sha: str,
        message: str,
    ) -> ServiceOutcome[CommitResult]:
        """Replace a file's content with a single commit.

        Args:
            owner: Repository owner.
            repo: Repository name.
            path: File path inside the repository.
            new_content: Full new text content of the file.
            previous_sha: Blob sha obtained from read_file. A stale value
                          makes GitHub reject the write with 409.
            message: Commit message.

        Returns:
            SUCCESS with the commit sha, CONFLICT on a stale sha,
            NOT_FOUND, AUTH_FAILURE or TRANSIENT_FAILURE.
        """
        logger.info(
            "Writing repository file",
            extra={
                "owner": owner,
                "repo": repo,
                "file_path": path,
                "content_length": len(new_content),
            },
        )

        encoded = base64.b64encode(new_content.encode("utf-8")).decode("ascii")
        return await self._execute(
            "PUT",
            f"/repos/{owner}/{repo}/contents/{path}",
            parse=CommitResult.from_github_response,
            json_data={
                "message": message,
                "content": encoded,
                "sha": previous_sha,
            },
        )

    async def create_pull_request(
        self,
        owner: str,
        repo: str,
        head: str,
        base: str,
        title: str,
        body: str,
    ) -> ServiceOutcome[PullRequestResult]:
        """Open a pull request.

        Args:
            owner: Owner of the repository receiving the pull request.
            repo: Name of the repository receiving the pull request.
            head: Source in "login:branch" form for cross-fork requests.
            base: Target branch.
            title: Pull request title.
            body: Pull request description in markdown.

        Returns:
            SUCCESS with the PR URL, CONFLICT when an equivalent pull
            request is already open, AUTH_FAILURE, NOT_FOUND or
            TRANSIENT_FAILURE.
        """
        logger.info(
            "Creating pull request",
            extra={"owner": owner, "repo": repo, "head": head, "base": base},
        )

        outcome = await self._execute(
            "POST",
            f"/repos/{owner}/{repo}/pulls",
            parse=PullRequestResult.from_github_response,
            json_data={"title": title, "head": head, "base": base, "body": body},
        )

        # GitHub reports duplicate pull requests as a 422 validation error
        if (
            outcome.status_code == 422
            and "already exists" in outcome.message.lower()
        ):
            return ServiceOutcome.failure(
                OutcomeKind.CONFLICT,
                status_code=outcome.status_code,
                message=outcome.message,
            )

        if outcome.ok:
            logger.info(
                "Pull request created successfully",
                extra={
                    "owner": owner,
                    "repo": repo,
                    "pr_number": outcome.value.number,
                    "pr_url": outcome.value.url,
                },
            )
        return outcome

    async def get_authenticated_user(self) -> ServiceOutcome[GitHubUser]:
        """Resolve the account the token belongs to.

        Returns:
            SUCCESS with the user's login, AUTH_FAILURE or
            TRANSIENT_FAILURE.
        """
        return await self._execute(
            "GET",
            "/user",
            parse=lambda data: GitHubUser(login=data["login"], name=data.get("name")),
        )

    async def search_repositories(
        self,
        query: str,
        sort: str = "stars",
        per_page: int = 5,
    ) -> ServiceOutcome[List[Dict[str, Any]]]:
        """Search repositories, most starred first.

        Args:
            query: GitHub search query.
            sort: Sort field.
            per_page: Number of results.

        Returns:
            SUCCESS with the raw result items.
        """
        return await self._execute(
            "GET",
            "/search/repositories",
            parse=_search_items,
            params={"q": query, "sort": sort, "order": "desc", "per_page": per_page},
        )

    async def search_issues(
        self,
        query: str,
        sort: str = "created",
        per_page: int = 5,
    ) -> ServiceOutcome[List[Dict[str, Any]]]:
        """Search issues, newest first.

        Args:
            query: GitHub search query.
            sort: Sort field.
            per_page: Number of results.

        Returns:
            SUCCESS with the raw result items.
        """
        return await self._execute(
            "GET",
            "/search/issues",
            parse=_search_items,
            params={"q": query, "sort": sort, "order": "desc", "per_page": per_page},
        )


def _decode_file_content(data: Dict[str, Any]) -> FileContent:
    """Decode a contents API response into text and sha."""
    raw = base64.b64decode(data["content"])
    return FileContent(content=raw.decode("utf-8"), sha=data["sha"])


def _search_items(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    items: Sequence[Dict[str, Any]] = data["items"]
    return list(items)
