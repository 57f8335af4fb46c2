"""GitHub API result models.

This module defines the typed values the GitHub client hands back to the
rest of the service:
- OutcomeKind: Domain classification of an HTTP exchange
- ServiceOutcome: Tagged outcome wrapping an optional typed value
- ForkResult, FileContent, CommitResult, PullRequestResult: success payloads

The client never raises for HTTP-level failures. Callers branch on
``ServiceOutcome.kind`` instead, which keeps the polarity of a 409 (benign
for forks, fatal for writes) a decision of the caller.
"""

from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, Field


T = TypeVar("T")


class OutcomeKind(str, Enum):
    """Domain classification of a GitHub API exchange.

    Attributes:
        SUCCESS: The request did what was asked.
        CONFLICT: The resource is in a conflicting state (existing fork,
                  stale sha, duplicate pull request).
        NOT_FOUND: The addressed resource does not exist (yet).
        AUTH_FAILURE: The token is missing, invalid, expired or lacks scope.
        TRANSIENT_FAILURE: Network errors, timeouts, rate limits, 5xx and
                           any other unexpected response.
    """

    SUCCESS = "success"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    AUTH_FAILURE = "auth_failure"
    TRANSIENT_FAILURE = "transient_failure"


class ServiceOutcome(BaseModel, Generic[T]):
    """Tagged outcome of one GitHub API operation.

    Attributes:
        kind: The outcome classification.
        status_code: HTTP status code, or None when no response arrived.
        message: Human-readable description (GitHub's message on failure).
        value: Typed payload, set only on success.
    """

    kind: OutcomeKind
    status_code: Optional[int] = None
    message: str = ""
    value: Optional[T] = None

    @property
    def ok(self) -> bool:
        """Whether the outcome is a success."""
        return self.kind == OutcomeKind.SUCCESS

    @classmethod
    def success(
        cls,
        value: Optional[T] = None,
        status_code: Optional[int] = None,
        message: str = "",
    ) -> "ServiceOutcome[T]":
        """Build a success outcome."""
        return cls(
            kind=OutcomeKind.SUCCESS,
            status_code=status_code,
            message=message,
            value=value,
        )

    @classmethod
    def failure(
        cls,
        kind: OutcomeKind,
        status_code: Optional[int] = None,
        message: str = "",
    ) -> "ServiceOutcome[T]":
        """Build a non-success outcome with no payload."""
        return cls(kind=kind, status_code=status_code, message=message)


class ForkResult(BaseModel):
    """The learner's fork of the upstream repository."""

    owner: str = Field(..., min_length=1)
    repo: str = Field(..., min_length=1)
    html_url: Optional[str] = None

    @property
    def full_name(self) -> str:
        """Fork in "{owner}/{repo}" form."""
        return f"{self.owner}/{self.repo}"

    @classmethod
    def from_github_response(cls, data: Dict[str, Any]) -> "ForkResult":
        """Build from the repository JSON returned by the forks endpoint."""
        return cls(
            owner=data["owner"]["login"],
            repo=data["name"],
            html_url=data.get("html_url"),
        )


class FileContent(BaseModel):
    """Decoded text content of a repository file and its blob sha."""

    content: str
    sha: str = Field(..., min_length=1)


class CommitResult(BaseModel):
    """Commit created by a contents API write."""

    commit_sha: str = Field(..., min_length=1)
    html_url: Optional[str] = None

    @classmethod
    def from_github_response(cls, data: Dict[str, Any]) -> "CommitResult":
        """Build from the contents API PUT response."""
        commit = data.get("commit") or {}
        return cls(
            commit_sha=commit["sha"],
            html_url=commit.get("html_url"),
        )


class PullRequestResult(BaseModel):
    """Pull request opened against the upstream repository."""

    number: int = Field(..., gt=0)
    url: str = Field(..., min_length=1)

    @classmethod
    def from_github_response(cls, data: Dict[str, Any]) -> "PullRequestResult":
        """Build from the pulls API POST response."""
        return cls(number=data["number"], url=data["html_url"])


class GitHubUser(BaseModel):
    """The account the session token authenticates as."""

    login: str = Field(..., min_length=1)
    name: Optional[str] = None
