"""GitHub API access for the contribution workflow.

This module provides a wrapper around the GitHub API for:
- Forking the upstream repository
- Reading and committing the contributors ledger
- Opening the learner's pull request
- Discovering repositories and good first issues

HTTP failures are returned as tagged outcomes rather than raised.
"""

from oslearn.github.client import GitHubClient
from oslearn.github.models import (
    CommitResult,
    FileContent,
    ForkResult,
    GitHubUser,
    OutcomeKind,
    PullRequestResult,
    ServiceOutcome,
)

__all__ = [
    "CommitResult",
    "FileContent",
    "ForkResult",
    "GitHubClient",
    "GitHubUser",
    "OutcomeKind",
    "PullRequestResult",
    "ServiceOutcome",
]
