"""Guided first-contribution service for open-source newcomers.

This package implements the learner-facing backend of the open-source
learning platform, providing:
- A four-stage curriculum with strictly ordered unlocking
- Persisted learner progress and session selections
- A GitHub API client translating HTTP status into domain outcomes
- The contributors ledger (CONTRIBUTORS.md) parser and writer
- The fork → commit → pull request workflow engine
- Event emission and Prometheus metrics for workflow runs
"""
