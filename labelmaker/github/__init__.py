"""GitHub API collaborator."""

from .client import GitHubClient, Repository

__all__ = [
    'GitHubClient',
    'Repository',
]
