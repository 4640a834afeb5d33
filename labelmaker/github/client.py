"""
Minimal async client for the parts of the GitHub REST API the registry uses.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from labelmaker.core.errors import RemoteAPIError
from labelmaker.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Repository:
    """A repository the authenticated user can see."""
    id: int
    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class GitHubClient:
    """GitHub API client acting on behalf of one user."""

    def __init__(
        self,
        access_token: str,
        api_url: str = "https://api.github.com",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize client.

        Args:
            access_token: The user's OAuth token
            api_url: REST API base URL
            timeout: Per-request timeout in seconds
            transport: Optional transport, used by tests
        """
        self._client = httpx.AsyncClient(
            base_url=api_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"token {access_token}",
                "Accept": "application/vnd.github+json",
                "User-Agent": "labelmaker",
            },
        )

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise RemoteAPIError(f"{method} {path} failed: {e}") from e

        if response.is_error:
            message = _error_message(response)
            logger.warning(f"GitHub {method} {path} returned {response.status_code}: {message}")
            raise RemoteAPIError(
                f"{method} {path}: {response.status_code} {message}",
                status_code=response.status_code,
            )
        return response

    async def get_user(self) -> Dict[str, Any]:
        """Return the authenticated user."""
        response = await self._request("GET", "/user")
        return response.json()

    async def list_repositories(
        self, sort: str = "pushed", direction: str = "desc", per_page: int = 100
    ) -> List[Repository]:
        """List the authenticated user's repositories, most recently pushed first."""
        response = await self._request(
            "GET",
            "/user/repos",
            params={"sort": sort, "direction": direction, "per_page": per_page},
        )
        return [
            Repository(id=repo["id"], owner=repo["owner"]["login"], name=repo["name"])
            for repo in response.json()
        ]

    async def get_repository(self, owner: str, name: str) -> Dict[str, Any]:
        """Return owner/name as the authenticated user sees it, including its permissions."""
        response = await self._request("GET", f"/repos/{owner}/{name}")
        return response.json()

    async def create_hook(
        self, owner: str, name: str, url: str, secret: str, events: List[str]
    ) -> int:
        """
        Create a JSON web hook on owner/name.

        Returns:
            The remote hook id
        """
        response = await self._request(
            "POST",
            f"/repos/{owner}/{name}/hooks",
            json={
                "name": "web",
                "active": True,
                "events": list(events),
                "config": {
                    "url": url,
                    "content_type": "json",
                    "secret": secret,
                    "insecure_ssl": "0",
                },
            },
        )
        return int(response.json()["id"])

    async def delete_hook(self, owner: str, name: str, hook_id: int):
        """Delete a web hook from owner/name."""
        await self._request("DELETE", f"/repos/{owner}/{name}/hooks/{hook_id}")


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.reason_phrase
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return response.reason_phrase
