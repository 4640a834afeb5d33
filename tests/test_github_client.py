"""Tests for the GitHub API client."""

import json

import httpx
import pytest

from labelmaker.core.errors import RemoteAPIError
from labelmaker.github import GitHubClient, Repository


def client_for(handler) -> GitHubClient:
    return GitHubClient(
        "gho_user", api_url="https://api.github.test", transport=httpx.MockTransport(handler)
    )


@pytest.mark.asyncio
async def test_create_hook_returns_id():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(201, json={"id": 1234})

    async with client_for(handler) as client:
        hook_id = await client.create_hook(
            "acme", "widgets", "https://labelmaker.test/hooks/abc", "s3cret", ["push"]
        )

    assert hook_id == 1234
    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/repos/acme/widgets/hooks"
    assert request.headers["Authorization"] == "token gho_user"
    assert json.loads(request.content) == {
        "name": "web",
        "active": True,
        "events": ["push"],
        "config": {
            "url": "https://labelmaker.test/hooks/abc",
            "content_type": "json",
            "secret": "s3cret",
            "insecure_ssl": "0",
        },
    }


@pytest.mark.asyncio
async def test_list_repositories():
    def handler(request):
        assert request.url.params["sort"] == "pushed"
        assert request.url.params["direction"] == "desc"
        assert request.url.params["per_page"] == "100"
        return httpx.Response(200, json=[
            {"id": 1, "name": "widgets", "owner": {"login": "acme"}},
            {"id": 2, "name": "gadgets", "owner": {"login": "acme-labs"}},
        ])

    async with client_for(handler) as client:
        repos = await client.list_repositories()

    assert repos == [Repository(1, "acme", "widgets"), Repository(2, "acme-labs", "gadgets")]
    assert repos[1].full_name == "acme-labs/gadgets"


@pytest.mark.asyncio
async def test_delete_hook():
    seen = []

    def handler(request):
        seen.append((request.method, request.url.path))
        return httpx.Response(204)

    async with client_for(handler) as client:
        await client.delete_hook("acme", "widgets", 42)

    assert seen == [("DELETE", "/repos/acme/widgets/hooks/42")]


@pytest.mark.asyncio
async def test_get_repository_reports_permissions():
    def handler(request):
        assert request.url.path == "/repos/acme/widgets"
        return httpx.Response(200, json={
            "id": 1, "name": "widgets", "permissions": {"admin": True},
        })

    async with client_for(handler) as client:
        repo = await client.get_repository("acme", "widgets")

    assert repo["permissions"]["admin"] is True


@pytest.mark.asyncio
async def test_get_user():
    async with client_for(lambda r: httpx.Response(200, json={"login": "acme"})) as client:
        assert (await client.get_user())["login"] == "acme"


@pytest.mark.asyncio
async def test_error_status_raises_remote_api_error():
    def handler(request):
        return httpx.Response(401, json={"message": "Bad credentials"})

    async with client_for(handler) as client:
        with pytest.raises(RemoteAPIError) as exc_info:
            await client.create_hook("acme", "widgets", "u", "s", ["push"])

    assert exc_info.value.status_code == 401
    assert "Bad credentials" in str(exc_info.value)


@pytest.mark.asyncio
async def test_non_json_error_body():
    async with client_for(lambda r: httpx.Response(500, text="oops")) as client:
        with pytest.raises(RemoteAPIError) as exc_info:
            await client.get_user()
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_transport_failure_raises_remote_api_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with client_for(handler) as client:
        with pytest.raises(RemoteAPIError) as exc_info:
            await client.list_repositories()

    assert exc_info.value.status_code is None
