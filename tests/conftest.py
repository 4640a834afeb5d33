"""
Shared fixtures: an in-memory stand-in for the async Redis client and a
scripted GitHub API.
"""

import asyncio
import json
from typing import Any, Callable, Dict, List, Set

import httpx
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import WatchError

from labelmaker.core.settings import HookSettings, ServerSettings, Settings
from labelmaker.github import GitHubClient
from labelmaker.hooks.store import HookStore


class FakeRedis:
    """Implements the handful of async commands HookStore issues."""

    def __init__(self):
        self.hashes: Dict[str, Dict[str, str]] = {}
        self.strings: Dict[str, str] = {}
        self.expiry: Dict[str, int] = {}
        self.versions: Dict[str, int] = {}
        self.fail_on: Set[str] = set()
        self.commands: List[str] = []
        self.yield_after_read = False
        self.closed = False

    def _check(self, command: str):
        self.commands.append(command)
        if command in self.fail_on:
            raise RedisConnectionError(f"simulated failure on {command}")

    def _touch(self, name):
        self.versions[name] = self.versions.get(name, 0) + 1

    async def ping(self):
        self._check("ping")
        return True

    async def hget(self, name, key):
        self._check("hget")
        return self.hashes.get(name, {}).get(key)

    async def hsetnx(self, name, key, value):
        self._check("hsetnx")
        bucket = self.hashes.setdefault(name, {})
        if key in bucket:
            return 0
        bucket[key] = value
        self._touch(name)
        return 1

    async def hset(self, name, key, value):
        self._check("hset")
        return self._hset(name, key, value)

    def _hset(self, name, key, value):
        bucket = self.hashes.setdefault(name, {})
        created = key not in bucket
        bucket[key] = value
        self._touch(name)
        return int(created)

    async def hdel(self, name, *keys):
        self._check("hdel")
        return self._hdel(name, *keys)

    def _hdel(self, name, *keys):
        bucket = self.hashes.get(name, {})
        removed = sum(1 for key in keys if bucket.pop(key, None) is not None)
        if removed:
            self._touch(name)
        return removed

    async def set(self, name, value, nx=False, ex=None):
        self._check("set")
        if nx and name in self.strings:
            return None
        self.strings[name] = value
        if ex is not None:
            self.expiry[name] = ex
        return True

    async def delete(self, *names):
        self._check("delete")
        return sum(1 for name in names if self.strings.pop(name, None) is not None)

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    async def aclose(self, close_connection_pool=None):
        self.closed = True


class FakePipeline:
    """
    WATCH/MULTI/EXEC over FakeRedis.

    Reads after watch() run immediately; hset/hdel are buffered and applied
    on execute(), which raises WatchError if a watched key changed.
    """

    def __init__(self, redis: FakeRedis):
        self.redis = redis
        self.queued: List[tuple] = []
        self.watched: Dict[str, int] = {}

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.reset()

    def reset(self):
        self.queued = []
        self.watched = {}

    async def watch(self, *names):
        self.redis._check("watch")
        self.watched = {name: self.redis.versions.get(name, 0) for name in names}

    async def hget(self, name, key):
        value = await self.redis.hget(name, key)
        if self.redis.yield_after_read:
            await asyncio.sleep(0)
        return value

    def multi(self):
        pass

    def hset(self, name, key, value):
        self.queued.append(("hset", name, key, value))
        return self

    def hdel(self, name, *keys):
        self.queued.append(("hdel", name) + keys)
        return self

    async def execute(self):
        try:
            self.redis._check("exec")
            for name, version in self.watched.items():
                if self.redis.versions.get(name, 0) != version:
                    raise WatchError("Watched variable changed.")
            results = []
            for command, name, *args in self.queued:
                if command == "hset":
                    results.append(self.redis._hset(name, *args))
                else:
                    results.append(self.redis._hdel(name, *args))
            return results
        finally:
            self.reset()


class FakeGitHub:
    """Scripted GitHub API served through httpx.MockTransport."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.next_hook_id = 42
        self.create_status = 201
        self.delete_status = 204
        self.repo_status = 200
        self.admin = True
        self.repos: List[Dict[str, Any]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "POST" and path.endswith("/hooks"):
            if self.create_status >= 400:
                return httpx.Response(self.create_status, json={"message": "Validation Failed"})
            hook_id = self.next_hook_id
            self.next_hook_id += 1
            return httpx.Response(201, json={"id": hook_id, "active": True})

        if request.method == "DELETE" and "/hooks/" in path:
            if self.delete_status >= 400:
                return httpx.Response(self.delete_status, json={"message": "Not Found"})
            return httpx.Response(204)

        if request.method == "GET" and path == "/user/repos":
            return httpx.Response(200, json=self.repos)

        if request.method == "GET" and path == "/user":
            return httpx.Response(200, json={"id": 1, "login": "acme"})

        if request.method == "GET" and path.startswith("/repos/"):
            if self.repo_status >= 400:
                return httpx.Response(self.repo_status, json={"message": "Not Found"})
            _, _, owner, name = path.split("/", 3)
            return httpx.Response(200, json={
                "id": 1,
                "name": name,
                "owner": {"login": owner},
                "permissions": {"admin": self.admin, "push": True, "pull": True},
            })

        return httpx.Response(404, json={"message": "Not Found"})

    def factory(self) -> Callable[[str], GitHubClient]:
        transport = httpx.MockTransport(self.handler)
        return lambda token: GitHubClient(
            token, api_url="https://api.github.test", transport=transport
        )

    def created_hooks(self) -> List[Dict[str, Any]]:
        return [
            json.loads(r.content)
            for r in self.requests
            if r.method == "POST" and r.url.path.endswith("/hooks")
        ]


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def store(fake_redis) -> HookStore:
    return HookStore(fake_redis)


@pytest.fixture
def github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        server=ServerSettings(public_url="https://labelmaker.test/"),
        hooks=HookSettings(workers=0),
    )
