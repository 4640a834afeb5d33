"""
Redis-backed registry of repositories and hook paths.

Layout:
    repos              hash, field "owner:name" -> RepoRecord JSON
    hooks              hash, field <hook path>  -> HookRecord JSON
    deliveries:<guid>  string with TTL, marks an accepted delivery

Every call is a fresh round-trip; nothing is cached in process.
"""

from contextlib import asynccontextmanager
from typing import Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError

from labelmaker.core.errors import NotFoundError, StorageError, TokenCollisionError
from labelmaker.core.logging import get_logger, mask
from labelmaker.core.settings import RedisSettings
from labelmaker.hooks.models import HookRecord, RepoRecord, repo_key

logger = get_logger(__name__)

REPOS_KEY = "repos"
HOOKS_KEY = "hooks"
DELIVERY_PREFIX = "deliveries:"

# WATCH retries before a contended registration gives up
SWAP_ATTEMPTS = 10


class HookStore:
    """
    Durable registry shared by registration and intake.

    The store wraps a single Redis client. Connections are checked out of
    the client's pool for the duration of each command and returned
    afterwards, so one HookStore can be shared by all concurrent requests.
    """

    def __init__(self, client: redis.Redis):
        """
        Initialize the store.

        Args:
            client: Async Redis client, created with decode_responses=True
        """
        self.client = client

    @classmethod
    def from_settings(cls, settings: RedisSettings) -> "HookStore":
        """Build a store over a bounded, blocking connection pool."""
        pool = redis.BlockingConnectionPool.from_url(
            settings.url,
            db=settings.db,
            max_connections=settings.max_connections,
            timeout=settings.pool_timeout,
            socket_timeout=settings.socket_timeout,
            socket_connect_timeout=settings.socket_connect_timeout,
            health_check_interval=settings.health_check_interval,
            client_name=settings.client_name,
            decode_responses=True,
        )
        return cls(redis.Redis(connection_pool=pool))

    async def close(self):
        """Close the client and its connection pool."""
        await self.client.aclose(close_connection_pool=True)

    @asynccontextmanager
    async def _storage_errors(self, operation: str):
        """Translate client and decoding failures into StorageError."""
        try:
            yield
        except RedisError as e:
            logger.error(f"Store failure during {operation}: {e}")
            raise StorageError(f"{operation} failed: {e}") from e
        except ValueError as e:
            logger.error(f"Corrupt record during {operation}: {e}")
            raise StorageError(f"{operation} returned an unreadable record") from e

    async def ping(self) -> bool:
        async with self._storage_errors("ping"):
            return bool(await self.client.ping())

    async def get_repo_info(self, owner: str, name: str) -> Optional[RepoRecord]:
        """
        Look up a repository registration.

        Returns:
            The RepoRecord, or None when the repository was never registered
        """
        async with self._storage_errors("get_repo_info"):
            data = await self.client.hget(REPOS_KEY, repo_key(owner, name))
            if data is None:
                return None
            return RepoRecord.from_json(data)

    async def get_hook_info(self, token: str) -> HookRecord:
        """
        Look up the secret material for a hook path.

        Raises:
            NotFoundError: the hook path is not registered
            StorageError: the store could not be read
        """
        async with self._storage_errors("get_hook_info"):
            data = await self.client.hget(HOOKS_KEY, token)
            if data is None:
                raise NotFoundError(f"No hook registered at {mask(token)}")
            return HookRecord.from_json(data)

    async def claim_hook_path(self, token: str, owner: str, name: str, secret: str) -> bool:
        """
        Reserve a hook path if nobody holds it yet.

        Returns:
            True if the path was free and now belongs to owner/name
        """
        hook = HookRecord(owner=owner, name=name, secret=secret)
        async with self._storage_errors("claim_hook_path"):
            return bool(await self.client.hsetnx(HOOKS_KEY, token, hook.to_json()))

    async def release_hook_path(self, token: str):
        """Drop a hook path, e.g. after the remote hook could not be created."""
        async with self._storage_errors("release_hook_path"):
            await self.client.hdel(HOOKS_KEY, token)

    async def register_hook(
        self,
        owner: str,
        name: str,
        token: str,
        secret: str,
        hook_id: int,
        access_token: str,
    ) -> RepoRecord:
        """
        Persist the hook record and the repository record as one unit.

        Raises:
            TokenCollisionError: the path belongs to a different record
            StorageError: the store could not be written
        """
        repo, _ = await self.replace_hook(owner, name, token, secret, hook_id, access_token)
        return repo

    async def replace_hook(
        self,
        owner: str,
        name: str,
        token: str,
        secret: str,
        hook_id: int,
        access_token: str,
    ) -> Tuple[RepoRecord, Optional[RepoRecord]]:
        """
        Register a hook and report the registration it displaced.

        The hook record is written first, create-if-absent, because intake
        only needs that half. Writing it again with identical contents is
        accepted, so a path claimed earlier by claim_hook_path can be
        confirmed here. The repository record is then swapped in a
        transaction that also drops the repository's previous hook path.
        Between the two steps a reader may find the hook record without
        the repository record; get_repo_info then reports no registration.

        The read of the previous repository record is WATCHed. If another
        registration commits in between, EXEC fails and the swap is retried
        against the newer record, so every displaced hook path is removed.

        Returns:
            The new RepoRecord and the one it replaced, if any

        Raises:
            TokenCollisionError: the path belongs to a different record
            StorageError: the store could not be written
        """
        hook = HookRecord(owner=owner, name=name, secret=secret)
        repo = RepoRecord(
            owner=owner,
            name=name,
            hook_id=hook_id,
            access_token=access_token,
            hook_path=token,
        )

        async with self._storage_errors("register_hook"):
            created = await self.client.hsetnx(HOOKS_KEY, token, hook.to_json())
            if not created:
                existing = await self.client.hget(HOOKS_KEY, token)
                if existing is None or HookRecord.from_json(existing) != hook:
                    raise TokenCollisionError(
                        f"Hook path {mask(token)} is already registered"
                    )

            previous = await self._swap_repo_record(repo)

        logger.info(f"Registered hook {hook_id} for {owner}/{name} at {mask(token)}")
        return repo, previous

    async def _swap_repo_record(self, repo: RepoRecord) -> Optional[RepoRecord]:
        async with self.client.pipeline(transaction=True) as pipe:
            for attempt in range(1, SWAP_ATTEMPTS + 1):
                try:
                    await pipe.watch(REPOS_KEY)
                    data = await pipe.hget(REPOS_KEY, repo.key)
                    previous = RepoRecord.from_json(data) if data else None

                    pipe.multi()
                    pipe.hset(REPOS_KEY, repo.key, repo.to_json())
                    if previous is not None and previous.hook_path != repo.hook_path:
                        pipe.hdel(HOOKS_KEY, previous.hook_path)
                    await pipe.execute()
                    return previous
                except WatchError:
                    logger.debug(
                        f"Registration of {repo.key} raced another write "
                        f"(attempt {attempt}/{SWAP_ATTEMPTS})"
                    )

        raise StorageError(
            f"register_hook for {repo.key} conflicted {SWAP_ATTEMPTS} times"
        )

    async def mark_delivery(self, delivery_id: str, ttl_seconds: int) -> bool:
        """
        Remember a delivery id.

        Returns:
            True the first time a delivery id is seen, False afterwards
        """
        async with self._storage_errors("mark_delivery"):
            result = await self.client.set(
                DELIVERY_PREFIX + delivery_id, "1", nx=True, ex=ttl_seconds
            )
            return bool(result)

    async def forget_delivery(self, delivery_id: str):
        """Drop a delivery mark so the same delivery id is accepted again."""
        async with self._storage_errors("forget_delivery"):
            await self.client.delete(DELIVERY_PREFIX + delivery_id)
