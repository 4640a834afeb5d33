"""
Installation of a web hook on a repository.

Installing mints a hook path and secret, creates the hook on GitHub, and
persists the registration. Nothing here retries: a failed install is
reported to the caller, who may run it again.
"""

from typing import Callable, Optional, Tuple

from labelmaker.core.errors import (
    RemoteAPIError,
    StorageError,
    TokenCollisionError,
    OrphanedHookError,
)
from labelmaker.core.logging import get_logger, mask
from labelmaker.core.settings import Settings, get_settings
from labelmaker.github import GitHubClient
from labelmaker.hooks import tokens
from labelmaker.hooks.models import RepoRecord
from labelmaker.hooks.store import HookStore

logger = get_logger(__name__)


class RegistrationService:
    """Creates and records web hooks for repositories."""

    def __init__(
        self,
        store: HookStore,
        settings: Optional[Settings] = None,
        github_factory: Optional[Callable[[str], GitHubClient]] = None,
    ):
        """
        Initialize service.

        Args:
            store: Shared registry handle
            settings: Configuration; the global settings when omitted
            github_factory: Builds a GitHub client from a user access token
        """
        self.store = store
        self.settings = settings or get_settings()
        self.github_factory = github_factory or self._default_client

    def _default_client(self, access_token: str) -> GitHubClient:
        return GitHubClient(
            access_token,
            api_url=self.settings.github.api_url,
            timeout=self.settings.github.timeout_seconds,
        )

    def callback_url(self, token: str) -> str:
        return f"{self.settings.server.public_url}/hooks/{token}"

    async def _claim_path(self, owner: str, name: str) -> Tuple[str, str]:
        """Mint a hook path and secret, regenerating on collision."""
        hooks = self.settings.hooks
        for attempt in range(1, hooks.max_token_attempts + 1):
            token = tokens.generate(hooks.token_length)
            secret = tokens.generate(hooks.secret_length)
            if await self.store.claim_hook_path(token, owner, name, secret):
                return token, secret
            logger.warning(
                f"Hook path collision for {owner}/{name} "
                f"(attempt {attempt}/{hooks.max_token_attempts})"
            )

        raise TokenCollisionError(
            f"Could not mint a free hook path for {owner}/{name} "
            f"after {hooks.max_token_attempts} attempts"
        )

    async def install(self, owner: str, name: str, access_token: str) -> RepoRecord:
        """
        Install a hook on owner/name.

        Args:
            owner: Repository owner
            name: Repository name
            access_token: Token of a user who administers the repository;
                stored with the registration to manage the hook later

        Returns:
            The new registration

        Raises:
            TokenCollisionError: no free hook path could be minted
            RemoteAPIError: GitHub refused to create the hook; nothing was kept
            OrphanedHookError: the hook exists on GitHub but was not recorded
            StorageError: the store failed before the remote hook was created
        """
        token, secret = await self._claim_path(owner, name)

        async with self.github_factory(access_token) as github:
            try:
                hook_id = await github.create_hook(
                    owner, name, self.callback_url(token), secret, self.settings.github.events
                )
            except RemoteAPIError:
                logger.error(f"GitHub refused to create a hook on {owner}/{name}")
                await self._release(token)
                raise

            try:
                record, previous = await self.store.replace_hook(
                    owner, name, token, secret, hook_id, access_token
                )
            except (StorageError, TokenCollisionError) as e:
                # On a collision the claimed path was overwritten and is not ours to drop
                released = False
                if isinstance(e, StorageError):
                    released = await self._release(token)
                if released:
                    fate = "its callbacks will be rejected"
                else:
                    fate = f"path {mask(token)} may still accept its callbacks"
                logger.error(
                    f"Orphaned remote hook {hook_id} on {owner}/{name}: "
                    f"created on GitHub but not recorded ({e}); {fate}. "
                    f"Delete it manually or install again.",
                    extra={"orphaned_hook_id": hook_id, "repo": f"{owner}/{name}"}
                )
                raise OrphanedHookError(owner, name, hook_id) from e

            if previous is not None and previous.hook_id != hook_id:
                await self._remove_remote_hook(github, previous)

        logger.info(f"Installed hook {hook_id} on {owner}/{name} at {mask(token)}")
        return record

    async def _release(self, token: str) -> bool:
        """Give back a claimed path that no recorded hook points at."""
        try:
            await self.store.release_hook_path(token)
        except StorageError as e:
            logger.warning(f"Could not release unused hook path {mask(token)}: {e}")
            return False
        return True

    async def _remove_remote_hook(self, github: GitHubClient, previous: RepoRecord):
        """Best-effort removal of the hook a re-install replaced."""
        try:
            await github.delete_hook(previous.owner, previous.name, previous.hook_id)
            logger.info(
                f"Removed replaced hook {previous.hook_id} on {previous.owner}/{previous.name}"
            )
        except RemoteAPIError as e:
            logger.warning(
                f"Could not remove replaced hook {previous.hook_id} on "
                f"{previous.owner}/{previous.name}: {e}"
            )
