"""
Authentication of inbound callbacks.

A callback is trusted only after its hook path resolves to a registration
and its signature verifies against that registration's secret.
"""

from typing import Awaitable, Callable, Optional

from labelmaker.core.errors import (
    DecodeError,
    NotFoundError,
    ReplayedDelivery,
    SignatureMismatch,
    StorageError,
    UnknownHook,
)
from labelmaker.core.logging import get_logger, mask
from labelmaker.core.settings import HookSettings
from labelmaker.hooks import signature
from labelmaker.hooks.models import VerifiedEvent
from labelmaker.hooks.store import HookStore

logger = get_logger(__name__)


class WebhookIntake:
    """Verifies callbacks and hands accepted events downstream."""

    def __init__(
        self,
        store: HookStore,
        on_event: Callable[[VerifiedEvent], Awaitable[None]],
        settings: Optional[HookSettings] = None,
    ):
        self.store = store
        self.on_event = on_event
        self.settings = settings or HookSettings()

    async def handle(
        self,
        token: str,
        raw_body: bytes,
        declared_signature: Optional[str],
        event_type: str,
        delivery_id: Optional[str] = None,
    ) -> VerifiedEvent:
        """
        Authenticate one callback and pass it on.

        Args:
            token: Hook path segment from the URL
            raw_body: Request body exactly as received
            declared_signature: X-Hub-Signature header value
            event_type: X-GitHub-Event header value
            delivery_id: X-GitHub-Delivery header value, if sent

        Returns:
            The event handed to the downstream callback

        Raises:
            UnknownHook: no registration for the hook path
            SignatureMismatch: the signature is malformed or wrong
            ReplayedDelivery: the delivery id was already accepted
            StorageError: the store could not be read
        """
        try:
            hook = await self.store.get_hook_info(token)
        except NotFoundError:
            logger.warning(f"Rejected callback for unknown hook {mask(token)}")
            raise UnknownHook(f"No hook registered at {mask(token)}")

        try:
            valid = signature.verify(raw_body, hook.secret, declared_signature or "")
        except DecodeError as e:
            logger.warning(
                f"Rejected {event_type} callback for {hook.owner}/{hook.name}: "
                f"malformed signature ({e})"
            )
            raise SignatureMismatch("Malformed signature", reason="malformed") from e

        if not valid:
            logger.warning(
                f"Rejected {event_type} callback for {hook.owner}/{hook.name}: "
                f"signature mismatch"
            )
            raise SignatureMismatch("Signature does not match", reason="mismatch")

        marked = False
        if delivery_id and self.settings.reject_replayed_deliveries:
            marked = await self.store.mark_delivery(
                delivery_id, self.settings.delivery_ttl_seconds
            )
            if not marked:
                logger.warning(
                    f"Rejected replayed delivery {delivery_id} for {hook.owner}/{hook.name}"
                )
                raise ReplayedDelivery(f"Delivery {delivery_id} was already accepted")

        event = VerifiedEvent(
            owner=hook.owner,
            name=hook.name,
            event_type=event_type,
            body=raw_body,
            delivery_id=delivery_id,
        )
        try:
            await self.on_event(event)
        except Exception:
            # Not accepted, so a redelivery of the same id must get through
            if marked:
                await self._forget(delivery_id)
            raise
        return event

    async def _forget(self, delivery_id: str):
        try:
            await self.store.forget_delivery(delivery_id)
        except StorageError as e:
            logger.warning(f"Could not forget delivery {delivery_id}: {e}")
