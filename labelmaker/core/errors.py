"""
Exception hierarchy for the webhook registry.

Every error raised by the registry, the intake pipeline or the GitHub
client derives from LabelmakerError so the HTTP layer can map them in one
place.
"""

from typing import Optional


class LabelmakerError(Exception):
    """Base class for all registry errors."""
    pass


class NotFoundError(LabelmakerError):
    """A token or repository has no registration."""
    pass


class StorageError(LabelmakerError):
    """I/O or (de)serialization fault talking to the durable store."""
    pass


class OrphanedHookError(StorageError):
    """The remote hook was created but the local record could not be written."""

    def __init__(self, owner: str, name: str, hook_id: int):
        self.owner = owner
        self.name = name
        self.hook_id = hook_id
        super().__init__(
            f"Remote hook {hook_id} on {owner}/{name} was created but not persisted"
        )


class TokenCollisionError(LabelmakerError):
    """A freshly minted hook path is already registered to another record."""
    pass


class DecodeError(LabelmakerError):
    """A declared signature is structurally malformed."""
    pass


class RemoteAPIError(LabelmakerError):
    """A call to the GitHub API failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class WebhookRejected(LabelmakerError):
    """An inbound callback was refused and must not be processed."""
    pass


class UnknownHook(WebhookRejected):
    """The callback path does not match any registration."""
    pass


class SignatureMismatch(WebhookRejected):
    """The callback signature does not authenticate the body."""

    def __init__(self, message: str, reason: str = "mismatch"):
        self.reason = reason
        super().__init__(message)


class ReplayedDelivery(WebhookRejected):
    """The delivery id was already accepted once."""
    pass


MismatchError = SignatureMismatch
