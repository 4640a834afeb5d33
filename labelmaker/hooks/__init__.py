"""
Web hook registry and callback verification.

This package mints per-repository hook paths and secrets, records them in
Redis, and authenticates inbound GitHub callbacks against them.
"""

from .models import HookRecord, RepoRecord, VerifiedEvent
from .store import HookStore
from .registration import RegistrationService
from .intake import WebhookIntake
from .dispatch import EventDispatcher

__all__ = [
    'HookRecord',
    'RepoRecord',
    'VerifiedEvent',
    'HookStore',
    'RegistrationService',
    'WebhookIntake',
    'EventDispatcher',
]
