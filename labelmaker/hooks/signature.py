"""
Signature verification for inbound GitHub callbacks.

GitHub signs each delivery with HMAC-SHA1 over the raw request body, keyed
by the hook secret, and sends it as ``X-Hub-Signature: sha1=<hex>``.
"""

import hashlib
import hmac
import re

from labelmaker.core.errors import DecodeError

SIGNATURE_PREFIX = "sha1="

_HEX_RE = re.compile(r"\A[0-9a-fA-F]+\Z")


def sign(body: bytes, secret: str) -> str:
    """Compute the header value GitHub would send for `body`."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha1).hexdigest()
    return SIGNATURE_PREFIX + digest


def decode_signature(declared_signature: str) -> bytes:
    """
    Strip the algorithm prefix and hex-decode the digest.

    Raises:
        DecodeError: missing prefix, empty digest, odd length or non-hex digits
    """
    if not declared_signature or not declared_signature.startswith(SIGNATURE_PREFIX):
        raise DecodeError("Signature is missing the sha1= prefix")

    digest = declared_signature[len(SIGNATURE_PREFIX):]
    if not digest or len(digest) % 2 or not _HEX_RE.match(digest):
        raise DecodeError("Signature digest is not a hex string")
    return bytes.fromhex(digest)


def verify(body: bytes, secret: str, declared_signature: str) -> bool:
    """
    Check that `declared_signature` authenticates `body` under `secret`.

    The digest is computed over the exact bytes received; the body must not
    be parsed and re-serialized first.

    Returns:
        True if the signature matches, False otherwise

    Raises:
        DecodeError: the signature is structurally malformed
    """
    expected = decode_signature(declared_signature)
    computed = hmac.new(secret.encode("utf-8"), body, hashlib.sha1).digest()
    return hmac.compare_digest(computed, expected)
