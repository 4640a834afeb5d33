"""Tests for callback signature verification."""

import hashlib
import hmac

import pytest

from labelmaker.core.errors import DecodeError
from labelmaker.hooks.signature import decode_signature, sign, verify


BODY = b'{"action":"opened","number":7}'
SECRET = "hXbTqLmZpRwYvKcNdEsAfGjU"


class TestSign:
    """Tests for producing signatures."""

    def test_matches_github_format(self):
        expected = hmac.new(SECRET.encode(), BODY, hashlib.sha1).hexdigest()
        assert sign(BODY, SECRET) == "sha1=" + expected

    def test_empty_body(self):
        assert sign(b"", SECRET).startswith("sha1=")
        assert len(sign(b"", SECRET)) == 5 + 40


class TestVerify:
    """Tests for checking signatures."""

    @pytest.mark.parametrize("body", [BODY, b"", b"\x00\xff binary \r\n", "café".encode()])
    def test_accepts_own_signature(self, body):
        assert verify(body, SECRET, sign(body, SECRET)) is True

    def test_accepts_uppercase_hex(self):
        signature = sign(BODY, SECRET)
        assert verify(BODY, SECRET, "sha1=" + signature[5:].upper()) is True

    def test_rejects_other_secret(self):
        signature = sign(BODY, "some-other-secret")
        assert verify(BODY, SECRET, signature) is False

    def test_rejects_altered_body(self):
        signature = sign(BODY, SECRET)
        altered = BODY.replace(b"7", b"8")
        assert verify(altered, SECRET, signature) is False

    def test_reserialized_body_does_not_verify(self):
        """The digest covers the exact bytes, not the JSON value."""
        signature = sign(BODY, SECRET)
        assert verify(b'{"action": "opened", "number": 7}', SECRET, signature) is False

    def test_well_formed_but_short_digest_is_mismatch(self):
        assert verify(BODY, SECRET, "sha1=abcd") is False

    @pytest.mark.parametrize("declared", [
        "",
        None,
        "abcdef0123",
        "sha256=" + "a" * 64,
        "SHA1=" + "a" * 40,
        "sha1=",
        "sha1=abc",
        "sha1=" + "g" * 40,
        "sha1=" + "a" * 38 + " a",
        "sha1=" + "a" * 40 + "\n",
    ])
    def test_malformed_signature_raises_decode_error(self, declared):
        with pytest.raises(DecodeError):
            verify(BODY, SECRET, declared)


class TestDecodeSignature:
    """Tests for parsing the header value."""

    def test_decodes_hex(self):
        assert decode_signature("sha1=00ff10") == b"\x00\xff\x10"
