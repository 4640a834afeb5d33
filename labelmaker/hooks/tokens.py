"""Random hook paths and secrets."""

import secrets
import string

ALPHABET = string.ascii_letters


def generate(length: int) -> str:
    """Return `length` letters drawn uniformly from A-Z and a-z.

    Both the callback path and the HMAC secret are capability material, so
    this always uses the operating system CSPRNG.
    """
    if length <= 0:
        raise ValueError(f"length must be positive, got {length}")
    return "".join(secrets.choice(ALPHABET) for _ in range(length))
