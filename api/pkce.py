"""
PKCE helpers for the Spotify authorization code flow.

Proof Key for Code Exchange lets a public client (no client secret) prove that
the party exchanging the authorization code is the one that requested it.
"""

import base64
import hashlib
import secrets
from typing import NamedTuple


class PKCEPair(NamedTuple):
    """A code verifier and its S256 challenge."""
    verifier: str
    challenge: str


def generate_code_verifier() -> str:
    """
    Generate a PKCE code verifier.

    Returns:
        Random URL-safe verifier of 43 characters
    """
    return base64.urlsafe_b64encode(secrets.token_bytes(32)).decode("utf-8").rstrip("=")


def generate_code_challenge(code_verifier: str) -> str:
    """
    Generate the S256 code challenge for a verifier.

    Args:
        code_verifier: Code verifier string

    Returns:
        SHA256 digest of the verifier as unpadded base64url
    """
    digest = hashlib.sha256(code_verifier.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).decode("utf-8").rstrip("=")


def generate_state() -> str:
    """Generate the opaque ``state`` value echoed back on the redirect."""
    return secrets.token_urlsafe(16)


def new_pkce_pair() -> PKCEPair:
    """Generate a fresh verifier/challenge pair."""
    verifier = generate_code_verifier()
    return PKCEPair(verifier, generate_code_challenge(verifier))
