"""
Voter token encryption service.

Voting tokens are issued by the public site: base64 of
nonce (12 bytes) || auth tag (16 bytes) || ciphertext, sealed with
AES-256-GCM under SHA-256(VOTING_TOKEN_SECRET). The plaintext is a JSON
object whose "sub" is the voter identity.
"""

import base64
import binascii
import hashlib
import json
import os
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from launch_ledger.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

NONCE_LENGTH = 12
TAG_LENGTH = 16


class VoterTokenError(Exception):
    """Raised when a voting token cannot be turned into a voter identity."""

    pass


def _get_cipher(secret: str | None) -> AESGCM:
    """
    Build the AES-GCM cipher from the shared secret.

    Raises:
        VoterTokenError: If the secret is not configured
    """
    if not secret:
        raise VoterTokenError("VOTING_TOKEN_SECRET not configured in environment")

    key = hashlib.sha256(secret.encode("utf-8")).digest()
    return AESGCM(key)


def decrypt_voting_token(token: str, secret: str | None) -> dict[str, Any]:
    """
    Decrypt and authenticate a voting token.

    Args:
        token: Base64 token from the query string
        secret: Shared secret the token was sealed with

    Returns:
        dict: Decoded payload, guaranteed to carry a non-empty string "sub"

    Raises:
        VoterTokenError: If the token is malformed, tampered with, or has no subject
    """
    if not token or not isinstance(token, str):
        raise VoterTokenError("Voting token must be a non-empty string")

    try:
        data = base64.b64decode(token, validate=True)
    except (binascii.Error, ValueError) as e:
        raise VoterTokenError("Voting token is not valid base64") from e

    if len(data) < NONCE_LENGTH + TAG_LENGTH + 1:
        raise VoterTokenError("Voting token too short to contain nonce, tag and ciphertext")

    nonce = data[:NONCE_LENGTH]
    tag = data[NONCE_LENGTH : NONCE_LENGTH + TAG_LENGTH]
    ciphertext = data[NONCE_LENGTH + TAG_LENGTH :]

    cipher = _get_cipher(secret)
    try:
        # AESGCM expects the tag appended to the ciphertext
        plaintext = cipher.decrypt(nonce, ciphertext + tag, None)
    except InvalidTag as e:
        logger.warning("Voting token failed authentication", token_length=len(data))
        raise VoterTokenError("Invalid or corrupted voting token") from e

    try:
        payload = json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise VoterTokenError("Voting token payload is not JSON") from e

    subject = payload.get("sub") if isinstance(payload, dict) else None
    if not isinstance(subject, str) or not subject.strip():
        raise VoterTokenError("Voting token has no subject")

    logger.debug("Voting token decrypted", token_length=len(data))
    return payload


def encrypt_voting_token(payload: dict[str, Any], secret: str | None) -> str:
    """
    Seal a payload in the voting token format.

    The public site owns token issuance; this mirror exists for operators
    and tests that need a valid token.
    """
    cipher = _get_cipher(secret)
    nonce = os.urandom(NONCE_LENGTH)
    sealed = cipher.encrypt(nonce, json.dumps(payload).encode("utf-8"), None)
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
    return base64.b64encode(nonce + tag + ciphertext).decode("ascii")


def voter_id_from_token(token: str, secret: str | None) -> str:
    """Convenience wrapper returning only the voter identity."""
    return decrypt_voting_token(token, secret)["sub"]
