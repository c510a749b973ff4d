import re
from typing import Tuple, Union
from urllib.parse import urlparse

import base58
from loguru import logger
from solders.keypair import Keypair

from rentcollector.config import (
    SECRET_MIN_LENGTH,
    SECRET_MAX_LENGTH,
    ADDRESS_MIN_LENGTH,
    ADDRESS_MAX_LENGTH,
)
from rentcollector.errors import KeyFormatError

BASE58_PATTERN = re.compile(r'^[1-9A-HJ-NP-Za-km-z]+$')


def looks_like_secret(line: str) -> bool:
    """
    Check whether a line has the shape of a base58 encoded secret key.

    Args:
        line: A stripped line of wallet text

    Returns:
        True if the encoded length falls in the secret key window
    """
    return SECRET_MIN_LENGTH <= len(line) <= SECRET_MAX_LENGTH


def looks_like_address(line: str) -> bool:
    """
    Check whether a line has the shape of a base58 encoded public address.

    Args:
        line: A stripped line of wallet text

    Returns:
        True if the encoded length falls in the address window
    """
    return ADDRESS_MIN_LENGTH <= len(line) <= ADDRESS_MAX_LENGTH


def keypair_from_secret(secret: str) -> Keypair:
    """
    Decode a base58 secret key into a Keypair.

    Args:
        secret: Base58 encoded 64-byte secret key

    Returns:
        Keypair for the secret

    Raises:
        KeyFormatError: If the secret is not valid base58 or not a valid key pair
    """
    secret = secret.strip()
    if not BASE58_PATTERN.match(secret):
        raise KeyFormatError("Invalid characters in secret key. Secrets use Base58 encoding.")
    try:
        secret_bytes = base58.b58decode(secret)
        return Keypair.from_bytes(secret_bytes)
    except Exception as e:
        # Never include the secret itself in the message
        logger.debug(f"Secret key rejected: {type(e).__name__}")
        raise KeyFormatError(f"Invalid secret key: {type(e).__name__}: {e}") from e


def validate_rpc_url(text: str) -> Tuple[bool, Union[str, str]]:
    """
    Validate an RPC endpoint URL.

    Args:
        text: The user input text

    Returns:
        A tuple of (is_valid, url_or_error_message)
    """
    url = text.strip()

    if not url:
        return False, "RPC URL cannot be empty."

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        return False, "RPC URL must start with http:// or https://."

    if not parsed.netloc:
        return False, "RPC URL must include a host."

    return True, url
