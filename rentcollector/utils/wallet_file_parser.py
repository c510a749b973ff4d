"""
Parsing of wallet text files.

Two formats are accepted:

1. Simple: one secret key per line.
2. Structured: lines are gated by section headers ``PRIVATE KEYS:``,
   ``WALLET ADDRESSES:`` or ``PRIVATE KEYS / ADDRESS:``. In the paired section
   every address line belongs to the secret line seen just before it. In the
   separate sections addresses are matched to secrets by position.

Lines are classified only by their encoded length; decoding happens later.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional
from loguru import logger

from rentcollector.config import (
    SECTION_PRIVATE_KEYS,
    SECTION_WALLET_ADDRESSES,
    SECTION_PAIRS,
)
from rentcollector.utils.validation_utils import looks_like_secret, looks_like_address

SECTION_HEADERS = (SECTION_PRIVATE_KEYS, SECTION_WALLET_ADDRESSES, SECTION_PAIRS)


@dataclass
class ParsedWalletFile:
    """Secret lines found in a wallet text, with any addresses given for them."""
    secrets: List[str] = field(default_factory=list)
    # index into secrets -> address provided for it
    provided_addresses: Dict[int, str] = field(default_factory=dict)
    structured: bool = False

    def provided_address_for(self, index: int) -> Optional[str]:
        return self.provided_addresses.get(index)


def parse_wallet_text(content: str) -> ParsedWalletFile:
    """
    Split wallet text into secret lines and provided addresses.

    Args:
        content: Full text of a wallet file

    Returns:
        ParsedWalletFile with secrets in file order
    """
    lines = [line.strip() for line in content.splitlines()]
    lines = [line for line in lines if line]

    parsed = ParsedWalletFile()
    parsed.structured = any(header in content for header in SECTION_HEADERS)

    if not parsed.structured:
        parsed.secrets = [line for line in lines if looks_like_secret(line)]
        logger.info(f"Found {len(parsed.secrets)} secret keys in simple format")
        return parsed

    section = None
    listed_addresses: List[str] = []

    for line in lines:
        if line in SECTION_HEADERS:
            section = line
            continue

        if section == SECTION_PRIVATE_KEYS:
            if looks_like_secret(line):
                parsed.secrets.append(line)
        elif section == SECTION_WALLET_ADDRESSES:
            if looks_like_address(line):
                listed_addresses.append(line)
        elif section == SECTION_PAIRS:
            if looks_like_secret(line):
                parsed.secrets.append(line)
            elif looks_like_address(line) and parsed.secrets:
                parsed.provided_addresses[len(parsed.secrets) - 1] = line

    for index, address in enumerate(listed_addresses):
        if index < len(parsed.secrets):
            parsed.provided_addresses.setdefault(index, address)

    logger.info(
        f"Found {len(parsed.secrets)} secret keys and {len(parsed.provided_addresses)} "
        f"addresses in structured format"
    )
    return parsed
