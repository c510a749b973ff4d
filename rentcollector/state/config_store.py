"""
Persisted shell configuration.

Holds the RPC endpoint and fee payer secret between runs as a small
key-value JSON file (``rpcUrl``, ``feePayerKey``).
"""

import os
import json
from typing import Dict, Optional
from loguru import logger

from rentcollector.config import CONFIG_FILE

RPC_URL_KEY = "rpcUrl"
FEE_PAYER_KEY = "feePayerKey"


class ConfigStore:
    """Reads and writes the shell configuration file."""

    def __init__(self, path: str = CONFIG_FILE):
        """
        Initialize the config store.

        Args:
            path: Location of the JSON configuration file
        """
        self.path = path

    def load(self) -> Dict[str, str]:
        """
        Load the configuration.

        Returns:
            Configuration dict; empty if the file is missing or unreadable
        """
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading config from {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring config file {self.path}: not a JSON object")
            return {}
        return data

    def save(self, config: Dict[str, str]) -> None:
        """
        Write the configuration, replacing the file.

        Args:
            config: Configuration dict
        """
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        logger.info(f"Saved config to {self.path}")

    def update(self, rpc_url: Optional[str] = None, fee_payer_key: Optional[str] = None) -> Dict[str, str]:
        """Merge the given values into the stored configuration and save it."""
        config = self.load()
        if rpc_url is not None:
            config[RPC_URL_KEY] = rpc_url
        if fee_payer_key is not None:
            config[FEE_PAYER_KEY] = fee_payer_key
        self.save(config)
        return config

    @property
    def rpc_url(self) -> Optional[str]:
        return self.load().get(RPC_URL_KEY)

    @property
    def fee_payer_key(self) -> Optional[str]:
        return self.load().get(FEE_PAYER_KEY)
