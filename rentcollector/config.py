import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Connection configuration
RPC_URL = os.getenv("RPC_URL")
FEE_PAYER_PRIVATE_KEY = os.getenv("FEE_PAYER_PRIVATE_KEY")
COMMITMENT = os.getenv("COMMITMENT", "confirmed")
RPC_TIMEOUT_SEC = float(os.getenv("RPC_TIMEOUT_SEC", "30"))

# Logging configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Persisted shell configuration (rpcUrl / feePayerKey)
CONFIG_FILE = os.getenv("CONFIG_FILE", os.path.join("data", "config.json"))

# Pacing configuration
BATCH_SIZE = int(os.getenv("BATCH_SIZE", "10"))
WALLET_DELAY_SEC = float(os.getenv("WALLET_DELAY_SEC", "1.5"))
BATCH_DELAY_SEC = float(os.getenv("BATCH_DELAY_SEC", "1.5"))
ACCOUNT_DELAY_SEC = float(os.getenv("ACCOUNT_DELAY_SEC", "1.0"))
BURN_DELAY_SEC = float(os.getenv("BURN_DELAY_SEC", "0.5"))

# Retry configuration
RETRY_MAX_RETRIES = int(os.getenv("RETRY_MAX_RETRIES", "3"))
RETRY_BASE_DELAY_SEC = float(os.getenv("RETRY_BASE_DELAY_SEC", "1.0"))

# Native balances below this are not swept (one signature fee)
DUST_LAMPORTS_FLOOR = int(os.getenv("DUST_LAMPORTS_FLOOR", "5000"))

LAMPORTS_PER_SOL = 1_000_000_000

# Wallet file heuristics (base58 encoded lengths)
SECRET_MIN_LENGTH = 80
SECRET_MAX_LENGTH = 90
ADDRESS_MIN_LENGTH = 40
ADDRESS_MAX_LENGTH = 50

# Wallet file section headers
SECTION_PRIVATE_KEYS = "PRIVATE KEYS:"
SECTION_WALLET_ADDRESSES = "WALLET ADDRESSES:"
SECTION_PAIRS = "PRIVATE KEYS / ADDRESS:"


# Progress statuses shown to the user
class ProgressStatus:
    PROCESSING = "Processing wallet..."
    FAILED = "Failed to process"
    STOPPED = "Stopped before processing"
