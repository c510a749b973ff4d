"""
Error taxonomy for the rent collector.
"""


class RentCollectorError(Exception):
    """Base exception for rent collector errors."""
    pass


class ValidationError(RentCollectorError):
    """Malformed or empty wallet input."""
    pass


class KeyFormatError(RentCollectorError):
    """A line classified as a secret could not be decoded into a key pair."""
    pass


class ConfigurationError(RentCollectorError):
    """RPC endpoint or fee payer missing for an operation that needs them."""
    pass


class LedgerError(RentCollectorError):
    """A remote ledger call failed for a non-transient reason."""
    pass


class RateLimitedError(LedgerError):
    """The remote ledger rejected the call because of rate limiting."""
    pass


class RetryExhaustedError(LedgerError):
    """Retries ran out while the remote ledger kept rate limiting."""

    def __init__(self, message: str, last_error: Exception):
        super().__init__(message)
        self.last_error = last_error


class TransactionError(LedgerError):
    """Submission or confirmation of a transaction failed."""

    def __init__(self, message: str, signature=None):
        super().__init__(message)
        self.signature = signature


class DiscoveryError(LedgerError):
    """Every token account discovery strategy failed for a wallet."""
    pass


class WalletProcessingError(RentCollectorError):
    """A wallet could not be fully processed; carries the partial result."""

    def __init__(self, message: str, result):
        super().__init__(message)
        self.result = result
