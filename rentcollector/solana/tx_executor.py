"""
Transaction execution for Solana.
"""

from typing import Dict, List, Sequence
from loguru import logger

from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.transaction import Transaction

from rentcollector.solana.ledger_client import LedgerClient
from rentcollector.solana.retry_policy import RetryPolicy


class TxExecutor:
    """
    Builds, signs and submits fee-payer-funded transactions.

    Every transaction is paid by the fee payer and co-signed by the wallets
    authorizing its instructions. Submissions go through the retry policy;
    a fresh blockhash is fetched on every attempt.
    """

    def __init__(self, ledger: LedgerClient, retry: RetryPolicy, fee_payer: Keypair):
        """
        Initialize the transaction executor.

        Args:
            ledger: Ledger client used to fetch blockhashes and submit
            retry: Retry policy wrapping each submission
            fee_payer: Keypair paying every transaction fee
        """
        self.ledger = ledger
        self.retry = retry
        self.fee_payer = fee_payer

    @property
    def fee_payer_id(self) -> str:
        return str(self.fee_payer.pubkey())

    def _signers(self, authorities: Sequence[Keypair]) -> List[Keypair]:
        # Fee payer signs first; a wallet that is also the fee payer signs once
        unique: Dict[str, Keypair] = {self.fee_payer_id: self.fee_payer}
        for keypair in authorities:
            unique.setdefault(str(keypair.pubkey()), keypair)
        return list(unique.values())

    async def _build_and_send(self, instructions: List[Instruction], signers: List[Keypair]) -> str:
        blockhash = await self.ledger.get_latest_blockhash()
        message = Message.new_with_blockhash(instructions, self.fee_payer.pubkey(), blockhash)
        transaction = Transaction(signers, message, blockhash)
        return await self.ledger.send_and_confirm(transaction)

    async def execute(self, instructions: List[Instruction], authorities: Sequence[Keypair], description: str) -> str:
        """
        Submit one transaction and wait for confirmation.

        Args:
            instructions: Instructions to include, in order
            authorities: Keypairs authorizing the instructions (besides the fee payer)
            description: Human readable name used in logs

        Returns:
            Transaction signature

        Raises:
            TransactionError: If submission or confirmation failed
            RetryExhaustedError: If the ledger kept rate limiting the submission
        """
        signers = self._signers(authorities)
        signature = await self.retry.call(
            self._build_and_send,
            instructions,
            signers,
            description=description,
        )
        logger.info(f"{description} confirmed: {signature}")
        return signature
