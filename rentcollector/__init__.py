"""
Solana rent collector.

Closes the token accounts of a batch of wallets to recover their rent
deposits and sweeps each wallet's remaining SOL to a fee payer wallet.
"""
