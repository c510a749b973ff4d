#!/usr/bin/env python
import sys
import signal
import asyncio
import logging
import argparse
from typing import List, Optional
from loguru import logger

from rentcollector.config import RPC_URL, FEE_PAYER_PRIVATE_KEY, LOG_LEVEL, LAMPORTS_PER_SOL
from rentcollector.errors import ConfigurationError, KeyFormatError, ValidationError
from rentcollector.solana.integration import RentCollectorService
from rentcollector.solana.models import ProgressEvent
from rentcollector.state.config_store import ConfigStore


def setup_logging():
    """Configure structured logging with loguru."""
    logger.remove()  # Remove default handler
    logger.add(
        "logs/collector_{time}.log",
        rotation="1 day",
        retention="14 days",
        level=LOG_LEVEL,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message} | {extra}",
        serialize=True,  # JSON formatting for structured logs
    )

    # Also send logs to stdout
    logger.add(
        lambda msg: print(msg, end=""),
        level=LOG_LEVEL,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}"
    )

    # Redirect httpx / solana-py loggers to loguru
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)


class InterceptHandler(logging.Handler):
    """Intercept standard logging and redirect to loguru."""
    def emit(self, record):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Close token accounts and sweep SOL from wallets to a fee payer")
    parser.add_argument("--wallets", nargs="+", required=True, help="Wallet text files to load")
    parser.add_argument("--rpc", type=str, default=None, help="RPC endpoint URL (overrides saved config and RPC_URL)")
    parser.add_argument("--fee-payer", type=str, default=None, help="Fee payer private key (base58)")
    parser.add_argument("--single", type=int, default=None, help="Process only the wallet at this index")
    parser.add_argument("--save-config", action="store_true", help="Save RPC URL and fee payer for later runs")
    return parser


def print_progress(event: ProgressEvent) -> None:
    logger.info(f"[{event.current}/{event.total}] {event.wallet_id}: {event.status}")


async def main(argv: Optional[List[str]] = None) -> int:
    """Run the rent collector from the command line."""
    setup_logging()
    args = build_parser().parse_args(argv)

    logger.info("Starting Solana rent collector")

    config_store = ConfigStore()
    saved = config_store.load()
    rpc_url = args.rpc or saved.get("rpcUrl") or RPC_URL
    fee_payer_key = args.fee_payer or saved.get("feePayerKey") or FEE_PAYER_PRIVATE_KEY

    service = RentCollectorService()
    try:
        if not rpc_url:
            raise ConfigurationError("RPC URL not set (use --rpc or RPC_URL)")
        if not fee_payer_key:
            raise ConfigurationError("Fee payer not set (use --fee-payer or FEE_PAYER_PRIVATE_KEY)")
        service.set_rpc_endpoint(rpc_url)
        service.set_fee_payer(fee_payer_key)

        if args.save_config:
            config_store.update(rpc_url=rpc_url, fee_payer_key=fee_payer_key)

        loaded = service.load_wallets(args.wallets)
        for path, error in loaded.errors.items():
            logger.error(f"Could not load {path}: {error}")
        logger.info(f"{loaded.count} wallets loaded ({loaded.new_wallets_count} new)")

        if args.single is not None:
            result = await service.process_single_wallet(args.single)
            status = f"failed: {result.error}" if result.failed else "done"
            logger.info(
                f"Wallet {result.wallet_id} {status}; "
                f"{result.token_accounts_closed} accounts closed, "
                f"{result.total_recovered / LAMPORTS_PER_SOL:.6f} SOL recovered"
            )
            return 0

        stop_requested = False

        def request_stop():
            nonlocal stop_requested
            if not stop_requested:
                logger.warning("Stop requested; finishing the current wallet")
            stop_requested = True

        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, request_stop)
        except NotImplementedError:
            # Not available on Windows event loops; Ctrl-C then interrupts immediately
            pass

        summary = await service.process_all_wallets(print_progress, lambda: stop_requested)
        logger.info(
            f"Summary: {summary.successful_wallets}/{summary.total_wallets} wallets successful, "
            f"{summary.failed_wallets} failed, "
            f"{summary.total_recovered / LAMPORTS_PER_SOL:.6f} SOL recovered"
            + (" (stopped early)" if summary.aborted else "")
        )
        return 0
    except (ConfigurationError, ValidationError, KeyFormatError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
