#!/usr/bin/env python3
"""Command line entry point for the Jito bundle sniper"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from pydantic import ValidationError

from sniper.config import Settings, load_settings
from sniper.core.errors import ConfigurationError, SwapError
from sniper.core.execution.models import SwapRequest
from sniper.core.swap.orchestrator import SwapOrchestrator
from sniper.logging_config import setup_logging
from sniper.providers.solana import SolanaRpcProvider
from sniper.services.events import RaydiumPoolListener
from sniper.services.work_queue import SwapQueueRunner, WorkQueue, WorkQueueError

logger = logging.getLogger("sniper.cli")

EXIT_OK = 0
EXIT_SWAP_FAILED = 1
EXIT_CONFIG = 2


async def cli_run(settings: Settings, queue_path: str, retry_failed: bool) -> int:
    """Process every pending entry of the work-queue once"""
    settings.require_swap_credentials()
    queue = WorkQueue(queue_path)
    orchestrator = SwapOrchestrator.from_settings(settings)
    logger.info("Using wallet %s", orchestrator.wallet_address)

    try:
        summary = await SwapQueueRunner(queue, orchestrator, retry_failed=retry_failed).run()
    finally:
        await orchestrator.close()

    print(f"\nAll swaps processed: {summary.completed} completed, "
          f"{summary.failed} failed, {summary.skipped} skipped")
    return EXIT_OK


async def cli_swap(settings: Settings, input_mint: str, output_mint: str, amount: int,
                   slippage_bps: int, tip: Optional[int]) -> int:
    """Execute a single swap without touching the work-queue"""
    settings.require_swap_credentials()
    request = SwapRequest(
        inputMint=input_mint,
        outputMint=output_mint,
        amount=amount,
        slippageBps=slippage_bps,
        jitoTip=tip,
    )
    orchestrator = SwapOrchestrator.from_settings(settings)
    logger.info("Using wallet %s", orchestrator.wallet_address)

    try:
        outcome = await orchestrator.execute_swap(request)
    except SwapError as e:
        print(f"❌ Swap failed: {e}")
        return EXIT_SWAP_FAILED
    finally:
        await orchestrator.close()

    print(f"✅ Bundle landed at slot {outcome.landed_slot}")
    print(f"   {outcome.explorer_url}")
    return EXIT_OK


async def cli_listen(settings: Settings, queue_path: str) -> int:
    """Watch for new Raydium pools and queue a swap for each"""
    settings.require_listener_endpoints()
    queue = WorkQueue(queue_path)
    rpc = SolanaRpcProvider(settings.rpc_endpoint, timeout_s=settings.request_timeout_seconds)
    listener = RaydiumPoolListener(
        ws_url=settings.ws_endpoint,
        rpc=rpc,
        program_id=settings.raydium_program_id,
        instruction=settings.pool_instruction,
        request_defaults={
            "amount": settings.default_amount,
            "slippageBps": settings.default_slippage_bps,
            "priorityFee": settings.default_priority_fee,
            "computeUnits": settings.default_compute_units,
            "jitoTip": settings.default_jito_tip,
        },
    )
    listener.on_pool(queue.append)

    try:
        await listener.start()
    finally:
        await rpc.close()
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Jito bundle sniper for new Raydium pools")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Process the work-queue")
    run_parser.add_argument("--queue", default=None, help="Work-queue file (default: QUEUE_PATH)")
    run_parser.add_argument("--retry-failed", action="store_true",
                            help="Also re-attempt entries already marked failed")

    swap_parser = subparsers.add_parser("swap", help="Execute one swap")
    swap_parser.add_argument("input_mint")
    swap_parser.add_argument("output_mint")
    swap_parser.add_argument("amount", type=int, help="Amount in the input token's smallest unit")
    swap_parser.add_argument("--slippage-bps", type=int, default=50)
    swap_parser.add_argument("--tip", type=int, default=None, help="Jito tip in lamports")

    listen_parser = subparsers.add_parser("listen", help="Queue swaps for new Raydium pools")
    listen_parser.add_argument("--queue", default=None, help="Work-queue file (default: QUEUE_PATH)")

    return parser


def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)

    setup_logging(args.log_level)
    try:
        settings = load_settings()
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG
    if not args.log_level:
        setup_logging(settings.log_level)

    try:
        if args.command == "run":
            return asyncio.run(cli_run(
                settings,
                args.queue or str(settings.queue_path),
                args.retry_failed or settings.retry_failed,
            ))
        if args.command == "swap":
            return asyncio.run(cli_swap(
                settings,
                args.input_mint,
                args.output_mint,
                args.amount,
                args.slippage_bps,
                args.tip,
            ))
        if args.command == "listen":
            return asyncio.run(cli_listen(settings, args.queue or str(settings.queue_path)))
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG
    except WorkQueueError as e:
        logger.error("Work-queue error: %s", e)
        return EXIT_CONFIG
    except ValidationError as e:
        logger.error("Invalid swap request: %s", e)
        return EXIT_SWAP_FAILED
    except KeyboardInterrupt:
        print("\nInterrupted")
        return EXIT_OK

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
