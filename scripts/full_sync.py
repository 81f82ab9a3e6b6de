#!/usr/bin/env python3
"""
Full Shopee sync for one shop or every connected shop

Runs flash sales, products and ads in sequence and prints a summary:

    python scripts/full_sync.py                 # all shops
    python scripts/full_sync.py --shop 123456   # one shop
    python scripts/full_sync.py --kind ads      # one resource kind
"""
import argparse
import asyncio
import time
from datetime import datetime
from zoneinfo import ZoneInfo

from shopsync.config import get_settings
from shopsync.dependencies import get_credential_store, get_orchestrator
from shopsync.models.base import init_db
from shopsync.services.sync_orchestrator import RESOURCE_KINDS

settings = get_settings()
MARKETPLACE_TZ = ZoneInfo(settings.marketplace_timezone)


class Colors:
    HEADER = '\033[95m'
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    RED = '\033[91m'
    BOLD = '\033[1m'
    END = '\033[0m'


def log(message: str, color: str = ''):
    """Log with marketplace-local timestamp and optional color"""
    timestamp = datetime.now(MARKETPLACE_TZ).strftime('%Y-%m-%d %H:%M:%S')
    print(f"{color}[{timestamp}] {message}{Colors.END}")


def log_header(title: str):
    print()
    print(f"{Colors.BOLD}{Colors.HEADER}{'='*70}")
    print(f"  {title}")
    print(f"{'='*70}{Colors.END}")
    print()


async def main(shop_id=None, kinds=RESOURCE_KINDS) -> int:
    log_header("Shopee Full Sync")
    init_db()

    shops = get_credential_store().list_shops()
    if shop_id is not None:
        shops = [s for s in shops if s["shop_id"] == shop_id]
    if not shops:
        log("No connected shops to sync", Colors.RED)
        return 1

    orchestrator = get_orchestrator()
    failures = 0
    total_start = time.time()

    for shop in shops:
        log_header(f"Shop {shop['shop_id']} {shop.get('shop_name') or ''}".strip())
        for kind in kinds:
            outcome = await orchestrator.run(shop["shop_id"], kind, user_id="full_sync")
            if outcome.success:
                log(f"{kind}: {outcome.result} ({outcome.duration_seconds:.1f}s)", Colors.GREEN)
            else:
                failures += 1
                log(f"{kind} failed at {outcome.failed_step}: {outcome.error}", Colors.RED)

    log(f"Finished in {time.time() - total_start:.1f}s with {failures} failure(s)", Colors.CYAN)
    return 1 if failures else 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Sync Shopee data for connected shops")
    parser.add_argument("--shop", type=int, help="Only sync this shop_id")
    parser.add_argument("--kind", choices=RESOURCE_KINDS, action="append", help="Resource kind (repeatable)")
    args = parser.parse_args()
    raise SystemExit(asyncio.run(main(args.shop, tuple(args.kind or RESOURCE_KINDS))))
