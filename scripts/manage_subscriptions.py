#!/usr/bin/env python3
"""
Subscription Management Script

Manage price alerts directly in the database, without going through the
Telegram bot. Useful for seeding alerts and for inspecting what the monitor
is watching.

Usage:
    python scripts/manage_subscriptions.py add --telegram-id 12345 --market 789 --threshold 20
    python scripts/manage_subscriptions.py add --telegram-id 12345 --market 790 --threshold 15 --token 0xabc...
    python scripts/manage_subscriptions.py list --telegram-id 12345
    python scripts/manage_subscriptions.py remove --telegram-id 12345 --subscription-id 3
    python scripts/manage_subscriptions.py history --subscription-id 3
"""
import asyncio
import sys
import argparse
from pathlib import Path
from typing import Dict, List

# Add parent directory to path to import spikebot modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from spikebot.core.config import settings
from spikebot.core.database import AsyncSessionLocal, init_db
from spikebot.services import (
    UserService,
    SubscriptionService,
    AlertHistoryService,
    MaxMarketsExceeded
)
from spikebot.utils.formatting import format_alerts_list
from spikebot.utils.time import format_timestamp


async def add_subscription(args) -> int:
    async with AsyncSessionLocal() as db:
        user = await UserService.get_or_create_user(db, args.telegram_id, args.username)
        try:
            sub = await SubscriptionService.create_or_update_subscription(
                db,
                user_id=user.id,
                market_id=args.market,
                threshold_pct=args.threshold,
                token_id=args.token,
                market_name=args.name
            )
        except MaxMarketsExceeded as e:
            print(f"❌ {e}")
            return 1
        except ValueError as e:
            print(f"❌ Invalid subscription: {e}")
            return 1

    print(f"✅ Subscription {sub.id}: market #{sub.market_id} at ±{sub.threshold_pct:.1f}%")
    return 0


async def list_subscriptions(args) -> int:
    async with AsyncSessionLocal() as db:
        user = await UserService.get_user_by_telegram_id(db, args.telegram_id)
        if not user:
            print(f"⚠️  No user with Telegram ID {args.telegram_id}")
            return 1
        subs = await SubscriptionService.get_user_subscriptions(db, user.id)

    grouped: Dict[str, List[dict]] = {}
    for sub in subs:
        grouped.setdefault(sub.market_id, []).append({"id": sub.id, "threshold_pct": sub.threshold_pct})

    print(format_alerts_list(grouped, settings.max_markets_per_user))
    return 0


async def remove_subscription(args) -> int:
    async with AsyncSessionLocal() as db:
        user = await UserService.get_user_by_telegram_id(db, args.telegram_id)
        if not user:
            print(f"⚠️  No user with Telegram ID {args.telegram_id}")
            return 1
        removed = await SubscriptionService.deactivate_subscription(db, args.subscription_id, user.id)

    if not removed:
        print(f"⚠️  Subscription {args.subscription_id} not found or already inactive")
        return 1
    print(f"✅ Subscription {args.subscription_id} deactivated")
    return 0


async def show_history(args) -> int:
    async with AsyncSessionLocal() as db:
        sub = await SubscriptionService.get_subscription(db, args.subscription_id)
        if not sub:
            print(f"⚠️  Subscription {args.subscription_id} not found")
            return 1
        rows = await AlertHistoryService.get_history_for_subscription(db, args.subscription_id, args.limit)

    label = sub.market_name or f"market #{sub.market_id}"
    state = "active" if sub.active else "inactive"
    print(f"Subscription {sub.id}: {label} at ±{sub.threshold_pct:.1f}% ({state})")

    if not rows:
        print("No alert history yet.")
        return 0

    for row in rows:
        status = "✅" if row.message_delivered else "❌"
        print(
            f"{status} {format_timestamp(row.triggered_at, settings.display_timezone)} | "
            f"market #{row.market_id} | {row.previous_price:.4f} → {row.current_price:.4f} "
            f"({row.change_pct:+.2f}%)"
        )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage price spike subscriptions")
    sub = parser.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="Create or update an alert")
    add.add_argument("--telegram-id", type=int, required=True)
    add.add_argument("--username")
    add.add_argument("--market", required=True)
    add.add_argument("--threshold", type=float, required=True, help="Percent, e.g. 20 for ±20%%")
    add.add_argument("--token", help="Explicit outcome token ID")
    add.add_argument("--name", help="Market display name")
    add.set_defaults(handler=add_subscription)

    lst = sub.add_parser("list", help="List a user's active alerts")
    lst.add_argument("--telegram-id", type=int, required=True)
    lst.set_defaults(handler=list_subscriptions)

    rm = sub.add_parser("remove", help="Deactivate an alert")
    rm.add_argument("--telegram-id", type=int, required=True)
    rm.add_argument("--subscription-id", type=int, required=True)
    rm.set_defaults(handler=remove_subscription)

    hist = sub.add_parser("history", help="Show triggered alerts for a subscription")
    hist.add_argument("--subscription-id", type=int, required=True)
    hist.add_argument("--limit", type=int, default=20)
    hist.set_defaults(handler=show_history)

    return parser


async def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    await init_db()
    return await args.handler(args)


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
