#!/usr/bin/env python3
"""
Script to print creator trust signals straight from the database.
"""

import asyncio
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from apps.moderation.services import build_moderation_services
from core.config import settings
from core.db import AsyncSessionLocal, engine


async def check_creator_trust(creator_ids: list[int]) -> None:
    services = build_moderation_services(AsyncSessionLocal, settings.moderation_policy())
    try:
        signals = await services.trust.score_creators(creator_ids)
    finally:
        await engine.dispose()

    missing = [creator_id for creator_id in creator_ids if creator_id not in signals]
    for creator_id, item in signals.items():
        print(f"Creator {creator_id}: score={item.trust_score}, risk={item.risk_level}")
        print(f"   Recommended action: {item.recommended_action}")
        print(f"   Flags: {', '.join(item.flags) or 'none'}")
        for reason in item.reasons:
            print(f"   - {reason}")
        print()

    if missing:
        print(f"Not creators or not found: {', '.join(str(creator_id) for creator_id in missing)}")


def main() -> None:
    """Main entry point."""
    if len(sys.argv) < 2:
        print("Usage: python check_creator_trust.py <creator_id> [<creator_id> ...]")
        sys.exit(1)

    asyncio.run(check_creator_trust([int(arg) for arg in sys.argv[1:]]))


if __name__ == "__main__":
    main()
