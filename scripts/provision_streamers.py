#!/usr/bin/env python3
"""
Streamer Provisioning Script

Seeds Telegram users, the streamers they track, polling tiers and group
chats directly in the database.

Usage:
    python scripts/provision_streamers.py data.json

    Or with inline data:
    python scripts/provision_streamers.py --inline '[{"telegram_id": 123, "streamers": ["simfonira"]}]'

Input Format (JSON):
[
    {
        "telegram_id": 123456789,
        "username": "viewer",              // Optional
        "first_name": "Ann",               // Optional
        "streamers": [
            "simfonira",                   // Plain nickname, normal tier
            {"nickname": "vipstreamer", "priority": 3, "notify_in_pm": false}
        ],
        "groups": [                        // Optional
            {"chat_id": -100123, "title": "Fans", "streamers": ["simfonira"]}
        ]
    }
]
"""
import asyncio
import json
import sys
import argparse
from pathlib import Path
from typing import Dict, List

# Add parent directory to path to import wishwatch modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from wishwatch.core.database import AsyncSessionLocal, init_db
from wishwatch.services import StreamerService, RecipientService


def normalize_streamer_entry(entry) -> Dict:
    """Accept either a nickname string or an object with a nickname."""
    if isinstance(entry, str):
        return {"nickname": entry}
    if isinstance(entry, dict) and entry.get("nickname"):
        return entry
    raise ValueError(f"Invalid streamer entry: {entry!r}")


async def provision_user(db, user_data: Dict) -> Dict[str, int]:
    """
    Provision one user with tracked streamers and linked groups.

    Returns:
        Counters of tracked streamers and linked groups
    """
    telegram_id = user_data.get("telegram_id")
    if not telegram_id:
        raise ValueError("telegram_id is required")

    user = await RecipientService.get_or_create_user(
        db,
        telegram_id=int(telegram_id),
        username=user_data.get("username"),
        first_name=user_data.get("first_name")
    )

    tracked = 0
    for raw in user_data.get("streamers", []):
        entry = normalize_streamer_entry(raw)
        streamer = await StreamerService.get_or_create_streamer(
            db,
            entry["nickname"],
            name=entry.get("name")
        )
        await StreamerService.track_streamer(db, user.id, streamer.id)

        if "priority" in entry:
            await StreamerService.set_priority(db, streamer.id, int(entry["priority"]))

        if "notifications_enabled" in entry or "notify_in_pm" in entry:
            await RecipientService.set_user_streamer_settings(
                db,
                user.id,
                streamer.id,
                notifications_enabled=entry.get("notifications_enabled"),
                notify_in_pm=entry.get("notify_in_pm")
            )
        tracked += 1

    groups = 0
    for group_data in user_data.get("groups", []):
        group = await RecipientService.link_group(
            db,
            chat_id=int(group_data["chat_id"]),
            added_by_user_id=user.id,
            title=group_data.get("title")
        )
        for nickname in group_data.get("streamers", []):
            streamer = await StreamerService.get_by_nickname(db, nickname)
            if streamer is None:
                print(f"⚠️  Group {group.chat_id}: streamer {nickname} is not tracked by this user, skipped")
                continue
            await RecipientService.set_group_streamer_enabled(db, group.id, streamer.id, True)
        groups += 1

    return {"tracked": tracked, "groups": groups}


async def provision(users_data: List[Dict]) -> None:
    """
    Provision every user entry.

    Args:
        users_data: List of user dictionaries
    """
    await init_db()

    provisioned = 0
    failed = 0
    tracked = 0
    groups = 0

    async with AsyncSessionLocal() as db:
        for user_data in users_data:
            try:
                counts = await provision_user(db, user_data)
            except Exception as e:
                await db.rollback()
                print(f"❌ Error provisioning {user_data.get('telegram_id')}: {e}")
                failed += 1
                continue

            provisioned += 1
            tracked += counts["tracked"]
            groups += counts["groups"]
            print(
                f"✅ User {user_data['telegram_id']}: "
                f"{counts['tracked']} streamer(s), {counts['groups']} group(s)"
            )

    print("\n" + "="*60)
    print("Summary:")
    print(f"  ✅ Users: {provisioned}")
    print(f"  🎯 Streamer links: {tracked}")
    print(f"  👥 Groups: {groups}")
    print(f"  ⚠️  Failed: {failed}")
    print("="*60)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Provision users, tracked streamers and groups",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # From a JSON file
  python scripts/provision_streamers.py data.json

  # Inline JSON
  python scripts/provision_streamers.py --inline '[{"telegram_id": 123, "streamers": ["simfonira"]}]'

  # VIP tier
  python scripts/provision_streamers.py --inline '[{
    "telegram_id": 123,
    "streamers": [{"nickname": "simfonira", "priority": 3}]
  }]'
        """
    )

    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument(
        "file",
        nargs="?",
        help="Path to JSON file containing user data"
    )
    group.add_argument(
        "--inline",
        help="Inline JSON string containing user data"
    )

    args = parser.parse_args()

    try:
        if args.inline:
            users_data = json.loads(args.inline)
        else:
            with open(args.file, 'r') as f:
                users_data = json.load(f)

        if not isinstance(users_data, list):
            print("❌ Error: data must be a JSON array")
            sys.exit(1)

    except json.JSONDecodeError as e:
        print(f"❌ Error parsing JSON: {e}")
        sys.exit(1)
    except FileNotFoundError:
        print(f"❌ Error: File not found: {args.file}")
        sys.exit(1)

    print("🚀 Starting provisioning...")
    print("="*60)
    asyncio.run(provision(users_data))


if __name__ == "__main__":
    main()
