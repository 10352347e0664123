"""Create student accounts in the credential database.

Without ``--file`` the two development accounts are created. A file holds a
JSON list of ``{"username", "password", "userId"}`` objects. Existing
usernames are left untouched.
"""

import argparse
import asyncio
import json
from pathlib import Path
from typing import Dict, List, Optional

from practice.db import base
from practice.services.users import UserService

DEFAULT_USERS = [
    {"username": "user1", "password": "password1", "userId": "user_001"},
    {"username": "user2", "password": "password2", "userId": "user_002"},
]


def load_users(path: Optional[Path]) -> List[Dict[str, str]]:
    if path is None:
        return DEFAULT_USERS
    users = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(users, list):
        raise ValueError(f"{path} must contain a JSON list")
    for entry in users:
        missing = {"username", "password", "userId"} - set(entry)
        if missing:
            raise ValueError(f"user entry missing fields: {sorted(missing)}")
    return users


async def seed_users(users: List[Dict[str, str]]) -> List[str]:
    """Create missing accounts; returns the usernames created."""
    created = []
    async with base.session_scope() as session:
        service = UserService(session)
        for entry in users:
            if await service.get_by_username(entry["username"]):
                print(f"= {entry['username']} already exists")
                continue
            await service.create_user(
                username=entry["username"],
                password=entry["password"],
                user_id=entry["userId"],
            )
            created.append(entry["username"])
            print(f"+ {entry['username']} ({entry['userId']})")
    await base.close_db()
    return created


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed student accounts")
    parser.add_argument("-f", "--file", type=Path, help="JSON list of users")
    args = parser.parse_args()

    created = asyncio.run(seed_users(load_users(args.file)))
    print(f"Created {len(created)} account(s)")


if __name__ == "__main__":
    main()
