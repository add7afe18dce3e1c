#!/usr/bin/env python3
"""Log in with credentials from the environment and print what the client mirrors."""
import asyncio
import os
from dotenv import load_dotenv

from campus_sync import CampusApp
from campus_sync.core.exceptions import CampusSyncException
from campus_sync.core.logging import setup_logging
from campus_sync.schemas import Role

load_dotenv()


async def sync_snapshot():
    username = os.getenv("CAMPUS_USERNAME")
    password = os.getenv("CAMPUS_PASSWORD")
    role = os.getenv("CAMPUS_ROLE", "admin")
    if not username or not password:
        print("CAMPUS_USERNAME / CAMPUS_PASSWORD not found in environment")
        return

    setup_logging()
    app = CampusApp()
    async with app.lifespan():
        try:
            user = await app.login(username, password, Role(role))
        except CampusSyncException as e:
            print(f"Login failed: {e.message}")
            return

        print(f"Logged in as {user.username} ({user.role.value}), state: {app.state.value}")
        for name, count in app.sync.snapshot_counts().items():
            print(f"  {name}: {count}")
        print(f"  chat messages: {len(app.store.chat_messages)}")
        print(f"  chat open now: {app.sync.chat.is_open()}")


if __name__ == "__main__":
    asyncio.run(sync_snapshot())
