"""Seed the database with demo users and a few active reports."""

import asyncio

from radarpro.db.engine import async_session_factory, create_all, engine
from radarpro.db import crud


DEMO_REPORTS = [
    ("police_checkpoint", "Checkpoint on the northbound ramp", 40.7128, -74.0060),
    ("accident", "Two cars, right lane blocked", 40.7306, -73.9866),
    ("road_hazard", "Large pothole near the bus stop", 40.7411, -73.9897),
    ("traffic_jam", "Stop and go past the bridge", 40.7061, -73.9969),
    ("weather_alert", "Flooding under the overpass", 40.7580, -73.9855),
    ("general", "Street fair, expect detours", 40.7359, -74.0036),
]


async def seed():
    await create_all()

    async with async_session_factory() as db:
        if await crud.get_user_by_email(db, "alice@example.com"):
            print("Demo users already exist, skipping seed.")
            return

        alice = await crud.create_user(db, "alice@example.com", "alice")
        bob = await crud.create_user(db, "bob@example.com", "bob")
        print(f"Created users: {alice.username} (id: {alice.id}), {bob.username} (id: {bob.id})")

        for i, (category, description, lat, lon) in enumerate(DEMO_REPORTS):
            author = alice if i % 2 == 0 else bob
            report = await crud.create_report(db, author.id, category, description, lat, lon)
            print(f"Created {category} report {report.id} by {author.username}")

    await engine.dispose()
    print("\nSeed complete. Start the server with: uvicorn radarpro.main:app --reload")
    print("Send X-User-Id with one of the ids above.")


if __name__ == "__main__":
    asyncio.run(seed())
