#!/usr/bin/env python3
"""
Initialize MongoDB collections and indexes for the scheduling service
"""
import asyncio
from motor.motor_asyncio import AsyncIOMotorClient
from app import config
from app.db import ensure_indexes

COLLECTIONS = [
    "time_slots",
    "time_slot_limits",
    "schedules",
    "shift_cancellation_requests",
    "notifications",
    "system_settings",
]

async def init_collections():
    client = AsyncIOMotorClient(config.MONGODB_URI)
    db = client.get_default_database()

    print("🔧 Initializing MongoDB collections for scheduling...")

    existing = set(await db.list_collection_names())
    for name in COLLECTIONS:
        if name in existing:
            print(f"ℹ️  {name} collection already exists")
            continue
        await db.create_collection(name)
        print(f"✅ Created {name} collection")

    await ensure_indexes(db)
    print("✅ Indexes ensured")

    # Seed the singleton settings document so admins see the active default
    if not await db["system_settings"].find_one({}):
        await db["system_settings"].insert_one({"first_day_of_week": config.DEFAULT_FIRST_DAY_OF_WEEK})
        print(f"✅ Seeded system_settings with first_day_of_week={config.DEFAULT_FIRST_DAY_OF_WEEK}")

    client.close()
    print("🎉 MongoDB initialization complete!")

if __name__ == "__main__":
    asyncio.run(init_collections())
