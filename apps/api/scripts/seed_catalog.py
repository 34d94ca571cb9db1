import asyncio
import os
import sys

# Add parent dir to path to find the app modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import Base, async_session_maker, engine
import models  # noqa: F401
from services.catalog import seed_catalog


async def seed_catalog_async():
    print("🌱 Seeding service catalog and plans...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with async_session_maker() as session:
        seeded = await seed_catalog(session)
    print(f"✅ Seeded {seeded['services']} services and {seeded['plans']} plans")
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed_catalog_async())
