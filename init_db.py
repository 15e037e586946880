"""Create the ordering tables in DATABASE_URL"""
import asyncio
from ordering.database import engine, Base
from ordering.models import *  # noqa: F401,F403 - Import all models to register them


async def init():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    print("Ordering tables created successfully.")


if __name__ == "__main__":
    asyncio.run(init())
