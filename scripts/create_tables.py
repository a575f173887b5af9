import asyncio

from coinboard.db.bootstrap import ensure_storage_schema
from coinboard.db.session import engine


async def main():
    await ensure_storage_schema(engine)
    await engine.dispose()
    print("✅ client storage table created/verified")


if __name__ == "__main__":
    asyncio.run(main())
