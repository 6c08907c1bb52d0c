"""Initialize database tables.

Usage::

    python -m prompt_manager.scripts.init_db
"""

import asyncio

from prompt_manager.core.database import init_db


async def main():
    print("Initializing database tables...")
    await init_db()
    print("Database initialization complete!")


if __name__ == "__main__":
    asyncio.run(main())
